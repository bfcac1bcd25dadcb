# generate/cli.py
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from engine.db import create_db_engine, get_settings
from engine.errors import ExtractionError, SchemaParseError
from engine.extract import ExtractionMode, extract_table
from engine.meta_models import DatabaseDesign
from engine.reflect import design_from_engine
from engine.sql_parser import parse_schema_file
from generate.ddl import generate_ddl
from generate.loader import InvalidDesignError, load_design, save_design
from generate.typescript import write_declarations

app = typer.Typer(help="Schema constraint extraction and type generation CLI")

@app.callback()
def _configure(log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL")):
    level = (log_level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO))

# ---------------------------
# Core utilities
# ---------------------------
def _require_design(source: Optional[str]) -> DatabaseDesign:
    """Load a design from a .sql schema or a design .json; exits on failure."""
    settings = get_settings()
    path = Path(source or settings.DESIGN_PATH)
    try:
        if path.suffix.lower() == ".sql":
            return parse_schema_file(path, unknown_as_text=settings.UNKNOWN_TYPES_AS_TEXT)
        return load_design(str(path))
    except (SchemaParseError, InvalidDesignError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    except OSError as e:
        typer.echo(f"❌ Cannot read {path}: {e}")
        raise typer.Exit(code=1)

# ---------------------------
# Commands
# ---------------------------
@app.command(help="Parse CREATE TABLE statements into a design.json snapshot.")
def parse(
    schema: str = typer.Argument(..., help="Path to the .sql schema"),
    out: Optional[str] = typer.Option(None, help="Design output path (default DESIGN_PATH)"),
    unknown_as_text: bool = typer.Option(False, "--unknown-as-text", help="Map unknown SQL types to TEXT"),
):
    settings = get_settings()
    try:
        design = parse_schema_file(schema, unknown_as_text=unknown_as_text or settings.UNKNOWN_TYPES_AS_TEXT)
    except SchemaParseError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    except OSError as e:
        typer.echo(f"❌ Cannot read {schema}: {e}")
        raise typer.Exit(code=1)
    written = save_design(design, out or settings.DESIGN_PATH)
    typer.echo(f"✅ {len(design.tables)} table(s) written to {written}")

@app.command(help="Validate a design (.json) or schema (.sql) file.")
def validate(source: Optional[str] = typer.Argument(None, help="Design or schema path")):
    design = _require_design(source)
    typer.echo(f"✅ design is valid ({len(design.tables)} tables).")

@app.command("export-types", help="Write TypeScript declarations for a design.")
def export_types(
    source: Optional[str] = typer.Argument(None, help="Design or schema path"),
    out: Optional[str] = typer.Option(None, help="Output .ts path (default TYPES_PATH)"),
    no_input: bool = typer.Option(False, "--no-input", help="Skip the <Table>Input interfaces"),
):
    design = _require_design(source)
    written = write_declarations(design, out or get_settings().TYPES_PATH, include_input=not no_input)
    typer.echo(f"✅ TypeScript declarations written to {written}")

@app.command("export-ddl", help="Export canonical CREATE TABLE DDL for a design.")
def export_ddl(
    source: Optional[str] = typer.Argument(None, help="Design or schema path"),
    out: str = typer.Option("schema.out.sql", help="Output .sql file path"),
):
    design = _require_design(source)
    with open(out, "w", encoding="utf-8") as f:
        f.write(generate_ddl(design))
    typer.echo(f"✅ DDL written to {out}")

@app.command(help="Check a JSON payload file against one table of a design.")
def check(
    table: str = typer.Argument(..., help="Table name"),
    payload: str = typer.Argument(..., help="Path to a JSON file with one object"),
    design_path: Optional[str] = typer.Option(None, "--design", help="Design or schema path"),
    mode: ExtractionMode = typer.Option(ExtractionMode.AGGREGATE, help="fail_fast | aggregate"),
    input_mode: bool = typer.Option(False, "--input", help="Treat generated fields as optional"),
):
    design = _require_design(design_path)
    table_design = design.get(table)
    if table_design is None:
        typer.echo(f"❌ Unknown table '{table}'. Known: {', '.join(design.table_names)}")
        raise typer.Exit(code=2)
    try:
        data = json.loads(Path(payload).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        typer.echo(f"❌ Cannot read payload {payload}: {e}")
        raise typer.Exit(code=2)
    try:
        record = extract_table(table_design, data, mode, input_mode=input_mode)
    except ExtractionError as e:
        typer.echo(json.dumps(e.to_dict(), indent=2))
        raise typer.Exit(code=1)
    typer.echo(json.dumps({"values": record.to_json(), "absent": list(record.absent)}, indent=2))

@app.command(help="Reflect a design from a live database (DATABASE_URL).")
def reflect(
    url: Optional[str] = typer.Option(None, help="SQLAlchemy URL (default DATABASE_URL)"),
    out: Optional[str] = typer.Option(None, help="Design output path (default DESIGN_PATH)"),
):
    settings = get_settings()
    db_url = url or settings.DATABASE_URL
    if not db_url:
        typer.echo("❌ No database URL. Pass --url or set DATABASE_URL.")
        raise typer.Exit(code=2)
    engine = create_db_engine(db_url)
    try:
        design = design_from_engine(engine, unknown_as_text=settings.UNKNOWN_TYPES_AS_TEXT)
    except SchemaParseError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        engine.dispose()
    written = save_design(design, out or settings.DESIGN_PATH)
    typer.echo(f"✅ {len(design.tables)} table(s) reflected to {written}")

@app.command(help="Serve the extraction API with uvicorn.")
def serve(host: str = "127.0.0.1", port: int = 8000):
    import uvicorn
    uvicorn.run("engine.main:app", host=host, port=port)

if __name__ == "__main__":
    app()
