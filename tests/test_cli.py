import json

from sqlalchemy import create_engine
from typer.testing import CliRunner

from generate.cli import app
from generate.loader import load_design

runner = CliRunner()

def test_parse_writes_design(tmp_path, schema_path):
    out = tmp_path / "design.json"
    result = runner.invoke(app, ["parse", str(schema_path), "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert "2 table(s)" in result.output
    assert load_design(str(out)).table_names == ("user", "post")

def test_parse_reports_schema_errors(tmp_path):
    bad = tmp_path / "bad.sql"
    bad.write_text("CREATE TABLE t (a INT, a INT);", encoding="utf-8")
    result = runner.invoke(app, ["parse", str(bad), "--out", str(tmp_path / "d.json")])
    assert result.exit_code == 1
    assert "duplicate column 'a'" in result.output
    assert not (tmp_path / "d.json").exists()

def test_parse_unknown_as_text(tmp_path):
    sql = tmp_path / "geo.sql"
    sql.write_text("CREATE TABLE places (geo GEOMETRY);", encoding="utf-8")
    assert runner.invoke(app, ["parse", str(sql), "--out", str(tmp_path / "a.json")]).exit_code == 1
    result = runner.invoke(app, ["parse", str(sql), "--out", str(tmp_path / "b.json"), "--unknown-as-text"])
    assert result.exit_code == 0, result.output

def test_validate(tmp_path, schema_path):
    assert runner.invoke(app, ["validate", str(schema_path)]).exit_code == 0
    bad = tmp_path / "design.json"
    bad.write_text(json.dumps({"tables": [{"tableName": "t"}]}), encoding="utf-8")
    result = runner.invoke(app, ["validate", str(bad)])
    assert result.exit_code == 1
    assert "Design validation failed" in result.output

def test_export_types(tmp_path, schema_path):
    out = tmp_path / "types" / "db.ts"
    result = runner.invoke(app, ["export-types", str(schema_path), "--out", str(out), "--no-input"])
    assert result.exit_code == 0, result.output
    content = out.read_text(encoding="utf-8")
    assert "export interface User {" in content
    assert "UserInput" not in content

def test_export_ddl_generates_file(tmp_path, schema_path):
    out = tmp_path / "schema.out.sql"
    result = runner.invoke(app, ["export-ddl", str(schema_path), "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8").count("CREATE TABLE") == 2

def test_check_payload(tmp_path, schema_path):
    payload = tmp_path / "user.json"
    payload.write_text(json.dumps({"email": "a@example.com", "registered": "2024-01-05"}), encoding="utf-8")
    base = ["check", "user", str(payload), "--design", str(schema_path)]

    missing = runner.invoke(app, base)
    assert missing.exit_code == 1
    assert "MISSING_FIELD" in missing.output

    ok = runner.invoke(app, base + ["--input"])
    assert ok.exit_code == 0, ok.output
    assert '"registered": "2024-01-05"' in ok.output

    fail_fast = runner.invoke(app, base + ["--mode", "fail_fast"])
    assert fail_fast.exit_code == 1
    assert "INVALID_RECORD" not in fail_fast.output

def test_check_unknown_table(tmp_path, schema_path):
    payload = tmp_path / "p.json"
    payload.write_text("{}", encoding="utf-8")
    result = runner.invoke(app, ["check", "nope", str(payload), "--design", str(schema_path)])
    assert result.exit_code == 2
    assert "Unknown table 'nope'" in result.output

def test_reflect(tmp_path):
    url = f"sqlite:///{tmp_path / 'app.db'}"
    engine = create_engine(url)
    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT NOT NULL)")
    engine.dispose()

    out = tmp_path / "design.json"
    result = runner.invoke(app, ["reflect", "--url", url, "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert load_design(str(out)).table("notes").field("body").required is True
