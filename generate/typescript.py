# generate/typescript.py
from __future__ import annotations
import logging
import re
from pathlib import Path
from typing import List

from engine.meta_models import DatabaseDesign, FieldDesign, TableDesign
from engine.type_mapping import ts_type_for

logger = logging.getLogger(__name__)

_TS_IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")

def interface_name(table_name: str) -> str:
    """user_accounts -> UserAccounts"""
    parts = [p for p in re.split(r"[^0-9A-Za-z]+", table_name) if p]
    name = "".join(p[:1].upper() + p[1:] for p in parts) or "Table"
    if name[0].isdigit():
        name = "T" + name
    return name

def _member_name(name: str) -> str:
    if _TS_IDENT_RE.match(name):
        return name
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'

def _member_doc(field: FieldDesign) -> str:
    """Constraints TypeScript cannot express; documentation only."""
    notes: List[str] = []
    if field.maxBytes is not None:
        notes.append(f"at most {field.maxBytes} bytes")
    if field.pattern is not None:
        notes.append("pattern: " + field.pattern.replace("*/", "*\\/"))
    if field.generated:
        notes.append("generated by the database")
    return f"  /** {'; '.join(notes)} */\n" if notes else ""

def _member(field: FieldDesign, input_version: bool) -> str:
    optional = not field.required or (input_version and field.generated)
    return f"{_member_doc(field)}  {_member_name(field.fieldName)}{'?' if optional else ''}: {ts_type_for(field)};\n"

def render_table(table: TableDesign, *, input_version: bool = False) -> str:
    name = interface_name(table.tableName)
    if input_version:
        out = f"/** Generated database type for the {table.tableName} table. (Input version) */\n"
        out += f"export interface {name}Input {{\n"
    else:
        out = f"/** Generated database type for the {table.tableName} table. */\n"
        out += f"export interface {name} {{\n"
    for field in table.fields:
        out += _member(field, input_version)
    out += "}\n"
    return out

def render_declarations(design: DatabaseDesign, *, include_input: bool = True) -> str:
    """
    One exported interface per table (plus a <Name>Input variant where
    database-generated fields are optional). Table and field order follow the
    design, so equal designs always render byte-identical text.
    """
    blocks = [f"// Generated from the {design.title} design. Do not edit by hand.\n"]
    for table in design.tables:
        blocks.append(render_table(table))
        if include_input:
            blocks.append(render_table(table, input_version=True))
    return "\n".join(blocks)

def write_declarations(design: DatabaseDesign, path: str | Path, *, include_input: bool = True) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(render_declarations(design, include_input=include_input), encoding="utf-8")
    logger.info("Wrote TypeScript declarations for %d table(s) to %s", len(design.tables), out)
    return out
