# engine/reflect.py
from __future__ import annotations
import logging
from typing import List, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import exc, types
from sqlalchemy.engine import Engine

from engine.errors import UnknownType
from engine.meta_models import DatabaseDesign, FieldDesign, FieldType, TableDesign
from engine.type_mapping import field_type_for_sqlalchemy, sqlalchemy_int_bits, sqlalchemy_length

logger = logging.getLogger(__name__)

def _type_token(sa_type: types.TypeEngine) -> str:
    # NullType and some dialect types cannot be compiled by the default dialect
    try:
        return str(sa_type)
    except exc.CompileError:
        return type(sa_type).__name__

def _reflect_column(table: str, col: dict, pk_autoinc: bool, unknown_as_text: bool) -> FieldDesign:
    sa_type = col["type"]
    field_type = field_type_for_sqlalchemy(sa_type)
    if field_type is None:
        if not unknown_as_text:
            raise UnknownType(_type_token(sa_type), table=table, column=col["name"])
        field_type = FieldType.TEXT

    choices = None
    if isinstance(sa_type, types.Enum) and sa_type.enums:
        choices = tuple(sa_type.enums)

    has_default = col.get("default") is not None
    is_int = field_type is FieldType.INTEGER
    generated = bool(col.get("identity")) or bool(col.get("computed")) or pk_autoinc
    return FieldDesign(
        fieldName=col["name"],
        fieldType=field_type,
        required=not col.get("nullable", True) and not has_default,
        maxBytes=sqlalchemy_length(sa_type) if field_type is not FieldType.BOOLEAN else None,
        generated=generated,
        choices=choices,
        unsigned=is_int and bool(getattr(sa_type, "unsigned", False)),
        intBits=sqlalchemy_int_bits(sa_type) if is_int else None,
    )

def design_from_engine(
    engine: Engine,
    *,
    schema: Optional[str] = None,
    unknown_as_text: bool = False,
    title: Optional[str] = None,
) -> DatabaseDesign:
    """
    Build a DatabaseDesign from a live database through the SQLAlchemy inspector.
    Same rules as the SQL parser: required = NOT NULL without a server default.
    """
    insp = sa_inspect(engine)
    tables: List[TableDesign] = []
    for tname in insp.get_table_names(schema=schema):
        columns = insp.get_columns(tname, schema=schema)
        pk = insp.get_pk_constraint(tname, schema=schema).get("constrained_columns") or []
        fields = []
        for col in columns:
            # a lone INTEGER primary key is the rowid / auto-increment column
            pk_autoinc = (
                len(pk) == 1 and col["name"] == pk[0]
                and isinstance(col["type"], types.Integer)
                and col.get("autoincrement", "auto") in (True, "auto")
            )
            fields.append(_reflect_column(tname, col, pk_autoinc, unknown_as_text))
        tables.append(TableDesign(tableName=tname, fields=tuple(fields)))

    logger.info("Reflected %d table(s) from %s", len(tables), engine.url.render_as_string(hide_password=True))
    return DatabaseDesign(title=title or (engine.url.database or "Database"), tables=tuple(tables))
