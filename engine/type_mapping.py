# engine/type_mapping.py
"""
Every type translation lives here:

    SQL type token  -> FieldType          (schema parser)
    SQLAlchemy type -> FieldType          (database reflection)
    FieldType       -> canonical SQL      (DDL renderer)
    FieldType       -> TypeScript         (declaration emitter)

New dialect spellings are added to SQL_TYPE_MAP and nowhere else.
"""
from __future__ import annotations
import re
from typing import Dict, Optional, Tuple

from sqlalchemy import types

from engine.meta_models import FieldDesign, FieldType

SQL_TYPE_MAP: Dict[str, FieldType] = {
    # integer family
    "INT": FieldType.INTEGER,
    "INTEGER": FieldType.INTEGER,
    "TINYINT": FieldType.INTEGER,
    "SMALLINT": FieldType.INTEGER,
    "MEDIUMINT": FieldType.INTEGER,
    "BIGINT": FieldType.INTEGER,
    "INT2": FieldType.INTEGER,
    "INT4": FieldType.INTEGER,
    "INT8": FieldType.INTEGER,
    "SERIAL": FieldType.INTEGER,
    "SMALLSERIAL": FieldType.INTEGER,
    "BIGSERIAL": FieldType.INTEGER,
    # floating point family
    "FLOAT": FieldType.FLOAT,
    "FLOAT4": FieldType.FLOAT,
    "FLOAT8": FieldType.FLOAT,
    "REAL": FieldType.FLOAT,
    "DOUBLE": FieldType.FLOAT,
    "DOUBLE PRECISION": FieldType.FLOAT,
    "DECIMAL": FieldType.FLOAT,
    "DEC": FieldType.FLOAT,
    "NUMERIC": FieldType.FLOAT,
    "MONEY": FieldType.FLOAT,
    # boolean
    "BOOLEAN": FieldType.BOOLEAN,
    "BOOL": FieldType.BOOLEAN,
    "BIT": FieldType.BOOLEAN,
    # text family
    "VARCHAR": FieldType.TEXT,
    "CHAR": FieldType.TEXT,
    "CHARACTER": FieldType.TEXT,
    "CHARACTER VARYING": FieldType.TEXT,
    "CHAR VARYING": FieldType.TEXT,
    "NVARCHAR": FieldType.TEXT,
    "NCHAR": FieldType.TEXT,
    "NATIONAL CHARACTER": FieldType.TEXT,
    "NATIONAL CHARACTER VARYING": FieldType.TEXT,
    "NATIONAL CHAR": FieldType.TEXT,
    "NATIONAL CHAR VARYING": FieldType.TEXT,
    "VARCHAR2": FieldType.TEXT,
    "TEXT": FieldType.TEXT,
    "TINYTEXT": FieldType.TEXT,
    "MEDIUMTEXT": FieldType.TEXT,
    "LONGTEXT": FieldType.TEXT,
    "CLOB": FieldType.TEXT,
    "CITEXT": FieldType.TEXT,
    "UUID": FieldType.TEXT,
    "JSON": FieldType.TEXT,
    "JSONB": FieldType.TEXT,
    "ENUM": FieldType.TEXT,
    "SET": FieldType.TEXT,
    # date / time
    "DATE": FieldType.DATE,
    "DATETIME": FieldType.DATE,
    "TIMESTAMP": FieldType.DATE,
    "TIMESTAMPTZ": FieldType.DATE,
    "TIMESTAMP WITH TIME ZONE": FieldType.DATE,
    "TIMESTAMP WITHOUT TIME ZONE": FieldType.DATE,
    "TIME": FieldType.DATE,
    "TIME WITH TIME ZONE": FieldType.DATE,
    "TIME WITHOUT TIME ZONE": FieldType.DATE,
    # binary
    "BLOB": FieldType.BINARY,
    "TINYBLOB": FieldType.BINARY,
    "MEDIUMBLOB": FieldType.BINARY,
    "LONGBLOB": FieldType.BINARY,
    "BYTEA": FieldType.BINARY,
    "BINARY": FieldType.BINARY,
    "VARBINARY": FieldType.BINARY,
}

# Types whose single length parameter is not a size (BIT(1), FLOAT(24), TIMESTAMP(3)).
_LENGTH_IGNORED = {"BIT", "FLOAT", "REAL", "DOUBLE", "DOUBLE PRECISION", "DATETIME",
                   "TIMESTAMP", "TIMESTAMPTZ", "TIME"}

# Types whose parameters are value lists, not sizes.
CHOICE_TYPES = {"ENUM", "SET"}

# Types that are auto-numbered by the database.
GENERATED_TYPES = {"SERIAL", "SMALLSERIAL", "BIGSERIAL"}

# Storage width in bits of the integer types.
INT_BITS: Dict[str, int] = {
    "TINYINT": 8,
    "SMALLINT": 16, "INT2": 16, "SMALLSERIAL": 16,
    "MEDIUMINT": 24,
    "INT": 32, "INTEGER": 32, "INT4": 32, "SERIAL": 32,
    "BIGINT": 64, "INT8": 64, "BIGSERIAL": 64,
}

_INT_SQL = {8: "TINYINT", 16: "SMALLINT", 24: "MEDIUMINT", 32: "INT", 64: "BIGINT"}

_INT_RE = re.compile(r"^\s*(\d+)\s*$")

def normalize_token(token: str) -> str:
    """'character   varying' -> 'CHARACTER VARYING'."""
    return " ".join((token or "").split()).upper()

def lookup_sql_type(token: str) -> Optional[FieldType]:
    return SQL_TYPE_MAP.get(normalize_token(token))

def size_bound(token: str, params: Tuple[str, ...]) -> Optional[int]:
    """
    Derive the byte bound from the type's numeric parameters.

    VARCHAR(255) -> 255, INT(11) -> 11, DECIMAL(10,2) -> 12 (digits plus sign and point).
    Types with no numeric parameter have no automatic bound.
    """
    name = normalize_token(token)
    if not params or name in _LENGTH_IGNORED or name in CHOICE_TYPES:
        return None
    m = _INT_RE.match(params[0])
    if not m:
        return None
    n = int(m.group(1))
    if SQL_TYPE_MAP.get(name) is FieldType.FLOAT:
        return n + 2
    return n

# ---- reflection --------------------------------------------------------------

def field_type_for_sqlalchemy(sa_type: types.TypeEngine) -> Optional[FieldType]:
    """Map a reflected SQLAlchemy column type to a FieldType (None if unknown)."""
    # order matters: Boolean/Enum/Text are checked before their broader bases
    if isinstance(sa_type, types.Boolean):
        return FieldType.BOOLEAN
    if isinstance(sa_type, types.Integer):
        return FieldType.INTEGER
    if isinstance(sa_type, types.Numeric):  # Float is a Numeric
        return FieldType.FLOAT
    if isinstance(sa_type, (types.Date, types.DateTime, types.Time)):
        return FieldType.DATE
    if isinstance(sa_type, (types.LargeBinary, types.BINARY, types.VARBINARY)):
        return FieldType.BINARY
    if isinstance(sa_type, (types.String, types.JSON, types.Uuid)):
        return FieldType.TEXT
    return None

def sqlalchemy_int_bits(sa_type: types.TypeEngine) -> Optional[int]:
    """Width of a reflected integer type; None for plain INTEGER, whose width depends on the backend."""
    name = getattr(sa_type, "__visit_name__", "").upper()
    if name in ("TINYINT", "MEDIUMINT"):
        return INT_BITS[name]
    if isinstance(sa_type, types.BigInteger):
        return 64
    if isinstance(sa_type, types.SmallInteger):
        return 16
    return None

def sqlalchemy_length(sa_type: types.TypeEngine) -> Optional[int]:
    length = getattr(sa_type, "length", None)
    if isinstance(length, int) and not isinstance(sa_type, types.Enum):
        return length
    if isinstance(sa_type, types.Numeric) and not isinstance(sa_type, types.Float):
        precision = getattr(sa_type, "precision", None)
        if isinstance(precision, int):
            return precision + 2
    return None

# ---- reverse tables ----------------------------------------------------------

_CANONICAL_SQL: Dict[FieldType, str] = {
    FieldType.INTEGER: "INTEGER",
    FieldType.FLOAT: "DOUBLE PRECISION",
    FieldType.BOOLEAN: "BOOLEAN",
    FieldType.TEXT: "TEXT",
    FieldType.DATE: "TIMESTAMP",
    FieldType.BINARY: "BLOB",
}

def sql_type_for(field: FieldDesign) -> str:
    """Canonical SQL type for a field (reverse of SQL_TYPE_MAP)."""
    if field.choices is not None:
        quoted = ", ".join("'" + c.replace("'", "''") + "'" for c in field.choices)
        return f"ENUM({quoted})"
    if field.fieldType is FieldType.TEXT and field.maxBytes is not None:
        return f"VARCHAR({field.maxBytes})"
    if field.fieldType is FieldType.BINARY and field.maxBytes is not None:
        return f"VARBINARY({field.maxBytes})"
    if field.fieldType is FieldType.INTEGER:
        base = _INT_SQL.get(field.intBits, "INTEGER")  # type: ignore[arg-type]
        if field.maxBytes is not None:
            base += f"({field.maxBytes})"
        return base + (" UNSIGNED" if field.unsigned else "")
    if field.fieldType is FieldType.FLOAT and field.maxBytes is not None and field.maxBytes >= 2:
        return f"DECIMAL({field.maxBytes - 2})"
    return _CANONICAL_SQL[field.fieldType]

TS_TYPE_MAP: Dict[FieldType, str] = {
    FieldType.INTEGER: "number",
    FieldType.FLOAT: "number",
    FieldType.BOOLEAN: "boolean",
    FieldType.TEXT: "string",
    FieldType.DATE: "string",
    FieldType.BINARY: "number[]",
}

def ts_type_for(field: FieldDesign) -> str:
    if field.choices:
        return " | ".join('"' + c.replace("\\", "\\\\").replace('"', '\\"') + '"' for c in field.choices)
    return TS_TYPE_MAP[field.fieldType]
