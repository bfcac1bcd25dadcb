from __future__ import annotations
import re
from enum import Enum
from typing import Any, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

class FieldType(str, Enum):
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    BOOLEAN = "BOOLEAN"
    TEXT = "TEXT"
    DATE = "DATE"
    BINARY = "BINARY"

class FieldDesign(BaseModel):
    """
    Constraint description for one table column.

    maxBytes counts bytes of the serialized value (UTF-8 for strings), never characters.
    pattern is never produced by the SQL parser; it is added by hand.
    unsigned and intBits (storage width) bound the value of INTEGER fields.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    fieldName: str = Field(min_length=1)
    fieldType: FieldType
    required: bool = False
    maxBytes: Optional[int] = Field(default=None, ge=0)
    pattern: Optional[str] = None
    generated: bool = False
    choices: Optional[Tuple[str, ...]] = None
    unsigned: bool = False
    intBits: Optional[Literal[8, 16, 24, 32, 64]] = None

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid pattern {v!r}: {e}") from e
        return v

    @model_validator(mode="after")
    def _type_specific_constraints(self) -> "FieldDesign":
        if self.fieldType is not FieldType.TEXT:
            if self.pattern is not None:
                raise ValueError(f"pattern is only allowed on TEXT fields ({self.fieldName})")
            if self.choices is not None:
                raise ValueError(f"choices are only allowed on TEXT fields ({self.fieldName})")
        if self.fieldType is not FieldType.INTEGER and (self.unsigned or self.intBits is not None):
            raise ValueError(f"unsigned and intBits are only allowed on INTEGER fields ({self.fieldName})")
        return self

    @property
    def integer_range(self) -> Tuple[Optional[int], Optional[int]]:
        """(min, max) accepted for an INTEGER field; None means unbounded on that side."""
        if self.intBits is None:
            return (0 if self.unsigned else None), None
        if self.unsigned:
            return 0, 2 ** self.intBits - 1
        half = 2 ** (self.intBits - 1)
        return -half, half - 1

class TableDesign(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    tableName: str = Field(min_length=1)
    fields: Tuple[FieldDesign, ...] = ()

    @model_validator(mode="after")
    def _unique_field_names(self) -> "TableDesign":
        seen = set()
        for f in self.fields:
            if f.fieldName in seen:
                raise ValueError(f"duplicate field {f.fieldName!r} in table {self.tableName!r}")
            seen.add(f.fieldName)
        return self

    def __len__(self) -> int:
        return len(self.fields)

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.fieldName for f in self.fields)

    def get(self, name: str) -> Optional[FieldDesign]:
        for f in self.fields:
            if f.fieldName == name:
                return f
        return None

    def field(self, name: str) -> FieldDesign:
        f = self.get(name)
        if f is None:
            raise KeyError(f"{self.tableName}.{name}")
        return f

    def with_field(self, field: FieldDesign) -> "TableDesign":
        """Return a copy with `field` replacing the same-named field, or appended if new."""
        fields = list(self.fields)
        for i, f in enumerate(fields):
            if f.fieldName == field.fieldName:
                fields[i] = field
                break
        else:
            fields.append(field)
        return TableDesign(tableName=self.tableName, fields=tuple(fields))

class DatabaseDesign(BaseModel):
    """
    All table designs of one schema, in schema order.

    Frozen: the with_* helpers are the only way to edit a design, and each
    returns a new, re-validated DatabaseDesign.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = "Database"
    tables: Tuple[TableDesign, ...] = ()

    @model_validator(mode="after")
    def _unique_table_names(self) -> "DatabaseDesign":
        seen = set()
        for t in self.tables:
            if t.tableName in seen:
                raise ValueError(f"duplicate table {t.tableName!r}")
            seen.add(t.tableName)
        return self

    def __len__(self) -> int:
        return len(self.tables)

    def __contains__(self, name: object) -> bool:
        return self.get(name) is not None  # type: ignore[arg-type]

    @property
    def table_names(self) -> Tuple[str, ...]:
        return tuple(t.tableName for t in self.tables)

    def get(self, name: str) -> Optional[TableDesign]:
        for t in self.tables:
            if t.tableName == name:
                return t
        return None

    def table(self, name: str) -> TableDesign:
        t = self.get(name)
        if t is None:
            raise KeyError(name)
        return t

    # ---- manual edits (copy-on-write) ----------------------------------------

    def with_table(self, table: TableDesign) -> "DatabaseDesign":
        tables = list(self.tables)
        for i, t in enumerate(tables):
            if t.tableName == table.tableName:
                tables[i] = table
                break
        else:
            tables.append(table)
        return DatabaseDesign(title=self.title, tables=tuple(tables))

    def with_field(self, table_name: str, field_name: str, **changes: Any) -> "DatabaseDesign":
        table = self.table(table_name)
        current = table.field(field_name)
        updated = FieldDesign.model_validate({**current.model_dump(), **changes})
        return self.with_table(table.with_field(updated))

    def with_pattern(self, table_name: str, field_name: str, pattern: Optional[str]) -> "DatabaseDesign":
        return self.with_field(table_name, field_name, pattern=pattern)

    def with_max_bytes(self, table_name: str, field_name: str, max_bytes: Optional[int]) -> "DatabaseDesign":
        return self.with_field(table_name, field_name, maxBytes=max_bytes)
