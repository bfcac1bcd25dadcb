# engine/errors.py
from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

# ---- schema loading (fatal) --------------------------------------------------

class SchemaParseError(Exception):
    """Raised when SQL schema text cannot be turned into a DatabaseDesign."""

    def __init__(
        self,
        reason: str,
        *,
        statement: Optional[int] = None,
        table: Optional[str] = None,
        column: Optional[str] = None,
    ) -> None:
        self.reason = reason
        self.statement = statement
        self.table = table
        self.column = column
        super().__init__(self._format())

    @property
    def location(self) -> str:
        parts = []
        if self.statement is not None:
            parts.append(f"statement {self.statement}")
        if self.table:
            parts.append(f"{self.table}.{self.column}" if self.column else self.table)
        return ", ".join(parts) or "<schema>"

    def _format(self) -> str:
        return f"{self.location}: {self.reason}"

class UnknownType(SchemaParseError):
    def __init__(self, token: str, **loc: Any) -> None:
        self.token = token
        super().__init__(f"unknown column type {token!r}", **loc)

class DuplicateColumn(SchemaParseError):
    def __init__(self, table: str, column: str, *, statement: Optional[int] = None) -> None:
        super().__init__(
            f"duplicate column {column!r} in table {table!r}",
            statement=statement, table=table, column=column,
        )

class DuplicateTable(SchemaParseError):
    def __init__(self, table: str, *, statement: Optional[int] = None) -> None:
        super().__init__(f"duplicate table {table!r}", statement=statement, table=table)

class MalformedStatement(SchemaParseError):
    pass

# ---- extraction (recoverable) ------------------------------------------------

class ExtractionErrorCode(str, Enum):
    MISSING_FIELD = "MISSING_FIELD"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    SIZE_EXCEEDED = "SIZE_EXCEEDED"
    PATTERN_MISMATCH = "PATTERN_MISMATCH"
    CHOICE_MISMATCH = "CHOICE_MISMATCH"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    INVALID_RECORD = "INVALID_RECORD"

class ExtractionError(Exception):
    """
    Base for every rejection produced by the extraction engine.
    These are expected outcomes of bad client input, never process failures.
    """
    code: ExtractionErrorCode

    def __init__(self, field: Optional[str], message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "field": self.field, "message": self.message}

class MissingField(ExtractionError):
    code = ExtractionErrorCode.MISSING_FIELD

    def __init__(self, field: str) -> None:
        super().__init__(field, f"field {field!r} is required but was not provided")

class TypeMismatch(ExtractionError):
    code = ExtractionErrorCode.TYPE_MISMATCH

    def __init__(self, field: str, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(field, f"field {field!r} expected {expected}, got {actual}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "expected": self.expected, "actual": self.actual}

class SizeExceeded(ExtractionError):
    code = ExtractionErrorCode.SIZE_EXCEEDED

    def __init__(self, field: str, bound: int, actual: int) -> None:
        self.bound = bound
        self.actual = actual
        super().__init__(field, f"field {field!r} is {actual} bytes; the limit is {bound} bytes")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "bound": self.bound, "actual": self.actual}

class OutOfRange(ExtractionError):
    code = ExtractionErrorCode.OUT_OF_RANGE

    def __init__(self, field: str, value: int, minimum: Optional[int], maximum: Optional[int]) -> None:
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        if maximum is None:
            bound = f"at least {minimum}"
        elif minimum is None:
            bound = f"at most {maximum}"
        else:
            bound = f"between {minimum} and {maximum}"
        super().__init__(field, f"field {field!r} value {value} is out of range; expected {bound}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "minimum": self.minimum, "maximum": self.maximum}

class PatternMismatch(ExtractionError):
    code = ExtractionErrorCode.PATTERN_MISMATCH

    def __init__(self, field: str, pattern: str) -> None:
        self.pattern = pattern
        super().__init__(field, f"field {field!r} does not match pattern {pattern!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "pattern": self.pattern}

class ChoiceMismatch(ExtractionError):
    code = ExtractionErrorCode.CHOICE_MISMATCH

    def __init__(self, field: str, choices: Sequence[str], value: str) -> None:
        self.choices = tuple(choices)
        self.value = value
        super().__init__(field, f"field {field!r} value {value!r} is not one of {list(self.choices)}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "choices": list(self.choices)}

class TableExtractionError(ExtractionError):
    """Aggregated field failures for one table (ExtractionMode.AGGREGATE)."""
    code = ExtractionErrorCode.INVALID_RECORD

    def __init__(self, table: str, errors: List[ExtractionError]) -> None:
        self.table = table
        self.errors = list(errors)
        fields = ", ".join(str(e.field) for e in self.errors)
        super().__init__(None, f"{len(self.errors)} invalid field(s) in {table!r}: {fields}")

    @property
    def fields(self) -> List[Optional[str]]:
        return [e.field for e in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "table": self.table,
            "message": self.message,
            "errors": [e.to_dict() for e in self.errors],
        }
