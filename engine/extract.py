# engine/extract.py
"""
Pull validated, typed values out of untyped JSON against a field/table design.

Checks per present value, in order, stopping at the first failure:
    type  ->  range (INTEGER only)  ->  size (bytes)  ->  pattern (TEXT only)  ->  choices (TEXT only)

Everything here is a pure function of (design, payload): nothing is logged,
cached per request or written back to the design.
"""
from __future__ import annotations
import json
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from engine.errors import (
    ChoiceMismatch,
    ExtractionError,
    MissingField,
    OutOfRange,
    PatternMismatch,
    SizeExceeded,
    TableExtractionError,
    TypeMismatch,
)
from engine.meta_models import FieldDesign, FieldType, TableDesign

class _Absent:
    """Marker for an optional field that was missing or null."""
    _instance: Optional["_Absent"] = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

ABSENT = _Absent()

class ExtractionMode(str, Enum):
    FAIL_FAST = "fail_fast"   # raise the first field error
    AGGREGATE = "aggregate"   # raise TableExtractionError with every field error

@dataclass(frozen=True)
class ExtractedRecord:
    table: str
    values: Dict[str, Any] = field(default_factory=dict)
    absent: Tuple[str, ...] = ()

    def __getitem__(self, name: str) -> Any:
        if name in self.values:
            return self.values[name]
        if name in self.absent:
            return ABSENT
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def is_absent(self, name: str) -> bool:
        return name in self.absent

    def to_json(self) -> Dict[str, Any]:
        """Present values in their JSON wire form (ISO dates, byte arrays)."""
        out: Dict[str, Any] = {}
        for k, v in self.values.items():
            if isinstance(v, (date, time)):
                out[k] = v.isoformat()
            elif isinstance(v, bytes):
                out[k] = list(v)
            else:
                out[k] = v
        return out

# ---- helpers -----------------------------------------------------------------

_EXPECTED = {
    FieldType.INTEGER: "integer",
    FieldType.FLOAT: "number",
    FieldType.BOOLEAN: "boolean",
    FieldType.TEXT: "string",
    FieldType.DATE: "date string",
    FieldType.BINARY: "byte array",
}

def json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__

@lru_cache(maxsize=512)
def _compiled(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern)

def _byte_size(value: Any) -> int:
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    return len(json.dumps(value).encode("utf-8"))

def _parse_date(raw: str) -> Union[date, datetime, time]:
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return time.fromisoformat(text)

def _check_type(design: FieldDesign, value: Any) -> Any:
    """Structural JSON type check; returns the value in its checked form."""
    name = design.fieldName
    ft = design.fieldType
    actual = json_type_name(value)
    ok = False

    if ft is FieldType.INTEGER:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif ft is FieldType.FLOAT:
        ok = (isinstance(value, (int, float)) and not isinstance(value, bool)
              and (isinstance(value, int) or math.isfinite(value)))
    elif ft is FieldType.BOOLEAN:
        ok = isinstance(value, bool)
    elif ft in (FieldType.TEXT, FieldType.DATE):
        ok = isinstance(value, str)
    elif ft is FieldType.BINARY:
        if isinstance(value, list) and all(
            isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in value
        ):
            return bytes(value)
        if isinstance(value, list):
            actual = "array with non-byte elements"

    if not ok:
        raise TypeMismatch(name, _EXPECTED[ft], actual)
    return value

def _coerce(design: FieldDesign, value: Any) -> Any:
    ft = design.fieldType
    if ft is FieldType.FLOAT:
        try:
            return float(value)
        except OverflowError:
            raise TypeMismatch(design.fieldName, _EXPECTED[ft], "integer out of range") from None
    if ft is FieldType.DATE:
        try:
            return _parse_date(value)
        except ValueError:
            raise TypeMismatch(design.fieldName, _EXPECTED[ft], "invalid ISO 8601 string") from None
    return value

# ---- public API --------------------------------------------------------------

def extract_value(design: FieldDesign, value: Any) -> Any:
    """Validate a single present, non-null JSON value against `design`."""
    checked = _check_type(design, value)

    if design.fieldType is FieldType.INTEGER:
        low, high = design.integer_range
        if (low is not None and checked < low) or (high is not None and checked > high):
            raise OutOfRange(design.fieldName, checked, low, high)

    if design.maxBytes is not None:
        size = _byte_size(checked)
        if size > design.maxBytes:
            raise SizeExceeded(design.fieldName, design.maxBytes, size)

    if design.fieldType is FieldType.TEXT:
        if design.pattern is not None and _compiled(design.pattern).fullmatch(checked) is None:
            raise PatternMismatch(design.fieldName, design.pattern)
        if design.choices is not None and checked not in design.choices:
            raise ChoiceMismatch(design.fieldName, design.choices, checked)

    return _coerce(design, checked)

def extract_field(design: FieldDesign, payload: Mapping[str, Any], *, input_mode: bool = False) -> Any:
    """
    Look up `design.fieldName` in the JSON object `payload` and validate it.

    Returns ABSENT when the key is missing or null and the field is optional.
    With input_mode=True, generated fields (auto-increment, identity) are
    optional even when the column is NOT NULL.
    """
    if not isinstance(payload, Mapping):
        raise TypeMismatch(design.fieldName, "object", json_type_name(payload))

    value = payload.get(design.fieldName)
    if value is None:
        if design.required and not (input_mode and design.generated):
            raise MissingField(design.fieldName)
        return ABSENT
    return extract_value(design, value)

def extract_table(
    design: TableDesign,
    payload: Mapping[str, Any],
    mode: ExtractionMode,
    *,
    input_mode: bool = False,
) -> ExtractedRecord:
    """
    Extract every field of `design` from `payload`.

    `mode` decides how failures are reported and has no default:
    FAIL_FAST re-raises the first field's ExtractionError, AGGREGATE raises a
    TableExtractionError listing every failing field in field order.
    Payload keys that are not fields of the table are ignored.
    """
    mode = ExtractionMode(mode)
    if not isinstance(payload, Mapping):
        raise TypeMismatch(design.tableName, "object", json_type_name(payload))
    values: Dict[str, Any] = {}
    absent: List[str] = []
    errors: List[ExtractionError] = []

    for fd in design.fields:
        try:
            value = extract_field(fd, payload, input_mode=input_mode)
        except ExtractionError as e:
            if mode is ExtractionMode.FAIL_FAST:
                raise
            errors.append(e)
            continue
        if value is ABSENT:
            absent.append(fd.fieldName)
        else:
            values[fd.fieldName] = value

    if errors:
        raise TableExtractionError(design.tableName, errors)
    return ExtractedRecord(table=design.tableName, values=values, absent=tuple(absent))

def extract(
    design: Union[FieldDesign, TableDesign],
    payload: Mapping[str, Any],
    *,
    mode: Optional[ExtractionMode] = None,
    input_mode: bool = False,
) -> Any:
    """
    Single entry point for callers outside the engine.

    FieldDesign -> native value or ABSENT; TableDesign -> ExtractedRecord.
    `mode` is required for tables and ignored for fields; callers pass the
    configured mode (Settings.EXTRACTION_MODE) explicitly.
    """
    if isinstance(design, TableDesign):
        if mode is None:
            raise ValueError("table extraction requires an explicit ExtractionMode")
        return extract_table(design, payload, mode, input_mode=input_mode)
    if isinstance(design, FieldDesign):
        return extract_field(design, payload, input_mode=input_mode)
    raise TypeError(f"expected FieldDesign or TableDesign, got {type(design).__name__}")
