import copy
from datetime import date, datetime, time, timezone

import pytest

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
from engine.extract import ABSENT, ExtractionMode, extract, extract_field, extract_table, extract_value
from engine.meta_models import FieldDesign, FieldType, TableDesign
from engine.sql_parser import parse_schema

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

def _fd(name="f", ft=FieldType.TEXT, **kw):
    return FieldDesign(fieldName=name, fieldType=ft, **kw)

# ---- users table -------------------------------------------------------------

def test_users_valid_record(users):
    record = extract_table(users, {"id": 1, "email": "a@example.com"}, ExtractionMode.FAIL_FAST)
    assert record.values == {"id": 1, "email": "a@example.com"}
    assert record.absent == ("bio",)
    assert record["bio"] is ABSENT
    assert "bio" not in record

def test_users_missing_email_fail_fast(users):
    with pytest.raises(MissingField) as exc:
        extract_table(users, {"id": 1}, ExtractionMode.FAIL_FAST)
    assert exc.value.field == "email"

def test_users_missing_email_aggregate(users):
    with pytest.raises(TableExtractionError) as exc:
        extract_table(users, {"id": 1}, ExtractionMode.AGGREGATE)
    assert exc.value.fields == ["email"]
    assert isinstance(exc.value.errors[0], MissingField)

def test_aggregate_reports_every_field_in_order(users):
    with pytest.raises(TableExtractionError) as exc:
        extract_table(users, {"id": "1", "bio": 3}, ExtractionMode.AGGREGATE)
    assert exc.value.fields == ["id", "email", "bio"]
    assert [type(e) for e in exc.value.errors] == [TypeMismatch, MissingField, TypeMismatch]

def test_fail_fast_stops_at_first_field(users):
    with pytest.raises(TypeMismatch) as exc:
        extract_table(users, {"id": "1"}, ExtractionMode.FAIL_FAST)
    assert exc.value.field == "id"

def test_email_byte_bound(users):
    ok = "a" * 100
    record = extract_table(users, {"id": 1, "email": ok}, ExtractionMode.FAIL_FAST)
    assert record["email"] == ok
    with pytest.raises(SizeExceeded) as exc:
        extract_table(users, {"id": 1, "email": ok + "a"}, ExtractionMode.FAIL_FAST)
    assert (exc.value.bound, exc.value.actual) == (100, 101)

def test_unknown_keys_are_ignored(users):
    record = extract_table(users, {"id": 1, "email": "x", "extra": [1, 2]}, ExtractionMode.FAIL_FAST)
    assert set(record.values) == {"id", "email"}

def test_non_object_payload(users):
    with pytest.raises(TypeMismatch) as exc:
        extract_table(users, [1, 2], ExtractionMode.AGGREGATE)
    assert (exc.value.expected, exc.value.actual) == ("object", "array")

def test_extraction_does_not_touch_inputs(users):
    payload = {"id": 1, "email": "a@example.com", "bio": "hi"}
    before_payload = copy.deepcopy(payload)
    before_design = users.model_dump()
    extract_table(users, payload, ExtractionMode.AGGREGATE)
    assert payload == before_payload
    assert users.model_dump() == before_design

# ---- presence ----------------------------------------------------------------

@pytest.mark.parametrize("ft", list(FieldType))
@pytest.mark.parametrize("payload", [{}, {"f": None}])
def test_required_absent_is_missing_never_type_mismatch(ft, payload):
    with pytest.raises(MissingField):
        extract_field(_fd(ft=ft, required=True), payload)

@pytest.mark.parametrize("payload", [{}, {"f": None}])
def test_optional_absent_is_absent(payload):
    assert extract_field(_fd(maxBytes=1, pattern="x"), payload) is ABSENT

def test_absent_marker_is_falsy_singleton():
    assert not ABSENT
    assert repr(ABSENT) == "ABSENT"
    assert type(ABSENT)() is ABSENT

def test_input_mode_makes_generated_fields_optional():
    table = TableDesign(
        tableName="t",
        fields=(_fd("id", FieldType.INTEGER, required=True, generated=True), _fd("name", required=True)),
    )
    with pytest.raises(MissingField):
        extract_table(table, {"name": "x"}, ExtractionMode.FAIL_FAST)
    record = extract_table(table, {"name": "x"}, ExtractionMode.FAIL_FAST, input_mode=True)
    assert record.is_absent("id")
    with pytest.raises(MissingField):
        extract_table(table, {}, ExtractionMode.FAIL_FAST, input_mode=True)

# ---- types -------------------------------------------------------------------

@pytest.mark.parametrize("value", [True, 1.5, "1", [1]])
def test_integer_rejects(value):
    with pytest.raises(TypeMismatch):
        extract_value(_fd(ft=FieldType.INTEGER), value)

def test_integer_accepts_int():
    assert extract_value(_fd(ft=FieldType.INTEGER), -7) == -7

def test_float_accepts_integers_and_returns_float():
    value = extract_value(_fd(ft=FieldType.FLOAT), 2)
    assert value == 2.0 and isinstance(value, float)

@pytest.mark.parametrize("value", [False, "1.5", float("nan"), float("inf"), 10 ** 400])
def test_float_rejects(value):
    with pytest.raises(TypeMismatch):
        extract_value(_fd(ft=FieldType.FLOAT), value)

def test_boolean_is_strict():
    assert extract_value(_fd(ft=FieldType.BOOLEAN), False) is False
    with pytest.raises(TypeMismatch) as exc:
        extract_value(_fd(ft=FieldType.BOOLEAN), 1)
    assert (exc.value.expected, exc.value.actual) == ("boolean", "integer")

def test_text_rejects_numbers():
    with pytest.raises(TypeMismatch):
        extract_value(_fd(), 5)

def test_binary_from_byte_array():
    assert extract_value(_fd(ft=FieldType.BINARY), [0, 255]) == b"\x00\xff"

@pytest.mark.parametrize("value", [[256], [-1], [True], "AAEC"])
def test_binary_rejects(value):
    with pytest.raises(TypeMismatch):
        extract_value(_fd(ft=FieldType.BINARY), value)

def test_binary_byte_bound_counts_bytes():
    fd = _fd(ft=FieldType.BINARY, maxBytes=2)
    assert extract_value(fd, [1, 2]) == b"\x01\x02"
    with pytest.raises(SizeExceeded):
        extract_value(fd, [1, 2, 3])

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-01-05", date(2024, 1, 5)),
        ("2024-01-05T10:30:00", datetime(2024, 1, 5, 10, 30)),
        ("2024-01-05T10:30:00Z", datetime(2024, 1, 5, 10, 30, tzinfo=timezone.utc)),
        ("12:30:00", time(12, 30)),
        ("12:30:00.5", time(12, 30, 0, 500000)),
        ("20240105", date(2024, 1, 5)),
    ],
)
def test_date_values(raw, expected):
    assert extract_value(_fd(ft=FieldType.DATE), raw) == expected

@pytest.mark.parametrize("raw", ["not a date", "2024-13-01", ""])
def test_bad_date_strings(raw):
    with pytest.raises(TypeMismatch) as exc:
        extract_value(_fd(ft=FieldType.DATE), raw)
    assert (exc.value.expected, exc.value.actual) == ("date string", "invalid ISO 8601 string")

# ---- size, pattern, choices --------------------------------------------------

def test_size_is_counted_in_utf8_bytes():
    fd = _fd(maxBytes=4)
    assert extract_value(fd, "éé") == "éé"
    with pytest.raises(SizeExceeded) as exc:
        extract_value(fd, "ééa")
    assert exc.value.actual == 5

def test_size_zero_allows_only_empty():
    fd = _fd(maxBytes=0)
    assert extract_value(fd, "") == ""
    with pytest.raises(SizeExceeded):
        extract_value(fd, "a")

def test_pattern_must_match_whole_value():
    fd = _fd(pattern=DATE_PATTERN)
    assert extract_value(fd, "2024-01-05") == "2024-01-05"
    with pytest.raises(PatternMismatch) as exc:
        extract_value(fd, "2024-01-05T00:00:00")
    assert exc.value.pattern == DATE_PATTERN

def test_unanchored_pattern_still_matches_whole_value():
    with pytest.raises(PatternMismatch):
        extract_value(_fd(pattern=r"\d+"), "12ab")

def test_size_is_checked_before_pattern():
    fd = _fd(maxBytes=3, pattern=r"\d+")
    with pytest.raises(SizeExceeded):
        extract_value(fd, "abcdef")

def test_choices():
    fd = _fd("role", choices=("admin", "member"))
    assert extract_value(fd, "admin") == "admin"
    with pytest.raises(ChoiceMismatch) as exc:
        extract_value(fd, "root")
    assert exc.value.to_dict()["choices"] == ["admin", "member"]

# ---- entry point and errors --------------------------------------------------

def test_extract_dispatches_on_design(users):
    assert extract(users.field("id"), {"id": 3}) == 3
    record = extract(users, {"id": 3, "email": "x"}, mode=ExtractionMode.AGGREGATE)
    assert record.table == "users"

def test_extract_table_needs_a_mode(users):
    with pytest.raises(ValueError):
        extract(users, {"id": 3, "email": "x"})

def test_error_dicts():
    err = SizeExceeded("email", 100, 101)
    assert err.to_dict() == {
        "code": "SIZE_EXCEEDED",
        "field": "email",
        "message": err.message,
        "bound": 100,
        "actual": 101,
    }
    agg = TableExtractionError("users", [MissingField("email")])
    data = agg.to_dict()
    assert data["code"] == "INVALID_RECORD"
    assert data["errors"][0]["code"] == "MISSING_FIELD"
    assert isinstance(agg, ExtractionError)

def test_record_json_form():
    table = TableDesign(
        tableName="t",
        fields=(_fd("d", FieldType.DATE), _fd("b", FieldType.BINARY), _fd("n", FieldType.INTEGER)),
    )
    record = extract_table(table, {"d": "2024-01-05", "b": [1, 2], "n": 4}, ExtractionMode.FAIL_FAST)
    assert record.to_json() == {"d": "2024-01-05", "b": [1, 2], "n": 4}

# ---- integer range -----------------------------------------------------------

def test_unsigned_rejects_negatives():
    fd = _fd("n", FieldType.INTEGER, unsigned=True, intBits=32)
    assert extract_value(fd, 0) == 0
    assert extract_value(fd, 2 ** 32 - 1) == 2 ** 32 - 1
    with pytest.raises(OutOfRange) as exc:
        extract_value(fd, -5)
    assert (exc.value.minimum, exc.value.maximum, exc.value.value) == (0, 2 ** 32 - 1, -5)
    with pytest.raises(OutOfRange):
        extract_value(fd, 2 ** 32)

@pytest.mark.parametrize(
    "bits, low, high",
    [(8, -128, 127), (16, -32768, 32767), (24, -8388608, 8388607), (64, -(2 ** 63), 2 ** 63 - 1)],
)
def test_signed_width_bounds(bits, low, high):
    fd = _fd("s", FieldType.INTEGER, intBits=bits)
    assert extract_value(fd, low) == low
    assert extract_value(fd, high) == high
    for bad in (low - 1, high + 1):
        with pytest.raises(OutOfRange):
            extract_value(fd, bad)

def test_parsed_integer_columns_are_range_checked():
    t = parse_schema("CREATE TABLE t (n INT UNSIGNED NOT NULL, s SMALLINT NOT NULL)").table("t")
    with pytest.raises(OutOfRange):
        extract_value(t.field("n"), -5)
    with pytest.raises(OutOfRange) as exc:
        extract_value(t.field("s"), 10 ** 30)
    assert exc.value.to_dict()["code"] == "OUT_OF_RANGE"
    assert exc.value.to_dict()["maximum"] == 32767

def test_unsigned_without_width_only_bounds_below():
    fd = _fd("n", FieldType.INTEGER, unsigned=True)
    assert extract_value(fd, 10 ** 30) == 10 ** 30
    with pytest.raises(OutOfRange, match="at least 0"):
        extract_value(fd, -1)

def test_range_is_checked_before_size():
    fd = _fd("n", FieldType.INTEGER, intBits=8, maxBytes=1)
    with pytest.raises(OutOfRange):
        extract_value(fd, 1000)
