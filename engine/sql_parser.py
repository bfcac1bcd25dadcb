# engine/sql_parser.py
"""
CREATE TABLE text -> DatabaseDesign.

Only what column validation needs is understood: column names, type tokens,
NOT NULL / DEFAULT and auto-numbering. Every other clause is checked for
balance and then dropped.
"""
from __future__ import annotations
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from engine.errors import DuplicateColumn, DuplicateTable, MalformedStatement, UnknownType
from engine.meta_models import DatabaseDesign, FieldDesign, FieldType, TableDesign
from engine.type_mapping import (
    CHOICE_TYPES,
    GENERATED_TYPES,
    INT_BITS,
    lookup_sql_type,
    normalize_token,
    size_bound,
)

logger = logging.getLogger(__name__)

_CREATE_TABLE_RE = re.compile(
    r"^\s*CREATE\s+(?:OR\s+REPLACE\s+)?(?:(?:GLOBAL|LOCAL)\s+)?(?:TEMP(?:ORARY)?\s+|UNLOGGED\s+)?"
    r"TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?",
    re.IGNORECASE,
)

_BARE_IDENT_RE = re.compile(r"[A-Za-z_][\w$]*")

_TYPE_RE = re.compile(
    r"""
    (?P<name>
        double\s+precision
      | (?:national\s+)?char(?:acter)?\s+varying
      | national\s+char(?:acter)?
      | [a-z_][a-z0-9_]*
    )
    (?:\s*\(\s*(?P<params>(?:[^()'"]|'(?:[^']|'')*'|"[^"]*")*)\))?
    (?P<tz>\s+with(?:out)?\s+time\s+zone)?
    (?P<array>\s*\[\s*\d*\s*\])?
    """,
    re.IGNORECASE | re.VERBOSE,
)

_CLAUSE_TOKEN_RE = re.compile(
    r"""
      (?P<str>'(?:[^'\\]|''|\\.)*')
    | (?P<qid>"(?:[^"]|"")*"|`[^`]*`|\[[^\]]*\])
    | (?P<paren>[()])
    | (?P<word>[^\s()'"`\[]+)
    | (?P<bad>\S)
    """,
    re.VERBOSE,
)

_ENUM_VALUE_RE = re.compile(r"'((?:[^']|'')*)'")

TABLE_CONSTRAINT_KEYWORDS = {
    "PRIMARY", "FOREIGN", "UNIQUE", "KEY", "INDEX", "CONSTRAINT",
    "CHECK", "FULLTEXT", "SPATIAL", "EXCLUDE",
}

# Words that cannot start a DEFAULT value; seeing one means the value is missing.
_CLAUSE_KEYWORDS = {
    "NOT", "PRIMARY", "UNIQUE", "REFERENCES", "CHECK", "COLLATE",
    "COMMENT", "CONSTRAINT", "AUTO_INCREMENT", "AUTOINCREMENT", "GENERATED",
}

_GENERATED_WORDS = {"ALWAYS", "BY", "DEFAULT", "AS", "IDENTITY", "STORED", "VIRTUAL", "PERSISTENT"}

# ---- lexical helpers ---------------------------------------------------------

def _strip_comments(sql: str) -> str:
    """Drop -- and /* */ comments that are outside quoted text."""
    out: List[str] = []
    i, n = 0, len(sql)
    quote: Optional[str] = None
    while i < n:
        ch = sql[i]
        if quote:
            out.append(ch)
            if ch == "\\" and quote == "'" and i + 1 < n:
                out.append(sql[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in ("'", '"', "`"):
            quote = ch
            out.append(ch)
            i += 1
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = n if end == -1 else end + 2
            out.append(" ")
        else:
            out.append(ch)
            i += 1
    return "".join(out)

def _split_top_level(text: str, sep: str) -> List[str]:
    """Split on `sep` where it is outside quotes and parentheses."""
    parts: List[str] = []
    buf: List[str] = []
    depth = 0
    quote: Optional[str] = None
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if quote:
            buf.append(ch)
            if ch == "\\" and quote == "'" and i + 1 < n:
                buf.append(text[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in ("'", '"', "`"):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
        i += 1
    parts.append("".join(buf))
    return parts

def split_statements(sql: str) -> List[str]:
    """Comment-free statements of `sql`, in order, empty ones removed."""
    return [s.strip() for s in _split_top_level(_strip_comments(sql), ";") if s.strip()]

def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in ('"', "`"):
        return token[1:-1].replace(token[0] * 2, token[0])
    if len(token) >= 2 and token[0] == "[" and token[-1] == "]":
        return token[1:-1]
    return token

def _read_identifier(text: str, pos: int) -> Tuple[Optional[str], int]:
    """Read one (possibly quoted) identifier starting at `pos`; returns (name, end)."""
    while pos < len(text) and text[pos].isspace():
        pos += 1
    if pos >= len(text):
        return None, pos
    ch = text[pos]
    if ch in ('"', "`", "["):
        close = "]" if ch == "[" else ch
        end = text.find(close, pos + 1)
        if end == -1:
            return None, pos
        return _unquote(text[pos:end + 1]), end + 1
    m = _BARE_IDENT_RE.match(text, pos)
    if not m:
        return None, pos
    return m.group(0), m.end()

def _read_qualified_name(text: str, pos: int) -> Tuple[Optional[str], int]:
    """schema.table -> table"""
    name, pos = _read_identifier(text, pos)
    while name is not None and pos < len(text) and text[pos] == ".":
        name, pos = _read_identifier(text, pos + 1)
    return name, pos

def _matching_paren(text: str, open_idx: int) -> int:
    depth = 0
    quote: Optional[str] = None
    i = open_idx
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\" and quote == "'":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1

# ---- column clause scanning --------------------------------------------------

class _ClauseScanner:
    """Walks the tokens after a column's type and records what matters."""

    def __init__(self, text: str, where: dict) -> None:
        self.where = where
        self.tokens: List[str] = []
        for m in _CLAUSE_TOKEN_RE.finditer(text):
            if m.lastgroup == "bad":
                raise MalformedStatement(f"unexpected {m.group(0)!r} (unterminated quote?)", **where)
            self.tokens.append(m.group(0))
        self.i = 0
        self.not_null = False
        self.has_default = False
        self.generated = False
        self.unsigned = False

    def _peek(self, offset: int = 0) -> Optional[str]:
        j = self.i + offset
        return self.tokens[j] if j < len(self.tokens) else None

    def _peek_upper(self, offset: int = 0) -> str:
        tok = self._peek(offset)
        return tok.upper() if tok is not None else ""

    def _fail(self, reason: str) -> None:
        raise MalformedStatement(reason, **self.where)

    def _skip_group(self) -> None:
        depth = 0
        while self.i < len(self.tokens):
            tok = self.tokens[self.i]
            self.i += 1
            if tok == "(":
                depth += 1
            elif tok == ")":
                depth -= 1
                if depth == 0:
                    return
        self._fail("unbalanced parentheses")

    def _skip_value(self, clause: str) -> None:
        tok = self._peek()
        if tok is None or tok == ")" or tok.upper() in _CLAUSE_KEYWORDS:
            self._fail(f"{clause} without a value")
        if tok == "(":
            self._skip_group()
        else:
            self.i += 1
            if self._peek() == "(":
                self._skip_group()  # function call: now(), nextval('seq')
        while self._peek() is not None and self._peek().startswith("::"):
            self.i += 1  # postgres cast
            if self._peek() == "(":
                self._skip_group()

    def _skip_word(self, clause: str) -> None:
        if self._peek() is None or self._peek() in ("(", ")"):
            self._fail(f"{clause} without an argument")
        self.i += 1

    def scan(self) -> "_ClauseScanner":
        while self.i < len(self.tokens):
            tok = self.tokens[self.i]
            up = tok.upper()
            if tok == "(":
                self._skip_group()
                continue
            if tok == ")":
                self._fail("unbalanced parentheses")
            self.i += 1
            if up == "NOT":
                nxt = self._peek_upper()
                if nxt == "NULL":
                    self.not_null = True
                    self.i += 1
                elif nxt == "DEFERRABLE":
                    self.i += 1
                else:
                    self._fail("NOT must be followed by NULL")
            elif up == "DEFAULT":
                self._skip_value("DEFAULT")
                self.has_default = True
            elif up == "UNSIGNED":
                self.unsigned = True
            elif up in ("AUTO_INCREMENT", "AUTOINCREMENT", "IDENTITY"):
                self.generated = True
            elif up in ("GENERATED", "AS"):
                self.generated = True
                while self._peek() is not None and (
                    self._peek_upper() in _GENERATED_WORDS or self._peek() == "("
                ):
                    if self._peek() == "(":
                        self._skip_group()
                    else:
                        self.i += 1
            elif up == "PRIMARY":
                if self._peek_upper() == "KEY":
                    self.i += 1
            elif up == "UNIQUE":
                if self._peek_upper() == "KEY":
                    self.i += 1
            elif up == "REFERENCES":
                tok = self._peek()
                if tok is None or tok in ("(", ")"):
                    self._fail("REFERENCES without a target table")
                self.i += 1
                if self._peek() == "(":
                    self._skip_group()
            elif up == "ON":
                if self._peek_upper() not in ("UPDATE", "DELETE"):
                    self._fail("ON must be followed by UPDATE or DELETE")
                self.i += 1
                if self._peek_upper() in ("SET", "NO"):
                    self.i += 2
                else:
                    self._skip_value("ON " + self.tokens[self.i - 1].upper())
            elif up == "CHECK":
                if self._peek() != "(":
                    self._fail("CHECK requires a parenthesized expression")
                self._skip_group()
            elif up in ("COLLATE", "COMMENT", "CONSTRAINT", "CHARSET"):
                self._skip_word(up)
            elif up == "CHARACTER":
                if self._peek_upper() != "SET":
                    self._fail("CHARACTER must be followed by SET")
                self.i += 1
                self._skip_word("CHARACTER SET")
            # NULL, SIGNED, ZEROFILL, KEY, ASC/DESC ... carry nothing we need
        return self

# ---- statement parsing -------------------------------------------------------

def _parse_column(
    definition: str,
    table: str,
    statement: int,
    unknown_as_text: bool,
) -> FieldDesign:
    where = {"statement": statement, "table": table}
    name, pos = _read_identifier(definition, 0)
    if not name:
        raise MalformedStatement(f"cannot read column name in {definition.strip()!r}", **where)
    where["column"] = name

    rest = definition[pos:].lstrip()
    m = _TYPE_RE.match(rest)
    if not m:
        raise MalformedStatement("missing column type", **where)

    type_name = normalize_token(m.group("name"))
    tz = normalize_token(m.group("tz"))
    token = f"{type_name} {tz}" if tz else type_name
    raw_params = m.group("params")
    params: Tuple[str, ...] = tuple(p.strip() for p in raw_params.split(",")) if raw_params else ()

    field_type = lookup_sql_type(token)
    if field_type is None or m.group("array"):
        raw = rest[:m.end()].strip()
        if not unknown_as_text:
            raise UnknownType(raw, **where)
        logger.debug("Treating unknown type %r of %s.%s as TEXT", raw, table, name)
        field_type = FieldType.TEXT

    choices: Optional[Tuple[str, ...]] = None
    if type_name in CHOICE_TYPES and field_type is FieldType.TEXT:
        values = _ENUM_VALUE_RE.findall(raw_params or "")
        if not values:
            raise MalformedStatement(f"{type_name} requires a list of quoted values", **where)
        choices = tuple(v.replace("''", "'") for v in values)

    clauses = _ClauseScanner(rest[m.end():], where).scan()

    return FieldDesign(
        fieldName=name,
        fieldType=field_type,
        required=clauses.not_null and not clauses.has_default,
        maxBytes=None if choices else size_bound(token, params),
        generated=clauses.generated or type_name in GENERATED_TYPES,
        choices=choices,
        unsigned=clauses.unsigned and field_type is FieldType.INTEGER,
        intBits=INT_BITS.get(type_name) if field_type is FieldType.INTEGER else None,
    )

def _is_table_constraint(definition: str) -> bool:
    """
    KEY, CHECK, UNIQUE ... are also legal column names (`key VARCHAR(50)`),
    so the word after the keyword decides: a known column type means a column.
    """
    text = definition.lstrip()
    m = _BARE_IDENT_RE.match(text)
    if not m or m.group(0).upper() not in TABLE_CONSTRAINT_KEYWORDS:
        return False
    keyword = m.group(0).upper()
    rest = text[m.end():].lstrip()
    if rest.startswith("("):
        return True  # CHECK (...), UNIQUE (...), KEY (...)
    if keyword in ("PRIMARY", "FOREIGN"):
        return rest.upper().startswith("KEY")
    t = _TYPE_RE.match(rest)
    return not (t and lookup_sql_type(t.group("name")) is not None)

def _check_table_constraint(definition: str, where: dict) -> None:
    """Table-level constraints are dropped, but must still be well formed."""
    scanner = _ClauseScanner(definition, where)
    if "(" not in scanner.tokens:
        raise MalformedStatement(f"table constraint without a column list: {definition.strip()!r}", **where)
    depth = 0
    for tok in scanner.tokens:
        if tok == "(":
            depth += 1
        elif tok == ")":
            depth -= 1
            if depth < 0:
                break
    if depth != 0:
        raise MalformedStatement("unbalanced parentheses", **where)

def parse_create_table(
    statement_text: str,
    *,
    statement: int = 1,
    unknown_as_text: bool = False,
) -> Optional[TableDesign]:
    """Parse one statement; returns None when it is not a CREATE TABLE."""
    head = _CREATE_TABLE_RE.match(statement_text)
    if not head:
        return None

    table, pos = _read_qualified_name(statement_text, head.end())
    if not table:
        raise MalformedStatement("CREATE TABLE without a table name", statement=statement)
    where = {"statement": statement, "table": table}

    while pos < len(statement_text) and statement_text[pos].isspace():
        pos += 1
    if pos >= len(statement_text) or statement_text[pos] != "(":
        raise MalformedStatement("CREATE TABLE without a column list", **where)
    close = _matching_paren(statement_text, pos)
    if close == -1:
        raise MalformedStatement("unbalanced parentheses", **where)

    body = statement_text[pos + 1:close]
    definitions = _split_top_level(body, ",")
    if len(definitions) == 1 and not definitions[0].strip():
        raise MalformedStatement("empty column list", **where)

    fields: List[FieldDesign] = []
    seen = set()
    for definition in definitions:
        if not definition.strip():
            raise MalformedStatement("empty column definition", **where)
        if _is_table_constraint(definition):
            _check_table_constraint(definition, where)
            continue
        field = _parse_column(definition, table, statement, unknown_as_text)
        if field.fieldName in seen:
            raise DuplicateColumn(table, field.fieldName, statement=statement)
        seen.add(field.fieldName)
        fields.append(field)

    if not fields:
        raise MalformedStatement("table has no columns", **where)
    return TableDesign(tableName=table, fields=tuple(fields))

def parse_schema(sql: str, *, unknown_as_text: bool = False, title: str = "Database") -> DatabaseDesign:
    """
    Build a DatabaseDesign from every CREATE TABLE statement in `sql`.

    Other statements (INSERT, SET, DROP, ...) are skipped. Any problem in a
    CREATE TABLE aborts the whole parse; there is no partial design.
    """
    tables: List[TableDesign] = []
    names = set()
    for index, stmt in enumerate(split_statements(sql), start=1):
        table = parse_create_table(stmt, statement=index, unknown_as_text=unknown_as_text)
        if table is None:
            logger.debug("Skipping statement %d (not CREATE TABLE)", index)
            continue
        if table.tableName in names:
            raise DuplicateTable(table.tableName, statement=index)
        names.add(table.tableName)
        tables.append(table)

    logger.info("Parsed %d table(s) from schema", len(tables))
    return DatabaseDesign(title=title, tables=tuple(tables))

def parse_schema_file(path: str | Path, *, unknown_as_text: bool = False, title: Optional[str] = None) -> DatabaseDesign:
    p = Path(path)
    sql = p.read_text(encoding="utf-8")
    return parse_schema(sql, unknown_as_text=unknown_as_text, title=title or p.stem)
