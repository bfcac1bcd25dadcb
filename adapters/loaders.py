# adapters/loaders.py
from __future__ import annotations
from pathlib import Path

from engine.db import create_db_engine
from engine.meta_models import DatabaseDesign
from engine.reflect import design_from_engine
from engine.sql_parser import parse_schema_file
from generate.loader import load_design
from generate.typescript import write_declarations

class SqlSchemaLoader:
    """Parses CREATE TABLE statements from a .sql file."""
    def __init__(self, path: str, *, unknown_as_text: bool = False) -> None:
        self.path = path
        self.unknown_as_text = unknown_as_text

    def load(self) -> DatabaseDesign:
        return parse_schema_file(self.path, unknown_as_text=self.unknown_as_text)

class DesignFileLoader:
    """Loads a (possibly hand-edited) design.json snapshot."""
    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> DatabaseDesign:
        return load_design(self.path)

class DatabaseReflectionLoader:
    """Reflects the design from a live database through SQLAlchemy."""
    def __init__(self, url: str, *, unknown_as_text: bool = False) -> None:
        self.url = url
        self.unknown_as_text = unknown_as_text

    def load(self) -> DatabaseDesign:
        engine = create_db_engine(self.url)
        try:
            return design_from_engine(engine, unknown_as_text=self.unknown_as_text)
        finally:
            engine.dispose()

class TypeScriptWriter:
    def write(self, design: DatabaseDesign, path: str | Path) -> Path:
        return write_declarations(design, path)
