# core/ports.py
from __future__ import annotations
from pathlib import Path
from typing import Protocol

from engine.meta_models import DatabaseDesign

class DesignLoader(Protocol):
    """Produces the DatabaseDesign a process serves with (SQL, design file, live DB)."""
    def load(self) -> DatabaseDesign: ...

class DeclarationWriter(Protocol):
    """Writes front-end type declarations for a design; returns the written path."""
    def write(self, design: DatabaseDesign, path: str | Path) -> Path: ...
