# engine/bootstrap.py
from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

from adapters.loaders import DatabaseReflectionLoader, DesignFileLoader, SqlSchemaLoader, TypeScriptWriter
from core.ports import DeclarationWriter, DesignLoader
from engine.db import Settings, get_settings
from engine.meta_models import DatabaseDesign
from generate.loader import InvalidDesignError, save_design

logger = logging.getLogger(__name__)

def choose_loader(settings: Settings, reload_schema: Optional[bool] = None) -> DesignLoader:
    """
    Pick where the design comes from:
      1) an existing design snapshot (DESIGN_PATH), unless a reload is requested
      2) the SQL schema (SCHEMA_PATH)
      3) a live database (DATABASE_URL)
    """
    reload_schema = settings.RELOAD_SCHEMA if reload_schema is None else reload_schema
    if not reload_schema and Path(settings.DESIGN_PATH).exists():
        return DesignFileLoader(settings.DESIGN_PATH)
    if Path(settings.SCHEMA_PATH).exists():
        return SqlSchemaLoader(settings.SCHEMA_PATH, unknown_as_text=settings.UNKNOWN_TYPES_AS_TEXT)
    if settings.DATABASE_URL:
        return DatabaseReflectionLoader(settings.DATABASE_URL, unknown_as_text=settings.UNKNOWN_TYPES_AS_TEXT)
    raise InvalidDesignError(
        f"No design source: {settings.DESIGN_PATH} and {settings.SCHEMA_PATH} do not exist "
        "and DATABASE_URL is not set"
    )

def init_design(
    settings: Optional[Settings] = None,
    *,
    loader: Optional[DesignLoader] = None,
    writer: Optional[DeclarationWriter] = None,
    reload_schema: Optional[bool] = None,
    save_snapshot: bool = True,
    export_types: bool = True,
) -> DatabaseDesign:
    """
    Load the design once for the life of the process and return it.

    A freshly parsed or reflected design is saved to DESIGN_PATH so the next
    start can skip parsing (and so constraints can be edited by hand there).
    TypeScript declarations are refreshed at TYPES_PATH. The returned design
    is immutable; pass it explicitly to whatever serves extraction.
    """
    settings = settings or get_settings()
    loader = loader or choose_loader(settings, reload_schema)
    design = loader.load()
    logger.info("Design %r ready via %s (%d tables)", design.title, type(loader).__name__, len(design.tables))

    if save_snapshot and not isinstance(loader, DesignFileLoader):
        save_design(design, settings.DESIGN_PATH)
    if export_types:
        (writer or TypeScriptWriter()).write(design, settings.TYPES_PATH)
    return design
