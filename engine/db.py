from __future__ import annotations
import os
from functools import lru_cache
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from dotenv import load_dotenv

load_dotenv()

def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}

class Settings:
    SCHEMA_PATH: str
    DESIGN_PATH: str
    TYPES_PATH: str
    DATABASE_URL: Optional[str]
    LOG_LEVEL: str
    UNKNOWN_TYPES_AS_TEXT: bool
    EXTRACTION_MODE: str
    RELOAD_SCHEMA: bool

    def __init__(self) -> None:
        self.SCHEMA_PATH = os.getenv("SCHEMA_PATH", "schema.sql")
        self.DESIGN_PATH = os.getenv("DESIGN_PATH", "design.json")
        self.TYPES_PATH = os.getenv("TYPES_PATH", "types/database.ts")
        self.DATABASE_URL = os.getenv("DATABASE_URL") or None
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.UNKNOWN_TYPES_AS_TEXT = _flag("UNKNOWN_TYPES_AS_TEXT")
        # table extraction failure reporting: "aggregate" (all field errors) or "fail_fast"
        self.EXTRACTION_MODE = os.getenv("EXTRACTION_MODE", "aggregate").lower()
        self.RELOAD_SCHEMA = _flag("RELOAD_SCHEMA")

@lru_cache
def get_settings() -> Settings:
    return Settings()

def create_db_engine(url: str) -> Engine:
    """Engine used only for schema reflection; no ORM session is ever opened."""
    return create_engine(url, pool_pre_ping=True, future=True)
