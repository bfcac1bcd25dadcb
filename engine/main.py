# engine/main.py
from __future__ import annotations
import logging

from engine.app_factory import create_app
from engine.bootstrap import init_design
from engine.db import get_settings
from engine.extract import ExtractionMode

settings = get_settings()
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))
logger = logging.getLogger("engine.main")

# ---- Load design once (fails startup if no valid design) ----
try:
    design = init_design(settings)
except Exception as e:
    logger.error("Failed to load design: %s", e)
    raise

app = create_app(design, mode=ExtractionMode(settings.EXTRACTION_MODE))
