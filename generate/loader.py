# generate/loader.py
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from jsonschema import ValidationError
from jsonschema.validators import Draft7Validator
from pydantic import ValidationError as ModelValidationError

from engine.meta_models import DatabaseDesign

logger = logging.getLogger(__name__)

DESIGN_SCHEMA_PATH = Path(__file__).with_name("design.schema.json")

class InvalidDesignError(Exception):
    pass

@lru_cache
def _design_schema() -> Dict[str, Any]:
    try:
        schema = json.loads(DESIGN_SCHEMA_PATH.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidDesignError(f"Failed to read design schema at {DESIGN_SCHEMA_PATH}: {e}") from e
    Draft7Validator.check_schema(schema)
    return schema

def design_from_dict(data: Dict[str, Any]) -> DatabaseDesign:
    """
    Validate a decoded design document: JSON-Schema for structure first,
    then the pydantic models for the cross-field rules (unique names,
    compilable patterns, text-only constraints).
    """
    try:
        Draft7Validator(_design_schema()).validate(data)
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise InvalidDesignError(f"Design validation failed at {where}: {e.message}") from e
    body = {k: v for k, v in data.items() if k != "$schema"}
    try:
        return DatabaseDesign.model_validate(body)
    except ModelValidationError as e:
        raise InvalidDesignError(f"Design validation failed: {e}") from e

def design_to_dict(design: DatabaseDesign) -> Dict[str, Any]:
    return design.model_dump(mode="json", exclude_none=True)

def dumps_design(design: DatabaseDesign) -> str:
    return json.dumps(design_to_dict(design), indent=2, ensure_ascii=False) + "\n"

def loads_design(text: str) -> DatabaseDesign:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidDesignError(f"Design is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidDesignError("Design must be a JSON object")
    return design_from_dict(data)

def load_design(path: str = "design.json") -> DatabaseDesign:
    design_path = Path(path)
    if not design_path.exists():
        raise InvalidDesignError(f"Design file not found at {path}")
    design = loads_design(design_path.read_text(encoding="utf-8"))
    logger.info("Loaded design from %s with %d tables", design_path, len(design.tables))
    return design

def save_design(design: DatabaseDesign, path: str = "design.json") -> Path:
    design_path = Path(path)
    design_path.parent.mkdir(parents=True, exist_ok=True)
    design_path.write_text(dumps_design(design), encoding="utf-8")
    logger.info("Saved design snapshot to %s", design_path)
    return design_path
