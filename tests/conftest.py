from pathlib import Path

import pytest

from engine.meta_models import DatabaseDesign
from engine.sql_parser import parse_schema, parse_schema_file

FIXTURES = Path(__file__).parent / "fixtures"

USERS_SQL = "CREATE TABLE users (id INT NOT NULL, email VARCHAR(100) NOT NULL, bio TEXT)"

@pytest.fixture
def schema_path() -> Path:
    return FIXTURES / "schema.sql"

@pytest.fixture
def users_design() -> DatabaseDesign:
    return parse_schema(USERS_SQL)

@pytest.fixture
def users(users_design):
    return users_design.table("users")

@pytest.fixture
def blog_design(schema_path) -> DatabaseDesign:
    return parse_schema_file(schema_path)
