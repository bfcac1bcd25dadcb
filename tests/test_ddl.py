from engine.sql_parser import parse_schema
from generate.ddl import generate_ddl, generate_table_ddl

def test_users_ddl(users):
    assert generate_table_ddl(users) == (
        'CREATE TABLE "users" (\n'
        '  "id" INT NOT NULL,\n'
        '  "email" VARCHAR(100) NOT NULL,\n'
        '  "bio" TEXT\n'
        ");"
    )

def test_ddl_parses_back_to_the_same_tables(blog_design):
    ddl = generate_ddl(blog_design)
    assert ddl.count("CREATE TABLE") == 2
    assert parse_schema(ddl).tables == blog_design.tables

def test_patterns_are_not_carried(users_design):
    edited = users_design.with_pattern("users", "email", r".+@.+")
    reparsed = parse_schema(generate_ddl(edited))
    assert reparsed.table("users").field("email").pattern is None
