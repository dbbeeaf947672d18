"""Tests for the script and SQL source parser."""

import pytest

from metadatafy.errors import ParseError
from metadatafy.parser import detect_language, parse_script, parse_source, parse_sql


def test_detect_language():
    assert detect_language("components/button.tsx") == "markup"
    assert detect_language("lib/format.ts") == "script"
    assert detect_language("lib/legacy.js") == "script"
    assert detect_language("supabase/migrations/001.sql") == "sql"
    assert detect_language("README.md") is None


def test_parse_script_exposes_tree():
    tree = parse_script("export const answer = 42;\n", "answer.ts")
    assert tree.root.type == "program"
    assert tree.extension == ".ts"
    assert [n.type for n in tree.top_level()] == ["export_statement"]


def test_parse_tsx_markup():
    tree = parse_script("export const A = () => <div>hi</div>;\n", "a.tsx")
    assert any(node.type == "jsx_element" for node in tree.walk())


def test_strict_mode_rejects_broken_syntax():
    with pytest.raises(ParseError) as excinfo:
        parse_script("export function broken( {\n  return 1;\n", "broken.ts")

    err = excinfo.value
    assert err.path == "broken.ts"
    assert str(err).startswith("broken.ts: ")
    assert err.line is not None


def test_lenient_mode_keeps_partial_tree():
    tree = parse_script("export function broken( {\n", "broken.ts", strict=False)
    assert tree.root.has_error


def test_unsupported_script_extension():
    with pytest.raises(ParseError):
        parse_script("x", "notes.txt")


def test_parse_source_unsupported_file():
    with pytest.raises(ParseError, match="unsupported file type"):
        parse_source("notes.md", "# hi")


def test_parse_sql_tables_and_columns():
    sql = """
    -- users
    CREATE TABLE IF NOT EXISTS public.users (
      id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
      email varchar(255) NOT NULL UNIQUE,
      nickname text
    );

    CREATE TABLE posts (
      id bigserial,
      author_id uuid NOT NULL,
      body text,
      PRIMARY KEY (id),
      FOREIGN KEY (author_id) REFERENCES users(id)
    );
    """
    tables = parse_sql(sql, "migrations/001.sql")
    assert [t.name for t in tables] == ["users", "posts"]

    users = {c.name: c for c in tables[0].columns}
    assert users["id"].is_primary_key
    assert not users["id"].nullable
    assert users["email"].type == "varchar(255)"
    assert not users["email"].nullable
    assert users["nickname"].nullable

    posts = {c.name: c for c in tables[1].columns}
    assert posts["id"].is_primary_key
    assert posts["author_id"].is_foreign_key
    assert posts["author_id"].references_table == "users"
    assert posts["author_id"].references_column == "id"


def test_parse_sql_alter_table_adds_column():
    sql = """
    CREATE TABLE teams (id int PRIMARY KEY);
    ALTER TABLE teams ADD COLUMN owner_id uuid REFERENCES users;
    """
    tables = parse_sql(sql, "migrations/002.sql")
    owner = tables[0].columns[-1]
    assert owner.name == "owner_id"
    assert owner.references_table == "users"
    assert owner.references_column == "id"


def test_parse_sql_ignores_commented_statements():
    sql = "/* CREATE TABLE ghost (id int); */\n-- CREATE TABLE other (id int);\n"
    assert parse_sql(sql, "migrations/003.sql") == []


def test_parse_sql_unbalanced_parentheses():
    with pytest.raises(ParseError, match="unbalanced"):
        parse_sql("CREATE TABLE broken (\n  id int,\n  name text\n", "migrations/004.sql")


def test_parse_source_sql_unit():
    unit = parse_source("supabase/migrations/001.sql", "CREATE TABLE t (id int);")
    assert unit.language == "sql"
    assert unit.tree[0].name == "t"
