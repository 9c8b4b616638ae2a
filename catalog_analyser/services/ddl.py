"""DDL reconstruction for views and routines.

Pure formatting functions over already-normalised fields; no catalog
access happens here.
"""

from typing import Optional


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def qualified_name(schema_name: str, pure_name: str) -> str:
    return f"{quote_identifier(schema_name)}.{quote_identifier(pure_name)}"


def format_view_sql(schema_name: str, pure_name: str, definition: Optional[str]) -> str:
    return f"CREATE VIEW {qualified_name(schema_name, pure_name)}\nAS\n{definition or ''}"


def format_matview_sql(schema_name: str, pure_name: str, definition: Optional[str]) -> str:
    return f"CREATE MATERIALIZED VIEW {qualified_name(schema_name, pure_name)}\nAS\n{definition or ''}"


def format_procedure_sql(
    schema_name: str,
    pure_name: str,
    language: Optional[str],
    body: Optional[str]
) -> str:
    return (
        f"CREATE PROCEDURE {qualified_name(schema_name, pure_name)}() "
        f"LANGUAGE {language or 'sql'}\nAS\n$$\n{body or ''}\n$$"
    )


def format_function_sql(
    schema_name: str,
    pure_name: str,
    return_type: Optional[str],
    language: Optional[str],
    body: Optional[str]
) -> str:
    return (
        f"CREATE FUNCTION {qualified_name(schema_name, pure_name)}() "
        f"RETURNS {return_type or 'void'} LANGUAGE {language or 'sql'}\nAS\n$$\n{body or ''}\n$$"
    )
