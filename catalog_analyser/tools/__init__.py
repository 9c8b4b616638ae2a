"""MCP tools for catalog-analyser."""

from catalog_analyser.tools.schema import register_schema_tools, summarize_snapshot

__all__ = [
    "register_schema_tools",
    "summarize_snapshot",
]
