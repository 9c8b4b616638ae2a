"""MCP schema analysis tools."""

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from catalog_analyser.models.schema import SchemaSnapshot
from catalog_analyser.services.analyser import SchemaAnalyser
from catalog_analyser.utils.constants import ErrorCode
from catalog_analyser.utils.exceptions import AnalyserError, PartialRefreshError

logger = logging.getLogger("schema-tools")


def summarize_snapshot(snapshot: SchemaSnapshot) -> dict[str, Any]:
    """Brief per-object listing of a snapshot."""
    return {
        "tables": [
            {
                "objectId": table.object_id,
                "columnsCount": len(table.columns),
                "contentHash": table.content_hash,
            }
            for table in snapshot.tables
        ],
        "views": [view.object_id for view in snapshot.views],
        "matviews": None if snapshot.matviews is None else [m.object_id for m in snapshot.matviews],
        "procedures": [proc.object_id for proc in snapshot.procedures],
        "functions": [func.object_id for func in snapshot.functions],
    }


def register_schema_tools(mcp: FastMCP, analyser: SchemaAnalyser) -> None:
    """Register the schema analysis tools with the MCP server.

    Args:
        mcp: The FastMCP server instance.
        analyser: The schema analyser instance.
    """

    @mcp.tool()
    async def analyse_schema(format: str = "summary") -> dict:
        """
        Analyse the database schema.

        Args:
            format: "summary" for a brief listing or "full" for the complete snapshot.

        Returns:
            The schema snapshot.
        """
        try:
            snapshot = await analyser.full_analysis()
        except AnalyserError as e:
            return e.to_dict()

        data = snapshot.model_dump(by_alias=True) if format == "full" else summarize_snapshot(snapshot)
        return {
            "status": "success",
            "dialect": analyser.dialect.name,
            "warnings": [str(w) for w in analyser.last_warnings],
            "data": data,
        }

    @mcp.tool()
    async def refresh_schema(previous: dict) -> dict:
        """
        Refresh a previously returned full snapshot, re-analysing only changed objects.

        Args:
            previous: Snapshot from an earlier analyse_schema(format="full") or refresh_schema call.

        Returns:
            The refreshed snapshot and the change classification.
        """
        try:
            previous_snapshot = SchemaSnapshot.model_validate(previous)
        except ValidationError as e:
            return AnalyserError(ErrorCode.INVALID_SNAPSHOT, details={"errors": str(e)}).to_dict()

        try:
            snapshot, diff = await analyser.refresh_with_diff(previous_snapshot)
        except PartialRefreshError as e:
            result = e.to_dict()
            result["data"] = e.snapshot.model_dump(by_alias=True)
            return result
        except AnalyserError as e:
            return e.to_dict()

        return {
            "status": "success",
            "changes": diff.summary(),
            "data": snapshot.model_dump(by_alias=True),
        }

    @mcp.tool()
    async def analyse_object(object_id: str) -> dict:
        """
        Analyse a single schema object.

        Args:
            object_id: Object id such as "tables:public.orders" or "views:active_users".

        Returns:
            The object's full description, or a not-found status.
        """
        try:
            obj = await analyser.analyse_object(object_id)
        except AnalyserError as e:
            return e.to_dict()

        if obj is None:
            return {"status": "not_found", "objectId": object_id}
        return {"status": "success", "data": obj.model_dump(by_alias=True)}
