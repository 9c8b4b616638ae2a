"""Catalog query execution against a live connection."""

import asyncio
import logging
from typing import Iterable, Optional, Protocol

import asyncpg

from catalog_analyser.dialects.base import DialectDescriptor
from catalog_analyser.models.schema import ObjectIdentity, SchemaObjectKind
from catalog_analyser.services.metrics import MetricsCollector, trace_operation
from catalog_analyser.utils.constants import OBJECT_ID_CONDITION
from catalog_analyser.utils.exceptions import DatabaseConnectionError

logger = logging.getLogger("catalog-executor")

# Failures raised by the driver layer; all surface as DatabaseConnectionError.
DRIVER_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


class QueryRunner(Protocol):
    """Driver boundary: run SQL text, return rows keyed by column name."""

    async def query(self, sql: str) -> list[dict]:
        ...


class PoolQueryRunner:
    """Runs each query on its own pooled connection, allowing concurrency."""

    def __init__(self, pool: asyncpg.Pool, timeout: Optional[float] = None):
        self.pool = pool
        self.timeout = timeout

    async def query(self, sql: str) -> list[dict]:
        async with self.pool.acquire() as conn:
            records = await conn.fetch(sql, timeout=self.timeout)
        return [dict(record) for record in records]


class ConnectionQueryRunner:
    """Runs queries on one live connection, serialised by a lock."""

    def __init__(self, conn: asyncpg.Connection, timeout: Optional[float] = None):
        self.conn = conn
        self.timeout = timeout
        self._lock = asyncio.Lock()

    async def query(self, sql: str) -> list[dict]:
        async with self._lock:
            records = await self.conn.fetch(sql, timeout=self.timeout)
        return [dict(record) for record in records]


def escape_literal(value: str) -> str:
    return value.replace("'", "''")


def object_condition(
    type_fields: Iterable[SchemaObjectKind],
    object_filter: Optional[ObjectIdentity]
) -> Optional[str]:
    """Compute the replacement for the object id condition marker.

    Args:
        type_fields: Object kinds the query returns rows for.
        object_filter: Identity to restrict the query to, or None for all.

    Returns:
        `` is not null`` for an unrestricted query, `` = '<object id>'`` for
        a matching single-object filter, or None when the filter targets
        a kind the query does not cover (the query should be skipped).
    """
    if object_filter is None:
        return " is not null"
    if object_filter.kind not in tuple(type_fields):
        return None
    return f" = '{escape_literal(object_filter.object_id)}'"


class CatalogQueryExecutor:
    """Issues the dialect's logical catalog queries.

    The executor does not check capability flags: requesting a query the
    dialect lacks raises ``UnsupportedQueryError``. Callers gate optional
    queries on the descriptor first.
    """

    def __init__(
        self,
        runner: QueryRunner,
        dialect: DialectDescriptor,
        max_concurrent_queries: int = 4,
        metrics: Optional[MetricsCollector] = None
    ):
        self.runner = runner
        self.dialect = dialect
        self.metrics = metrics
        self._semaphore = asyncio.Semaphore(max_concurrent_queries)

    def render(self, name: str, substitutions: Optional[dict[str, str]] = None) -> str:
        """Render a logical query with dialect and caller substitutions."""
        sql = self.dialect.get_query(name).sql
        for token, value in {**self.dialect.substitutions, **(substitutions or {})}.items():
            sql = sql.replace(token, value)
        return sql

    async def run_query(
        self,
        name: str,
        substitutions: Optional[dict[str, str]] = None
    ) -> list[dict]:
        """Run one logical query.

        Args:
            name: Logical query name.
            substitutions: Extra find/replace tokens applied to the template.

        Returns:
            Rows as dictionaries.

        Raises:
            UnsupportedQueryError: If the dialect does not define the query.
            DatabaseConnectionError: If the driver fails.
        """
        substitutions = {OBJECT_ID_CONDITION: " is not null", **(substitutions or {})}
        sql = self.render(name, substitutions)

        async with self._semaphore:
            logger.debug("Running catalog query %s", name)
            try:
                with trace_operation(f"query:{name}", self.metrics):
                    rows = await self.runner.query(sql)
            except DRIVER_ERRORS as e:
                logger.error("Catalog query %s failed: %s", name, e)
                raise DatabaseConnectionError(
                    f"Catalog query '{name}' failed: {e}", query_name=name
                ) from e

        logger.debug("Catalog query %s returned %d rows", name, len(rows))
        return rows

    async def run_scoped(
        self,
        name: str,
        object_filter: Optional[ObjectIdentity] = None
    ) -> list[dict]:
        """Run a query restricted to one object; skipped queries return no rows."""
        template = self.dialect.get_query(name)
        condition = object_condition(template.type_fields, object_filter)
        if condition is None:
            return []
        return await self.run_query(name, {OBJECT_ID_CONDITION: condition})

    async def run_many(
        self,
        names: Iterable[str],
        object_filter: Optional[ObjectIdentity] = None
    ) -> dict[str, list[dict]]:
        """Run several independent queries concurrently.

        If one query fails, the others are cancelled and awaited before the
        error propagates, so nothing from the aborted batch is still running
        on the connection when the caller regains control.

        Returns:
            Rows keyed by logical query name.
        """
        names = list(names)
        tasks = [asyncio.ensure_future(self.run_scoped(name, object_filter)) for name in names]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return dict(zip(names, results))
