"""Database connection services."""

import time
from typing import Optional

import asyncpg

from catalog_analyser.models.database import ConnectionStatus

APPLICATION_NAME = "catalog-analyser"


async def create_pool(
    dsn: str,
    min_size: int = 1,
    max_size: int = 4,
    ssl: bool = False,
    timeout: int = 30
) -> asyncpg.Pool:
    """Create the connection pool catalog queries run on.

    Each catalog query acquires its own connection, so ``max_size`` is
    also the ceiling on catalog queries in flight.

    Args:
        dsn: Database connection string.
        min_size: Connections opened up front.
        max_size: Upper bound on pooled connections.
        ssl: Whether to use SSL.
        timeout: Per-statement timeout in seconds.

    Returns:
        An asyncpg connection pool.
    """
    return await asyncpg.create_pool(
        dsn=dsn,
        min_size=min_size,
        max_size=max_size,
        ssl=ssl if ssl else None,
        command_timeout=timeout,
        server_settings={"application_name": APPLICATION_NAME},
    )


async def test_connection(pool: asyncpg.Pool, database: str = "default") -> ConnectionStatus:
    """Round-trip a trivial statement to check the catalog is reachable.

    Failures are reported in the returned status rather than raised.
    """
    started = time.perf_counter()
    try:
        async with pool.acquire() as conn:
            await conn.fetchval("select 1")
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
        return ConnectionStatus(database=database, connected=False, error=str(e))
    return ConnectionStatus(
        database=database,
        connected=True,
        latency_ms=(time.perf_counter() - started) * 1000,
    )


async def close_pool(pool: Optional[asyncpg.Pool]) -> None:
    if pool is not None:
        await pool.close()
