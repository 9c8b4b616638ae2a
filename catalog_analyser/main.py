"""Main entry point for the catalog-analyser MCP server."""

import asyncio
import logging

from mcp.server.fastmcp import FastMCP

from catalog_analyser.config import Settings
from catalog_analyser.services.analyser import SchemaAnalyser
from catalog_analyser.services.database import create_pool, close_pool, test_connection
from catalog_analyser.services.executor import PoolQueryRunner
from catalog_analyser.services.metrics import MetricsCollector
from catalog_analyser.tools.schema import register_schema_tools


logger = logging.getLogger("catalog_analyser")


def main() -> None:
    """Main entry point for the server."""
    import argparse

    parser = argparse.ArgumentParser(description="Database schema analyser MCP server")
    parser.add_argument(
        "--dsn",
        type=str,
        help="Database DSN"
    )
    parser.add_argument(
        "--dialect",
        type=str,
        help="Catalog dialect (postgres, redshift)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level"
    )

    args = parser.parse_args()

    # Load settings
    settings = Settings()
    if args.dsn:
        settings.postgres_dsn = args.dsn
    if args.dialect:
        settings.dialect = args.dialect
    if args.log_level:
        settings.log_level = args.log_level

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    logger.info("Starting catalog-analyser server initialization")
    asyncio.run(run_server(settings))


def create_analyser(settings: Settings, pool) -> SchemaAnalyser:
    """Build the analyser for a pool according to settings.

    Args:
        settings: Application settings.
        pool: The asyncpg connection pool.

    Returns:
        The configured analyser.
    """
    dialect = settings.get_dialect()
    metrics = MetricsCollector(
        window_seconds=settings.metrics_window_seconds,
        enabled=settings.metrics_enabled
    )
    return SchemaAnalyser(
        runner=PoolQueryRunner(pool, timeout=settings.query_timeout),
        dialect=dialect,
        max_concurrent_queries=settings.max_concurrent_queries,
        metrics=metrics
    )


async def run_server(settings: Settings) -> None:
    """Run the MCP server.

    Args:
        settings: Application settings.
    """
    mcp = FastMCP("catalog-analyser", host=settings.mcp_host, port=settings.mcp_port)

    pool = await create_pool(
        dsn=settings.get_dsn(),
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        ssl=settings.postgres_ssl,
        timeout=settings.query_timeout
    )
    try:
        status = await test_connection(pool, settings.postgres_database)
        if not status.connected:
            logger.error("Database not reachable: %s", status.error)
        else:
            logger.info("Database reachable (%.1fms)", status.latency_ms)

        analyser = create_analyser(settings, pool)
        register_schema_tools(mcp, analyser)

        logger.info("catalog-analyser ready (dialect=%s); starting event loop", analyser.dialect.name)
        await mcp.run_sse_async()
    finally:
        await close_pool(pool)


if __name__ == "__main__":
    main()
