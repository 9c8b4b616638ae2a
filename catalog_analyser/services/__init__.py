"""Service modules for catalog-analyser."""

from catalog_analyser.services.database import (
    create_pool,
    test_connection,
    close_pool,
)
from catalog_analyser.services.executor import (
    QueryRunner,
    PoolQueryRunner,
    ConnectionQueryRunner,
    CatalogQueryExecutor,
    object_condition,
)
from catalog_analyser.services.assembler import ObjectAssembler
from catalog_analyser.services.changes import (
    ChangeDetector,
    classify,
    diff_snapshots,
)
from catalog_analyser.services.analyser import SchemaAnalyser
from catalog_analyser.services.metrics import (
    MetricsCollector,
    MetricSummary,
    OperationMetrics,
    get_metrics_collector,
    trace_operation,
)

__all__ = [
    # Database
    "create_pool",
    "test_connection",
    "close_pool",
    # Execution
    "QueryRunner",
    "PoolQueryRunner",
    "ConnectionQueryRunner",
    "CatalogQueryExecutor",
    "object_condition",
    # Analysis
    "ObjectAssembler",
    "ChangeDetector",
    "classify",
    "diff_snapshots",
    "SchemaAnalyser",
    # Metrics
    "MetricsCollector",
    "MetricSummary",
    "OperationMetrics",
    "get_metrics_collector",
    "trace_operation",
]
