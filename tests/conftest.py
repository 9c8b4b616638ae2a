"""Pytest configuration and fixtures for catalog-analyser tests."""

import copy
import re
from typing import Callable, Optional

import pytest

from catalog_analyser.dialects import POSTGRES
from catalog_analyser.dialects.base import DialectDescriptor, QueryTemplate
from catalog_analyser.services.metrics import MetricsCollector


# Markers for test categorization
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )


def pytest_collection_modifyitems(config, items):
    """Run unit tests before integration tests."""
    items.sort(key=lambda item: item.get_closest_marker("integration") is not None)


OBJECT_FILTER = re.compile(r"= '(?P<kind>\w+):(?P<schema>[^.]+)\.(?P<name>.+)'")


def make_dialect(
    supports_aggregate_hash: bool = True,
    supports_materialized_views: bool = True,
    supports_index_enumeration: bool = True
) -> DialectDescriptor:
    """Dialect whose templates are markers the fake runner can read back."""
    queries = {
        name: QueryTemplate(f"Q:{name} #REFTABLECOND# =OBJECT_ID_CONDITION", template.type_fields)
        for name, template in POSTGRES.queries.items()
        if (supports_aggregate_hash or not name.endswith("Modifications"))
        and (supports_materialized_views or not name.startswith("matview"))
        and (supports_index_enumeration or name not in ("indexes", "indexcols"))
    }
    return DialectDescriptor(
        name="fake",
        queries=queries,
        supports_aggregate_hash=supports_aggregate_hash,
        supports_materialized_views=supports_materialized_views,
        supports_index_enumeration=supports_index_enumeration,
        substitutions={"#REFTABLECOND#": "refcond"},
    )


class FakeRunner:
    """In-memory QueryRunner serving canned rows per logical query.

    Single-object conditions are honoured by filtering rows on their
    schema and object name; rows without an identity are returned as is.
    """

    def __init__(self, catalog: dict[str, list[dict]]):
        self.catalog = catalog
        self.calls: list[tuple[str, Optional[str]]] = []
        self.sql: list[str] = []
        self.fail_on: set[str] = set()
        self.after_query: Optional[Callable[[str, Optional[str]], None]] = None

    async def query(self, sql: str) -> list[dict]:
        self.sql.append(sql)
        name = sql.split()[0][len("Q:"):]
        match = OBJECT_FILTER.search(sql)
        object_id = None
        if match:
            object_id = f"{match['kind']}:{match['schema']}.{match['name']}"
        self.calls.append((name, object_id))

        if name in self.fail_on:
            raise ConnectionResetError(f"connection lost during {name}")

        rows = copy.deepcopy(self.catalog.get(name, []))
        if match:
            rows = [
                row for row in rows
                if "schema_name" not in row
                or (
                    row["schema_name"] == match["schema"]
                    and row.get("pure_name", row.get("table_name")) == match["name"]
                )
            ]
        if self.after_query:
            self.after_query(name, object_id)
        return rows

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


def _table_hash(name: str, columns: str, constraints: str) -> dict:
    return {
        "schema_name": "public",
        "pure_name": name,
        "hash_code_columns": columns,
        "hash_code_constraints": constraints,
    }


def sample_catalog() -> dict[str, list[dict]]:
    """Catalog rows for a small shop schema."""
    table_hashes = [
        _table_hash("customers", "c1", "k1"),
        _table_hash("orders", "o1", "k2"),
    ]
    routines = [
        {
            "schema_name": "public",
            "pure_name": "order_count",
            "object_type": "FUNCTION",
            "definition": "select count(*) from orders",
            "language": "SQL",
            "data_type": "integer",
            "hash_code": "f1",
        },
        {
            "schema_name": "public",
            "pure_name": "refresh_totals",
            "object_type": "PROCEDURE",
            "definition": "begin refresh materialized view order_totals; end",
            "language": "PLPGSQL",
            "data_type": None,
            "hash_code": "p1",
        },
    ]
    return {
        "tableModifications": table_hashes,
        "tables": [{"schema_name": t["schema_name"], "pure_name": t["pure_name"]} for t in table_hashes],
        "columns": [
            {
                "schema_name": "public", "pure_name": "customers", "column_name": "id",
                "data_type": "integer", "is_nullable": "NO",
                "default_value": "nextval('customers_id_seq'::regclass)",
            },
            {
                "schema_name": "public", "pure_name": "customers", "column_name": "email",
                "data_type": "character varying", "char_max_length": 255, "is_nullable": "NO",
            },
            {
                "schema_name": "public", "pure_name": "customers", "column_name": "name",
                "data_type": "text", "is_nullable": "YES",
            },
            {
                "schema_name": "public", "pure_name": "orders", "column_name": "total",
                "data_type": "numeric", "numeric_precision": 10, "numeric_scale": 2,
                "is_nullable": "YES", "default_value": "0",
            },
            {
                "schema_name": "public", "pure_name": "orders", "column_name": "id",
                "data_type": "integer", "is_nullable": "NO",
                "default_value": "nextval('orders_id_seq'::regclass)",
            },
            {
                "schema_name": "public", "pure_name": "orders", "column_name": "customer_id",
                "data_type": "integer", "is_nullable": "NO",
            },
            {
                "schema_name": "public", "pure_name": "active_customers", "column_name": "id",
                "data_type": "integer", "is_nullable": "YES",
            },
            {
                "schema_name": "public", "pure_name": "active_customers", "column_name": "email",
                "data_type": "character varying", "char_max_length": 255, "is_nullable": "YES",
            },
        ],
        "primaryKeys": [
            {
                "schema_name": "public", "pure_name": "customers",
                "constraint_schema": "public", "constraint_name": "pk_customers", "column_name": "id",
            },
            {
                "schema_name": "public", "pure_name": "orders",
                "constraint_schema": "public", "constraint_name": "pk_orders", "column_name": "id",
            },
        ],
        "foreignKeys": [
            {
                "schema_name": "public", "pure_name": "orders",
                "constraint_schema": "public", "constraint_name": "fk_orders_customer",
                "column_name": "customer_id", "ref_column_name": "id",
                "ref_table_name": "customers", "ref_schema_name": "public",
                "update_action": "NO ACTION", "delete_action": "CASCADE",
            },
        ],
        "indexes": [
            {
                "schema_name": "public", "table_name": "customers", "index_name": "ux_email",
                "oid": 101, "indkey": "2", "is_unique": True,
            },
            {
                "schema_name": "public", "table_name": "customers", "index_name": "ix_customers_name",
                "oid": 102, "indkey": "3", "is_unique": False,
            },
            {
                "schema_name": "public", "table_name": "orders", "index_name": "ix_orders_customer",
                "oid": 201, "indkey": "3 1", "is_unique": False,
            },
        ],
        "indexcols": [
            {"oid": 101, "attnum": 2, "column_name": "email"},
            {"oid": 102, "attnum": 3, "column_name": "name"},
            {"oid": 201, "attnum": 3, "column_name": "customer_id"},
            {"oid": 201, "attnum": 1, "column_name": "total"},
        ],
        "uniqueNames": [{"constraint_name": "ux_email"}],
        "views": [
            {
                "schema_name": "public", "pure_name": "active_customers",
                "create_sql": " SELECT id, email FROM customers;", "hash_code": "v1",
            },
        ],
        "viewModifications": [
            {"schema_name": "public", "pure_name": "active_customers", "hash_code": "v1"},
        ],
        "matviews": [
            {
                "schema_name": "public", "pure_name": "order_totals",
                "definition": " SELECT customer_id, sum(total) AS total FROM orders GROUP BY customer_id;",
                "hash_code": "m1",
            },
        ],
        "matviewColumns": [
            {
                "schema_name": "public", "pure_name": "order_totals", "column_name": "customer_id",
                "data_type": "integer", "is_nullable": True,
            },
            {
                "schema_name": "public", "pure_name": "order_totals", "column_name": "total",
                "data_type": "numeric", "numeric_precision": 12, "numeric_scale": 2, "is_nullable": True,
            },
        ],
        "matviewModifications": [
            {"schema_name": "public", "pure_name": "order_totals", "hash_code": "m1"},
        ],
        "routines": routines,
        "routineModifications": [
            {k: r[k] for k in ("schema_name", "pure_name", "object_type", "hash_code")}
            for r in routines
        ],
    }


def set_table_hash(catalog: dict, name: str, columns: str, constraints: str) -> None:
    for row in catalog["tableModifications"]:
        if row["pure_name"] == name:
            row["hash_code_columns"] = columns
            row["hash_code_constraints"] = constraints


def drop_table(catalog: dict, name: str) -> None:
    for query in ("tableModifications", "tables", "columns", "primaryKeys", "foreignKeys"):
        catalog[query] = [row for row in catalog[query] if row.get("pure_name") != name]
    catalog["indexes"] = [row for row in catalog["indexes"] if row["table_name"] != name]


@pytest.fixture
def catalog():
    return sample_catalog()


@pytest.fixture
def runner(catalog):
    return FakeRunner(catalog)


@pytest.fixture
def dialect():
    return make_dialect()


@pytest.fixture
def metrics():
    return MetricsCollector(window_seconds=60)
