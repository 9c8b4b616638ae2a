"""Tests for the catalog query executor."""

import asyncio

import pytest

from catalog_analyser.dialects import POSTGRES, REDSHIFT, get_dialect
from catalog_analyser.models.schema import ObjectIdentity, SchemaObjectKind
from catalog_analyser.services.executor import (
    CatalogQueryExecutor,
    ConnectionQueryRunner,
    object_condition,
)
from catalog_analyser.utils.exceptions import (
    DatabaseConnectionError,
    UnknownDialectError,
    UnsupportedQueryError,
)
from tests.conftest import make_dialect


class TestObjectCondition:
    """object_condition tests."""

    def test_unfiltered(self):
        """Test that full analysis matches every object."""
        assert object_condition((SchemaObjectKind.TABLES,), None) == " is not null"

    def test_matching_kind(self):
        """Test a single-object filter on a covered kind."""
        identity = ObjectIdentity.parse("tables:public.orders")
        condition = object_condition((SchemaObjectKind.TABLES, SchemaObjectKind.VIEWS), identity)
        assert condition == " = 'tables:public.orders'"

    def test_other_kind_is_skipped(self):
        """Test that a filter for another kind skips the query."""
        identity = ObjectIdentity.parse("views:public.v")
        assert object_condition((SchemaObjectKind.TABLES,), identity) is None

    def test_quotes_are_escaped(self):
        """Test that quotes in names cannot break out of the literal."""
        identity = ObjectIdentity.parse("tables:public.o'brien")
        assert object_condition((SchemaObjectKind.TABLES,), identity) == " = 'tables:public.o''brien'"


class TestDialects:
    """Dialect descriptor tests."""

    def test_registry(self):
        """Test dialect lookup by name."""
        assert get_dialect("postgres") is POSTGRES
        assert get_dialect("Redshift") is REDSHIFT
        with pytest.raises(UnknownDialectError):
            get_dialect("oracle")

    def test_postgres_capabilities(self):
        """Test the full-featured dialect defines every optional query."""
        assert POSTGRES.supports_aggregate_hash
        for name in ("tableModifications", "matviews", "indexes", "indexcols", "routineModifications"):
            assert POSTGRES.has_query(name)

    def test_redshift_capabilities(self):
        """Test the restricted dialect lacks optional queries."""
        assert not REDSHIFT.supports_aggregate_hash
        assert not REDSHIFT.supports_materialized_views
        assert not REDSHIFT.supports_index_enumeration
        assert not REDSHIFT.has_query("matviews")
        assert not REDSHIFT.has_query("tableModifications")
        assert not REDSHIFT.has_query("uniqueNames")

    def test_column_hash_covers_user_defined_types(self):
        """Test enum and array element types feed the table column hash."""
        assert "infoColumns.udt_name" in POSTGRES.get_query("tableModifications").sql

    def test_routine_overloads_ordered(self):
        """Test routine queries order overloads by their specific name."""
        for name in ("routines", "routineModifications"):
            sql = POSTGRES.get_query(name).sql
            assert "routines.specific_name" in sql.split("order by")[-1], name

    def test_templates_carry_object_marker(self):
        """Test every template can be scoped to one object."""
        for name, template in POSTGRES.queries.items():
            assert "=OBJECT_ID_CONDITION" in template.sql, name
            assert template.type_fields, name

    def test_descriptor_is_read_only(self):
        """Test that the query table cannot be mutated."""
        with pytest.raises(TypeError):
            POSTGRES.queries["tables"] = None


class TestCatalogQueryExecutor:
    """CatalogQueryExecutor tests."""

    def test_render_applies_substitutions(self, runner, dialect):
        """Test dialect and caller substitutions."""
        executor = CatalogQueryExecutor(runner, dialect)
        sql = executor.render("foreignKeys", {"=OBJECT_ID_CONDITION": " is not null"})
        assert sql == "Q:foreignKeys refcond  is not null"

    def test_postgres_render_has_no_leftover_tokens(self, runner):
        """Test the real templates are fully substituted."""
        executor = CatalogQueryExecutor(runner, POSTGRES)
        sql = executor.render("foreignKeys", {"=OBJECT_ID_CONDITION": " is not null"})
        assert "#REFTABLECOND#" not in sql
        assert "OBJECT_ID_CONDITION" not in sql

    def test_routine_hash_token_per_dialect(self, runner):
        """Test the routine hash is aggregated over overloads only where hashing is supported."""
        condition = {"=OBJECT_ID_CONDITION": " is not null"}
        postgres_sql = CatalogQueryExecutor(runner, POSTGRES).render("routines", condition)
        redshift_sql = CatalogQueryExecutor(runner, REDSHIFT).render("routines", condition)
        assert "#ROUTINEHASH#" not in postgres_sql
        assert "string_agg" in postgres_sql
        assert "null as hash_code" in redshift_sql
        assert "string_agg" not in redshift_sql

    @pytest.mark.asyncio
    async def test_run_query_returns_rows(self, runner, dialect):
        """Test an unfiltered query."""
        executor = CatalogQueryExecutor(runner, dialect)
        rows = await executor.run_query("tables")
        assert [row["pure_name"] for row in rows] == ["customers", "orders"]
        assert runner.calls == [("tables", None)]

    @pytest.mark.asyncio
    async def test_unsupported_query_raises(self, runner):
        """Test that the executor does not short-circuit missing queries."""
        executor = CatalogQueryExecutor(runner, make_dialect(supports_materialized_views=False))
        with pytest.raises(UnsupportedQueryError) as exc_info:
            await executor.run_query("matviews")
        assert exc_info.value.query_name == "matviews"
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_driver_failure_becomes_connection_error(self, runner, dialect):
        """Test driver errors surface as DatabaseConnectionError."""
        runner.fail_on.add("columns")
        executor = CatalogQueryExecutor(runner, dialect)
        with pytest.raises(DatabaseConnectionError) as exc_info:
            await executor.run_query("columns")
        assert exc_info.value.query_name == "columns"
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_scoped_query_skips_other_kinds(self, runner, dialect):
        """Test that a view filter does not issue table-only queries."""
        executor = CatalogQueryExecutor(runner, dialect)
        identity = ObjectIdentity.parse("views:public.active_customers")
        assert await executor.run_scoped("primaryKeys", identity) == []
        rows = await executor.run_scoped("columns", identity)
        assert {row["pure_name"] for row in rows} == {"active_customers"}
        assert runner.calls == [("columns", "views:public.active_customers")]

    @pytest.mark.asyncio
    async def test_run_many_keys_results_by_name(self, runner, dialect, metrics):
        """Test concurrent execution of independent queries."""
        executor = CatalogQueryExecutor(runner, dialect, metrics=metrics)
        results = await executor.run_many(["views", "uniqueNames"])
        assert set(results) == {"views", "uniqueNames"}
        assert results["uniqueNames"] == [{"constraint_name": "ux_email"}]
        assert metrics.get_operation_summary("query:views").count == 1

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, dialect):
        """Test the semaphore limits in-flight queries."""
        in_flight = 0
        peak = 0

        class SlowRunner:
            async def query(self, sql):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return []

        executor = CatalogQueryExecutor(SlowRunner(), dialect, max_concurrent_queries=2)
        await executor.run_many(["tables", "columns", "views", "routines", "uniqueNames"])
        assert peak == 2

    @pytest.mark.asyncio
    async def test_failure_cancels_sibling_queries(self, dialect):
        """Test no query of a failed batch is still running once the error surfaces."""
        in_flight = 0
        finished = []

        class FailingRunner:
            async def query(self, sql):
                nonlocal in_flight
                if sql.startswith("Q:primaryKeys"):
                    await asyncio.sleep(0.005)
                    raise OSError("connection reset")
                in_flight += 1
                try:
                    await asyncio.sleep(0.05)
                    finished.append(sql.split()[0])
                finally:
                    in_flight -= 1
                return []

        executor = CatalogQueryExecutor(FailingRunner(), dialect, max_concurrent_queries=8)
        with pytest.raises(DatabaseConnectionError):
            await executor.run_many(["tables", "columns", "primaryKeys", "views", "routines"])
        assert in_flight == 0

        await asyncio.sleep(0.1)
        assert finished == []


class TestConnectionQueryRunner:
    """Single-connection runner tests."""

    @pytest.mark.asyncio
    async def test_queries_are_serialised(self):
        """Test that one connection never sees overlapping queries."""
        active = 0
        overlapped = False

        class FakeConnection:
            async def fetch(self, sql, timeout=None):
                nonlocal active, overlapped
                active += 1
                overlapped = overlapped or active > 1
                await asyncio.sleep(0.01)
                active -= 1
                return [{"sql": sql}]

        runner = ConnectionQueryRunner(FakeConnection())
        results = await asyncio.gather(runner.query("a"), runner.query("b"), runner.query("c"))
        assert overlapped is False
        assert [r[0]["sql"] for r in results] == ["a", "b", "c"]
