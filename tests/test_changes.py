"""Tests for fast snapshots and snapshot diffs."""

import pytest

from catalog_analyser.models.diff import ChangeStatus
from catalog_analyser.models.schema import (
    ObjectFingerprint,
    ObjectIdentity,
    PartialSchemaSnapshot,
    SchemaSnapshot,
    TableInfo,
)
from catalog_analyser.services.changes import ChangeDetector, classify, diff_snapshots
from catalog_analyser.services.executor import CatalogQueryExecutor
from tests.conftest import make_dialect


def detector_for(runner, dialect) -> ChangeDetector:
    return ChangeDetector(CatalogQueryExecutor(runner, dialect), dialect)


def fingerprint(object_id: str, content_hash):
    identity = ObjectIdentity.parse(object_id)
    return ObjectFingerprint(
        kind=identity.kind,
        schema_name=identity.schema_name,
        pure_name=identity.pure_name,
        content_hash=content_hash,
    )


class TestClassify:
    """classify tests."""

    @pytest.mark.parametrize("old,new,expected", [
        ("a", "a", ChangeStatus.UNCHANGED),
        ("a", "b", ChangeStatus.MODIFIED),
        (None, "a", ChangeStatus.MODIFIED),
        ("a", None, ChangeStatus.MODIFIED),
        (None, None, ChangeStatus.MODIFIED),
    ])
    def test_hash_comparison(self, old, new, expected):
        """Test that a missing hash is never treated as unchanged."""
        assert classify(old, new) == expected


class TestDiffSnapshots:
    """diff_snapshots tests."""

    def test_classifies_every_identity(self):
        """Test added, modified, removed and unchanged objects."""
        previous = PartialSchemaSnapshot(tables=[
            fingerprint("tables:public.a", "1"),
            fingerprint("tables:public.b", "2"),
            fingerprint("tables:public.gone", "3"),
        ])
        current = PartialSchemaSnapshot(tables=[
            fingerprint("tables:public.a", "1"),
            fingerprint("tables:public.b", "changed"),
            fingerprint("tables:public.new", "4"),
        ])
        diff = diff_snapshots(previous, current)
        status = {change.identity.object_id: change.status for change in diff.changes}
        assert status == {
            "tables:public.a": ChangeStatus.UNCHANGED,
            "tables:public.b": ChangeStatus.MODIFIED,
            "tables:public.new": ChangeStatus.ADDED,
            "tables:public.gone": ChangeStatus.REMOVED,
        }
        assert [c.identity.pure_name for c in diff.changes] == ["a", "b", "new", "gone"]

    def test_same_name_different_kind(self):
        """Test that identities include the kind."""
        previous = PartialSchemaSnapshot(tables=[fingerprint("tables:public.x", "1")])
        current = PartialSchemaSnapshot(views=[fingerprint("views:public.x", "1")])
        diff = diff_snapshots(previous, current)
        assert [i.object_id for i in diff.added] == ["views:public.x"]
        assert [i.object_id for i in diff.removed] == ["tables:public.x"]

    def test_full_snapshot_against_fast_snapshot(self):
        """Test a full snapshot can be diffed against fingerprints."""
        previous = SchemaSnapshot(tables=[TableInfo(schema_name="public", pure_name="a", content_hash="1")])
        current = PartialSchemaSnapshot(tables=[fingerprint("tables:public.a", "1")])
        diff = diff_snapshots(previous, current)
        assert diff.has_changes is False

    def test_hashless_objects_are_modified(self):
        """Test conservative classification without hashes."""
        previous = SchemaSnapshot(tables=[TableInfo(schema_name="public", pure_name="a")])
        current = PartialSchemaSnapshot(tables=[fingerprint("tables:public.a", None)])
        diff = diff_snapshots(previous, current)
        assert [i.object_id for i in diff.modified] == ["tables:public.a"]


class TestChangeDetector:
    """ChangeDetector tests."""

    @pytest.mark.asyncio
    async def test_fast_snapshot_uses_modification_queries(self, runner, dialect):
        """Test a fast snapshot issues only the hash queries."""
        snapshot = await detector_for(runner, dialect).fast_snapshot()

        assert sorted(runner.names()) == [
            "matviewModifications",
            "routineModifications",
            "tableModifications",
            "viewModifications",
        ]
        assert [(t.pure_name, t.content_hash) for t in snapshot.tables] == [
            ("customers", "c1-k1"),
            ("orders", "o1-k2"),
        ]
        assert [v.content_hash for v in snapshot.views] == ["v1"]
        assert [m.content_hash for m in snapshot.matviews] == ["m1"]
        assert [f.object_id for f in snapshot.functions] == ["functions:public.order_count"]
        assert [p.object_id for p in snapshot.procedures] == ["procedures:public.refresh_totals"]

    @pytest.mark.asyncio
    async def test_fast_snapshot_without_hash_support(self, runner):
        """Test the listing fallback yields identities without hashes."""
        dialect = make_dialect(
            supports_aggregate_hash=False,
            supports_materialized_views=False,
            supports_index_enumeration=False,
        )
        snapshot = await detector_for(runner, dialect).fast_snapshot()

        assert sorted(runner.names()) == ["routines", "tables", "views"]
        assert snapshot.matviews is None
        assert len(snapshot.tables) == 2
        assert all(obj.content_hash is None for obj in snapshot.iter_objects())

    @pytest.mark.asyncio
    async def test_fast_snapshot_records_metrics(self, runner, dialect, metrics):
        """Test the fast snapshot is timed."""
        detector = ChangeDetector(CatalogQueryExecutor(runner, dialect, metrics=metrics), dialect)
        await detector.fast_snapshot()
        assert metrics.get_operation_summary("fast_snapshot").count == 1

    @pytest.mark.asyncio
    async def test_fast_snapshot_dedupes_identities(self, catalog, runner, dialect):
        """Test duplicate catalog rows do not duplicate identities."""
        catalog["routineModifications"].append(dict(catalog["routineModifications"][0]))
        snapshot = await detector_for(runner, dialect).fast_snapshot()
        assert len(snapshot.functions) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reverse", [False, True])
    async def test_overload_choice_ignores_row_order(self, catalog, runner, dialect, reverse):
        """Test overloaded routines fingerprint the same whichever order the catalog returns."""
        overloads = [
            {
                "schema_name": "public",
                "pure_name": "order_count",
                "object_type": "FUNCTION",
                "specific_name": specific_name,
                "hash_code": content_hash,
            }
            for specific_name, content_hash in (("order_count_17001", "overload_a"), ("order_count_17002", "overload_b"))
        ]
        others = [r for r in catalog["routineModifications"] if r["pure_name"] != "order_count"]
        catalog["routineModifications"] = (overloads[::-1] if reverse else overloads) + others

        snapshot = await detector_for(runner, dialect).fast_snapshot()
        assert [(f.object_id, f.content_hash) for f in snapshot.functions] == [
            ("functions:public.order_count", "overload_a"),
        ]
