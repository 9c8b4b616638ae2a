"""Analysis orchestrator: full analysis and hash-driven refresh."""

import asyncio
import logging
from typing import Optional, Union

from catalog_analyser.dialects.base import DialectDescriptor
from catalog_analyser.models.diff import SchemaDiff
from catalog_analyser.models.schema import (
    KIND_FIELDS,
    AnySchemaObject,
    ObjectIdentity,
    PartialSchemaSnapshot,
    SchemaObjectKind,
    SchemaSnapshot,
    SingleObjectFilter,
)
from catalog_analyser.services.assembler import ObjectAssembler
from catalog_analyser.services.changes import ChangeDetector, diff_snapshots
from catalog_analyser.services.executor import CatalogQueryExecutor, QueryRunner
from catalog_analyser.services.metrics import MetricsCollector, trace_operation
from catalog_analyser.utils.exceptions import (
    DatabaseConnectionError,
    IdentityResolutionWarning,
    PartialRefreshError,
)

logger = logging.getLogger("schema-analyser")

ObjectTarget = Union[ObjectIdentity, SingleObjectFilter, str]


class SchemaAnalyser:
    """Public entry point of the analyser.

    Holds no state between calls apart from the dialect descriptor; the
    caller keeps the last snapshot and passes it to ``refresh``. Public
    operations are serialised per analyser, since one analyser wraps one
    connection (or pool).
    """

    def __init__(
        self,
        runner: QueryRunner,
        dialect: DialectDescriptor,
        max_concurrent_queries: int = 4,
        metrics: Optional[MetricsCollector] = None
    ):
        """Initialize the analyser.

        Args:
            runner: Driver-level query runner.
            dialect: Capability descriptor of the database engine.
            max_concurrent_queries: Upper bound on in-flight catalog queries.
            metrics: Metrics collector (default instance when None).
        """
        self.dialect = dialect
        self.metrics = metrics
        self.executor = CatalogQueryExecutor(runner, dialect, max_concurrent_queries, metrics)
        self.detector = ChangeDetector(self.executor, dialect)
        self.last_warnings: list[IdentityResolutionWarning] = []
        self._lock = asyncio.Lock()

    def analysis_queries(self) -> list[str]:
        """Logical queries issued by a full analysis, gated by capabilities."""
        names = [
            "tableModifications" if self.dialect.supports_aggregate_hash else "tables",
            "columns",
            "primaryKeys",
            "foreignKeys",
            "views",
            "routines",
        ]
        if self.dialect.supports_materialized_views:
            names += ["matviews", "matviewColumns"]
        if self.dialect.supports_index_enumeration:
            names += ["indexes", "indexcols", "uniqueNames"]
        return names

    def resolve(self, target: ObjectTarget) -> ObjectIdentity:
        """Turn an object id string or filter into an identity."""
        if isinstance(target, ObjectIdentity):
            return target
        if isinstance(target, SingleObjectFilter):
            return ObjectIdentity.from_filter(target, self.dialect.default_schema)
        return ObjectIdentity.parse(target, self.dialect.default_schema)

    async def full_analysis(self) -> SchemaSnapshot:
        """Analyse every object in the catalog.

        Raises:
            DatabaseConnectionError: If any catalog query fails.
        """
        async with self._lock:
            with trace_operation("full_analysis", self.metrics, dialect=self.dialect.name):
                snapshot = await self._run_analysis()
            logger.info(
                "Full analysis: %d tables, %d views, %s matviews, %d procedures, %d functions",
                len(snapshot.tables), len(snapshot.views),
                "n/a" if snapshot.matviews is None else len(snapshot.matviews),
                len(snapshot.procedures), len(snapshot.functions)
            )
            return snapshot

    async def fast_snapshot(self) -> PartialSchemaSnapshot:
        async with self._lock:
            return await self.detector.fast_snapshot()

    async def analyse_object(self, target: ObjectTarget) -> Optional[AnySchemaObject]:
        """Fully analyse one object.

        Args:
            target: Identity, single-object filter or string object id.

        Returns:
            The object, or None if it no longer exists.
        """
        identity = self.resolve(target)
        async with self._lock:
            with trace_operation("analyse_object", self.metrics, object_id=identity.object_id):
                return await self._analyse_object(identity)

    async def refresh(
        self,
        previous: SchemaSnapshot,
        cancel_event: Optional[asyncio.Event] = None
    ) -> SchemaSnapshot:
        """Bring a previous snapshot up to date.

        See ``refresh_with_diff``.
        """
        snapshot, _ = await self.refresh_with_diff(previous, cancel_event)
        return snapshot

    async def refresh_with_diff(
        self,
        previous: SchemaSnapshot,
        cancel_event: Optional[asyncio.Event] = None
    ) -> tuple[SchemaSnapshot, SchemaDiff]:
        """Refresh a snapshot using content hashes.

        Runs a fast snapshot, diffs it against ``previous`` and re-analyses
        only added and modified objects. Unchanged objects are carried
        over as the same instances; removed objects are dropped.

        Args:
            previous: Snapshot returned by an earlier analysis.
            cancel_event: Checked before each object is re-analysed.

        Returns:
            A tuple of (new snapshot, diff against the previous snapshot).

        Raises:
            DatabaseConnectionError: If the fast snapshot fails.
            PartialRefreshError: If cancelled or failing while re-analysing;
                carries the partially merged snapshot and pending identities.
        """
        async with self._lock:
            with trace_operation("refresh", self.metrics, dialect=self.dialect.name):
                current = await self.detector.fast_snapshot()
                diff = diff_snapshots(previous, current)
                pending = diff.needs_analysis()
                logger.info(
                    "Refresh diff: %d added, %d modified, %d removed, %d unchanged",
                    len(diff.added), len(diff.modified), len(diff.removed), len(diff.unchanged)
                )

                working = self._working_set(previous)
                for identity in diff.removed:
                    working.get(identity.kind, {}).pop(identity, None)

                for position, identity in enumerate(pending):
                    if cancel_event is not None and cancel_event.is_set():
                        logger.warning("Refresh cancelled with %d objects pending", len(pending) - position)
                        raise PartialRefreshError(
                            self._merge(current, working), pending[position:], "cancelled"
                        )
                    try:
                        obj = await self._analyse_object(identity)
                    except DatabaseConnectionError as e:
                        raise PartialRefreshError(
                            self._merge(current, working), pending[position:], str(e)
                        ) from e

                    objects = working.setdefault(identity.kind, {})
                    if obj is None:
                        logger.info("Object %s vanished before re-analysis", identity)
                        objects.pop(identity, None)
                    else:
                        objects[identity] = obj

                return self._merge(current, working), diff

    async def _run_analysis(self, object_filter: Optional[ObjectIdentity] = None) -> SchemaSnapshot:
        rowsets = await self.executor.run_many(self.analysis_queries(), object_filter)
        assembler = ObjectAssembler(self.dialect)
        snapshot = assembler.assemble(rowsets)
        self.last_warnings = assembler.warnings
        return snapshot

    async def _analyse_object(self, identity: ObjectIdentity) -> Optional[AnySchemaObject]:
        logger.debug("Analysing single object %s", identity)
        snapshot = await self._run_analysis(identity)
        return snapshot.find(identity)

    @staticmethod
    def _working_set(previous: SchemaSnapshot) -> dict[SchemaObjectKind, dict]:
        return {
            kind: {obj.identity: obj for obj in previous.objects_of(kind) or []}
            for kind in SchemaObjectKind
        }

    def _merge(self, current: PartialSchemaSnapshot, working: dict[SchemaObjectKind, dict]) -> SchemaSnapshot:
        """Lay out merged objects in the order of the fast snapshot."""
        fields = {}
        for kind, field_name in KIND_FIELDS.items():
            fingerprints = current.objects_of(kind)
            if fingerprints is None:
                fields[field_name] = None
                continue
            objects = working.get(kind, {})
            fields[field_name] = [
                objects[fingerprint.identity]
                for fingerprint in fingerprints
                if fingerprint.identity in objects
            ]
        return SchemaSnapshot(**fields)
