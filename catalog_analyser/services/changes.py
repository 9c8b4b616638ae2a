"""Change detection by content hash: fast snapshots and snapshot diffs."""

import logging
from typing import Optional, Union

from catalog_analyser.dialects.base import DialectDescriptor
from catalog_analyser.models.diff import ChangeStatus, ObjectChange, SchemaDiff
from catalog_analyser.models.rows import (
    HashRow,
    RoutineHashRow,
    TableRow,
    decode_rows,
    lowest_overloads,
)
from catalog_analyser.models.schema import (
    ObjectFingerprint,
    PartialSchemaSnapshot,
    SchemaObjectKind,
    SchemaSnapshot,
)
from catalog_analyser.services.executor import CatalogQueryExecutor
from catalog_analyser.services.metrics import trace_operation

logger = logging.getLogger("change-detector")

AnySnapshot = Union[SchemaSnapshot, PartialSchemaSnapshot]


class ChangeDetector:
    """Produces fast snapshots carrying only identities and content hashes.

    With aggregate hashing, one ``*Modifications`` query per kind suffices
    regardless of object count. Without it, the plain listing queries are
    used and every hash is None, which forces re-analysis of every object.
    """

    def __init__(self, executor: CatalogQueryExecutor, dialect: DialectDescriptor):
        self.executor = executor
        self.dialect = dialect

    def query_names(self) -> dict[SchemaObjectKind, Optional[str]]:
        """Logical query used per kind group; None when the kind is unsupported."""
        hashed = self.dialect.supports_aggregate_hash
        matviews = self.dialect.supports_materialized_views
        return {
            SchemaObjectKind.TABLES: "tableModifications" if hashed else "tables",
            SchemaObjectKind.VIEWS: "viewModifications" if hashed else "views",
            SchemaObjectKind.MATVIEWS: (
                ("matviewModifications" if hashed else "matviews") if matviews else None
            ),
            SchemaObjectKind.PROCEDURES: "routineModifications" if hashed else "routines",
        }

    async def fast_snapshot(self) -> PartialSchemaSnapshot:
        """Fetch identities and content hashes of every object.

        Returns:
            A partial snapshot; ``matviews`` is None when unsupported.
        """
        names = self.query_names()
        with trace_operation("fast_snapshot", self.executor.metrics, dialect=self.dialect.name):
            rowsets = await self.executor.run_many(name for name in names.values() if name)

        tables = self._fingerprints(
            SchemaObjectKind.TABLES, TableRow, names[SchemaObjectKind.TABLES], rowsets,
            lambda row: row.content_hash
        )
        views = self._fingerprints(
            SchemaObjectKind.VIEWS, HashRow, names[SchemaObjectKind.VIEWS], rowsets,
            lambda row: row.hash_code
        )
        matviews = None
        if names[SchemaObjectKind.MATVIEWS]:
            matviews = self._fingerprints(
                SchemaObjectKind.MATVIEWS, HashRow, names[SchemaObjectKind.MATVIEWS], rowsets,
                lambda row: row.hash_code
            )

        routine_query = names[SchemaObjectKind.PROCEDURES]
        routines, _ = decode_rows(RoutineHashRow, rowsets.get(routine_query), routine_query)
        routines = lowest_overloads(routines)
        procedures = [
            self._fingerprint(SchemaObjectKind.PROCEDURES, row, row.hash_code)
            for row in routines if row.routine_type == "PROCEDURE"
        ]
        functions = [
            self._fingerprint(SchemaObjectKind.FUNCTIONS, row, row.hash_code)
            for row in routines if row.routine_type == "FUNCTION"
        ]

        snapshot = PartialSchemaSnapshot(
            tables=tables,
            views=views,
            matviews=matviews,
            procedures=_dedupe(procedures),
            functions=_dedupe(functions),
        )
        logger.info(
            "Fast snapshot: %d tables, %d views, %s matviews, %d procedures, %d functions",
            len(snapshot.tables), len(snapshot.views),
            "n/a" if snapshot.matviews is None else len(snapshot.matviews),
            len(snapshot.procedures), len(snapshot.functions)
        )
        return snapshot

    def _fingerprint(self, kind: SchemaObjectKind, row, content_hash: Optional[str]) -> ObjectFingerprint:
        return ObjectFingerprint(
            kind=kind,
            schema_name=row.schema_name,
            pure_name=row.pure_name,
            content_hash=content_hash if self.dialect.supports_aggregate_hash else None,
        )

    def _fingerprints(self, kind, model, query_name, rowsets, get_hash) -> list[ObjectFingerprint]:
        rows, _ = decode_rows(model, rowsets.get(query_name), query_name)
        return _dedupe([self._fingerprint(kind, row, get_hash(row)) for row in rows])


def _dedupe(fingerprints: list[ObjectFingerprint]) -> list[ObjectFingerprint]:
    seen = set()
    result = []
    for fingerprint in fingerprints:
        if fingerprint.identity not in seen:
            seen.add(fingerprint.identity)
            result.append(fingerprint)
    return result


def classify(old_hash: Optional[str], new_hash: Optional[str]) -> ChangeStatus:
    """Classify an object present in both snapshots.

    A missing hash on either side means the object cannot be proven
    unchanged, so it is reported as modified.
    """
    if old_hash is None or new_hash is None:
        return ChangeStatus.MODIFIED
    return ChangeStatus.UNCHANGED if old_hash == new_hash else ChangeStatus.MODIFIED


def diff_snapshots(previous: AnySnapshot, current: AnySnapshot) -> SchemaDiff:
    """Compare two snapshots by identity and content hash.

    Present identities are reported in ``current`` order, followed by
    removed identities in ``previous`` order.

    Args:
        previous: The earlier snapshot (full or partial).
        current: The later snapshot, usually a fast snapshot.

    Returns:
        The classified diff.
    """
    old_hashes = {obj.identity: obj.content_hash for obj in previous.iter_objects()}
    changes = []
    seen = set()

    for obj in current.iter_objects():
        identity = obj.identity
        seen.add(identity)
        if identity not in old_hashes:
            changes.append(ObjectChange(
                identity=identity, status=ChangeStatus.ADDED, new_hash=obj.content_hash
            ))
            continue
        old_hash = old_hashes[identity]
        changes.append(ObjectChange(
            identity=identity,
            status=classify(old_hash, obj.content_hash),
            old_hash=old_hash,
            new_hash=obj.content_hash,
        ))

    for identity, old_hash in old_hashes.items():
        if identity not in seen:
            changes.append(ObjectChange(
                identity=identity, status=ChangeStatus.REMOVED, old_hash=old_hash
            ))

    return SchemaDiff(changes=changes)
