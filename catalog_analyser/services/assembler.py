"""Object assembler: joins raw catalog row sets into a SchemaSnapshot."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional, Sequence, TypeVar

from catalog_analyser.dialects.base import DialectDescriptor
from catalog_analyser.models.rows import (
    ColumnRow,
    ForeignKeyRow,
    IndexColumnRow,
    IndexRow,
    MatviewRow,
    PrimaryKeyRow,
    RoutineRow,
    TableRow,
    UniqueNameRow,
    ViewRow,
    decode_rows,
    lowest_overloads,
)
from catalog_analyser.models.schema import (
    ColumnInfo,
    ColumnReference,
    ForeignKeyColumn,
    ForeignKeyInfo,
    FunctionInfo,
    IndexInfo,
    MatviewInfo,
    PrimaryKeyInfo,
    ProcedureInfo,
    SchemaSnapshot,
    TableInfo,
    UniqueInfo,
    ViewInfo,
)
from catalog_analyser.services.ddl import (
    format_function_sql,
    format_matview_sql,
    format_procedure_sql,
    format_view_sql,
)
from catalog_analyser.services.normalize import normalize_column
from catalog_analyser.utils.exceptions import IdentityResolutionWarning

logger = logging.getLogger("object-assembler")

RowT = TypeVar("RowT")
KeyT = TypeVar("KeyT")
ObjectKey = tuple[str, str]


def group_by(rows: Iterable[RowT], key: Callable[[RowT], KeyT]) -> dict[KeyT, list[RowT]]:
    """Group rows preserving both first-seen key order and in-group row order."""
    groups: dict[KeyT, list[RowT]] = {}
    for row in rows:
        groups.setdefault(key(row), []).append(row)
    return groups


@dataclass
class RowIndex:
    """Decoded nested-member rows, keyed by owning object (schema, name)."""
    columns: dict[ObjectKey, list[ColumnRow]] = field(default_factory=dict)
    matview_columns: dict[ObjectKey, list[ColumnRow]] = field(default_factory=dict)
    primary_keys: dict[ObjectKey, list[PrimaryKeyRow]] = field(default_factory=dict)
    foreign_keys: dict[ObjectKey, list[ForeignKeyRow]] = field(default_factory=dict)
    indexes: dict[ObjectKey, list[IndexRow]] = field(default_factory=dict)
    index_columns: dict[tuple[int, int], str] = field(default_factory=dict)
    unique_names: set[str] = field(default_factory=set)


class ObjectAssembler:
    """Builds schema objects from the row sets of the full-analysis queries.

    ``rowsets`` maps logical query names to raw rows; a missing or None
    entry means the query was not issued. Warnings from the most recent
    ``assemble`` call are kept in ``warnings``.
    """

    def __init__(self, dialect: DialectDescriptor):
        self.dialect = dialect
        self.warnings: list[IdentityResolutionWarning] = []

    def assemble(self, rowsets: Mapping[str, Optional[Sequence[dict]]]) -> SchemaSnapshot:
        """Assemble a snapshot from raw row sets.

        Args:
            rowsets: Raw rows keyed by logical query name.

        Returns:
            The assembled snapshot.
        """
        self.warnings = []
        table_query = "tableModifications" if rowsets.get("tableModifications") is not None else "tables"

        tables = self._decode(TableRow, rowsets, table_query)
        views = self._decode(ViewRow, rowsets, "views")
        routines = self._collapse_overloads(self._decode(RoutineRow, rowsets, "routines"))
        index = self._index(rowsets)

        snapshot = SchemaSnapshot(
            tables=self._unique([self._build_table(row, index) for row in tables], table_query),
            views=self._unique([self._build_view(row, index) for row in views], "views"),
            matviews=self._build_matviews(rowsets, index),
            procedures=self._unique(
                [self._build_procedure(row) for row in routines if row.routine_type == "PROCEDURE"],
                "routines"
            ),
            functions=self._unique(
                [self._build_function(row) for row in routines if row.routine_type == "FUNCTION"],
                "routines"
            ),
        )

        self._report_orphans(snapshot, index)
        if self.warnings:
            logger.warning("Assembly finished with %d unresolved rows", len(self.warnings))
        return snapshot

    def _decode(self, model, rowsets, name: str) -> list:
        decoded, warnings = decode_rows(model, rowsets.get(name), name)
        self.warnings.extend(warnings)
        return decoded

    def _warn(self, query_name: str, reason: str) -> None:
        logger.warning("Unresolved row in %s: %s", query_name, reason)
        self.warnings.append(IdentityResolutionWarning(query_name, reason))

    def _index(self, rowsets) -> RowIndex:
        object_key = lambda row: row.key  # noqa: E731
        return RowIndex(
            columns=group_by(self._decode(ColumnRow, rowsets, "columns"), object_key),
            matview_columns=group_by(self._decode(ColumnRow, rowsets, "matviewColumns"), object_key),
            primary_keys=group_by(self._decode(PrimaryKeyRow, rowsets, "primaryKeys"), object_key),
            foreign_keys=group_by(self._decode(ForeignKeyRow, rowsets, "foreignKeys"), object_key),
            indexes=group_by(self._decode(IndexRow, rowsets, "indexes"), object_key),
            index_columns={
                (row.oid, row.attnum): row.column_name
                for row in self._decode(IndexColumnRow, rowsets, "indexcols")
            },
            unique_names={
                row.constraint_name
                for row in self._decode(UniqueNameRow, rowsets, "uniqueNames")
            },
        )

    def _hash(self, content_hash: Optional[str]) -> Optional[str]:
        return content_hash if self.dialect.supports_aggregate_hash else None

    def _collapse_overloads(self, rows: list[RoutineRow]) -> list[RoutineRow]:
        kept = lowest_overloads(rows)
        kept_ids = {id(row) for row in kept}
        for row in rows:
            if id(row) not in kept_ids:
                self._warn(
                    "routines",
                    f"duplicate identity {row.schema_name}.{row.pure_name} "
                    f"({row.specific_name or 'overload'}) ignored"
                )
        return kept

    def _unique(self, objects: list, query_name: str) -> list:
        """Keep the first object per identity."""
        seen = set()
        result = []
        for obj in objects:
            if obj.identity in seen:
                self._warn(query_name, f"duplicate identity {obj.object_id} ignored")
                continue
            seen.add(obj.identity)
            result.append(obj)
        return result

    def _report_orphans(self, snapshot: SchemaSnapshot, index: RowIndex) -> None:
        owners = {(obj.schema_name, obj.pure_name) for obj in snapshot.tables}
        owners_with_views = owners | {(obj.schema_name, obj.pure_name) for obj in snapshot.views}
        matview_owners = {(obj.schema_name, obj.pure_name) for obj in snapshot.matviews or []}

        checks = (
            ("columns", index.columns, owners_with_views),
            ("matviewColumns", index.matview_columns, matview_owners),
            ("primaryKeys", index.primary_keys, owners),
            ("foreignKeys", index.foreign_keys, owners),
            ("indexes", index.indexes, owners),
        )
        for query_name, groups, known in checks:
            for schema_name, pure_name in groups.keys() - known:
                self._warn(query_name, f"rows for unknown object {schema_name}.{pure_name} dropped")

    @staticmethod
    def _columns(groups: dict[ObjectKey, list[ColumnRow]], key: ObjectKey) -> list[ColumnInfo]:
        return [normalize_column(row) for row in groups.get(key, [])]

    def _build_table(self, row: TableRow, index: RowIndex) -> TableInfo:
        index_rows = index.indexes.get(row.key, [])
        return TableInfo(
            schema_name=row.schema_name,
            pure_name=row.pure_name,
            content_hash=self._hash(row.content_hash),
            columns=self._columns(index.columns, row.key),
            primary_key=self._primary_key(index.primary_keys.get(row.key), row.key),
            foreign_keys=self._foreign_keys(index.foreign_keys.get(row.key, [])),
            indexes=[
                IndexInfo(
                    constraint_name=idx.index_name,
                    is_unique=idx.is_unique,
                    columns=self._index_columns(idx, index),
                )
                for idx in index_rows
                if idx.index_name not in index.unique_names
            ],
            uniques=[
                UniqueInfo(
                    constraint_name=idx.index_name,
                    columns=self._index_columns(idx, index),
                )
                for idx in index_rows
                if idx.index_name in index.unique_names
            ],
        )

    def _primary_key(
        self,
        rows: Optional[list[PrimaryKeyRow]],
        key: ObjectKey
    ) -> Optional[PrimaryKeyInfo]:
        if not rows:
            return None
        constraints = group_by(rows, lambda r: r.constraint_name)
        name, members = next(iter(constraints.items()))
        if len(constraints) > 1:
            self._warn("primaryKeys", f"several primary keys on {key[0]}.{key[1]}, kept {name}")
        return PrimaryKeyInfo(
            constraint_name=name,
            columns=[ColumnReference(column_name=r.column_name) for r in members],
        )

    @staticmethod
    def _foreign_keys(rows: list[ForeignKeyRow]) -> list[ForeignKeyInfo]:
        result = []
        for name, members in group_by(rows, lambda r: r.constraint_name).items():
            first = members[0]
            result.append(ForeignKeyInfo(
                constraint_name=name,
                ref_table_name=first.ref_table_name,
                ref_schema_name=first.ref_schema_name,
                update_action=first.update_action,
                delete_action=first.delete_action,
                columns=[
                    ForeignKeyColumn(column_name=r.column_name, ref_column_name=r.ref_column_name)
                    for r in members
                ],
            ))
        return result

    def _index_columns(self, idx: IndexRow, index: RowIndex) -> list[ColumnReference]:
        columns = []
        for attnum in idx.indkey:
            column_name = index.index_columns.get((idx.oid, attnum))
            if column_name is None:
                # attnum 0 is an expression column, not a dangling reference
                if attnum != 0:
                    self._warn("indexcols", f"column {attnum} of index {idx.index_name} not resolved")
                continue
            columns.append(ColumnReference(column_name=column_name))
        return columns

    def _build_view(self, row: ViewRow, index: RowIndex) -> ViewInfo:
        return ViewInfo(
            schema_name=row.schema_name,
            pure_name=row.pure_name,
            content_hash=self._hash(row.hash_code),
            create_sql=format_view_sql(row.schema_name, row.pure_name, row.create_sql),
            columns=self._columns(index.columns, row.key),
        )

    def _build_matviews(self, rowsets, index: RowIndex) -> Optional[list[MatviewInfo]]:
        if not self.dialect.supports_materialized_views:
            return None
        return self._unique(
            [
                MatviewInfo(
                    schema_name=row.schema_name,
                    pure_name=row.pure_name,
                    content_hash=self._hash(row.hash_code),
                    create_sql=format_matview_sql(row.schema_name, row.pure_name, row.definition),
                    columns=self._columns(index.matview_columns, row.key),
                )
                for row in self._decode(MatviewRow, rowsets, "matviews")
            ],
            "matviews"
        )

    def _build_procedure(self, row: RoutineRow) -> ProcedureInfo:
        return ProcedureInfo(
            schema_name=row.schema_name,
            pure_name=row.pure_name,
            content_hash=self._hash(row.hash_code),
            create_sql=format_procedure_sql(row.schema_name, row.pure_name, row.language, row.definition),
        )

    def _build_function(self, row: RoutineRow) -> FunctionInfo:
        return FunctionInfo(
            schema_name=row.schema_name,
            pure_name=row.pure_name,
            content_hash=self._hash(row.hash_code),
            create_sql=format_function_sql(
                row.schema_name, row.pure_name, row.data_type, row.language, row.definition
            ),
            data_type=row.data_type,
        )
