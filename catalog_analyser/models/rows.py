"""Typed decoding of raw catalog rows, one model per logical query."""

import logging
from typing import Annotated, Any, Optional, Sequence, TypeVar, Union

from pydantic import BaseModel, ConfigDict, StringConstraints, ValidationError, field_validator

from catalog_analyser.utils.exceptions import IdentityResolutionWarning

logger = logging.getLogger("catalog-rows")

Name = Annotated[str, StringConstraints(min_length=1)]

RowT = TypeVar("RowT", bound="CatalogRow")


class CatalogRow(BaseModel):
    """Base row model; unknown columns are ignored."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class ObjectRow(CatalogRow):
    """Row carrying an object identity."""

    schema_name: Name
    pure_name: Name

    @property
    def key(self) -> tuple[str, str]:
        return (self.schema_name, self.pure_name)


class TableRow(ObjectRow):
    """Row of the ``tables`` / ``tableModifications`` queries."""

    hash_code_columns: Optional[str] = None
    hash_code_constraints: Optional[str] = None

    @property
    def content_hash(self) -> Optional[str]:
        if not self.hash_code_columns:
            return None
        return f"{self.hash_code_columns}-{self.hash_code_constraints or ''}"


class ColumnRow(ObjectRow):
    """Row of the ``columns`` / ``matviewColumns`` queries."""

    column_name: Name
    data_type: str
    is_nullable: Union[bool, str, None] = None
    char_max_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    default_value: Optional[str] = None


class PrimaryKeyRow(ObjectRow):
    """One key column of a primary key."""

    constraint_name: Name
    constraint_schema: Optional[str] = None
    column_name: Name


class ForeignKeyRow(ObjectRow):
    """One column pair of a foreign key."""

    constraint_name: Name
    constraint_schema: Optional[str] = None
    column_name: Name
    ref_column_name: Optional[str] = None
    ref_table_name: Optional[str] = None
    ref_schema_name: Optional[str] = None
    update_action: Optional[str] = None
    delete_action: Optional[str] = None


class HashRow(ObjectRow):
    """Row of the view / matview modification queries."""

    hash_code: Optional[str] = None


class ViewRow(HashRow):
    create_sql: Optional[str] = None


class MatviewRow(HashRow):
    definition: Optional[str] = None


class RoutineHashRow(HashRow):
    """Row of ``routineModifications``.

    Overloads share ``(schema_name, pure_name)`` and differ in
    ``specific_name``.
    """

    object_type: Name
    specific_name: Optional[str] = None

    @property
    def routine_type(self) -> str:
        return self.object_type.upper()

    @property
    def routine_key(self) -> tuple[str, str, str]:
        return (self.routine_type, self.schema_name, self.pure_name)


class RoutineRow(RoutineHashRow):
    definition: Optional[str] = None
    language: Optional[str] = None
    data_type: Optional[str] = None


class IndexRow(CatalogRow):
    """Row of the ``indexes`` query; ``indkey`` lists table column numbers."""

    oid: int
    index_name: Name
    table_name: Name
    schema_name: Name
    is_unique: bool = False
    indkey: list[int]

    @field_validator("indkey", mode="before")
    @classmethod
    def _split_indkey(cls, value: Any) -> Any:
        # int2vector is returned as text "1 3 2" by some drivers.
        if isinstance(value, str):
            return [int(part) for part in value.split()]
        return value

    @property
    def key(self) -> tuple[str, str]:
        return (self.schema_name, self.table_name)


class IndexColumnRow(CatalogRow):
    """Row of ``indexcols``: resolves (index oid, column number) to a name."""

    oid: int
    attnum: int
    column_name: Name


class UniqueNameRow(CatalogRow):
    constraint_name: Name


RoutineT = TypeVar("RoutineT", bound=RoutineHashRow)


def lowest_overloads(rows: Sequence[RoutineT]) -> list[RoutineT]:
    """Collapse overloaded routines to the overload with the lowest specific name.

    The kept row takes the position where its identity first appears, so
    the result does not depend on how the catalog ordered the overloads.
    """
    chosen: dict[tuple[str, str, str], RoutineT] = {}
    for row in rows:
        current = chosen.get(row.routine_key)
        if current is None or (row.specific_name or "") < (current.specific_name or ""):
            chosen[row.routine_key] = row
    return list(chosen.values())


def decode_rows(
    model: type[RowT],
    rows: Optional[Sequence[dict]],
    query_name: str
) -> tuple[list[RowT], list[IdentityResolutionWarning]]:
    """Decode raw rows into typed row models.

    Rows failing validation (for instance a null identity field) are
    dropped, each producing an ``IdentityResolutionWarning``.

    Args:
        model: Row model for the query.
        rows: Raw rows, or None when the query was not issued.
        query_name: Logical query name, used in warnings.

    Returns:
        A tuple of (decoded rows, warnings).
    """
    decoded: list[RowT] = []
    warnings: list[IdentityResolutionWarning] = []
    for row in rows or []:
        try:
            decoded.append(model.model_validate(row))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            warning = IdentityResolutionWarning(
                query_name,
                f"undecodable row (fields: {fields})",
                dict(row)
            )
            logger.warning("Dropping row from %s: %s", query_name, warning.reason)
            warnings.append(warning)
    return decoded, warnings
