"""Schema object models produced by the analyser."""

from enum import Enum
from typing import ClassVar, Iterator, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from catalog_analyser.utils.constants import DEFAULT_SCHEMA
from catalog_analyser.utils.exceptions import InvalidObjectIdError


class CatalogModel(BaseModel):
    """Base model: snake_case attributes, camelCase wire names, immutable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class SchemaObjectKind(str, Enum):
    """Schema object kind; the value is the type field used in object ids."""

    TABLES = "tables"
    VIEWS = "views"
    MATVIEWS = "matviews"
    PROCEDURES = "procedures"
    FUNCTIONS = "functions"


class SingleObjectFilter(CatalogModel):
    """Restricts catalog queries to a single schema object."""

    type_field: SchemaObjectKind
    schema_name: Optional[str] = None
    pure_name: str


class ObjectIdentity(CatalogModel):
    """Composite identity of a schema object, unique within a snapshot."""

    kind: SchemaObjectKind
    schema_name: str
    pure_name: str

    @property
    def object_id(self) -> str:
        return f"{self.kind.value}:{self.schema_name}.{self.pure_name}"

    def __str__(self) -> str:
        return self.object_id

    @classmethod
    def parse(cls, object_id: str, default_schema: str = DEFAULT_SCHEMA) -> "ObjectIdentity":
        """Parse a string-form identity.

        Accepts ``kind:schema.name`` and ``kind:name``; in the latter case
        the schema defaults to ``default_schema``.

        Args:
            object_id: The string identity.
            default_schema: Schema used when the identity has none.

        Returns:
            The parsed identity.

        Raises:
            InvalidObjectIdError: If the string is malformed.
        """
        type_field, sep, qualified = object_id.partition(":")
        if not sep or not qualified:
            raise InvalidObjectIdError(object_id, "expected '<kind>:<schema>.<name>'")
        try:
            kind = SchemaObjectKind(type_field)
        except ValueError:
            raise InvalidObjectIdError(object_id, f"unknown kind '{type_field}'")

        schema_name, sep, pure_name = qualified.partition(".")
        if not sep:
            schema_name, pure_name = "", schema_name
        if not pure_name:
            raise InvalidObjectIdError(object_id, "missing object name")
        return cls(kind=kind, schema_name=schema_name or default_schema, pure_name=pure_name)

    @classmethod
    def from_filter(
        cls,
        object_filter: SingleObjectFilter,
        default_schema: str = DEFAULT_SCHEMA
    ) -> "ObjectIdentity":
        return cls(
            kind=object_filter.type_field,
            schema_name=object_filter.schema_name or default_schema,
            pure_name=object_filter.pure_name,
        )

    def to_filter(self) -> SingleObjectFilter:
        return SingleObjectFilter(
            type_field=self.kind,
            schema_name=self.schema_name,
            pure_name=self.pure_name,
        )


class ColumnInfo(CatalogModel):
    """Column information model."""

    column_name: str
    data_type: str
    not_null: bool = False
    default_value: Optional[str] = None
    auto_increment: bool = False


class ColumnReference(CatalogModel):
    """A column referenced by a key or index."""

    column_name: str


class PrimaryKeyInfo(CatalogModel):
    """Primary key; column order is the catalog's key order."""

    constraint_name: str
    columns: list[ColumnReference] = Field(default_factory=list)


class UniqueInfo(CatalogModel):
    """Unique constraint backed by an index."""

    constraint_name: str
    columns: list[ColumnReference] = Field(default_factory=list)


class IndexInfo(CatalogModel):
    """Index information model."""

    constraint_name: str
    is_unique: bool = False
    columns: list[ColumnReference] = Field(default_factory=list)


class ForeignKeyColumn(CatalogModel):
    """One column pair of a foreign key."""

    column_name: str
    ref_column_name: Optional[str] = None


class ForeignKeyInfo(CatalogModel):
    """Foreign key information model."""

    constraint_name: str
    ref_table_name: Optional[str] = None
    ref_schema_name: Optional[str] = None
    update_action: Optional[str] = None
    delete_action: Optional[str] = None
    columns: list[ForeignKeyColumn] = Field(default_factory=list)


class SchemaObject(CatalogModel):
    """Common identity fields shared by every schema object."""

    kind: ClassVar[SchemaObjectKind]

    schema_name: str
    pure_name: str
    content_hash: Optional[str] = None

    @property
    def identity(self) -> ObjectIdentity:
        return ObjectIdentity(
            kind=self.kind,
            schema_name=self.schema_name,
            pure_name=self.pure_name,
        )

    @computed_field
    @property
    def object_id(self) -> str:
        return self.identity.object_id


class TableInfo(SchemaObject):
    """Table with its nested columns, keys and indexes."""

    kind: ClassVar[SchemaObjectKind] = SchemaObjectKind.TABLES

    columns: list[ColumnInfo] = Field(default_factory=list)
    primary_key: Optional[PrimaryKeyInfo] = None
    foreign_keys: list[ForeignKeyInfo] = Field(default_factory=list)
    indexes: list[IndexInfo] = Field(default_factory=list)
    uniques: list[UniqueInfo] = Field(default_factory=list)


class ViewInfo(SchemaObject):
    """View information model."""

    kind: ClassVar[SchemaObjectKind] = SchemaObjectKind.VIEWS

    create_sql: str = ""
    columns: list[ColumnInfo] = Field(default_factory=list)


class MatviewInfo(SchemaObject):
    """Materialized view information model."""

    kind: ClassVar[SchemaObjectKind] = SchemaObjectKind.MATVIEWS

    create_sql: str = ""
    columns: list[ColumnInfo] = Field(default_factory=list)


class ProcedureInfo(SchemaObject):
    """Stored procedure information model."""

    kind: ClassVar[SchemaObjectKind] = SchemaObjectKind.PROCEDURES

    create_sql: str = ""


class FunctionInfo(SchemaObject):
    """Function information model; ``data_type`` is the return type."""

    kind: ClassVar[SchemaObjectKind] = SchemaObjectKind.FUNCTIONS

    create_sql: str = ""
    data_type: Optional[str] = None


AnySchemaObject = Union[TableInfo, ViewInfo, MatviewInfo, ProcedureInfo, FunctionInfo]

# Field name on the snapshot holding each kind.
KIND_FIELDS: dict[SchemaObjectKind, str] = {
    SchemaObjectKind.TABLES: "tables",
    SchemaObjectKind.VIEWS: "views",
    SchemaObjectKind.MATVIEWS: "matviews",
    SchemaObjectKind.PROCEDURES: "procedures",
    SchemaObjectKind.FUNCTIONS: "functions",
}


class _SnapshotMixin:
    """Lookup helpers shared by full and partial snapshots."""

    def objects_of(self, kind: SchemaObjectKind) -> Optional[list]:
        return getattr(self, KIND_FIELDS[kind])

    def iter_objects(self) -> Iterator:
        for kind in SchemaObjectKind:
            for obj in self.objects_of(kind) or []:
                yield obj

    def identities(self) -> list[ObjectIdentity]:
        return [obj.identity for obj in self.iter_objects()]

    def find(self, identity: ObjectIdentity):
        for obj in self.objects_of(identity.kind) or []:
            if obj.schema_name == identity.schema_name and obj.pure_name == identity.pure_name:
                return obj
        return None


class SchemaSnapshot(_SnapshotMixin, CatalogModel):
    """Full schema snapshot.

    ``matviews`` is ``None`` when the dialect has no materialized views,
    which is distinct from an empty list.
    """

    tables: list[TableInfo] = Field(default_factory=list)
    views: list[ViewInfo] = Field(default_factory=list)
    matviews: Optional[list[MatviewInfo]] = None
    procedures: list[ProcedureInfo] = Field(default_factory=list)
    functions: list[FunctionInfo] = Field(default_factory=list)


class ObjectFingerprint(CatalogModel):
    """Identity plus content hash, as returned by a fast snapshot."""

    kind: SchemaObjectKind
    schema_name: str
    pure_name: str
    content_hash: Optional[str] = None

    @property
    def identity(self) -> ObjectIdentity:
        return ObjectIdentity(
            kind=self.kind,
            schema_name=self.schema_name,
            pure_name=self.pure_name,
        )

    @computed_field
    @property
    def object_id(self) -> str:
        return self.identity.object_id


class PartialSchemaSnapshot(_SnapshotMixin, CatalogModel):
    """Fast snapshot: fingerprints only, no nested structure."""

    tables: list[ObjectFingerprint] = Field(default_factory=list)
    views: list[ObjectFingerprint] = Field(default_factory=list)
    matviews: Optional[list[ObjectFingerprint]] = None
    procedures: list[ObjectFingerprint] = Field(default_factory=list)
    functions: list[ObjectFingerprint] = Field(default_factory=list)
