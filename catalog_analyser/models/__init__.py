"""Data models for catalog-analyser."""

from catalog_analyser.models.schema import (
    SchemaObjectKind,
    SingleObjectFilter,
    ObjectIdentity,
    ColumnInfo,
    ColumnReference,
    PrimaryKeyInfo,
    UniqueInfo,
    IndexInfo,
    ForeignKeyColumn,
    ForeignKeyInfo,
    TableInfo,
    ViewInfo,
    MatviewInfo,
    ProcedureInfo,
    FunctionInfo,
    SchemaSnapshot,
    ObjectFingerprint,
    PartialSchemaSnapshot,
)
from catalog_analyser.models.diff import (
    ChangeStatus,
    ObjectChange,
    SchemaDiff,
)
from catalog_analyser.models.database import ConnectionStatus

__all__ = [
    "SchemaObjectKind",
    "SingleObjectFilter",
    "ObjectIdentity",
    "ColumnInfo",
    "ColumnReference",
    "PrimaryKeyInfo",
    "UniqueInfo",
    "IndexInfo",
    "ForeignKeyColumn",
    "ForeignKeyInfo",
    "TableInfo",
    "ViewInfo",
    "MatviewInfo",
    "ProcedureInfo",
    "FunctionInfo",
    "SchemaSnapshot",
    "ObjectFingerprint",
    "PartialSchemaSnapshot",
    "ChangeStatus",
    "ObjectChange",
    "SchemaDiff",
    "ConnectionStatus",
]
