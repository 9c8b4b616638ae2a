"""Dialect capability descriptor."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from catalog_analyser.models.schema import SchemaObjectKind
from catalog_analyser.utils.constants import DEFAULT_SCHEMA
from catalog_analyser.utils.exceptions import UnsupportedQueryError

TABLES = SchemaObjectKind.TABLES
VIEWS = SchemaObjectKind.VIEWS
MATVIEWS = SchemaObjectKind.MATVIEWS
PROCEDURES = SchemaObjectKind.PROCEDURES
FUNCTIONS = SchemaObjectKind.FUNCTIONS


@dataclass(frozen=True)
class QueryTemplate:
    """Catalog query text plus the object kinds its rows describe."""
    sql: str
    type_fields: tuple[SchemaObjectKind, ...] = ()


@dataclass(frozen=True)
class DialectDescriptor:
    """Read-only capabilities and catalog templates of one database engine.

    Dialect differences are expressed as data here; the analyser itself
    has no per-dialect subclasses.
    """
    name: str
    queries: Mapping[str, QueryTemplate]
    supports_aggregate_hash: bool = True
    supports_materialized_views: bool = True
    supports_index_enumeration: bool = True
    default_schema: str = DEFAULT_SCHEMA
    substitutions: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "queries", MappingProxyType(dict(self.queries)))
        object.__setattr__(self, "substitutions", MappingProxyType(dict(self.substitutions)))

    def has_query(self, name: str) -> bool:
        return name in self.queries

    def get_query(self, name: str) -> QueryTemplate:
        """Look up a logical query.

        Raises:
            UnsupportedQueryError: If the dialect does not define it.
        """
        try:
            return self.queries[name]
        except KeyError:
            raise UnsupportedQueryError(name, self.name)
