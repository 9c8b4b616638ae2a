"""Redshift-style restricted catalog.

Only the portable information_schema queries are available: no
aggregate hashing, no materialized views, no index enumeration.
"""

from catalog_analyser.dialects.base import DialectDescriptor
from catalog_analyser.dialects.postgres import POSTGRES_QUERIES

REDSHIFT_QUERY_NAMES = (
    "tables",
    "columns",
    "primaryKeys",
    "foreignKeys",
    "views",
    "routines",
)

REDSHIFT = DialectDescriptor(
    name="redshift",
    queries={name: POSTGRES_QUERIES[name] for name in REDSHIFT_QUERY_NAMES},
    supports_aggregate_hash=False,
    supports_materialized_views=False,
    supports_index_enumeration=False,
    substitutions={"#REFTABLECOND#": "", "#ROUTINEHASH#": "null"},
)
