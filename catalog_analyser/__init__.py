"""Database schema introspection and change detection."""

from catalog_analyser.dialects import get_dialect
from catalog_analyser.models.schema import ObjectIdentity, SchemaSnapshot
from catalog_analyser.services.analyser import SchemaAnalyser

__all__ = [
    "get_dialect",
    "ObjectIdentity",
    "SchemaSnapshot",
    "SchemaAnalyser",
]
