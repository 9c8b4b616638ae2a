"""Dialect capability descriptors."""

from catalog_analyser.dialects.base import DialectDescriptor, QueryTemplate
from catalog_analyser.dialects.postgres import POSTGRES
from catalog_analyser.dialects.redshift import REDSHIFT
from catalog_analyser.utils.exceptions import UnknownDialectError

DIALECTS: dict[str, DialectDescriptor] = {
    POSTGRES.name: POSTGRES,
    REDSHIFT.name: REDSHIFT,
}


def get_dialect(name: str) -> DialectDescriptor:
    """Get a registered dialect descriptor by name.

    Raises:
        UnknownDialectError: If no dialect is registered under the name.
    """
    try:
        return DIALECTS[name.lower()]
    except KeyError:
        raise UnknownDialectError(name)


__all__ = [
    "DialectDescriptor",
    "QueryTemplate",
    "POSTGRES",
    "REDSHIFT",
    "DIALECTS",
    "get_dialect",
]
