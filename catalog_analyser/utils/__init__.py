"""Utility modules for catalog-analyser."""

from catalog_analyser.utils.constants import (
    ErrorCode,
    ERROR_MESSAGES,
    OBJECT_ID_CONDITION,
    DEFAULT_SCHEMA,
)
from catalog_analyser.utils.exceptions import (
    AnalyserError,
    DatabaseConnectionError,
    UnsupportedQueryError,
    UnknownDialectError,
    InvalidObjectIdError,
    PartialRefreshError,
    IdentityResolutionWarning,
)

__all__ = [
    "ErrorCode",
    "ERROR_MESSAGES",
    "OBJECT_ID_CONDITION",
    "DEFAULT_SCHEMA",
    "AnalyserError",
    "DatabaseConnectionError",
    "UnsupportedQueryError",
    "UnknownDialectError",
    "InvalidObjectIdError",
    "PartialRefreshError",
    "IdentityResolutionWarning",
]
