"""Constants for catalog-analyser."""

from enum import Enum


class ErrorCode(str, Enum):
    """Error code enumeration."""

    DB_CONNECTION_FAILED = "ERR_001"
    UNSUPPORTED_QUERY = "ERR_002"
    UNKNOWN_DIALECT = "ERR_003"
    INVALID_OBJECT_ID = "ERR_004"
    PARTIAL_REFRESH = "ERR_005"
    INVALID_SNAPSHOT = "ERR_006"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.DB_CONNECTION_FAILED: "Catalog query failed on the database connection",
    ErrorCode.UNSUPPORTED_QUERY: "Catalog query is not available for this dialect",
    ErrorCode.UNKNOWN_DIALECT: "Unknown database dialect",
    ErrorCode.INVALID_OBJECT_ID: "Malformed object identifier",
    ErrorCode.PARTIAL_REFRESH: "Refresh stopped before all changed objects were analysed",
    ErrorCode.INVALID_SNAPSHOT: "Snapshot payload could not be parsed",
}

# Marker replaced in catalog templates by the object id filter condition.
OBJECT_ID_CONDITION = "=OBJECT_ID_CONDITION"

DEFAULT_SCHEMA = "public"
