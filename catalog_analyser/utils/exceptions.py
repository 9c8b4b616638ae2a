"""Exception classes for catalog-analyser."""

from typing import Any, Optional

from catalog_analyser.utils.constants import ErrorCode, ERROR_MESSAGES


class AnalyserError(Exception):
    """Base exception class for catalog-analyser."""

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        details: dict | None = None
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "Unknown error")
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert the exception to a dictionary format.

        Returns:
            A dictionary representation of the error.
        """
        return {
            "status": "error",
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details
            }
        }


class DatabaseConnectionError(AnalyserError):
    """A catalog query failed at the driver or network level."""

    def __init__(self, message: str, query_name: str | None = None):
        super().__init__(
            code=ErrorCode.DB_CONNECTION_FAILED,
            message=message,
            details={"query": query_name} if query_name else None
        )
        self.query_name = query_name


class UnsupportedQueryError(AnalyserError):
    """A logical query was requested that the active dialect does not define."""

    def __init__(self, query_name: str, dialect: str):
        super().__init__(
            code=ErrorCode.UNSUPPORTED_QUERY,
            message=f"Query '{query_name}' is not defined for dialect '{dialect}'",
            details={"query": query_name, "dialect": dialect}
        )
        self.query_name = query_name
        self.dialect = dialect


class UnknownDialectError(AnalyserError):
    """No capability descriptor is registered under the given name."""

    def __init__(self, name: str):
        super().__init__(
            code=ErrorCode.UNKNOWN_DIALECT,
            message=f"Unknown dialect: {name}",
            details={"dialect": name}
        )


class InvalidObjectIdError(AnalyserError):
    """String-form object identity could not be parsed."""

    def __init__(self, object_id: str, reason: str):
        super().__init__(
            code=ErrorCode.INVALID_OBJECT_ID,
            message=f"Invalid object id '{object_id}': {reason}",
            details={"object_id": object_id}
        )


class PartialRefreshError(AnalyserError):
    """Refresh was cancelled or failed while re-analysing changed objects.

    Carries the snapshot merged so far together with the identities that
    still need analysis, so the caller can retry just those.
    """

    def __init__(self, snapshot: Any, pending: list, reason: str):
        super().__init__(
            code=ErrorCode.PARTIAL_REFRESH,
            message=f"Refresh incomplete: {reason}",
            details={"pending": [identity.object_id for identity in pending]}
        )
        self.snapshot = snapshot
        self.pending = pending
        self.reason = reason


class IdentityResolutionWarning(UserWarning):
    """A catalog row could not be matched or decoded during assembly.

    Never raised; collected by the assembler and logged.
    """

    def __init__(self, query_name: str, reason: str, row: Optional[dict] = None):
        self.query_name = query_name
        self.reason = reason
        self.row = row
        super().__init__(f"{query_name}: {reason}")
