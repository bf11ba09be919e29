"""Custom exceptions for the Amazon ECS Bridge.

Exception Hierarchy:
-------------------
BridgeError (base, the single user-facing category)
├── ValidationError         # Unsupported structure, malformed field path, bad metadata
├── QueryError              # Unparseable qualification / filter expression
├── AmbiguousResultError    # retrieve() matched more than one record
├── TransportError          # Network failure or undecodable response body
└── RemoteApiError          # ECS returned a typed error envelope (__type / message)
    └── AuthorizationError  # HTTP 401 / 403

Usage Guidelines:
----------------
1. Catch BridgeError at the outer surface (CLI, host integration) and show
   the message; every failure in this package derives from it.

2. Nothing is retried internally. A failure in any List, Describe or
   secondary call aborts the whole search, so callers never receive a
   truncated record list.

3. Wrap lower level exceptions (httpx, json) with `raise ... from e` so the
   original cause stays available for diagnostics.
"""


class BridgeError(Exception):
    """Base exception for all bridge errors."""

    pass


class ValidationError(BridgeError):
    """Raised when a request, structure or field path is invalid."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """
        Initialize ValidationError.

        Args:
            message: Error message.
            field: Optional field name or path that failed validation.
        """
        super().__init__(message)
        self.field = field


class QueryError(BridgeError):
    """Raised when a qualification cannot be parsed."""

    def __init__(self, message: str, query: str | None = None) -> None:
        """
        Initialize QueryError.

        Args:
            message: Error message.
            query: The offending query text, if known.
        """
        super().__init__(message)
        self.query = query


class AmbiguousResultError(BridgeError):
    """Raised when a single-record retrieval matches more than one record."""

    def __init__(self, structure: str, count: int) -> None:
        """
        Initialize AmbiguousResultError.

        Args:
            structure: Structure that was queried.
            count: Number of records that matched.
        """
        super().__init__(
            f"Multiple results matched an expected single match query "
            f"({count} {structure} records)"
        )
        self.structure = structure
        self.count = count


class TransportError(BridgeError):
    """Raised when the HTTP exchange itself fails."""

    def __init__(self, message: str, action: str | None = None) -> None:
        """
        Initialize TransportError.

        Args:
            message: Error message.
            action: Remote action that was being called.
        """
        super().__init__(message)
        self.action = action


class RemoteApiError(BridgeError):
    """Raised when the remote API answers with an error envelope."""

    def __init__(
        self,
        error_type: str,
        remote_message: str | None = None,
        status_code: int | None = None,
        action: str | None = None,
        message: str | None = None,
    ) -> None:
        """
        Initialize RemoteApiError.

        Args:
            error_type: Remote error type (e.g. "ClusterNotFoundException").
            remote_message: Remote error message, if one was returned.
            status_code: HTTP status code of the response.
            action: Remote action that failed.
            message: Optional user-facing message overriding the default one.
        """
        if message is None:
            message = f"Error retrieving ECS records -- Type: {error_type}"
            if remote_message:
                message += f" -- Message: {remote_message}"
        super().__init__(message)
        self.error_type = error_type
        self.remote_message = remote_message
        self.status_code = status_code
        self.action = action


class AuthorizationError(RemoteApiError):
    """Raised when the remote API rejects the request signature or credentials."""

    def __init__(
        self,
        status_code: int = 403,
        remote_message: str | None = None,
        action: str | None = None,
    ) -> None:
        """
        Initialize AuthorizationError.

        Args:
            status_code: HTTP status code (401 or 403).
            remote_message: Body returned by the remote API.
            action: Remote action that was rejected.
        """
        super().__init__(
            "AuthorizationError",
            remote_message,
            status_code=status_code,
            action=action,
            message="User not authorized to access this resource. Check the logs for more details.",
        )
