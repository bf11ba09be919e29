"""Utility functions and exceptions."""

from .concurrency import gather_bounded
from .exceptions import (
    AmbiguousResultError,
    AuthorizationError,
    BridgeError,
    QueryError,
    RemoteApiError,
    TransportError,
    ValidationError,
)

__all__ = [
    "BridgeError",
    "ValidationError",
    "QueryError",
    "AmbiguousResultError",
    "TransportError",
    "RemoteApiError",
    "AuthorizationError",
    "gather_bounded",
]
