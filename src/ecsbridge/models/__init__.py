"""Data models for the Amazon ECS Bridge."""

from .entities import VALID_STRUCTURES, EntityKind
from .query import FilterClause, NormalizedQuery
from .records import Count, Record, RecordList
from .request import BridgeRequest

__all__ = [
    # Structures
    "EntityKind",
    "VALID_STRUCTURES",
    # Qualifications
    "FilterClause",
    "NormalizedQuery",
    # Requests / results
    "BridgeRequest",
    "Record",
    "RecordList",
    "Count",
]
