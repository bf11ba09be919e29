"""Qualification parsing, field resolution, filtering and ordering."""

from .engine import filter_records, parse_order, sort_records
from .fields import alias_field, extract_nested_value, parse_path
from .joins import JoinGroup, JoinResolver
from .translator import QualificationParser, parse_query, substitute_parameters

__all__ = [
    "QualificationParser",
    "parse_query",
    "substitute_parameters",
    "alias_field",
    "extract_nested_value",
    "parse_path",
    "JoinGroup",
    "JoinResolver",
    "filter_records",
    "parse_order",
    "sort_records",
]
