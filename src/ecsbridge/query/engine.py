"""Client-side filtering and ordering.

ECS List actions accept few filters, so every qualification clause is
re-applied to the described records here. Comparison is equality on the
string form of a value; a nested path matches when any value it reaches
matches. Identifier list clauses were satisfied remotely and are skipped.

Ordering follows the `order` metadata:

    <%=field["clusterName"]%>:DESC,<%=field["status"]%>:ASC
    clusterName:DESC,status

Without it, records are sorted ascending on every output field, left to
right. Sorting is stable, None sorts first in ascending order, numbers compare
numerically and everything else by its string form.
"""

import json
import re
from collections.abc import Mapping
from typing import Any

import structlog

from ..models.query import NormalizedQuery
from ..utils.exceptions import ValidationError
from .fields import alias_field, extract_nested_value, extract_values, is_nested

logger = structlog.get_logger(__name__)

ASC = "ASC"
DESC = "DESC"

ORDER_FIELD_PATTERN = re.compile(
    r"<%=\s*field\[\s*\"(.*?)\"\s*\]\s*%>(?:\s*:\s*(\w+))?", re.IGNORECASE
)


def comparable_text(value: Any) -> str | None:
    """
    String form used for equality checks, or None when the value never matches.

    Booleans render as true/false and numbers as JSON does.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return json.dumps(value)
    return None


def field_value(record: Mapping[str, Any], field: str) -> Any:
    """Value of a field reference, applying aliases and nested paths."""
    if field in record:
        return record[field]
    real = alias_field(field)
    if real in record:
        return record[real]
    if is_nested(real):
        return extract_nested_value(record, real)
    return None


def _carries(record: Mapping[str, Any], key: str) -> bool:
    """Whether the record holds the plain field a clause key refers to."""
    return key in record or alias_field(key) in record


def _matches(record: Mapping[str, Any], key: str, expected: str) -> bool:
    real = alias_field(key)
    # Nested paths are always re-extracted: the value stored under a
    # requested field name is collapsed and may be a list
    if is_nested(real):
        return any(comparable_text(value) == expected for value in extract_values(record, real))
    if key in record:
        return comparable_text(record[key]) == expected
    if real in record:
        return comparable_text(record[real]) == expected
    return False


def filter_records(
    records: list[dict[str, Any]],
    query: NormalizedQuery,
    remote_keys: frozenset[str] = frozenset(),
) -> list[dict[str, Any]]:
    """
    Keep the records matching every scalar clause of the query.

    A plain key that no record carries (`cluster`, `filter`, ...) was only
    meaningful to ECS and does not filter. A record missing a field that
    other records carry is dropped, unless the key is one of `remote_keys`:
    the List action already applied those.

    Args:
        records: Described records (with nested and complex fields resolved)
        query: Normalized qualification
        remote_keys: Request members accepted by the List action that
            produced the records

    Returns:
        Matching records, in their original order
    """
    clauses = [clause for clause in query if not clause.is_list]
    clauses = [
        clause
        for clause in clauses
        if is_nested(alias_field(clause.key))
        or any(_carries(record, clause.key) for record in records)
    ]
    if not clauses:
        return list(records)

    filtered = [
        record
        for record in records
        if all(
            _matches(record, clause.key, clause.value)
            or (clause.key in remote_keys and not _carries(record, clause.key))
            for clause in clauses
        )
    ]
    if len(filtered) != len(records):
        logger.debug("Records filtered", before=len(records), after=len(filtered))
    return filtered


def _direction(value: str | None, order: str) -> str:
    if not value:
        return ASC
    direction = value.strip().upper()
    if direction not in (ASC, DESC):
        raise ValidationError(
            f"Invalid sort direction '{value}' in order '{order}'", field="order"
        )
    return direction


def parse_order(order: str) -> list[tuple[str, str]]:
    """
    Parse order metadata into (field, direction) pairs.

    Raises:
        ValidationError: On an unknown direction or an empty field name
    """
    order = (order or "").strip()
    if not order:
        return []

    if "<%" in order:
        pairs = [
            (match.group(1), _direction(match.group(2), order))
            for match in ORDER_FIELD_PATTERN.finditer(order)
        ]
        if not pairs:
            raise ValidationError(f"Invalid order '{order}'", field="order")
        return pairs

    pairs = []
    for part in order.split(","):
        part = part.strip()
        if not part:
            continue
        name, _, direction = part.rpartition(":")
        if not name:
            name, direction = direction, ""
        if not name.strip():
            raise ValidationError(f"Invalid order '{order}': empty field name", field="order")
        pairs.append((name.strip(), _direction(direction, order)))
    return pairs


def default_order(fields: list[str]) -> list[tuple[str, str]]:
    return [(field, ASC) for field in fields]


def sort_key(value: Any) -> tuple[int, Any]:
    """Total ordering over mixed values: None, then numbers, then text."""
    if value is None:
        return (0, 0)
    if isinstance(value, int | float) and not isinstance(value, bool):
        return (1, value)
    if isinstance(value, bool):
        return (2, "true" if value else "false")
    if isinstance(value, str):
        return (2, value)
    return (2, json.dumps(value, sort_keys=True, default=str))


def sort_records(
    records: list[dict[str, Any]], order: list[tuple[str, str]]
) -> list[dict[str, Any]]:
    """
    Stable multi-key sort.

    Sorting by the last key first and the first key last yields the
    lexicographic order, since each pass keeps ties in place.
    """
    result = list(records)
    for field, direction in reversed(order):
        result.sort(
            key=lambda record: sort_key(field_value(record, field)),
            reverse=direction == DESC,
        )
    return result
