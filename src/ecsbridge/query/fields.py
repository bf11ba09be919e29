"""Field path resolution.

Field references come in three shapes:

- plain:   `clusterName`
- nested:  `overrides[containerOverrides][environment][DB_HOST]`
- complex: `containerInstance.ec2InstanceId` (a field of another structure,
  resolved by `ecsbridge.query.joins`)

Aliases are applied before anything else, so `environment[DB_HOST]` is read
from `overrides[containerOverrides][environment][DB_HOST]` while the record
keeps the name the caller asked for.

Nested extraction walks a list of candidate values one subfield at a time:

- a mapping is replaced by its subfield
- a list of {"name": ..., "value": ...} entries yields the values whose name
  equals the subfield
- a list of other mappings is walked entry by entry
- scalars yield nothing

After the last subfield, None entries are dropped and the survivors collapse:
none -> None, one -> that value, several -> list in encounter order.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from ..utils.exceptions import ValidationError

# (pattern, replacement) pairs; the first matching pattern wins
FIELD_ALIASES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^environment(?=\[)"), "overrides[containerOverrides][environment]"),
]

_SEGMENT = re.compile(r"\[([^\[\]]*)\]")


def alias_field(field: str) -> str:
    """Real field path for a possibly aliased reference."""
    for pattern, replacement in FIELD_ALIASES:
        if pattern.search(field):
            return pattern.sub(replacement, field, count=1)
    return field


def is_complex(field: str) -> bool:
    """Whether the field lives on another structure (`<joinKey>.<subfield>`)."""
    head = field.split("[", 1)[0]
    return "." in head


def is_nested(field: str) -> bool:
    return "[" in field and not is_complex(field)


def split_complex(field: str) -> tuple[str, str]:
    """Split `<joinKey>.<subfield>` at the first dot."""
    join_key, subfield = field.split(".", 1)
    if not join_key or not subfield:
        raise ValidationError(f"Invalid field '{field}': expected <structure>.<field>", field=field)
    return join_key, subfield


def parse_path(field: str) -> tuple[str, list[str]]:
    """
    Split a nested path into its base and subfields.

    Args:
        field: Path such as `overrides[containerOverrides][environment]`

    Returns:
        (base, [subfield, ...]); a plain field has no subfields

    Raises:
        ValidationError: On an empty base, unbalanced brackets, or text
            between or after the bracket segments
    """
    bracket = field.find("[")
    if bracket < 0:
        if "]" in field:
            raise ValidationError(f"Invalid field path '{field}': unbalanced brackets", field=field)
        return field, []

    base = field[:bracket]
    if not base:
        raise ValidationError(f"Invalid field path '{field}': missing base field", field=field)

    rest = field[bracket:]
    subfields: list[str] = []
    position = 0
    for match in _SEGMENT.finditer(rest):
        if match.start() != position:
            raise ValidationError(
                f"Invalid field path '{field}': unexpected text '{rest[position:match.start()]}'",
                field=field,
            )
        subfields.append(match.group(1))
        position = match.end()

    if position != len(rest):
        raise ValidationError(
            f"Invalid field path '{field}': unexpected text '{rest[position:]}'", field=field
        )
    return base, subfields


def _is_name_value(entry: Any) -> bool:
    return isinstance(entry, Mapping) and "name" in entry and "value" in entry


def get_subfield_values(subfield: str, values: Iterable[Any]) -> list[Any]:
    """Advance every candidate value by one subfield."""
    result: list[Any] = []
    for value in values:
        if isinstance(value, Mapping):
            result.append(value.get(subfield))
        elif isinstance(value, list):
            mappings = [entry for entry in value if isinstance(entry, Mapping)]
            if mappings and all(_is_name_value(entry) for entry in mappings):
                result.extend(
                    entry["value"] for entry in mappings if str(entry["name"]) == subfield
                )
            elif mappings:
                result.extend(get_subfield_values(subfield, mappings))
    return result


def collapse(values: list[Any]) -> Any:
    present = [value for value in values if value is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return present


def extract_values(record: Mapping[str, Any], field: str) -> list[Any]:
    """All values a nested path reaches in a record (uncollapsed, None dropped)."""
    base, subfields = parse_path(field)
    values: list[Any] = [record.get(base)]
    for subfield in subfields:
        values = get_subfield_values(subfield, values)
    return [value for value in values if value is not None]


def extract_nested_value(record: Mapping[str, Any], field: str) -> Any:
    """
    Collapsed value of a nested path.

    Example:
        record = {"overrides": {"containerOverrides": [
            {"environment": [{"name": "DB_HOST", "value": "10.0.0.5"}]}]}}
        extract_nested_value(record, "overrides[containerOverrides][environment][DB_HOST]")
        # "10.0.0.5"
    """
    return collapse(extract_values(record, field))


def resolve_nested_fields(records: Iterable[dict[str, Any]], fields: Iterable[str]) -> None:
    """
    Store the value of every nested field on each record under its requested name.

    Aliases are applied to find the value; the record key is the field as given.
    """
    nested = [(field, alias_field(field)) for field in fields]
    nested = [(field, real) for field, real in nested if is_nested(real)]
    if not nested:
        return
    for record in records:
        for field, real in nested:
            record[field] = extract_nested_value(record, real)
