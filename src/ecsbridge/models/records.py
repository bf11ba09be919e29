"""Result types returned by the bridge."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Record:
    """
    One result row.

    Attributes:
        values: Field name to value; None when a retrieve matched nothing
    """

    values: dict[str, Any] | None = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        if self.values is None:
            return default
        return self.values.get(key, default)

    @property
    def is_empty(self) -> bool:
        return self.values is None


@dataclass
class RecordList:
    """
    Ordered search result.

    Attributes:
        fields: Output field order (as requested, before alias resolution)
        records: Records, each holding at least every name in fields
        metadata: size, pageSize and nextPageToken
    """

    fields: list[str]
    records: list[Record] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.records)

    @property
    def next_page_token(self) -> str | None:
        return self.metadata.get("nextPageToken")

    def rows(self) -> list[dict[str, Any]]:
        """Records projected onto the field list, in order."""
        return [
            {name: record.get(name) for name in self.fields}
            for record in self.records
        ]


@dataclass
class Count:
    """Result of a count request."""

    value: int
