"""Typed representation of a qualification.

The external syntax is a flat string of `key=value` clauses joined by `&`,
where a value wrapped in brackets is an identifier list:

    cluster=prod&desiredStatus=RUNNING&taskArns=[arn:a,arn:b]

Parsing lives in `ecsbridge.query.translator`; these types only hold and
render the parsed form.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field


@dataclass(frozen=True)
class FilterClause:
    """
    A single `key=value` clause.

    Attributes:
        key: Clause key, kept verbatim (may be a nested or dotted field path)
        value: Raw value text, brackets included for identifier lists
        operator: Comparison operator; only equality is supported
    """

    key: str
    value: str
    operator: str = "="

    @property
    def is_list(self) -> bool:
        """Whether the value is a bracketed identifier list."""
        return len(self.value) >= 2 and self.value.startswith("[") and self.value.endswith("]")

    @property
    def items(self) -> list[str]:
        """Identifier list entries, or the single value for scalar clauses."""
        if not self.is_list:
            return [self.value]
        inner = self.value[1:-1]
        return [item.strip() for item in inner.split(",") if item.strip()]

    def render(self) -> str:
        return f"{self.key}{self.operator}{self.value}"


@dataclass(frozen=True)
class NormalizedQuery:
    """
    Ordered, immutable list of clauses.

    Helpers return new instances; the rendered form preserves clause order.
    """

    clauses: tuple[FilterClause, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[FilterClause]:
        return iter(self.clauses)

    def __len__(self) -> int:
        return len(self.clauses)

    def __bool__(self) -> bool:
        return bool(self.clauses)

    def __str__(self) -> str:
        return self.render()

    def render(self) -> str:
        """External `key=value&...` form."""
        return "&".join(clause.render() for clause in self.clauses)

    def get(self, key: str) -> str | None:
        """Value of the first clause with this key, if any."""
        for clause in self.clauses:
            if clause.key == key:
                return clause.value
        return None

    def with_clause(self, key: str, value: str) -> "NormalizedQuery":
        """Copy with a clause appended."""
        return NormalizedQuery(self.clauses + (FilterClause(key, value),))

    def replace(self, old: FilterClause, new: FilterClause) -> "NormalizedQuery":
        """Copy with one clause swapped in place."""
        return NormalizedQuery(tuple(new if c == old else c for c in self.clauses))

    def identifier_list(self, identifiers_key: str) -> list[str] | None:
        """
        Explicit identifiers named by a `<key>Arns=[...]` clause.

        Returns None when there is no such clause (the caller must list), and
        an empty list for `<key>Arns=[]`.
        """
        for clause in self.clauses:
            if clause.key == identifiers_key and clause.is_list:
                return clause.items
        return None

    def remote_parameters(self, accepted: frozenset[str]) -> "NormalizedQuery":
        """Scalar clauses the remote List action accepts as request members."""
        return NormalizedQuery(
            tuple(c for c in self.clauses if c.key in accepted and not c.is_list)
        )

    def retrieval_fields(self) -> list[str]:
        """Dotted (cross-structure) keys the filter refers to, in order, distinct."""
        fields: list[str] = []
        for clause in self.clauses:
            bracket = clause.key.find("[")
            head = clause.key if bracket < 0 else clause.key[:bracket]
            if "." in head and clause.key not in fields:
                fields.append(clause.key)
        return fields
