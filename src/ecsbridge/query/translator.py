"""Qualification parsing.

A qualification arrives as text with optional parameter references:

    cluster=<%=parameter["Cluster"]%>&desiredStatus=RUNNING

Parsing happens in two passes: parameter references are substituted, then
the result is split into `FilterClause` entries. Keys are kept verbatim;
alias resolution happens later, against records.
"""

import re
from collections.abc import Mapping

import structlog

from ..models.entities import EntityKind
from ..models.query import FilterClause, NormalizedQuery
from ..utils.exceptions import QueryError

logger = structlog.get_logger(__name__)

PARAMETER_PATTERN = re.compile(r"<%=\s*parameter\[\s*\"(.*?)\"\s*\]\s*%>")

# Any leftover template tag after substitution is unsupported syntax
_TEMPLATE_TAG = re.compile(r"<%.*?%>")


def substitute_parameters(template: str, parameters: Mapping[str, str] | None) -> str:
    """
    Replace <%=parameter["Name"]%> references with parameter values.

    Args:
        template: Qualification text
        parameters: Parameter values by name

    Returns:
        Qualification with every reference substituted

    Raises:
        QueryError: If a referenced parameter is not supplied, or another
            template tag remains
    """
    parameters = parameters or {}

    def _lookup(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in parameters:
            raise QueryError(f"Qualification references unknown parameter '{name}'", template)
        value = parameters[name]
        return "" if value is None else str(value)

    result = PARAMETER_PATTERN.sub(_lookup, template)
    leftover = _TEMPLATE_TAG.search(result)
    if leftover:
        raise QueryError(f"Unsupported template expression '{leftover.group(0)}'", template)
    return result


def parse_query(text: str) -> NormalizedQuery:
    """
    Split qualification text into clauses.

    Args:
        text: Substituted qualification, `key=value&key=[a,b]`

    Returns:
        NormalizedQuery with clauses in input order

    Raises:
        QueryError: On a clause without "=", an empty key, or unbalanced
            brackets in a value
    """
    text = (text or "").strip()
    if not text:
        return NormalizedQuery()

    clauses: list[FilterClause] = []
    for part in text.split("&"):
        if not part.strip():
            # Tolerate "a=1&&b=2" and a trailing "&"
            continue
        if "=" not in part:
            raise QueryError(f"Invalid qualification clause '{part}': expected key=value", text)
        key, value = part.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            raise QueryError(f"Invalid qualification clause '{part}': empty key", text)
        if value.count("[") != value.count("]") or (
            value.startswith("[") != value.endswith("]")
        ):
            raise QueryError(f"Invalid qualification clause '{part}': unbalanced brackets", text)
        clauses.append(FilterClause(key, value))

    return NormalizedQuery(tuple(clauses))


class QualificationParser:
    """
    Turns a raw qualification and its parameters into a NormalizedQuery.

    Example:
        parser = QualificationParser()
        query = parser.parse('cluster=<%=parameter["c"]%>', {"c": "prod"})
        str(query)  # "cluster=prod"
    """

    def parse(
        self, query: str | None, parameters: Mapping[str, str] | None = None
    ) -> NormalizedQuery:
        substituted = substitute_parameters(query or "", parameters)
        normalized = parse_query(substituted)
        logger.debug("Qualification parsed", query=normalized.render())
        return normalized

    def rewrite_identifier_shortcut(
        self, query: NormalizedQuery, kind: EntityKind
    ) -> NormalizedQuery:
        """
        Turn a single-identifier lookup into the explicit list form.

        `clusterArn=X` (or a bare `arn=X`) becomes `clusterArns=[X]`, so a
        single record retrieval takes the same path as a bulk search.
        Only the first matching clause is rewritten.
        """
        accepted = {kind.identifier_field, "arn", "Arn"}
        for clause in query:
            if clause.key in accepted and not clause.is_list:
                rewritten = FilterClause(kind.identifiers_key, f"[{clause.value}]")
                logger.debug(
                    "Identifier shortcut rewritten",
                    original=clause.render(),
                    rewritten=rewritten.render(),
                )
                return query.replace(clause, rewritten)
        return query
