"""Batch Resolver - turn a qualification into described ECS records.

Flow:
-----
1. Identifier source
   - explicit list (`taskArns=[a,b,c]`): used as-is, nothing is listed
   - otherwise List<Structure> pages, each page one batch. Only request
     members the List action accepts are sent; `nextToken` starts from the
     caller's page token and `maxResults` is sent when a page size is set.
     With a page size exactly one page is fetched, otherwise pages are
     followed until no token comes back.

2. Chunking
   Describe actions take at most 100 identifiers, so every batch is split
   into chunks of 100 or fewer. N identifiers cost ceil(N/100) calls.

3. Describe
   - one call per chunk, `<key>s=[...]`, with `cluster` propagated for
     ContainerInstances and Tasks
   - TaskDefinitions: one DescribeTaskDefinition call per identifier

Chunks are described concurrently (bounded) and merged in batch order.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from ..aws.actions import LIST_PARAMETERS, EcsActions
from ..aws.gateway import EcsGateway
from ..aws.response_models import DescribeResponse, ListResponse
from ..constants import DEFAULT_MAX_CONCURRENCY, MAX_DESCRIBE_BATCH
from ..models.entities import EntityKind
from ..models.query import FilterClause, NormalizedQuery
from ..utils.concurrency import gather_bounded
from ..utils.exceptions import ValidationError

logger = structlog.get_logger(__name__)


def chunk(identifiers: list[str], size: int = MAX_DESCRIBE_BATCH) -> list[list[str]]:
    """Split identifiers into consecutive chunks of at most `size`."""
    return [identifiers[i : i + size] for i in range(0, len(identifiers), size)]


@dataclass
class IdentifierListing:
    """
    Identifiers gathered for one search.

    Attributes:
        batches: One batch per List page (or the explicit list)
        next_token: Continuation token of the last page fetched
        explicit: Whether the identifiers came from the qualification
    """

    batches: list[list[str]] = field(default_factory=list)
    next_token: str | None = None
    explicit: bool = False

    @property
    def total(self) -> int:
        return sum(len(batch) for batch in self.batches)


class BatchResolver:
    """
    Lists and describes the records of one structure.

    Example:
        resolver = BatchResolver(gateway, max_concurrency=5)
        records, token = await resolver.resolve(EntityKind.TASKS, query)
    """

    def __init__(self, gateway: EcsGateway, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        self.gateway = gateway
        self.max_concurrency = max_concurrency

    async def list_identifiers(
        self,
        kind: EntityKind,
        query: NormalizedQuery,
        page_size: int = 0,
        page_token: str | None = None,
    ) -> IdentifierListing:
        """
        Collect identifier batches, from the qualification or from List pages.

        Args:
            kind: Structure being searched
            query: Normalized qualification
            page_size: maxResults per page, 0 for every page
            page_token: nextToken to start from
        """
        explicit = query.identifier_list(kind.identifiers_key)
        if explicit is not None:
            logger.debug("Using explicit identifiers", structure=kind.value, count=len(explicit))
            return IdentifierListing(batches=[explicit] if explicit else [], explicit=True)

        remote = query.remote_parameters(LIST_PARAMETERS[kind.list_action])
        listing = IdentifierListing()
        token = page_token

        while True:
            request = remote
            if token:
                request = request.with_clause("nextToken", token)
            if page_size:
                request = request.with_clause("maxResults", str(page_size))

            data = await self.gateway.request(kind.list_action, request)
            page = ListResponse.model_validate(data)
            identifiers = page.identifiers(kind.identifiers_key)
            if identifiers:
                listing.batches.append(identifiers)
            token = page.nextToken

            logger.debug(
                "Listed identifiers",
                structure=kind.value,
                page=len(listing.batches),
                count=len(identifiers),
                has_more=bool(token),
            )
            if not token or page_size:
                break

        listing.next_token = token
        return listing

    async def describe(
        self, kind: EntityKind, identifiers: list[str], cluster: str | None = None
    ) -> list[dict[str, Any]]:
        """
        Describe one chunk of identifiers.

        Raises:
            ValidationError: If handed more identifiers than one call accepts
        """
        if len(identifiers) > MAX_DESCRIBE_BATCH:
            raise ValidationError(
                f"Describe batch of {len(identifiers)} identifiers exceeds the "
                f"limit of {MAX_DESCRIBE_BATCH}",
                field=kind.describe_key,
            )
        if not identifiers:
            return []

        if kind.describes_individually:
            described = await gather_bounded(
                (self._describe_one(kind, identifier) for identifier in identifiers),
                self.max_concurrency,
            )
            return [obj for objects in described for obj in objects]

        clauses = [FilterClause(kind.describe_key, f"[{','.join(identifiers)}]")]
        if cluster and kind.cluster_scoped:
            clauses.append(FilterClause("cluster", cluster))

        data = await self.gateway.request(kind.describe_action, NormalizedQuery(tuple(clauses)))
        return self._objects(kind, data)

    async def _describe_one(self, kind: EntityKind, identifier: str) -> list[dict[str, Any]]:
        query = NormalizedQuery((FilterClause(kind.describe_key, identifier),))
        data = await self.gateway.request(EcsActions.DESCRIBE_TASK_DEFINITION, query)
        return self._objects(kind, data)

    def _objects(self, kind: EntityKind, data: dict[str, Any]) -> list[dict[str, Any]]:
        response = DescribeResponse.model_validate(data)
        for failure in response.failures:
            logger.warning(
                "ECS could not describe identifier",
                structure=kind.value,
                arn=failure.arn,
                reason=failure.reason,
                detail=failure.detail,
            )
        return response.objects(kind.describe_key)

    async def resolve(
        self,
        kind: EntityKind,
        query: NormalizedQuery,
        page_size: int = 0,
        page_token: str | None = None,
    ) -> tuple[list[dict[str, Any]], str | None]:
        """
        Described records for a qualification.

        Returns:
            (records in batch order, continuation token of the last page)
        """
        listing = await self.list_identifiers(kind, query, page_size, page_token)
        cluster = query.get("cluster") if kind.cluster_scoped else None

        if kind.describes_individually:
            # One shared pool for every per-identifier call
            calls = [
                self._describe_one(kind, identifier)
                for batch in listing.batches
                for identifier in batch
            ]
        else:
            calls = [
                self.describe(kind, part, cluster)
                for batch in listing.batches
                for part in chunk(batch)
            ]
        logger.debug(
            "Describing records",
            structure=kind.value,
            identifiers=listing.total,
            calls=len(calls),
        )

        described = await gather_bounded(calls, self.max_concurrency)
        records = [obj for objects in described for obj in objects]
        return records, listing.next_token
