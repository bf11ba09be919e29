"""Amazon ECS Bridge adapter.

Inbound contract:

    adapter = EcsBridgeAdapter(load_config())
    await adapter.count(request)      # -> Count
    await adapter.retrieve(request)   # -> Record (values None when nothing matched)
    await adapter.search(request)     # -> RecordList

Search pipeline:
----------------
1. Substitute parameters and parse the qualification
2. Resolve identifiers (explicit list or List pages) and describe them in
   batches of at most 100
3. Fetch complex fields (`containerInstance.ec2InstanceId`) from related
   structures
4. Compute nested fields (`environment[DB_HOST]`) under their requested names
5. Filter client-side, sort, project onto the field list

Any error aborts the whole request; no partial result is returned.
"""

import uuid
from typing import Any

import structlog

from .. import __version__
from ..aws.actions import LIST_PARAMETERS
from ..aws.ec2 import Ec2InstanceBridge
from ..aws.gateway import EcsGateway
from ..config import BridgeConfig
from ..constants import ADAPTER_NAME
from ..models.entities import VALID_STRUCTURES, EntityKind
from ..models.query import NormalizedQuery
from ..models.records import Count, Record, RecordList
from ..models.request import BridgeRequest
from ..observability.logger import LogContext
from ..query.engine import default_order, filter_records, parse_order, sort_records
from ..query.fields import resolve_nested_fields
from ..query.joins import JoinResolver, SecondarySearch
from ..query.translator import QualificationParser
from ..utils.exceptions import AmbiguousResultError
from .batches import BatchResolver

logger = structlog.get_logger(__name__)


class EcsBridgeAdapter:
    """
    Query bridge over the Amazon ECS API.

    Structures: Clusters, ContainerInstances, Tasks, TaskDefinitions.
    """

    NAME = ADAPTER_NAME
    VERSION = __version__
    VALID_STRUCTURES = VALID_STRUCTURES

    def __init__(
        self,
        config: BridgeConfig | None = None,
        gateway: EcsGateway | None = None,
        instance_bridge: SecondarySearch | None = None,
    ):
        """
        Initialize the adapter.

        Args:
            config: Bridge configuration; AWS settings are required unless a
                gateway is injected
            gateway: ECS gateway (defaults to one built from config.aws)
            instance_bridge: Search for the Instances structure (defaults to
                an EC2 bridge built from config.aws when available)
        """
        self.config = config or BridgeConfig()
        self._owned: list[Any] = []

        if gateway is None:
            gateway = EcsGateway(self.config.require_aws())
            self._owned.append(gateway)
        self.gateway = gateway

        if instance_bridge is None and self.config.aws is not None:
            instance_bridge = Ec2InstanceBridge(self.config.aws)
            self._owned.append(instance_bridge)
        self.instance_bridge = instance_bridge

        limit = self.config.concurrency.max_concurrency
        self.parser = QualificationParser()
        self.batches = BatchResolver(self.gateway, max_concurrency=limit)
        self.joins = JoinResolver(self.search, self.instance_bridge, max_concurrency=limit)

    async def __aenter__(self) -> "EcsBridgeAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the clients this adapter created."""
        for resource in self._owned:
            await resource.close()

    # -------------------------------------------------------------------------
    # Inbound operations
    # -------------------------------------------------------------------------

    async def count(self, request: BridgeRequest) -> Count:
        """
        Number of records a search would return.

        A qualification made only of List request members counts listed
        identifiers without describing them. Anything else, explicit
        identifier lists included, runs the full search so that unknown
        identifiers and client-side clauses count exactly as search sees them.
        """
        kind = EntityKind.from_structure(request.structure)
        query = self.parser.parse(request.query, request.parameters)

        accepted = LIST_PARAMETERS[kind.list_action]
        if all(clause.key in accepted and not clause.is_list for clause in query):
            listing = await self.batches.list_identifiers(kind, query)
            logger.debug("Counted listed identifiers", structure=kind.value, count=listing.total)
            return Count(listing.total)

        full = request.model_copy(update={"metadata": {}})
        result = await self._search(kind, query, full)
        return Count(result.size)

    async def retrieve(self, request: BridgeRequest) -> Record:
        """
        Single record lookup.

        `<key>Arn=X` (or `arn=X`) is turned into an explicit identifier list,
        so no List call is made.

        Raises:
            AmbiguousResultError: If more than one record matches
        """
        kind = EntityKind.from_structure(request.structure)
        query = self.parser.parse(request.query, request.parameters)
        query = self.parser.rewrite_identifier_shortcut(query, kind)

        result = await self._search(kind, query, request)
        if result.size > 1:
            raise AmbiguousResultError(kind.value, result.size)
        if not result.records:
            return Record(None)
        return result.records[0]

    async def search(self, request: BridgeRequest) -> RecordList:
        """
        Records of one structure matching the qualification.

        Raises:
            ValidationError: Unknown structure, bad field path or metadata
            QueryError: Malformed qualification or unknown parameter
            RemoteApiError: ECS rejected a call
            TransportError: A call could not be completed
        """
        kind = EntityKind.from_structure(request.structure)
        query = self.parser.parse(request.query, request.parameters)
        return await self._search(kind, query, request)

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def _search(
        self, kind: EntityKind, query: NormalizedQuery, request: BridgeRequest
    ) -> RecordList:
        page_size = request.page_size
        order = parse_order(request.order) if request.order else None

        with LogContext(search_id=uuid.uuid4().hex[:8], structure=kind.value):
            logger.info("Search started", query=query.render(), fields=len(request.fields))

            records, next_token = await self.batches.resolve(
                kind, query, page_size=page_size, page_token=request.page_token
            )

            retrieval_fields = query.retrieval_fields()
            retrieval_fields += [f for f in request.fields if f not in retrieval_fields]
            await self.joins.resolve(records, retrieval_fields, cluster=query.get("cluster"))

            fields = list(request.fields) or (list(records[0]) if records else [])
            resolve_nested_fields(records, fields)

            records = filter_records(records, query, LIST_PARAMETERS[kind.list_action])
            records = sort_records(records, order or default_order(fields))

            logger.info("Search complete", size=len(records), next_page_token=next_token)

        return RecordList(
            fields=fields,
            records=[Record({name: record.get(name) for name in fields}) for record in records],
            metadata={"size": len(records), "pageSize": page_size, "nextPageToken": next_token},
        )
