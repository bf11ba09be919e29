"""Cross-structure (complex) field resolution.

A complex field `<joinKey>.<subfield>` reads `subfield` from the record of
another structure referenced by the current record. For every join key used
in one search, the referenced identifiers are collected, one secondary search
fetches them all, and each record receives its foreign values:

    tasks:   {"taskArn": "t1", "containerInstanceArn": "ci-1"}
    field:   containerInstance.ec2InstanceId
    search:  ContainerInstances ? containerInstanceArns=[ci-1]&cluster=prod
    result:  {"taskArn": "t1", ..., "containerInstance.ec2InstanceId": "i-0abc"}

Join strategies:
- `instance`: identifiers from `ec2InstanceId`, fetched through the instance
  bridge (EC2 DescribeInstances), matched on `instanceId`
- any ECS key identifier (`cluster`, `containerInstance`, `task`,
  `taskDefinition`): identifiers from `<joinKey>Arn`, fetched by a search on
  the same adapter, matched on `<joinKey>Arn`

A referenced identifier missing from the secondary result gives None.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from ..models.entities import EntityKind
from ..models.records import RecordList
from ..models.request import BridgeRequest
from ..utils.concurrency import gather_bounded
from ..utils.exceptions import ValidationError
from .fields import is_complex, split_complex

logger = structlog.get_logger(__name__)

INSTANCE_JOIN_KEY = "instance"
INSTANCE_STRUCTURE = "Instances"

SearchFunction = Callable[[BridgeRequest], Awaitable[RecordList]]


class SecondarySearch(Protocol):
    """Anything that can run a bridge search (the EC2 instance bridge)."""

    async def search(self, request: BridgeRequest) -> RecordList: ...


@dataclass
class JoinGroup:
    """
    Complex fields sharing one join key within a single search.

    Attributes:
        join_key: Prefix before the dot, e.g. "containerInstance"
        subfields: Foreign fields to copy, in request order
        identifiers: Referenced foreign identifiers, ordered and distinct
        resolved: Foreign record per identifier (absent when not found)
    """

    join_key: str
    subfields: list[str] = field(default_factory=list)
    identifiers: list[str] = field(default_factory=list)
    resolved: dict[str, dict[str, Any]] = field(default_factory=dict)

    def add_subfield(self, subfield: str) -> None:
        if subfield not in self.subfields:
            self.subfields.append(subfield)

    def add_identifier(self, identifier: Any) -> None:
        if identifier is None or identifier == "":
            return
        identifier = str(identifier)
        if identifier not in self.identifiers:
            self.identifiers.append(identifier)


class JoinStrategy(ABC):
    """How one join key finds and fetches its foreign records."""

    source_field: str
    target_field: str

    @abstractmethod
    def build_request(self, group: JoinGroup, cluster: str | None) -> BridgeRequest:
        pass

    @abstractmethod
    async def fetch(self, request: BridgeRequest) -> RecordList:
        pass


class InstanceJoin(JoinStrategy):
    """`instance.<field>`: EC2 instance of a container instance."""

    source_field = "ec2InstanceId"
    target_field = "instanceId"

    def __init__(self, bridge: SecondarySearch | None):
        self.bridge = bridge

    def build_request(self, group: JoinGroup, cluster: str | None) -> BridgeRequest:
        query = "&".join(
            f"InstanceId.{index}={identifier}"
            for index, identifier in enumerate(group.identifiers, start=1)
        )
        return BridgeRequest(
            structure=INSTANCE_STRUCTURE,
            query=query,
            fields=[*group.subfields, self.target_field],
        )

    async def fetch(self, request: BridgeRequest) -> RecordList:
        if self.bridge is None:
            raise ValidationError(
                "Field 'instance.*' requires an instance bridge, none is configured",
                field=INSTANCE_JOIN_KEY,
            )
        return await self.bridge.search(request)


class StructureJoin(JoinStrategy):
    """`<keyIdentifier>.<field>`: another ECS structure, fetched by ARN."""

    def __init__(self, kind: EntityKind, search: SearchFunction):
        self.kind = kind
        self.search = search
        self.source_field = kind.identifier_field
        self.target_field = kind.identifier_field

    def build_request(self, group: JoinGroup, cluster: str | None) -> BridgeRequest:
        query = f"{self.kind.identifiers_key}=[{','.join(group.identifiers)}]"
        if cluster and self.kind.cluster_scoped:
            query += f"&cluster={cluster}"
        return BridgeRequest(
            structure=self.kind.value,
            query=query,
            fields=[*group.subfields, self.target_field],
        )

    async def fetch(self, request: BridgeRequest) -> RecordList:
        return await self.search(request)


def group_complex_fields(fields: Iterable[str]) -> dict[str, JoinGroup]:
    """Group complex field references by join key, keeping first-seen order."""
    groups: dict[str, JoinGroup] = {}
    for name in fields:
        if not is_complex(name):
            continue
        join_key, subfield = split_complex(name)
        groups.setdefault(join_key, JoinGroup(join_key)).add_subfield(subfield)
    return groups


class JoinResolver:
    """
    Adds complex field values to a batch of records.

    Example:
        resolver = JoinResolver(adapter.search, instance_bridge, max_concurrency=5)
        await resolver.resolve(records, ["containerInstance.ec2InstanceId"], cluster="prod")
    """

    def __init__(
        self,
        search: SearchFunction,
        instance_bridge: SecondarySearch | None = None,
        max_concurrency: int = 5,
    ):
        self.search = search
        self.instance_bridge = instance_bridge
        self.max_concurrency = max_concurrency

    def strategy_for(self, join_key: str) -> JoinStrategy:
        """
        Raises:
            ValidationError: If the join key names no known structure
        """
        if join_key == INSTANCE_JOIN_KEY:
            return InstanceJoin(self.instance_bridge)
        kind = EntityKind.from_join_key(join_key)
        if kind is None:
            raise ValidationError(
                f"Invalid field '{join_key}.*': '{join_key}' does not name a related structure",
                field=join_key,
            )
        return StructureJoin(kind, self.search)

    async def resolve(
        self,
        records: list[dict[str, Any]],
        fields: Iterable[str],
        cluster: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Populate every complex field on every record.

        Args:
            records: Records to enrich in place
            fields: Field references (non-complex ones are ignored)
            cluster: Cluster propagated to cluster-scoped secondary searches

        Returns:
            The same records
        """
        groups = group_complex_fields(fields)
        if not groups:
            return records

        strategies = {key: self.strategy_for(key) for key in groups}
        for record in records:
            for key, group in groups.items():
                group.add_identifier(record.get(strategies[key].source_field))

        pending = [group for group in groups.values() if group.identifiers]
        logger.debug(
            "Resolving complex fields",
            join_keys=list(groups),
            identifiers={g.join_key: len(g.identifiers) for g in pending},
        )

        results = await gather_bounded(
            (
                strategies[group.join_key].fetch(
                    strategies[group.join_key].build_request(group, cluster)
                )
                for group in pending
            ),
            self.max_concurrency,
        )

        for group, result in zip(pending, results, strict=True):
            target_field = strategies[group.join_key].target_field
            for foreign in result.records:
                identifier = foreign.get(target_field)
                if identifier is not None and foreign.values is not None:
                    group.resolved[str(identifier)] = foreign.values

        for record in records:
            for key, group in groups.items():
                identifier = record.get(strategies[key].source_field)
                foreign = group.resolved.get(str(identifier)) if identifier is not None else None
                if foreign is None and identifier is not None:
                    logger.info(
                        "Related record not found",
                        join_key=key,
                        identifier=identifier,
                    )
                for subfield in group.subfields:
                    record[f"{key}.{subfield}"] = foreign.get(subfield) if foreign else None

        return records
