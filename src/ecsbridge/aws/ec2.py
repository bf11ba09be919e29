"""EC2 instance bridge.

Serves the secondary `Instances` structure used by `instance.<field>`
complex fields. Only the shape the join needs is supported:

    structure: Instances
    query:     InstanceId.1=i-0abc&InstanceId.2=i-0def
    fields:    [...]

Instances are fetched with the boto3 `describe_instances` paginator, run in a
worker thread so the event loop is not blocked. Every instance of every
reservation becomes one record, with keys in the camelCase form used by the
ECS structures (`PrivateIpAddress` -> `privateIpAddress`) and timestamps as
ISO 8601 strings.
"""

import asyncio
import time
from datetime import datetime
from typing import Any

import boto3
import structlog
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import AwsConfig
from ..constants import EC2_SERVICE
from ..models.records import Record, RecordList
from ..models.request import BridgeRequest
from ..observability.metrics import get_global_collector
from ..query.fields import extract_nested_value, is_nested
from ..query.translator import parse_query
from ..utils.exceptions import AuthorizationError, RemoteApiError, TransportError, ValidationError

logger = structlog.get_logger(__name__)

DESCRIBE_INSTANCES = "DescribeInstances"
INSTANCES_STRUCTURE = "Instances"


def camel_key(key: str) -> str:
    return key[:1].lower() + key[1:]


def normalize_shape(value: Any) -> Any:
    """Convert a boto3 response value to plain camelCase records."""
    if isinstance(value, dict):
        return {camel_key(key): normalize_shape(item) for key, item in value.items()}
    if isinstance(value, list):
        return [normalize_shape(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def client_error(error: ClientError) -> RemoteApiError:
    """Bridge exception for a botocore ClientError."""
    details = error.response.get("Error", {})
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if status in (401, 403):
        return AuthorizationError(status, details.get("Message"), action=DESCRIBE_INSTANCES)
    return RemoteApiError(
        details.get("Code") or "UnknownError",
        details.get("Message"),
        status_code=status,
        action=DESCRIBE_INSTANCES,
    )


class Ec2InstanceBridge:
    """
    Minimal search over EC2 instances by id.

    Example:
        async with Ec2InstanceBridge(config.aws) as bridge:
            result = await bridge.search(BridgeRequest(
                structure="Instances",
                query="InstanceId.1=i-0abc",
                fields=["privateIpAddress", "instanceId"],
            ))
    """

    def __init__(self, config: AwsConfig, client: Any | None = None):
        """
        Initialize the bridge.

        Args:
            config: AWS settings; the same credentials as ECS are used
            client: Ready boto3 EC2 client (built lazily from config when omitted)
        """
        config.validate()
        self.config = config
        self._client = client
        self.collector = get_global_collector()

    async def __aenter__(self) -> "Ec2InstanceBridge":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @property
    def client(self) -> Any:
        if self._client is None:
            session = boto3.Session(
                aws_access_key_id=self.config.access_key,
                aws_secret_access_key=self.config.secret_key,
                region_name=self.config.region,
            )
            self._client = session.client(
                EC2_SERVICE,
                endpoint_url=self.config.ec2_endpoint_url,
                verify=self.config.verify_ssl,
                config=BotoConfig(
                    connect_timeout=self.config.timeout,
                    read_timeout=self.config.timeout,
                    max_pool_connections=self.config.max_connections,
                    retries={"total_max_attempts": 1},
                ),
            )
        return self._client

    def _describe(self, instance_ids: list[str]) -> list[dict[str, Any]]:
        paginator = self.client.get_paginator("describe_instances")
        instances: list[dict[str, Any]] = []
        for page in paginator.paginate(InstanceIds=instance_ids):
            for reservation in page.get("Reservations", []):
                instances.extend(normalize_shape(reservation.get("Instances", [])))
        return instances

    async def describe_instances(self, instance_ids: list[str]) -> list[dict[str, Any]]:
        """
        Describe instances by id, following every page.

        Raises:
            AuthorizationError: For 401/403
            RemoteApiError: For other EC2 error responses
            TransportError: For connection and protocol failures
        """
        self.collector.count_request(DESCRIBE_INSTANCES)
        start = time.perf_counter()
        try:
            instances = await asyncio.to_thread(self._describe, instance_ids)
        except ClientError as e:
            error = client_error(e)
            kind = "authorization" if isinstance(error, AuthorizationError) else "remote"
            self.collector.count_error(kind)
            logger.error(
                "EC2 returned an error", code=error.error_type, message=error.remote_message
            )
            raise error from e
        except BotoCoreError as e:
            self.collector.count_error("transport")
            raise TransportError(
                f"Request to EC2 failed ({DESCRIBE_INSTANCES}): {e}", DESCRIBE_INSTANCES
            ) from e
        finally:
            self.collector.record_latency(DESCRIBE_INSTANCES, (time.perf_counter() - start) * 1000)
        return instances

    async def search(self, request: BridgeRequest) -> RecordList:
        """
        Search the Instances structure.

        Raises:
            ValidationError: For another structure or a clause other than InstanceId.N
        """
        if request.structure != INSTANCES_STRUCTURE:
            raise ValidationError(
                f"Invalid Structure: '{request.structure}' is not a valid structure",
                field="structure",
            )

        instance_ids = []
        for clause in parse_query(request.query):
            if not clause.key.startswith("InstanceId."):
                raise ValidationError(
                    f"Unsupported Instances qualification '{clause.render()}'", field=clause.key
                )
            instance_ids.append(clause.value)

        instances = await self.describe_instances(instance_ids) if instance_ids else []
        fields = list(request.fields) or (list(instances[0]) if instances else [])

        records = []
        for instance in instances:
            records.append(
                Record(
                    {
                        name: extract_nested_value(instance, name)
                        if is_nested(name)
                        else instance.get(name)
                        for name in fields
                    }
                )
            )

        logger.debug("Instances described", requested=len(instance_ids), found=len(records))
        return RecordList(
            fields=fields,
            records=records,
            metadata={"size": len(records), "pageSize": 0, "nextPageToken": None},
        )
