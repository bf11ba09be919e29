"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
- Config fixtures: AWS and bridge configuration, fixed signing clock
- Mock API fixtures: an in-memory ECS JSON API served through respx
- Data fixtures: sample ECS objects
"""

import json
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from src.ecsbridge.aws.ec2 import Ec2InstanceBridge
from src.ecsbridge.aws.gateway import EcsGateway
from src.ecsbridge.bridge.adapter import EcsBridgeAdapter
from src.ecsbridge.config import AwsConfig, BridgeConfig, ConcurrencyConfig
from src.ecsbridge.observability.logger import clear_all_context

ECS_HOST = "ecs.us-east-1.amazonaws.com"
ACCOUNT = "123456789012"


def cluster_arn(name: str) -> str:
    return f"arn:aws:ecs:us-east-1:{ACCOUNT}:cluster/{name}"


def task_arn(task_id: str) -> str:
    return f"arn:aws:ecs:us-east-1:{ACCOUNT}:task/prod/{task_id}"


def container_instance_arn(ci_id: str) -> str:
    return f"arn:aws:ecs:us-east-1:{ACCOUNT}:container-instance/prod/{ci_id}"


def task_definition_arn(family: str, revision: int) -> str:
    return f"arn:aws:ecs:us-east-1:{ACCOUNT}:task-definition/{family}:{revision}"


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def aws_config() -> AwsConfig:
    """AWS configuration with dummy credentials."""
    return AwsConfig(access_key="AKIDEXAMPLE", secret_key="test-secret", region="us-east-1")


@pytest.fixture
def bridge_config(aws_config: AwsConfig) -> BridgeConfig:
    return BridgeConfig(aws=aws_config, concurrency=ConcurrencyConfig(max_concurrency=3))


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock pinned to 2024-01-15 12:00:00 UTC."""
    return lambda: datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_log_context() -> Iterator[None]:
    yield
    clear_all_context()


# =============================================================================
# Mock API Fixtures
# =============================================================================


class FakeEcsApi:
    """
    In-memory ECS JSON API.

    Responses are registered per action, either as a body, a callable taking
    the decoded request body, or a ready httpx.Response. Every call is
    recorded as (action, body).

    Example:
        ecs_api.on("ListClusters", {"clusterArns": [...]})
        ecs_api.on("DescribeClusters", lambda body: {"clusters": [...]})
    """

    def __init__(self) -> None:
        self.responses: dict[str, Any] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.requests: list[httpx.Request] = []

    def on(self, action: str, response: Any) -> None:
        self.responses[action] = response

    def handle(self, request: httpx.Request) -> httpx.Response:
        action = request.headers["x-amz-target"].split(".", 1)[1]
        body = json.loads(request.content or b"{}")
        self.calls.append((action, body))
        self.requests.append(request)

        response = self.responses.get(action)
        if response is None:
            return httpx.Response(
                400,
                json={"__type": "UnknownOperationException", "message": f"No mock for {action}"},
            )
        if callable(response):
            response = response(body)
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    def calls_to(self, action: str) -> list[dict[str, Any]]:
        return [body for called, body in self.calls if called == action]


@pytest.fixture
def ecs_api() -> Iterator[FakeEcsApi]:
    """Serve ECS requests from a FakeEcsApi via respx."""
    api = FakeEcsApi()
    with respx.mock(assert_all_called=False) as router:
        router.post(host=ECS_HOST).mock(side_effect=api.handle)
        yield api


@pytest.fixture
async def gateway(aws_config: AwsConfig, fixed_clock) -> EcsGateway:
    client = EcsGateway(aws_config, clock=fixed_clock)
    yield client
    await client.close()


@pytest.fixture
def mock_instance_bridge() -> AsyncMock:
    """Instance bridge mock; tests set search.return_value."""
    return AsyncMock(spec=Ec2InstanceBridge)


@pytest.fixture
async def adapter(
    bridge_config: BridgeConfig, gateway: EcsGateway, mock_instance_bridge: AsyncMock
) -> EcsBridgeAdapter:
    """Adapter wired to the respx-served gateway and a mocked instance bridge."""
    bridge = EcsBridgeAdapter(
        bridge_config, gateway=gateway, instance_bridge=mock_instance_bridge
    )
    yield bridge
    await bridge.close()


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest.fixture
def clusters() -> list[dict[str, Any]]:
    """Two described clusters."""
    return [
        {
            "clusterArn": cluster_arn("prod"),
            "clusterName": "prod",
            "status": "ACTIVE",
            "runningTasksCount": 12,
            "registeredContainerInstancesCount": 3,
        },
        {
            "clusterArn": cluster_arn("stage"),
            "clusterName": "stage",
            "status": "ACTIVE",
            "runningTasksCount": 2,
            "registeredContainerInstancesCount": 1,
        },
    ]


@pytest.fixture
def tasks() -> list[dict[str, Any]]:
    """Tasks in the prod cluster, one with environment overrides."""
    return [
        {
            "taskArn": task_arn("t1"),
            "clusterArn": cluster_arn("prod"),
            "containerInstanceArn": container_instance_arn("ci-1"),
            "taskDefinitionArn": task_definition_arn("web", 3),
            "lastStatus": "RUNNING",
            "desiredStatus": "RUNNING",
            "overrides": {
                "containerOverrides": [
                    {
                        "name": "web",
                        "environment": [
                            {"name": "DB_HOST", "value": "10.0.0.5"},
                            {"name": "DB_PORT", "value": "5432"},
                        ],
                    }
                ]
            },
        },
        {
            "taskArn": task_arn("t2"),
            "clusterArn": cluster_arn("prod"),
            "containerInstanceArn": container_instance_arn("ci-2"),
            "taskDefinitionArn": task_definition_arn("worker", 7),
            "lastStatus": "STOPPED",
            "desiredStatus": "STOPPED",
            "overrides": {"containerOverrides": [{"name": "worker"}]},
        },
    ]
