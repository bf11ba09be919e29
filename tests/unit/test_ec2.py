"""Tests for the EC2 instance bridge."""

from datetime import UTC, datetime

import boto3
import pytest
from botocore.exceptions import EndpointConnectionError
from botocore.stub import Stubber

from src.ecsbridge.aws.ec2 import Ec2InstanceBridge, normalize_shape
from src.ecsbridge.config import AwsConfig
from src.ecsbridge.models.request import BridgeRequest
from src.ecsbridge.utils.exceptions import (
    AuthorizationError,
    RemoteApiError,
    TransportError,
    ValidationError,
)


def instance(instance_id, ip, tags=None):
    described = {
        "InstanceId": instance_id,
        "InstanceType": "t3.large",
        "PrivateIpAddress": ip,
        "State": {"Code": 16, "Name": "running"},
        "LaunchTime": datetime(2024, 1, 15, 9, 30, tzinfo=UTC),
    }
    if tags is not None:
        described["Tags"] = tags
    return described


DESCRIBE_INSTANCES_RESPONSE = {
    "Reservations": [
        {
            "ReservationId": "r-1",
            "Instances": [
                instance("i-1", "10.1.0.4", tags=[{"Key": "Name", "Value": "ecs-node-1"}]),
                instance("i-2", "10.1.0.5"),
            ],
        }
    ]
}


@pytest.fixture
def ec2_client():
    client = boto3.client(
        "ec2",
        region_name="us-east-1",
        aws_access_key_id="AKIDEXAMPLE",
        aws_secret_access_key="test-secret",
    )
    yield client
    client.close()


@pytest.fixture
def stubber(ec2_client):
    with Stubber(ec2_client) as stub:
        yield stub


@pytest.fixture
async def bridge(aws_config, ec2_client):
    client = Ec2InstanceBridge(aws_config, client=ec2_client)
    yield client
    await client.close()


class TestNormalizeShape:
    def test_keys_become_camel_case(self):
        assert normalize_shape({"State": {"Code": 16, "Name": "running"}}) == {
            "state": {"code": 16, "name": "running"}
        }

    def test_lists_and_timestamps(self):
        value = {
            "Tags": [{"Key": "Name", "Value": "web"}],
            "LaunchTime": datetime(2024, 1, 15, 9, 30, tzinfo=UTC),
        }
        assert normalize_shape(value) == {
            "tags": [{"key": "Name", "value": "web"}],
            "launchTime": "2024-01-15T09:30:00+00:00",
        }


class TestClient:
    def test_lazy_client_uses_config(self):
        config = AwsConfig(
            access_key="a",
            secret_key="s",
            region="eu-west-1",
            ec2_endpoint_url="http://localhost:4567",
        )
        client = Ec2InstanceBridge(config).client

        assert client.meta.region_name == "eu-west-1"
        assert client.meta.endpoint_url == "http://localhost:4567"
        assert client.meta.config.retries["total_max_attempts"] == 1

    def test_incomplete_config_rejected(self):
        with pytest.raises(ValidationError, match="secret_key"):
            Ec2InstanceBridge(AwsConfig(access_key="a", secret_key="", region="us-east-1"))


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_projects_fields(self, bridge, stubber):
        stubber.add_response(
            "describe_instances", DESCRIBE_INSTANCES_RESPONSE, {"InstanceIds": ["i-1", "i-2"]}
        )

        result = await bridge.search(
            BridgeRequest(
                structure="Instances",
                query="InstanceId.1=i-1&InstanceId.2=i-2",
                fields=["privateIpAddress", "state[name]", "instanceId"],
            )
        )

        assert result.rows() == [
            {"privateIpAddress": "10.1.0.4", "state[name]": "running", "instanceId": "i-1"},
            {"privateIpAddress": "10.1.0.5", "state[name]": "running", "instanceId": "i-2"},
        ]
        stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_follows_next_token(self, bridge, stubber):
        first = {
            "Reservations": [{"ReservationId": "r-1", "Instances": [instance("i-1", "10.1.0.4")]}],
            "NextToken": "page-2",
        }
        second = {
            "Reservations": [{"ReservationId": "r-2", "Instances": [instance("i-2", "10.1.0.5")]}]
        }
        stubber.add_response("describe_instances", first, {"InstanceIds": ["i-1", "i-2"]})
        stubber.add_response(
            "describe_instances", second, {"InstanceIds": ["i-1", "i-2"], "NextToken": "page-2"}
        )

        instances = await bridge.describe_instances(["i-1", "i-2"])

        assert [i["instanceId"] for i in instances] == ["i-1", "i-2"]
        assert instances[0]["launchTime"] == "2024-01-15T09:30:00+00:00"

    @pytest.mark.asyncio
    async def test_tag_lookup_by_name(self, bridge, stubber):
        stubber.add_response("describe_instances", DESCRIBE_INSTANCES_RESPONSE)

        result = await bridge.search(
            BridgeRequest(structure="Instances", query="InstanceId.1=i-1", fields=["tags[key]"])
        )

        assert result.rows()[0]["tags[key]"] == "Name"
        assert result.rows()[1]["tags[key]"] is None

    @pytest.mark.asyncio
    async def test_error_response(self, bridge, stubber):
        stubber.add_client_error(
            "describe_instances",
            service_error_code="InvalidInstanceID.NotFound",
            service_message="The instance ID 'i-9' does not exist",
            http_status_code=400,
        )

        with pytest.raises(RemoteApiError) as excinfo:
            await bridge.describe_instances(["i-9"])

        assert excinfo.value.error_type == "InvalidInstanceID.NotFound"
        assert "does not exist" in excinfo.value.remote_message
        assert excinfo.value.status_code == 400

    @pytest.mark.asyncio
    async def test_forbidden(self, bridge, stubber):
        stubber.add_client_error(
            "describe_instances",
            service_error_code="UnauthorizedOperation",
            service_message="You are not authorized to perform this operation.",
            http_status_code=403,
        )

        with pytest.raises(AuthorizationError):
            await bridge.describe_instances(["i-1"])

    @pytest.mark.asyncio
    async def test_connection_failure(self, bridge, ec2_client, mocker):
        mocker.patch.object(
            ec2_client,
            "get_paginator",
            side_effect=EndpointConnectionError(endpoint_url="https://ec2.us-east-1.amazonaws.com"),
        )

        with pytest.raises(TransportError, match="Request to EC2 failed"):
            await bridge.describe_instances(["i-1"])

    @pytest.mark.asyncio
    async def test_no_ids_no_call(self, bridge, stubber):
        result = await bridge.search(BridgeRequest(structure="Instances", query=""))

        assert result.size == 0
        stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_wrong_structure(self, bridge):
        with pytest.raises(ValidationError):
            await bridge.search(BridgeRequest(structure="Tasks"))

    @pytest.mark.asyncio
    async def test_unsupported_clause(self, bridge):
        with pytest.raises(ValidationError, match="Unsupported Instances qualification"):
            await bridge.search(BridgeRequest(structure="Instances", query="Filter.1.Name=x"))
