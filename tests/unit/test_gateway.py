"""Tests for the ECS JSON protocol gateway."""

import json

import httpx
import pytest
import respx
import structlog

from src.ecsbridge.aws.gateway import EcsGateway, build_request_body
from src.ecsbridge.observability.logger import VERBOSE
from src.ecsbridge.observability.metrics import get_global_collector
from src.ecsbridge.query.translator import parse_query
from src.ecsbridge.utils.exceptions import (
    AuthorizationError,
    QueryError,
    RemoteApiError,
    TransportError,
)

ECS_HOST = "ecs.us-east-1.amazonaws.com"


class TestBuildRequestBody:
    def test_lists_integers_and_strings(self):
        body = build_request_body(
            parse_query("taskArns=[a, b]&maxResults=10&cluster=prod&desiredStatus=RUNNING")
        )
        assert body == {
            "taskArns": ["a", "b"],
            "maxResults": 10,
            "cluster": "prod",
            "desiredStatus": "RUNNING",
        }

    def test_non_integer_max_results(self):
        with pytest.raises(QueryError, match="maxResults"):
            build_request_body(parse_query("maxResults=ten"))

    def test_numeric_looking_values_stay_strings(self):
        assert build_request_body(parse_query("startedBy=123")) == {"startedBy": "123"}


class TestRequest:
    @pytest.mark.asyncio
    async def test_signed_request_shape(self, gateway, ecs_api):
        ecs_api.on("ListClusters", {"clusterArns": ["arn:c"]})

        data = await gateway.request("ListClusters", "")

        assert data == {"clusterArns": ["arn:c"]}
        request = ecs_api.requests[0]
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/x-amz-json-1.1"
        assert request.headers["x-amz-target"] == "AmazonEC2ContainerServiceV20141113.ListClusters"
        assert request.headers["x-amz-date"] == "20240115T120000Z"
        assert request.headers["authorization"].startswith(
            "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20240115/us-east-1/ecs/aws4_request, "
            "SignedHeaders=content-type;host;x-amz-date;x-amz-target, Signature="
        )

    @pytest.mark.asyncio
    async def test_body_sent_is_body_signed(self, gateway, ecs_api, fixed_clock, aws_config):
        ecs_api.on("ListTasks", {"taskArns": []})

        await gateway.request("ListTasks", parse_query("cluster=prod&maxResults=5"))

        request = ecs_api.requests[0]
        assert json.loads(request.content) == {"cluster": "prod", "maxResults": 5}
        expected = gateway.signer.sign(
            "POST",
            gateway.endpoint,
            {
                "content-type": "application/x-amz-json-1.1",
                "x-amz-target": "AmazonEC2ContainerServiceV20141113.ListTasks",
            },
            request.content.decode(),
        )
        assert request.headers["authorization"] == expected["Authorization"]

    @pytest.mark.asyncio
    async def test_error_envelope(self, gateway, ecs_api):
        ecs_api.on(
            "DescribeClusters",
            httpx.Response(
                400,
                json={
                    "__type": "com.amazonaws.ecs#ClusterNotFoundException",
                    "message": "Cluster not found.",
                },
            ),
        )

        with pytest.raises(RemoteApiError) as excinfo:
            await gateway.request("DescribeClusters", "clusters=[nope]")

        error = excinfo.value
        assert error.error_type == "ClusterNotFoundException"
        assert error.remote_message == "Cluster not found."
        assert error.status_code == 400
        assert error.action == "DescribeClusters"
        assert "ClusterNotFoundException" in str(error)

    @pytest.mark.asyncio
    async def test_error_envelope_with_success_status(self, gateway, ecs_api):
        ecs_api.on("ListTasks", {"__type": "ServerException", "Message": "boom"})

        with pytest.raises(RemoteApiError) as excinfo:
            await gateway.request("ListTasks")

        assert excinfo.value.error_type == "ServerException"
        assert excinfo.value.remote_message == "boom"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_authorization_errors(self, gateway, ecs_api, status):
        ecs_api.on(
            "ListClusters",
            httpx.Response(status, json={"__type": "UnrecognizedClientException"}),
        )

        with pytest.raises(AuthorizationError) as excinfo:
            await gateway.request("ListClusters")

        assert excinfo.value.status_code == status
        assert "not authorized" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_non_json_body(self, gateway, ecs_api):
        ecs_api.on("ListClusters", httpx.Response(200, text="<html>proxy</html>"))

        with pytest.raises(TransportError, match="non-JSON"):
            await gateway.request("ListClusters")

    @pytest.mark.asyncio
    async def test_http_error_without_envelope(self, gateway, ecs_api):
        ecs_api.on("ListClusters", httpx.Response(503, text="Service Unavailable"))

        with pytest.raises(RemoteApiError) as excinfo:
            await gateway.request("ListClusters")

        assert excinfo.value.error_type == "HTTP 503"
        assert excinfo.value.status_code == 503

    @pytest.mark.asyncio
    async def test_unexpected_body_type(self, gateway, ecs_api):
        ecs_api.on("ListClusters", httpx.Response(200, json=["not", "an", "object"]))

        with pytest.raises(TransportError, match="unexpected body type"):
            await gateway.request("ListClusters")

    @pytest.mark.asyncio
    async def test_network_failure(self, gateway):
        with respx.mock:
            respx.post(host=ECS_HOST).mock(side_effect=httpx.ConnectError("refused"))

            with pytest.raises(TransportError, match="HTTP request to ECS failed"):
                await gateway.request("ListClusters")

    @pytest.mark.asyncio
    async def test_verbose_call_line_without_logging_setup(self, gateway, ecs_api, caplog):
        structlog.reset_defaults()
        caplog.set_level(VERBOSE)
        ecs_api.on("ListClusters", {"clusterArns": []})

        await gateway.request("ListClusters", "")

        messages = [r.getMessage() for r in caplog.records if r.levelno == VERBOSE]
        assert messages == ["Calling ECS ListClusters: {}"]

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, gateway, ecs_api):
        ecs_api.on("ListClusters", {"clusterArns": []})
        collector = get_global_collector()
        before = collector.get_summary()["counters"].get(
            "ecs_api_requests_total[action=ListClusters]", 0
        )

        await gateway.request("ListClusters")

        after = collector.get_summary()["counters"]["ecs_api_requests_total[action=ListClusters]"]
        assert after == before + 1


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_client_created_lazily_and_closed(self, aws_config):
        async with EcsGateway(aws_config) as gateway:
            assert gateway._client is None
            _ = gateway.client
            assert gateway._client is not None
        assert gateway._client is None

    def test_endpoint_override(self, aws_config):
        aws_config.endpoint_url = "http://localhost:4566"
        assert EcsGateway(aws_config).endpoint == "http://localhost:4566"
