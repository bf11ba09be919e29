"""Amazon ECS JSON protocol gateway.

Turns an action name and a qualification into one signed HTTPS POST and
classifies the response.

Request shape:
--------------
    POST https://ecs.<region>.amazonaws.com/
    content-type: application/x-amz-json-1.1
    x-amz-target: AmazonEC2ContainerServiceV20141113.<Action>
    x-amz-date: <YYYYMMDDTHHMMSSZ>
    Authorization: AWS4-HMAC-SHA256 Credential=..., SignedHeaders=..., Signature=...

    {"cluster": "prod", "taskArns": ["arn:..."], "maxResults": 10}

The body is derived from the qualification clauses: bracketed values become
string lists, integer members (maxResults) become numbers and everything else
is sent as a string. The body is serialized once and those exact bytes are
both signed and sent.

Response classification:
-----------------------
- 401 / 403                 -> AuthorizationError
- network failure, bad JSON -> TransportError
- body containing "__type"  -> RemoteApiError(type, message)
- other HTTP error status   -> RemoteApiError
- anything else             -> the decoded body, unmodified

Nothing is retried here: every call is attempted exactly once.
"""

import json
import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx
import structlog

from ..config import AwsConfig
from ..constants import ECS_CONTENT_TYPE, ECS_SERVICE, INTEGER_REQUEST_KEYS
from ..models.query import NormalizedQuery
from ..observability.logger import VERBOSE
from ..observability.metrics import get_global_collector
from ..query.translator import parse_query
from ..utils.exceptions import AuthorizationError, QueryError, RemoteApiError, TransportError
from .actions import EcsActions
from .response_models import ErrorEnvelope
from .signer import RequestSigner

logger = structlog.get_logger(__name__)
# Per-call VERBOSE lines go through stdlib logging, which knows the custom level
wire_logger = logging.getLogger(__name__)


def build_request_body(query: NormalizedQuery) -> dict[str, Any]:
    """
    Convert qualification clauses into the JSON request members.

    Args:
        query: Clauses to send

    Returns:
        Request body as a dictionary (later clauses win on repeated keys)

    Raises:
        QueryError: If an integer member has a non-integer value
    """
    body: dict[str, Any] = {}
    for clause in query:
        if clause.is_list:
            body[clause.key] = clause.items
        elif clause.key in INTEGER_REQUEST_KEYS:
            try:
                body[clause.key] = int(clause.value)
            except ValueError:
                raise QueryError(
                    f"Invalid value for {clause.key}: '{clause.value}' is not an integer",
                    query.render(),
                ) from None
        else:
            body[clause.key] = clause.value
    return body


def raise_for_authorization(response: httpx.Response, action: str) -> None:
    """Raise AuthorizationError for 401/403 responses."""
    if response.status_code in (401, 403):
        logger.error(
            "Remote API rejected credentials",
            action=action,
            status=response.status_code,
            response=response.text,
        )
        raise AuthorizationError(
            status_code=response.status_code, remote_message=response.text, action=action
        )


class EcsGateway:
    """
    Signed JSON protocol client for Amazon ECS.

    Features:
    - SigV4 signing of every request
    - Typed error classification
    - Connection pooling via httpx.AsyncClient (lazy)
    - Request count / latency metrics
    """

    def __init__(
        self,
        config: AwsConfig,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            config: AWS configuration (credentials, region, endpoint)
            clock: Optional clock for the signer
        """
        config.validate()
        self.config = config
        self.endpoint = config.ecs_endpoint
        self.signer = RequestSigner(
            config.access_key, config.secret_key, config.region, ECS_SERVICE, clock=clock
        )
        self._client: httpx.AsyncClient | None = None
        self.collector = get_global_collector()

    async def __aenter__(self) -> "EcsGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client, created on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=self.config.verify_ssl,
                timeout=self.config.timeout,
                limits=httpx.Limits(
                    max_connections=self.config.max_connections,
                    max_keepalive_connections=self.config.max_keepalive,
                ),
            )
        return self._client

    async def request(
        self, action: str, query: NormalizedQuery | str | None = None
    ) -> dict[str, Any]:
        """
        Call one ECS action.

        Args:
            action: Action name, e.g. "ListTasks"
            query: Request members as clauses (or their `key=value&...` text)

        Returns:
            Decoded JSON response body

        Raises:
            AuthorizationError: For 401/403
            RemoteApiError: For error envelopes and other HTTP errors
            TransportError: For network failures and undecodable bodies
        """
        if query is None or isinstance(query, str):
            query = parse_query(query or "")

        payload = json.dumps(build_request_body(query))
        headers = self.signer.sign(
            "POST",
            self.endpoint,
            {
                "content-type": ECS_CONTENT_TYPE,
                "x-amz-target": EcsActions.target(action),
            },
            payload,
        )

        self.collector.count_request(action)
        wire_logger.log(VERBOSE, "Calling ECS %s: %s", action, payload)
        start = time.perf_counter()

        try:
            response = await self.client.post(
                self.endpoint, content=payload.encode("utf-8"), headers=headers
            )
        except httpx.HTTPError as e:
            self.collector.count_error("transport")
            logger.error("ECS request failed", action=action, error=str(e))
            raise TransportError(f"HTTP request to ECS failed ({action}): {e}", action) from e

        self.collector.record_latency(action, (time.perf_counter() - start) * 1000)

        try:
            raise_for_authorization(response, action)
        except AuthorizationError:
            self.collector.count_error("authorization")
            raise

        try:
            data = response.json()
        except ValueError as e:
            self.collector.count_error("transport")
            if response.is_error:
                raise RemoteApiError(
                    f"HTTP {response.status_code}",
                    response.text[:200] or None,
                    status_code=response.status_code,
                    action=action,
                ) from e
            raise TransportError(f"ECS returned a non-JSON response ({action})", action) from e

        if ErrorEnvelope.is_error(data):
            envelope = ErrorEnvelope.model_validate(data)
            self.collector.count_error("remote")
            logger.error(
                "ECS returned an error",
                action=action,
                status=response.status_code,
                error_type=envelope.error_type,
                message=envelope.message,
            )
            raise RemoteApiError(
                envelope.error_type,
                envelope.message,
                status_code=response.status_code,
                action=action,
            )

        if response.is_error:
            self.collector.count_error("remote")
            raise RemoteApiError(
                f"HTTP {response.status_code}",
                response.text[:200] or None,
                status_code=response.status_code,
                action=action,
            )

        if not isinstance(data, dict):
            self.collector.count_error("transport")
            raise TransportError(
                f"ECS returned an unexpected body type {type(data).__name__} ({action})", action
            )

        return data
