"""Pydantic models for ECS JSON protocol responses.

Only the envelope parts the bridge depends on are modelled; record payloads
stay plain dictionaries so field extraction sees exactly what ECS returned.

Design Principles:
- Graceful degradation: extra="allow" for unknown fields
- Error envelopes accept both "message" and "Message" spellings
- Models are used on the List/Describe paths only

Usage:
    page = ListResponse.model_validate(data)
    arns = page.identifiers("taskArns")

    if ErrorEnvelope.is_error(data):
        envelope = ErrorEnvelope.model_validate(data)
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from ..constants import ERROR_TYPE_KEY


class ErrorEnvelope(BaseModel):
    """Error body returned by the JSON protocol.

    Example:
        {"__type": "com.amazonaws.ecs#ClusterNotFoundException",
         "message": "Cluster not found."}

    Attributes:
        raw_type: The __type value, possibly namespace-qualified
        message: Human readable error message
    """

    raw_type: str = Field(..., alias=ERROR_TYPE_KEY)
    message: str | None = Field(None, validation_alias=AliasChoices("message", "Message"))

    model_config = {"extra": "allow", "populate_by_name": True}

    @staticmethod
    def is_error(data: Any) -> bool:
        """Whether a decoded body is an error envelope."""
        return isinstance(data, dict) and ERROR_TYPE_KEY in data

    @property
    def error_type(self) -> str:
        """Error type without the "namespace#" prefix."""
        return self.raw_type.rsplit("#", 1)[-1]


class ListResponse(BaseModel):
    """Response from a List<Structure> action.

    Attributes:
        nextToken: Continuation token, absent on the last page
    """

    nextToken: str | None = Field(None, description="Continuation token")

    model_config = {"extra": "allow"}

    def identifiers(self, key: str) -> list[str]:
        """Identifiers listed under a response key (e.g. "clusterArns")."""
        values = (self.model_extra or {}).get(key) or []
        return [str(value) for value in values]


class DescribeFailure(BaseModel):
    """One entry of the failures list of a Describe action."""

    arn: str | None = None
    reason: str | None = None
    detail: str | None = None

    model_config = {"extra": "allow"}


class DescribeResponse(BaseModel):
    """Response from a Describe<Structure> action.

    Attributes:
        failures: Identifiers ECS could not describe (e.g. reason "MISSING")
    """

    failures: list[DescribeFailure] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    def objects(self, key: str) -> list[dict[str, Any]]:
        """Described objects under a response key (e.g. "clusters")."""
        extra = self.model_extra or {}
        value = extra.get(key)
        if value is None:
            return []
        if isinstance(value, dict):
            # DescribeTaskDefinition returns a single object
            return [value]
        return [item for item in value if isinstance(item, dict)]
