"""Inbound bridge request."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..utils.exceptions import ValidationError


class BridgeRequest(BaseModel):
    """
    A query against one structure.

    Attributes:
        structure: Target structure name (e.g. "Tasks")
        query: Qualification text, `key=value&...`, may reference parameters
            as <%=parameter["Name"]%>
        parameters: Values substituted into the qualification
        fields: Requested fields in output order; empty means all
        metadata: Paging and ordering hints: pageSize (0 = unlimited),
            pageToken and order
    """

    structure: str
    query: str = ""
    parameters: dict[str, str] = Field(default_factory=dict)
    fields: list[str] = Field(default_factory=list)
    metadata: dict[str, str | None] = Field(default_factory=dict)

    @field_validator("query", mode="before")
    @classmethod
    def _none_query(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("fields", "parameters", "metadata", mode="before")
    @classmethod
    def _none_collections(cls, v: Any, info: Any) -> Any:
        if v is None:
            return [] if info.field_name == "fields" else {}
        return v

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {k: None if val is None else str(val) for k, val in v.items()}
        return v

    @property
    def page_size(self) -> int:
        """
        Requested page size, 0 meaning "everything".

        Raises:
            ValidationError: If pageSize is not a non-negative integer
        """
        raw = self.metadata.get("pageSize")
        if raw is None or raw == "":
            return 0
        try:
            size = int(raw)
        except ValueError:
            raise ValidationError(
                f"Invalid pageSize '{raw}': expected a non-negative integer", field="pageSize"
            ) from None
        if size < 0:
            raise ValidationError(
                f"Invalid pageSize '{raw}': expected a non-negative integer", field="pageSize"
            )
        return size

    @property
    def page_token(self) -> str | None:
        return self.metadata.get("pageToken") or None

    @property
    def order(self) -> str | None:
        return self.metadata.get("order") or None
