"""
Pydantic schemas for request execution.

Covers the compiled outbound request, the captured response and the
return values delivered to the workflow.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CompiledRequest(BaseModel):
    """An outbound request ready to be sent."""
    model_config = ConfigDict(frozen=True)

    url: str
    method: str
    headers: dict[str, str] = {}
    body: str | None = None


class ExecutionResult(BaseModel):
    """
    Captured response of the outbound call.

    ``parsed_body`` is only meaningful when ``is_json`` is set, since a JSON
    document may legitimately decode to ``None``.
    """
    status_code: int
    status_text: str = ""
    headers: dict[str, str] = {}
    raw_body: str = ""
    parsed_body: Any | None = None
    is_json: bool = False
    response_time_ms: int = 0


class ReturnValues(BaseModel):
    """
    Values returned to the workflow step.

    Output slots are kept separately and only present when mapped.
    """
    model_config = ConfigDict(populate_by_name=True)

    response_body: str = Field(default="", alias="responseBody")
    status_code: int = Field(default=0, alias="statusCode")
    response_headers: str = Field(default="{}", alias="responseHeaders")
    error: str = ""
    outputs: dict[str, str] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_error(cls, message: str) -> "ReturnValues":
        """Return values for an invocation that failed before or during execution."""
        return cls(response_body="", status_code=0, response_headers="{}", error=message)

    def to_payload(self) -> dict[str, Any]:
        """Flatten into the ``return_values`` object sent with the callback."""
        payload = self.model_dump(by_alias=True)
        payload.update(self.outputs)
        return payload


def compact_json(value: Any) -> str:
    """Serialize without whitespace, keeping non-ASCII characters."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
