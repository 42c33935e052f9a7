"""
Pydantic schemas for the configuration UI's test request endpoint.
"""

from typing import Any

from pydantic import BaseModel


class PreviewRequest(BaseModel):
    """A configuration to run once in test mode."""
    config: dict[str, Any] | str


class MappingPreview(BaseModel):
    """Resolved value of one output mapping against the test response."""
    output: str
    path: str
    value: str
    found: bool


class PreviewResponse(BaseModel):
    """Outcome of a test request, shaped for the configuration UI."""
    success: bool
    statusCode: int = 0
    statusText: str = ""
    responseHeaders: dict[str, str] = {}
    responseBody: str = ""
    responseBodyParsed: Any | None = None
    outputMappings: list[MappingPreview] = []
    executionTime: int = 0
    hasVariables: bool = False
    error: str | None = None
