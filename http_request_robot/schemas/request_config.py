"""
Pydantic schemas for the robot's request configuration.

``RequestConfig`` is the canonical, immutable form every component works
with. Raw invocation properties are turned into it exactly once by
``services.config_normalizer.normalize_config``.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# HTTP methods the robot may call
HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "PATCH")

BodyType = Literal["none", "raw", "form-data"]
AuthType = Literal["none", "bearer", "basic", "api-key"]
ApiKeyLocation = Literal["header", "query"]

# Return value slots a mapping may populate
OUTPUT_SLOTS: tuple[str, ...] = ("output_1", "output_2", "output_3", "output_4", "output_5")
MAX_OUTPUT_MAPPINGS = len(OUTPUT_SLOTS)

MIN_TIMEOUT_MS = 1000
MAX_TIMEOUT_MS = 300000
DEFAULT_TIMEOUT_MS = 30000


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class HeaderEntry(_Frozen):
    """One request header, kept in the order it was configured."""
    key: str
    value: str = ""


class FormField(_Frozen):
    """One form-data field with an optional value used only in test mode."""
    key: str
    value: str = ""
    test_data: str = Field(default="", alias="testData")


class OutputMapping(_Frozen):
    """Maps a path in the JSON response onto a return value slot."""
    path: str = ""
    output: str = ""
    fallback: str = ""


class AuthConfig(_Frozen):
    """Authentication to inject into the outbound request."""
    type: AuthType = "none"
    bearer_token: str = Field(default="", alias="bearerToken")
    basic_username: str = Field(default="", alias="basicUsername")
    basic_password: str = Field(default="", alias="basicPassword")
    api_key_name: str = Field(default="", alias="apiKeyName")
    api_key_value: str = Field(default="", alias="apiKeyValue")
    api_key_location: ApiKeyLocation = Field(default="header", alias="apiKeyLocation")


class RequestConfig(_Frozen):
    """
    Declarative description of the outbound HTTP call.

    Attributes:
        url: Target URL (http or https)
        method: HTTP method
        headers: Ordered header entries; later duplicates win
        body_type: Which body editor the configuration was built with
        raw_body: Raw body text
        raw_body_test_data: Raw body used instead of raw_body in test mode
        form_data: Ordered form fields
        body: Legacy flat body field from the classic robot properties
        auth: Authentication settings
        timeout_ms: Outbound call timeout in milliseconds
        output_mappings: Response paths to copy into return value slots
    """
    url: str
    method: HttpMethod = "GET"
    headers: tuple[HeaderEntry, ...] = ()
    body_type: BodyType = Field(default="none", alias="bodyType")
    raw_body: str = Field(default="", alias="rawBody")
    raw_body_test_data: str = Field(default="", alias="rawBodyTestData")
    form_data: tuple[FormField, ...] = Field(default=(), alias="formData")
    body: str = ""
    auth: AuthConfig = AuthConfig()
    timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS, ge=MIN_TIMEOUT_MS, le=MAX_TIMEOUT_MS, alias="timeout"
    )
    output_mappings: tuple[OutputMapping, ...] = Field(default=(), alias="outputMappings")
