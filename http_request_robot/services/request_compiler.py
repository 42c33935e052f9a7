"""
Compilation of a RequestConfig into the outbound request.

Headers are built first, then the body (which may default the Content-Type),
then authentication is injected. In test mode the form fields' and raw
body's test values replace the production values before any of that.
"""

import base64
from urllib.parse import urlencode

import httpx

from ..schemas.execute import CompiledRequest, compact_json
from ..schemas.request_config import FormField, RequestConfig


JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def find_header(headers: dict[str, str], name: str) -> str | None:
    """Return the actual key of header ``name``, matched case-insensitively."""
    lowered = name.lower()
    for key in headers:
        if key.lower() == lowered:
            return key
    return None


def get_header(headers: dict[str, str], name: str, default: str = "") -> str:
    """Case-insensitive header lookup."""
    key = find_header(headers, name)
    return headers[key] if key is not None else default


def set_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set a header, replacing any existing spelling of the same name."""
    existing = find_header(headers, name)
    if existing is not None:
        del headers[existing]
    headers[name] = value


def apply_test_data(config: RequestConfig) -> RequestConfig:
    """
    Swap in the values meant for test requests.

    Each form field's ``testData`` replaces its value when non-empty, and a
    non-blank ``rawBodyTestData`` replaces the raw body.
    """
    form_data = tuple(
        FormField(key=field.key, value=field.test_data or field.value)
        for field in config.form_data
    )
    raw_body = config.raw_body_test_data if config.raw_body_test_data.strip() else config.raw_body
    return config.model_copy(update={
        "form_data": form_data,
        "raw_body": raw_body,
        "raw_body_test_data": "",
    })


def build_headers(config: RequestConfig) -> dict[str, str]:
    """Headers in configured order; a later entry with the same key wins."""
    headers: dict[str, str] = {}
    for entry in config.headers:
        headers[entry.key] = entry.value
    return headers


def build_body(config: RequestConfig, headers: dict[str, str]) -> str | None:
    """
    Build the request body, first match wins.

    1. Non-empty raw body, verbatim.
    2. Non-empty form data: URL-encoded when the Content-Type says so,
       otherwise JSON with a default ``Content-Type: application/json``.
    3. The legacy ``body`` property.

    May add a Content-Type header to ``headers``.
    """
    if config.body_type != "none":
        if config.raw_body:
            return config.raw_body

        if config.form_data:
            fields: dict[str, str] = {}
            for field in config.form_data:
                fields[field.key] = field.value

            if FORM_CONTENT_TYPE in get_header(headers, "Content-Type").lower():
                return urlencode(list(fields.items()))

            if find_header(headers, "Content-Type") is None:
                headers["Content-Type"] = JSON_CONTENT_TYPE
            return compact_json(fields)

    if config.body:
        return config.body

    return None


def inject_auth(config: RequestConfig, headers: dict[str, str], url: str) -> str:
    """
    Add the configured authentication to ``headers`` or ``url``.

    Returns the URL, which only changes for an API key sent as a query
    parameter. Incomplete credentials for the chosen type inject nothing.
    """
    auth = config.auth

    if auth.type == "bearer" and auth.bearer_token:
        set_header(headers, "Authorization", f"Bearer {auth.bearer_token}")

    elif auth.type == "basic" and auth.basic_username and auth.basic_password:
        credentials = f"{auth.basic_username}:{auth.basic_password}".encode("utf-8")
        set_header(headers, "Authorization", f"Basic {base64.b64encode(credentials).decode('ascii')}")

    elif auth.type == "api-key" and auth.api_key_name and auth.api_key_value:
        if auth.api_key_location == "query":
            return str(httpx.URL(url).copy_add_param(auth.api_key_name, auth.api_key_value))
        set_header(headers, auth.api_key_name, auth.api_key_value)

    return url


def compile_request(config: RequestConfig, test_mode: bool = False) -> CompiledRequest:
    """
    Turn a RequestConfig into a CompiledRequest.

    Args:
        config: Normalized request configuration
        test_mode: Use the configured test values instead of production ones

    Returns:
        The request to send
    """
    if test_mode:
        config = apply_test_data(config)

    headers = build_headers(config)
    body = build_body(config, headers)
    url = inject_auth(config, headers, config.url)

    return CompiledRequest(url=url, method=config.method, headers=headers, body=body)
