"""
Normalization of raw invocation payloads.

The workflow engine delivers robot properties in several shapes: headers as
a list, a JSON string or an object; the whole configuration nested as a JSON
string under ``properties.config``; auth fields in lower or upper case. This
module turns all of them into the canonical schemas once, rejecting
malformed input with ``ValidationError`` instead of guessing.
"""

import json
import re
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit

import pydantic

from ..exceptions import ValidationError
from ..schemas.execute import compact_json
from ..schemas.invocation import Invocation, InvocationAuth
from ..schemas.request_config import (
    HTTP_METHODS,
    MAX_OUTPUT_MAPPINGS,
    MAX_TIMEOUT_MS,
    MIN_TIMEOUT_MS,
    OUTPUT_SLOTS,
    HeaderEntry,
    RequestConfig,
)


BODY_TYPES = ("none", "raw", "form-data")
AUTH_TYPES = ("none", "bearer", "basic", "api-key")
API_KEY_LOCATIONS = ("header", "query")

# Lower-case name first, the engine's upper-case alias second
_AUTH_ALIASES = {
    "domain": ("domain", "DOMAIN"),
    "access_token": ("access_token", "AUTH_ID"),
    "refresh_token": ("refresh_token", "REFRESH_ID"),
    "member_id": ("member_id", "MEMBER_ID"),
    "client_endpoint": ("client_endpoint", "CLIENT_ENDPOINT"),
    "server_endpoint": ("server_endpoint", "SERVER_ENDPOINT"),
    "expires_in": ("expires_in", "AUTH_EXPIRES"),
    "scope": ("scope", "SCOPE"),
}

_BRACKET_KEY = re.compile(r"([^\[\]]+)|\[([^\[\]]*)\]")


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return compact_json(value)
    return str(value)


def is_valid_url(url: str) -> bool:
    """Whether ``url`` is an absolute http(s) URL with a host."""
    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def parse_timeout(value: Any, default: int) -> int | None:
    """
    Parse a timeout in milliseconds.

    Returns the default for empty values and None when the value is not an
    integer within the allowed range.
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not number.is_integer():
        return None
    timeout = int(number)
    if MIN_TIMEOUT_MS <= timeout <= MAX_TIMEOUT_MS:
        return timeout
    return None


def normalize_headers(headers: Any) -> tuple[HeaderEntry, ...]:
    """
    Normalize headers given as ``[{key, value}]``, a JSON string or a mapping.

    Entries with an empty key are dropped. Order is preserved; duplicates
    are resolved later, when the request is compiled.
    """
    if headers is None or headers == "":
        return ()

    if isinstance(headers, str):
        try:
            headers = json.loads(headers)
        except json.JSONDecodeError:
            raise ValidationError("Invalid headers JSON format")
        if headers is None:
            return ()

    if isinstance(headers, Mapping):
        pairs: Iterable[tuple[Any, Any]] = headers.items()
    elif isinstance(headers, list):
        pairs = []
        for item in headers:
            if not isinstance(item, Mapping):
                raise ValidationError("Each header must be an object with key and value")
            pairs.append((item.get("key"), item.get("value")))
    else:
        raise ValidationError("Headers must be a list, an object or a JSON string")

    entries = tuple(
        HeaderEntry(key=_as_str(key), value=_as_str(value))
        for key, value in pairs
        if _as_str(key)
    )
    for entry in entries:
        if not _is_ascii_header(entry.key, entry.value):
            raise ValidationError(f"Header '{entry.key}' must contain only ASCII characters")
    return entries


def _is_ascii_header(key: str, value: str) -> bool:
    # HTTP/1.1 header names and values are sent as ASCII bytes
    return key.isascii() and value.isascii()


def _normalize_form_data(form_data: Any) -> list[dict[str, str]]:
    if not form_data:
        return []
    if not isinstance(form_data, list):
        raise ValidationError("formData must be a list of fields")
    fields = []
    for item in form_data:
        if not isinstance(item, Mapping):
            raise ValidationError("Each form field must be an object with key and value")
        key = _as_str(item.get("key"))
        if key:
            fields.append({
                "key": key,
                "value": _as_str(item.get("value")),
                "testData": _as_str(item.get("testData")),
            })
    return fields


def _normalize_output_mappings(mappings: Any, errors: list[str]) -> list[dict[str, str]]:
    if not mappings:
        return []
    if not isinstance(mappings, list):
        errors.append("outputMappings must be a list")
        return []

    result = []
    seen: set[str] = set()
    for item in mappings:
        if not isinstance(item, Mapping):
            errors.append("Each output mapping must be an object")
            continue
        path = _as_str(item.get("path")).strip()
        output = _as_str(item.get("output")).strip()
        if not path or not output:
            continue
        if output not in OUTPUT_SLOTS:
            errors.append(f"Unknown output slot '{output}'. Allowed: {', '.join(OUTPUT_SLOTS)}")
            continue
        if output in seen:
            errors.append(f"Output slot '{output}' is mapped more than once")
            continue
        seen.add(output)
        result.append({"path": path, "output": output, "fallback": _as_str(item.get("fallback"))})

    if len(result) > MAX_OUTPUT_MAPPINGS:
        errors.append(f"At most {MAX_OUTPUT_MAPPINGS} output mappings are allowed")
    return result


def unwrap_config(properties: Mapping[str, Any] | str | None) -> dict[str, Any]:
    """
    Return the effective configuration object.

    The settings UI stores everything as a JSON string in ``config``; classic
    robot properties are flat. A ``config`` that is not valid JSON is an
    error rather than a silent fallback to the flat properties.
    """
    if properties is None:
        return {}
    if isinstance(properties, str):
        properties = {"config": properties}
    if not isinstance(properties, Mapping):
        raise ValidationError("properties must be an object")

    nested = properties.get("config")
    if nested in (None, ""):
        return dict(properties)
    if isinstance(nested, Mapping):
        return dict(nested)
    if isinstance(nested, str):
        try:
            parsed = json.loads(nested)
        except json.JSONDecodeError:
            raise ValidationError("Invalid config JSON format")
        if not isinstance(parsed, dict):
            raise ValidationError("config must be a JSON object")
        return parsed
    raise ValidationError("config must be a JSON object")


def normalize_config(
    properties: Mapping[str, Any] | str | None,
    default_timeout_ms: int = 30000,
) -> RequestConfig:
    """
    Build the canonical RequestConfig from invocation properties.

    Args:
        properties: Raw ``properties`` of an invocation or a test config
        default_timeout_ms: Timeout applied when none is configured

    Returns:
        The validated, immutable RequestConfig

    Raises:
        ValidationError: Listing every structural problem found
    """
    raw = unwrap_config(properties)
    errors: list[str] = []

    url = _as_str(raw.get("url")).strip()
    if not url:
        errors.append("URL is required")
    elif not is_valid_url(url):
        errors.append("Invalid URL format. Must be http:// or https://")

    method = (_as_str(raw.get("method")).strip() or "GET").upper()
    if method not in HTTP_METHODS:
        errors.append(f"Invalid HTTP method. Allowed: {', '.join(HTTP_METHODS)}")

    timeout_ms = parse_timeout(raw.get("timeout"), default_timeout_ms)
    if timeout_ms is None:
        errors.append(f"Timeout must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS} milliseconds")

    headers: tuple[HeaderEntry, ...] = ()
    form_data: list[dict[str, str]] = []
    try:
        headers = normalize_headers(raw.get("headers"))
    except ValidationError as exc:
        errors.append(exc.detail)
    try:
        form_data = _normalize_form_data(raw.get("formData"))
    except ValidationError as exc:
        errors.append(exc.detail)

    raw_body = _as_str(raw.get("rawBody"))
    body_type = _as_str(raw.get("bodyType")).strip()
    if not body_type:
        # Configurations saved before the body editor existed carry no type
        body_type = "raw" if raw_body else "form-data" if form_data else "none"
    if body_type not in BODY_TYPES:
        errors.append(f"Invalid body type. Allowed: {', '.join(BODY_TYPES)}")

    auth_type = _as_str(raw.get("authType")).strip() or "none"
    if auth_type not in AUTH_TYPES:
        errors.append(f"Invalid auth type. Allowed: {', '.join(AUTH_TYPES)}")
    key_location = _as_str(raw.get("apiKeyLocation")).strip() or "header"
    if key_location not in API_KEY_LOCATIONS:
        errors.append(f"Invalid API key location. Allowed: {', '.join(API_KEY_LOCATIONS)}")

    output_mappings = _normalize_output_mappings(raw.get("outputMappings"), errors)

    if errors:
        raise ValidationError(f"Validation failed: {', '.join(errors)}")

    try:
        return RequestConfig.model_validate({
            "url": url,
            "method": method,
            "headers": headers,
            "bodyType": body_type,
            "rawBody": raw_body,
            "rawBodyTestData": _as_str(raw.get("rawBodyTestData")),
            "formData": form_data,
            "body": _as_str(raw.get("body")),
            "auth": {
                "type": auth_type,
                "bearerToken": _as_str(raw.get("bearerToken")),
                "basicUsername": _as_str(raw.get("basicUsername")),
                "basicPassword": _as_str(raw.get("basicPassword")),
                "apiKeyName": _as_str(raw.get("apiKeyName")),
                "apiKeyValue": _as_str(raw.get("apiKeyValue")),
                "apiKeyLocation": key_location,
            },
            "timeout": timeout_ms,
            "outputMappings": output_mappings,
        })
    except pydantic.ValidationError as exc:
        messages = [f"{'.'.join(str(l) for l in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise ValidationError(f"Validation failed: {', '.join(messages)}")


def normalize_auth(auth: Mapping[str, Any]) -> InvocationAuth:
    """Fold the engine's upper-case auth keys into one InvocationAuth."""
    values: dict[str, Any] = {}
    for field, aliases in _AUTH_ALIASES.items():
        for alias in aliases:
            value = auth.get(alias)
            if value not in (None, ""):
                values[field] = value
                break

    expires_in = values.get("expires_in")
    if expires_in is not None:
        try:
            values["expires_in"] = int(expires_in)
        except (TypeError, ValueError):
            del values["expires_in"]

    return InvocationAuth(**{
        key: value if key == "expires_in" else _as_str(value)
        for key, value in values.items()
    })


def normalize_invocation(payload: Mapping[str, Any]) -> Invocation:
    """
    Validate the envelope of an invocation.

    Only the presence of the event token and auth block is checked here;
    the request configuration is normalized separately so that a bad
    configuration can still be reported through the callback.
    """
    event_token = _as_str(payload.get("event_token")).strip()
    if not event_token:
        raise ValidationError("event_token is required")

    auth = payload.get("auth")
    if not auth or not isinstance(auth, Mapping):
        raise ValidationError("auth is required")

    properties = payload.get("properties") or {}
    if isinstance(properties, str):
        properties = {"config": properties}
    if not isinstance(properties, Mapping):
        raise ValidationError("properties must be an object")

    return Invocation(
        event_token=event_token,
        auth=normalize_auth(auth),
        properties=dict(properties),
        document_id=payload.get("document_id"),
        document_type=payload.get("document_type"),
    )


def unflatten_form(items: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """
    Rebuild nested objects from PHP-style form keys.

    Objects whose keys are exactly 0..n-1, as in ``formData[0][key]``, become
    lists; an empty index (``tags[]``) appends.

    Example:
        >>> unflatten_form([("auth[domain]", "a.bitrix24.ru"), ("event_token", "t")])
        {'auth': {'domain': 'a.bitrix24.ru'}, 'event_token': 't'}
    """
    result: dict[str, Any] = {}
    for key, value in items:
        parts = [name or index for name, index in _BRACKET_KEY.findall(key)]
        if not parts:
            continue
        node = result
        for part in parts[:-1]:
            part = part or str(len(node))
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1] or str(len(node))] = value
    return {key: _listify(value) for key, value in result.items()}


def _listify(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    items = {key: _listify(value) for key, value in node.items()}
    if items and all(key.isascii() and key.isdigit() for key in items):
        indexed = {int(key): value for key, value in items.items()}
        if sorted(indexed) == list(range(len(indexed))):
            return [indexed[i] for i in range(len(indexed))]
    return items
