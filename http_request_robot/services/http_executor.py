"""
HTTP execution service for sending the robot's outbound requests.

Any HTTP status is a normal result; only failures below the HTTP layer
(DNS, refused connections, TLS, timeouts) raise TransportError.
"""

import json
import time
from typing import Any

import httpx

from ..exceptions import TransportError
from ..logging_config import get_logger
from ..schemas.execute import CompiledRequest, ExecutionResult
from .request_compiler import get_header


logger = get_logger("http_executor")

# Methods that never carry a request body
BODYLESS_METHODS = ("GET",)


def parse_json_body(body: str | None) -> tuple[bool, Any | None]:
    """
    Try to parse a response body as JSON.

    Args:
        body: Response body string

    Returns:
        Tuple of (whether the body is JSON, parsed value)
    """
    if not body or not body.strip():
        return False, None

    try:
        return True, json.loads(body)
    except json.JSONDecodeError:
        return False, None


def prepare_body(request: CompiledRequest) -> dict[str, Any]:
    """
    Choose how the body is handed to httpx.

    A body declared as JSON is decoded and re-sent as JSON; if it does not
    decode it is sent verbatim. A literal ``null`` is also sent verbatim,
    since httpx treats ``json=None`` as no body at all.
    """
    if request.body is None or request.method in BODYLESS_METHODS:
        return {}

    if "application/json" in get_header(request.headers, "Content-Type").lower():
        try:
            decoded = json.loads(request.body)
        except json.JSONDecodeError:
            decoded = None
        if decoded is not None:
            return {"json": decoded}

    return {"content": request.body}


async def execute_request(
    request: CompiledRequest,
    timeout_ms: int,
    client: httpx.AsyncClient | None = None,
) -> ExecutionResult:
    """
    Send a compiled request and capture the response.

    Args:
        request: The request to send
        timeout_ms: Timeout for the whole exchange in milliseconds
        client: Shared client; a short-lived one is created when omitted

    Returns:
        ExecutionResult for any HTTP status code

    Raises:
        TransportError: On network failures or timeout
    """
    timeout = timeout_ms / 1000
    kwargs = prepare_body(request)

    try:
        start_time = time.perf_counter()

        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.request(
                    request.method, request.url, headers=request.headers, timeout=timeout, **kwargs
                )
        else:
            response = await client.request(
                request.method, request.url, headers=request.headers, timeout=timeout, **kwargs
            )

        response_time_ms = int((time.perf_counter() - start_time) * 1000)

    except httpx.TimeoutException:
        logger.warning("Outbound request timed out", url=request.url, timeout_ms=timeout_ms)
        raise TransportError(f"Request to {request.url} timed out after {timeout_ms}ms", kind="timeout")
    except httpx.ConnectError as e:
        raise TransportError(f"Failed to connect to {request.url}: {e}")
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
        raise TransportError(f"Invalid URL {request.url}: {e}", kind="invalid_url")
    except httpx.HTTPError as e:
        raise TransportError(f"No response received from {request.url}: {e}")
    except (UnicodeError, ValueError) as e:
        # httpx rejects header or URL text it cannot encode before sending
        raise TransportError(f"Request to {request.url} could not be encoded: {e}", kind="invalid_request")

    raw_body = response.text
    is_json, parsed = parse_json_body(raw_body)

    return ExecutionResult(
        status_code=response.status_code,
        status_text=response.reason_phrase or "",
        headers=dict(response.headers),
        raw_body=raw_body,
        parsed_body=parsed,
        is_json=is_json,
        response_time_ms=response_time_ms,
    )
