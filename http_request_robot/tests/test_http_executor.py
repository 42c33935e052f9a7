"""
Tests for the HTTP executor.

Outbound calls go to httpx.MockTransport handlers.
"""

import json

import httpx
import pytest

from http_request_robot.exceptions import TransportError
from http_request_robot.schemas.execute import CompiledRequest
from http_request_robot.services.http_executor import execute_request, parse_json_body, prepare_body

from conftest import RecordingTransport


def make_client(handler) -> tuple[httpx.AsyncClient, RecordingTransport]:
    transport = RecordingTransport(handler)
    return httpx.AsyncClient(transport=transport), transport


class TestStatusTolerance:
    """HTTP error statuses are ordinary results."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [200, 201, 404, 500, 503])
    async def test_any_status_is_returned(self, status_code):
        client, _ = make_client(lambda request: httpx.Response(status_code, json={"status": status_code}))
        async with client:
            result = await execute_request(CompiledRequest(url="https://api.example.com", method="GET"), 5000, client)
        assert result.status_code == status_code
        assert result.is_json
        assert result.parsed_body == {"status": status_code}

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        client, _ = make_client(lambda request: httpx.Response(200, text="<html>ok</html>"))
        async with client:
            result = await execute_request(CompiledRequest(url="https://api.example.com", method="GET"), 5000, client)
        assert not result.is_json
        assert result.raw_body == "<html>ok</html>"
        assert result.status_text == "OK"


class TestTransportFailures:
    """Failures below HTTP raise TransportError."""

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        client, _ = make_client(handler)
        async with client:
            with pytest.raises(TransportError) as exc_info:
                await execute_request(CompiledRequest(url="https://down.example.com", method="GET"), 5000, client)
        assert exc_info.value.kind == "network_error"
        assert "down.example.com" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = make_client(handler)
        async with client:
            with pytest.raises(TransportError) as exc_info:
                await execute_request(CompiledRequest(url="https://slow.example.com", method="GET"), 1000, client)
        assert exc_info.value.kind == "timeout"
        assert "1000ms" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_unencodable_header_is_a_transport_error(self):
        client, transport = make_client(lambda request: httpx.Response(200))
        request = CompiledRequest(url="https://api.example.com", method="GET", headers={"Authorization": "Bearer токен"})
        async with client:
            with pytest.raises(TransportError) as exc_info:
                await execute_request(request, 5000, client)
        assert exc_info.value.kind == "invalid_request"
        assert "could not be encoded" in exc_info.value.detail
        assert transport.call_count == 0


class TestRequestBody:
    """String bodies are decoded only for JSON content types."""

    @pytest.mark.asyncio
    async def test_json_body_is_sent_as_json(self):
        client, transport = make_client(lambda request: httpx.Response(200))
        request = CompiledRequest(
            url="https://api.example.com",
            method="POST",
            headers={"content-type": "application/json"},
            body='{"x": 1}',
        )
        async with client:
            await execute_request(request, 5000, client)
        sent = transport.requests[0]
        assert json.loads(sent.content) == {"x": 1}
        assert sent.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_invalid_json_is_sent_verbatim(self):
        client, transport = make_client(lambda request: httpx.Response(200))
        request = CompiledRequest(
            url="https://api.example.com",
            method="PUT",
            headers={"Content-Type": "application/json"},
            body="{not json",
        )
        async with client:
            result = await execute_request(request, 5000, client)
        assert result.status_code == 200
        assert transport.requests[0].content == b"{not json"

    @pytest.mark.asyncio
    async def test_json_null_is_sent(self):
        client, transport = make_client(lambda request: httpx.Response(200))
        request = CompiledRequest(
            url="https://api.example.com",
            method="POST",
            headers={"Content-Type": "application/json"},
            body="null",
        )
        assert prepare_body(request) == {"content": "null"}
        async with client:
            await execute_request(request, 5000, client)
        assert transport.requests[0].content == b"null"

    @pytest.mark.asyncio
    async def test_headers_are_forwarded(self):
        client, transport = make_client(lambda request: httpx.Response(204))
        request = CompiledRequest(url="https://api.example.com", method="DELETE", headers={"X-Trace": "abc"})
        async with client:
            await execute_request(request, 5000, client)
        assert transport.requests[0].headers["X-Trace"] == "abc"
        assert transport.requests[0].method == "DELETE"

    def test_get_never_carries_a_body(self):
        assert prepare_body(CompiledRequest(url="https://api.example.com", method="GET", body="x")) == {}

    def test_text_body_for_other_content_types(self):
        request = CompiledRequest(url="https://a.example", method="POST", headers={"Content-Type": "text/plain"}, body='{"a":1}')
        assert prepare_body(request) == {"content": '{"a":1}'}


def test_parse_json_body():
    assert parse_json_body('{"a": 1}') == (True, {"a": 1})
    assert parse_json_body("null") == (True, None)
    assert parse_json_body("plain") == (False, None)
    assert parse_json_body("") == (False, None)
