"""Tests for the HTTP client."""

from __future__ import annotations

import json

import httpx
import pytest

from opencode_island import (
    DecodingError,
    NetworkError,
    OpenCodeClient,
    OpenCodeHTTPError,
    RequestTimeoutError,
    ServerNotRunningError,
    SessionNotFoundError,
)
from opencode_island.models import ModelRef, image_part, text_part

from conftest import SESSION_ID, FakeOpenCodeServer, message_payload, part_payload


async def test_health_returns_version(client: OpenCodeClient):
    health = await client.health()
    assert health.healthy
    assert health.version == "1.2.3"


async def test_unconfigured_port_fails_without_request(server: FakeOpenCodeServer):
    async with OpenCodeClient(port=0, transport=server.transport) as client:
        assert not client.is_configured
        with pytest.raises(ServerNotRunningError):
            await client.health()
        assert not await client.is_server_running()
    assert server.requests == []


async def test_connection_refused_maps_to_server_not_running():
    server = FakeOpenCodeServer(ports=set())
    async with OpenCodeClient(transport=server.transport) as client:
        with pytest.raises(ServerNotRunningError) as exc_info:
            await client.list_sessions()
        assert exc_info.value.retryable
        assert not await client.is_server_running()


async def test_timeout_maps_to_request_timeout(server: FakeOpenCodeServer, client):
    def raise_timeout(request: httpx.Request):
        raise httpx.ReadTimeout("timed out", request=request)

    server.handler("GET", "/agent", raise_timeout)
    with pytest.raises(RequestTimeoutError):
        await client.list_agents()


async def test_other_transport_failures_map_to_network_error(server: FakeOpenCodeServer, client):
    def raise_read_error(request: httpx.Request):
        raise httpx.ReadError("connection reset", request=request)

    server.handler("GET", "/agent", raise_read_error)
    with pytest.raises(NetworkError) as exc_info:
        await client.list_agents()
    assert exc_info.value.retryable


async def test_error_envelope_is_surfaced(server: FakeOpenCodeServer, client):
    server.route("GET", "/agent", {"error": "Invalid directory"}, status=400)
    with pytest.raises(OpenCodeHTTPError) as exc_info:
        await client.list_agents()
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid directory"
    assert not exc_info.value.retryable


async def test_error_without_envelope_keeps_status(server: FakeOpenCodeServer, client):
    server.handler("GET", "/agent", lambda request: httpx.Response(503, text="upstream down"))
    with pytest.raises(OpenCodeHTTPError) as exc_info:
        await client.list_agents()
    assert exc_info.value.status_code == 503
    assert exc_info.value.message is None
    assert exc_info.value.retryable


async def test_shape_mismatch_is_a_decoding_error(server: FakeOpenCodeServer, client):
    server.route("GET", "/global/health", {"healthy": True})
    with pytest.raises(DecodingError) as exc_info:
        await client.health()
    assert not exc_info.value.retryable


async def test_empty_response_for_typed_result_is_a_decoding_error(
    server: FakeOpenCodeServer, client
):
    server.route("POST", "/session", None, status=204)
    with pytest.raises(DecodingError):
        await client.create_session()


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(204),
        httpx.Response(200, json=False),
        httpx.Response(200, json={"ok": "whatever"}),
        httpx.Response(202, text=""),
    ],
)
async def test_boolean_endpoints_treat_success_as_true(
    server: FakeOpenCodeServer, client, response: httpx.Response
):
    server.handler("DELETE", f"/session/{SESSION_ID}", lambda request: response)
    assert await client.delete_session(SESSION_ID) is True


async def test_boolean_endpoint_failure_is_never_true(server: FakeOpenCodeServer, client):
    server.route("POST", f"/session/{SESSION_ID}/abort", {"message": "no such session"}, status=404)
    with pytest.raises(OpenCodeHTTPError) as exc_info:
        await client.abort_session(SESSION_ID)
    assert exc_info.value.message == "no such session"


async def test_abort_posts_empty_object(server: FakeOpenCodeServer, client):
    await client.abort_session(SESSION_ID)
    [request] = server.requests_to("POST", f"/session/{SESSION_ID}/abort")
    assert json.loads(request.content) == {}


async def test_get_session_404_is_session_not_found(server: FakeOpenCodeServer, client):
    with pytest.raises(SessionNotFoundError) as exc_info:
        await client.get_session("ses_gone")
    assert exc_info.value.session_id == "ses_gone"


async def test_create_session_sends_title(server: FakeOpenCodeServer, client):
    session = await client.create_session(title="OpenCode Island")
    assert session.id == SESSION_ID
    [request] = server.requests_to("POST", "/session")
    assert json.loads(request.content) == {"title": "OpenCode Island"}
    assert request.headers["content-type"] == "application/json"


async def test_list_messages_passes_limit(server: FakeOpenCodeServer, client):
    server.route(
        "GET",
        f"/session/{SESSION_ID}/message",
        [{"info": message_payload(), "parts": [part_payload(text="hi")]}],
    )
    messages = await client.list_messages(SESSION_ID, limit=20)
    assert messages[0].text == "hi"
    [request] = server.requests_to("GET", f"/session/{SESSION_ID}/message")
    assert request.url.params["limit"] == "20"


async def test_send_prompt_body_and_response(server: FakeOpenCodeServer, client):
    server.route(
        "POST",
        f"/session/{SESSION_ID}/message",
        {
            "info": message_payload(finish="stop"),
            "parts": [part_payload("p1", text="Hello"), part_payload("p2", text="there")],
        },
    )
    response = await client.send_prompt(
        SESSION_ID,
        [text_part("describe"), image_part(b"img", "image/png")],
        agent="plan",
        model=ModelRef.parse("anthropic/claude-sonnet-4"),
    )
    assert response.text == "Hello\nthere"
    [request] = server.requests_to("POST", f"/session/{SESSION_ID}/message")
    body = json.loads(request.content)
    assert body["agent"] == "plan"
    assert body["model"] == {"providerID": "anthropic", "modelID": "claude-sonnet-4"}
    assert body["parts"][0] == {"type": "text", "text": "describe"}
    assert body["parts"][1]["url"].startswith("data:image/png;base64,")


async def test_send_prompt_accepts_plain_text(server: FakeOpenCodeServer, client):
    server.route("POST", f"/session/{SESSION_ID}/prompt_async", None, status=204)
    assert await client.send_prompt_async(SESSION_ID, "hello") is True
    [request] = server.requests_to("POST", f"/session/{SESSION_ID}/prompt_async")
    assert json.loads(request.content) == {"parts": [{"type": "text", "text": "hello"}]}


async def test_basic_auth_is_sent(server: FakeOpenCodeServer):
    async with OpenCodeClient(auth=("opencode", "secret"), transport=server.transport) as client:
        await client.health()
    assert server.requests[0].headers["authorization"].startswith("Basic ")


async def test_event_stream_rejects_non_200():
    async def refuse_stream(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    transport = httpx.MockTransport(refuse_stream)
    async with OpenCodeClient(transport=transport) as client:
        with pytest.raises(OpenCodeHTTPError) as exc_info:
            async with client.open_event_stream():
                pass
    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "SSE connection failed"


async def test_event_stream_yields_lines(server: FakeOpenCodeServer, client):
    server.push_raw(b"event: message\r\ndata: {}\r\n\r\n")
    server.end_feed()
    async with client.open_event_stream() as lines:
        received = [line async for line in lines]
    assert received == ["event: message", "data: {}", ""]
    [request] = server.requests_to("GET", "/event")
    assert request.headers["accept"] == "text/event-stream"
