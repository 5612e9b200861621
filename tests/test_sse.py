"""Tests for SSE parsing."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from opencode_island.models import PartUpdatedEvent
from opencode_island.sse import SSEEvent, SSEParser, iter_sse_events

from conftest import part_payload


if TYPE_CHECKING:
    from collections.abc import AsyncIterator


def parse(*lines: str) -> list[SSEEvent]:
    parser = SSEParser()
    return [event for line in lines if (event := parser.feed(line))]


async def aiter_lines(*lines: str) -> AsyncIterator[str]:
    for line in lines:
        yield line


def test_complete_block_is_emitted():
    [event] = parse("event: session.idle", 'data: {"sessionID": "ses_1"}', "")
    assert event.type == "session.idle"
    assert json.loads(event.data) == {"sessionID": "ses_1"}


def test_data_lines_are_joined_with_newlines():
    [event] = parse("event: message", 'data: {"a":', "data: 1}", "")
    assert event.data == b'{"a":\n1}'
    assert event.payload() == {"a": 1}


def test_only_one_space_after_colon_is_removed():
    [event] = parse("event:message", "data:  indented ", "data:tight", "")
    assert event.type == "message"
    assert event.data == b" indented \ntight"


@pytest.mark.parametrize(
    "lines",
    [
        ("event: heartbeat", ""),
        ("event: heartbeat", "data:", ""),
        ('data: {"type": "x"}', ""),
        (": ping", ""),
        ("",),
        ("id: 7", "retry: 1000", ""),
    ],
)
def test_incomplete_blocks_are_dropped(lines: tuple[str, ...]):
    assert parse(*lines) == []


def test_comments_and_crlf_are_handled():
    events = parse(
        ": keep-alive\r\n",
        "event: message\r\n",
        "id: 1\r\n",
        'data: {"type": "server.connected", "properties": {}}\r\n',
        "\r\n",
    )
    assert [e.resolved_type for e in events] == ["server.connected"]


def test_state_resets_between_blocks():
    events = parse(
        "event: heartbeat",
        "",
        'data: {"n": 1}',
        "",
        "event: one",
        'data: {"n": 2}',
        "",
    )
    assert [(e.type, e.payload()) for e in events] == [("one", {"n": 2})]


def test_explicit_event_type_wins_over_payload_type():
    event = SSEEvent(type="session.idle", data=b'{"type": "message.updated"}')
    assert event.resolved_type == "session.idle"


def test_generic_type_falls_back_without_json_type():
    assert SSEEvent(type="message", data=b"not json").resolved_type == "message"
    assert SSEEvent(type="message", data=b'{"type": 3}').resolved_type == "message"


def test_decode_into_event_model():
    payload = {"type": "message.part.updated", "properties": {"part": part_payload(text="hi")}}
    event = SSEEvent(type="message", data=json.dumps(payload).encode())
    decoded = event.decode(PartUpdatedEvent)
    assert decoded.properties.part.text == "hi"


async def test_iter_sse_events_preserves_wire_order():
    lines = []
    for index in range(5):
        lines += ["event: message", f'data: {{"type": "e{index}"}}', ""]
    events = [event async for event in iter_sse_events(aiter_lines(*lines))]
    assert [e.resolved_type for e in events] == [f"e{i}" for i in range(5)]


async def test_unterminated_block_is_not_emitted():
    lines = ("event: a", 'data: {"x": 1}', "", "event: b", 'data: {"x": 2}')
    events = [event async for event in iter_sse_events(aiter_lines(*lines))]
    assert [e.type for e in events] == ["a"]
