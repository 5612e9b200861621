"""Server-Sent Events parsing.

The feed is a sequence of blocks separated by blank lines. A block carries an
``event:`` line with its type and one or more ``data:`` lines with a JSON
payload. Blocks lacking either a type or a payload are dropped: servers use
them as keep-alives.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
import json
from typing import TYPE_CHECKING, Any

from opencode_island.log import get_logger


if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

    from pydantic import BaseModel


logger = get_logger(__name__)

GENERIC_EVENT_TYPE = "message"
"""SSE default type; the real type then lives in the payload's ``type`` key."""


@dataclass(frozen=True)
class SSEEvent:
    """A raw event from the feed.

    The payload stays undecoded until a consumer actually handles the type,
    so unknown or newer event types never cause a failure.
    """

    type: str
    """Type from the ``event:`` line."""
    data: bytes
    """Concatenated ``data:`` payload."""

    @cached_property
    def resolved_type(self) -> str:
        """Effective event type.

        For the generic ``message`` type the ``type`` key of the JSON payload
        wins, which is how OpenCode servers tag their events.
        """
        if self.type != GENERIC_EVENT_TYPE:
            return self.type
        try:
            payload = json.loads(self.data)
        except ValueError:
            return self.type
        if isinstance(payload, dict) and isinstance(payload.get("type"), str):
            return payload["type"]
        return self.type

    def decode[T: BaseModel](self, model: type[T]) -> T:
        """Validate the payload against ``model``.

        Raises:
            pydantic.ValidationError: If the payload does not match the model
        """
        return model.model_validate_json(self.data)

    def payload(self) -> Any:
        """Payload parsed as plain JSON."""
        return json.loads(self.data)


class SSEParser:
    """Incremental line-based SSE block parser."""

    def __init__(self) -> None:
        self._event_type: str | None = None
        self._data: list[str] = []

    def feed(self, line: str) -> SSEEvent | None:
        """Consume one line (without its terminator).

        Returns:
            The completed event when ``line`` closes a block, else None
        """
        line = line.rstrip("\r\n")
        if not line:
            return self._flush()
        if line.startswith(":"):  # comment / ping
            return None
        field, _, value = line.partition(":")
        value = value.removeprefix(" ")
        match field:
            case "event":
                self._event_type = value
            case "data":
                self._data.append(value)
            case _:  # id, retry and unknown fields carry nothing we need
                pass
        return None

    def _flush(self) -> SSEEvent | None:
        event_type, data = self._event_type, "\n".join(self._data)
        self._event_type = None
        self._data = []
        if not event_type or not data:
            if event_type or data:
                logger.debug("Dropping incomplete SSE block", event_type=event_type)
            return None
        return SSEEvent(type=event_type, data=data.encode())


async def iter_sse_events(lines: AsyncIterable[str]) -> AsyncIterator[SSEEvent]:
    """Turn a stream of text lines into complete SSE events, in wire order."""
    parser = SSEParser()
    async for line in lines:
        if event := parser.feed(line):
            yield event
