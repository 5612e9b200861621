"""Message part models.

Parts are mutable on the server: a tool part may be re-sent with a new state,
and text parts grow through streamed deltas. Parts are therefore matched by
``id`` within their message rather than treated as immutable records.
"""

from __future__ import annotations

from typing import Any, Literal, get_args

from pydantic import Field, field_validator

from opencode_island.models.base import OpenCodeBaseModel


PartType = Literal[
    "text",
    "tool",
    "tool-invocation",
    "tool-result",
    "reasoning",
    "step-start",
    "step-finish",
    "file",
    "unknown",
]
KNOWN_PART_TYPES = frozenset(get_args(PartType))


class ToolState(OpenCodeBaseModel):
    """State of a tool invocation."""

    status: str = "pending"
    """One of "pending", "running", "completed" or "error"."""
    input: dict[str, Any] = Field(default_factory=dict)
    output: str | None = None
    error: str | None = None
    title: str | None = None


class MessagePart(OpenCodeBaseModel):
    """A fragment of a message: text, a tool call, a file or a structural marker."""

    id: str | None = None
    type: PartType = "unknown"
    message_id: str | None = Field(default=None, alias="messageID")
    session_id: str | None = Field(default=None, alias="sessionID")
    text: str | None = None

    # Tool metadata
    tool: str | None = None
    call_id: str | None = Field(default=None, alias="callID")
    tool_invocation_id: str | None = Field(default=None, alias="toolInvocationID")
    tool_name: str | None = Field(default=None, alias="toolName")
    state: ToolState | str | None = None

    # File metadata
    url: str | None = None
    mime: str | None = None
    filename: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_unknown_type(cls, value: Any) -> Any:
        if isinstance(value, str) and value not in KNOWN_PART_TYPES:
            return "unknown"
        return value

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    @property
    def tool_status(self) -> str | None:
        """Status of a tool part, whichever shape the server used."""
        if isinstance(self.state, ToolState):
            return self.state.status
        return self.state
