"""Message related models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from opencode_island.models.base import OpenCodeBaseModel
from opencode_island.models.common import Timestamp  # noqa: TC001
from opencode_island.models.parts import MessagePart  # noqa: TC001


MessageRole = Literal["user", "assistant"]


class MessagePath(OpenCodeBaseModel):
    """Path context for a message."""

    cwd: str | None = None
    root: str | None = None


class MessageTime(OpenCodeBaseModel):
    """Time information for a message."""

    created: Timestamp
    completed: Timestamp | None = None


class TokensCache(OpenCodeBaseModel):
    """Token cache information."""

    read: float | None = None
    write: float | None = None


class Tokens(OpenCodeBaseModel):
    """Token usage information."""

    input: float | None = None
    output: float | None = None
    reasoning: float | None = None
    cache: TokensCache | None = None


class Message(OpenCodeBaseModel):
    """One turn in a session, authored by the user or the assistant."""

    id: str
    session_id: str = Field(alias="sessionID")
    role: MessageRole
    time: MessageTime | None = None
    parent_id: str | None = Field(default=None, alias="parentID")
    model_id: str | None = Field(default=None, alias="modelID")
    provider_id: str | None = Field(default=None, alias="providerID")
    mode: str | None = None
    agent: str | None = None
    path: MessagePath | None = None
    cost: float | None = None
    tokens: Tokens | None = None
    finish: str | None = None
    """Finish reason. Once set, no more deltas arrive for this message."""
    error: dict[str, Any] | None = None

    @property
    def is_finished(self) -> bool:
        return self.finish is not None


class MessageWithParts(OpenCodeBaseModel):
    """Message with its parts."""

    info: Message
    parts: list[MessagePart] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Text of all text parts, joined by newlines in server order."""
        return extract_text(self.parts)


def extract_text(parts: list[MessagePart]) -> str:
    """Join the text payload of all text parts with newlines."""
    return "\n".join(part.text for part in parts if part.is_text and part.text is not None)
