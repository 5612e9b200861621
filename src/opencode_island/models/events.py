"""SSE event models.

Only the events the client reacts to are modelled; everything else on the
feed is left undecoded.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from opencode_island.models.base import OpenCodeBaseModel
from opencode_island.models.message import Message  # noqa: TC001
from opencode_island.models.parts import MessagePart  # noqa: TC001
from opencode_island.models.session import Session, SessionStatus  # noqa: TC001


EventType = Literal[
    "server.connected",
    "session.created",
    "session.updated",
    "session.deleted",
    "session.status",
    "session.idle",
    "session.error",
    "message.updated",
    "message.part.updated",
]


class ServerConnectedEvent(OpenCodeBaseModel):
    """Server connected event."""

    type: Literal["server.connected"] = "server.connected"
    properties: dict[str, Any] = Field(default_factory=dict)


class SessionDeletedProperties(OpenCodeBaseModel):
    """Properties for session deleted event."""

    session_id: str | None = Field(default=None, alias="sessionID")
    info: Session | None = None

    @property
    def resolved_session_id(self) -> str | None:
        return self.session_id or (self.info.id if self.info else None)


class SessionDeletedEvent(OpenCodeBaseModel):
    """Session deleted event."""

    type: Literal["session.deleted"] = "session.deleted"
    properties: SessionDeletedProperties


class SessionStatusProperties(OpenCodeBaseModel):
    """Properties for session status event."""

    session_id: str = Field(alias="sessionID")
    status: SessionStatus


class SessionStatusEvent(OpenCodeBaseModel):
    """Session status event."""

    type: Literal["session.status"] = "session.status"
    properties: SessionStatusProperties


class SessionIdleProperties(OpenCodeBaseModel):
    """Properties for session idle event."""

    session_id: str = Field(alias="sessionID")


class SessionIdleEvent(OpenCodeBaseModel):
    """Session idle event."""

    type: Literal["session.idle"] = "session.idle"
    properties: SessionIdleProperties


class SessionErrorData(OpenCodeBaseModel):
    """Payload of a server-side session error."""

    message: str | None = None


class SessionErrorInfo(OpenCodeBaseModel):
    """Named server-side error."""

    name: str | None = None
    data: SessionErrorData | None = None


class SessionErrorProperties(OpenCodeBaseModel):
    """Properties for session error event."""

    session_id: str | None = Field(default=None, alias="sessionID")
    error: SessionErrorInfo | None = None

    @property
    def message(self) -> str:
        if self.error and self.error.data and self.error.data.message:
            return self.error.data.message
        return "Unknown error"


class SessionErrorEvent(OpenCodeBaseModel):
    """Session error event."""

    type: Literal["session.error"] = "session.error"
    properties: SessionErrorProperties


class MessageUpdatedEventProperties(OpenCodeBaseModel):
    """Properties for message updated event."""

    info: Message


class MessageUpdatedEvent(OpenCodeBaseModel):
    """Message updated event."""

    type: Literal["message.updated"] = "message.updated"
    properties: MessageUpdatedEventProperties


class PartUpdatedEventProperties(OpenCodeBaseModel):
    """Properties for part updated event."""

    part: MessagePart
    delta: str | None = None
    session_id: str | None = Field(default=None, alias="sessionID")
    message_id: str | None = Field(default=None, alias="messageID")

    @property
    def resolved_session_id(self) -> str | None:
        return self.part.session_id or self.session_id

    @property
    def resolved_message_id(self) -> str | None:
        return self.part.message_id or self.message_id


class PartUpdatedEvent(OpenCodeBaseModel):
    """Part updated event, optionally carrying a streamed text delta."""

    type: Literal["message.part.updated"] = "message.part.updated"
    properties: PartUpdatedEventProperties
