"""Python client for OpenCode servers.

Talks to a local ``opencode serve`` instance over HTTP, follows its event
feed and keeps one conversation's state up to date.

Example:
    async with OpenCodeService() as service:
        service.streaming_text_changed.connect(print)
        await service.connect()
        answer = await service.submit_prompt("What does this project do?")
"""

from opencode_island.client import OpenCodeClient
from opencode_island.config import DEFAULT_PORT, ClientConfig
from opencode_island.event_stream import EventStream
from opencode_island.exceptions import (
    AgentNotFoundError,
    DecodingError,
    EncodingError,
    InvalidURLError,
    NetworkError,
    NoActiveSessionError,
    OpenCodeError,
    OpenCodeHTTPError,
    RequestCancelledError,
    RequestTimeoutError,
    ServerNotRunningError,
    SessionNotFoundError,
    StreamError,
    UnknownError,
)
from opencode_island.log import configure_logging, get_logger
from opencode_island.service import ConnectionState, ConnectionStatus, OpenCodeService
from opencode_island.sse import SSEEvent, SSEParser, iter_sse_events
from opencode_island.supervisor import ServerInfo, ServerSupervisor

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_PORT",
    "AgentNotFoundError",
    "ClientConfig",
    "ConnectionState",
    "ConnectionStatus",
    "DecodingError",
    "EncodingError",
    "EventStream",
    "InvalidURLError",
    "NetworkError",
    "NoActiveSessionError",
    "OpenCodeClient",
    "OpenCodeError",
    "OpenCodeHTTPError",
    "OpenCodeService",
    "RequestCancelledError",
    "RequestTimeoutError",
    "SSEEvent",
    "SSEParser",
    "ServerInfo",
    "ServerNotRunningError",
    "ServerSupervisor",
    "SessionNotFoundError",
    "StreamError",
    "UnknownError",
    "__version__",
    "configure_logging",
    "get_logger",
    "iter_sse_events",
]
