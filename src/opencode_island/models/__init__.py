"""OpenCode API models.

All models inherit from OpenCodeBaseModel which provides:
- populate_by_name=True for camelCase alias support
- by_alias=True serialization by default
- tolerance for fields added by newer servers
"""

from opencode_island.models.base import OpenCodeBaseModel
from opencode_island.models.common import ModelRef, Timestamp, parse_timestamp
from opencode_island.models.app import HealthResponse, PathInfo, ServerConfig
from opencode_island.models.agent import Agent, AgentMode
from opencode_island.models.provider import (
    ModelLimit,
    Provider,
    ProviderListResponse,
    ProviderModel,
)
from opencode_island.models.session import (
    Session,
    SessionCreateRequest,
    SessionShare,
    SessionStatus,
    SessionTime,
)
from opencode_island.models.parts import MessagePart, PartType, ToolState
from opencode_island.models.message import (
    Message,
    MessagePath,
    MessageRole,
    MessageTime,
    MessageWithParts,
    Tokens,
    TokensCache,
    extract_text,
)
from opencode_island.models.prompt import (
    FilePromptPart,
    PromptPart,
    PromptRequest,
    TextPromptPart,
    file_part,
    image_part,
    text_part,
)
from opencode_island.models.events import (
    EventType,
    MessageUpdatedEvent,
    PartUpdatedEvent,
    ServerConnectedEvent,
    SessionDeletedEvent,
    SessionErrorEvent,
    SessionIdleEvent,
    SessionStatusEvent,
)

__all__ = [
    # Agent
    "Agent",
    "AgentMode",
    # Events
    "EventType",
    # Prompt
    "FilePromptPart",
    # App
    "HealthResponse",
    # Message
    "Message",
    "MessagePart",
    "MessagePath",
    "MessageRole",
    "MessageTime",
    "MessageUpdatedEvent",
    "MessageWithParts",
    # Provider
    "ModelLimit",
    # Common
    "ModelRef",
    # Base
    "OpenCodeBaseModel",
    "PartType",
    "PartUpdatedEvent",
    "PathInfo",
    "PromptPart",
    "PromptRequest",
    "Provider",
    "ProviderListResponse",
    "ProviderModel",
    "ServerConfig",
    "ServerConnectedEvent",
    # Session
    "Session",
    "SessionCreateRequest",
    "SessionDeletedEvent",
    "SessionErrorEvent",
    "SessionIdleEvent",
    "SessionShare",
    "SessionStatus",
    "SessionStatusEvent",
    "SessionTime",
    "TextPromptPart",
    "Timestamp",
    "Tokens",
    "TokensCache",
    "ToolState",
    "extract_text",
    "file_part",
    "image_part",
    "parse_timestamp",
    "text_part",
]
