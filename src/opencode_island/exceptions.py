"""Errors raised while talking to an OpenCode server.

Every error carries a stable ``kind``, a ``retryable`` flag telling the caller
whether trying again may help, and a ``short_description`` suitable for a
compact status line. ``str(error)`` is the full diagnostic message.
"""

from __future__ import annotations

from typing import ClassVar


class OpenCodeError(Exception):
    """Base class for all OpenCode client errors."""

    kind: ClassVar[str] = "unknown"
    label: ClassVar[str] = "Unknown error"

    @property
    def retryable(self) -> bool:
        """Whether the failure is likely transient."""
        return False

    @property
    def short_description(self) -> str:
        """Short user-facing label."""
        return self.label


class ServerNotRunningError(OpenCodeError):
    """Raised when the server is not running, unreachable or not configured yet."""

    kind = "server-not-running"
    label = "Server not running"

    def __init__(self, message: str | None = None):
        msg = message or (
            "OpenCode server is not running. "
            "Start it with 'opencode serve' or run the OpenCode TUI."
        )
        super().__init__(msg)

    @property
    def retryable(self) -> bool:
        return True


class OpenCodeHTTPError(OpenCodeError):
    """Raised when the server answers with a non-2xx status."""

    kind = "http-error"

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        self.message = message
        if message:
            msg = f"Server error ({status_code}): {message}"
        else:
            msg = f"Server error (HTTP {status_code})"
        super().__init__(msg)

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500  # noqa: PLR2004

    @property
    def short_description(self) -> str:
        return f"Server error ({self.status_code})"


class DecodingError(OpenCodeError):
    """Raised when a response body does not match the expected shape."""

    kind = "decoding-error"
    label = "Invalid response"

    def __init__(self, reason: str):
        super().__init__(f"Failed to parse server response: {reason}")


class EncodingError(OpenCodeError):
    """Raised when a request body cannot be serialized."""

    kind = "encoding-error"
    label = "Request error"

    def __init__(self, reason: str):
        super().__init__(f"Failed to encode request: {reason}")


class NetworkError(OpenCodeError):
    """Raised on OS-level network failures other than a refused connection."""

    kind = "network-error"
    label = "Network error"

    def __init__(self, reason: str):
        super().__init__(f"Network error: {reason}")

    @property
    def retryable(self) -> bool:
        return True


class NoActiveSessionError(OpenCodeError):
    """Raised when an operation needs a session but none is active."""

    kind = "no-active-session"
    label = "No active session"

    def __init__(self):
        super().__init__("No active session. Please start a new conversation.")


class SessionNotFoundError(OpenCodeError):
    """Raised when the server does not know a session id."""

    kind = "session-not-found"
    label = "Session not found"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id!r} not found.")


class AgentNotFoundError(OpenCodeError):
    """Raised when an agent id is not part of the loaded catalog."""

    kind = "agent-not-found"
    label = "Agent not found"

    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        super().__init__(f"Agent {agent_id!r} not found.")


class RequestCancelledError(OpenCodeError):
    """Raised when a request was cancelled locally."""

    kind = "cancelled"
    label = "Cancelled"

    def __init__(self):
        super().__init__("Request was cancelled.")


class RequestTimeoutError(OpenCodeError):
    """Raised when a request exceeds its timeout."""

    kind = "timeout"
    label = "Timed out"

    def __init__(self):
        super().__init__("Request timed out.")

    @property
    def retryable(self) -> bool:
        return True


class InvalidURLError(OpenCodeError):
    """Raised when the server URL cannot be built."""

    kind = "invalid-url"
    label = "Invalid URL"

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid URL: {url}")


class StreamError(OpenCodeError):
    """Raised when the event stream fails or is exhausted."""

    kind = "stream-error"
    label = "Stream error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Stream error: {message}")

    @property
    def retryable(self) -> bool:
        return True


class UnknownError(OpenCodeError):
    """Raised for failures that fit no other category, e.g. server-side session errors."""

    kind = "unknown"
    label = "Unknown error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
