"""Client configuration.

The configuration is handed in by the caller; nothing here reads files or
the environment.
"""

from __future__ import annotations

from pydantic import ConfigDict, Field, field_validator
from schemez import Schema


DEFAULT_PORT = 4096


class ClientConfig(Schema):
    """Configuration for connecting to an OpenCode server.

    Example:
        ```python
        config = ClientConfig(default_agent="build", default_model="anthropic/claude-sonnet-4")
        async with OpenCodeService(config=config) as service:
            await service.connect()
        ```
    """

    model_config = ConfigDict(title="OpenCode client")

    hostname: str = Field(default="127.0.0.1", examples=["127.0.0.1", "localhost"], title="Host")
    """Host the server listens on."""

    default_port: int = Field(default=DEFAULT_PORT, ge=0, le=65535, title="Default port")
    """Well-known port checked for an already running server before starting one."""

    request_timeout: float = Field(default=300.0, gt=0, title="Request timeout")
    """Timeout in seconds for regular requests. Prompts block until the model is done."""

    username: str | None = Field(default=None, title="Username")
    """Username for HTTP basic auth, if the server is password protected."""

    password: str | None = Field(default=None, title="Password")
    """Password for HTTP basic auth."""

    max_stream_retries: int = Field(default=5, ge=0, title="Event stream retries")
    """Reconnect attempts before the event stream is declared disconnected."""

    stream_retry_base_delay: float = Field(default=1.0, ge=0, title="Event stream backoff")
    """First reconnect delay in seconds; doubled after each failed attempt."""

    session_title: str = Field(default="OpenCode Island", title="Session title")
    """Title given to sessions created by the client."""

    history_limit: int | None = Field(default=None, ge=1, title="History limit")
    """Maximum number of messages fetched when rebuilding the conversation history."""

    default_agent: str | None = Field(default=None, examples=["build", "plan"], title="Agent")
    """Agent used when a prompt does not name one."""

    default_model: str | None = Field(
        default=None,
        examples=["anthropic/claude-sonnet-4", "openai/gpt-5"],
        title="Model",
    )
    """Model used when a prompt does not name one, as ``providerID/modelID``."""

    @property
    def auth(self) -> tuple[str, str] | None:
        """Basic auth credentials, if a password is configured."""
        if self.password is None:
            return None
        return (self.username or "opencode", self.password)

    @field_validator("default_model")
    @classmethod
    def _check_model_id(cls, value: str | None) -> str | None:
        if value is not None:
            provider, sep, model = value.partition("/")
            if not (provider and sep and model):
                msg = f"Model must look like 'providerID/modelID', got {value!r}"
                raise ValueError(msg)
        return value
