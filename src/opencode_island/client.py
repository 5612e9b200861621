"""Low-level HTTP client for the OpenCode server API."""

from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from functools import cache
from typing import TYPE_CHECKING, Any, Self

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from opencode_island.config import DEFAULT_PORT
from opencode_island.exceptions import (
    DecodingError,
    EncodingError,
    InvalidURLError,
    NetworkError,
    OpenCodeHTTPError,
    RequestTimeoutError,
    ServerNotRunningError,
    SessionNotFoundError,
)
from opencode_island.log import get_logger
from opencode_island.models import (
    Agent,
    HealthResponse,
    MessageWithParts,
    PathInfo,
    PromptRequest,
    ProviderListResponse,
    ServerConfig,
    Session,
    SessionCreateRequest,
    text_part,
)


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator, Sequence
    from types import TracebackType

    from opencode_island.models import ModelRef, PromptPart


logger = get_logger(__name__)

PREVIEW_LENGTH = 500
HTTP_NOT_FOUND = 404


@cache
def _adapter(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


@contextmanager
def translate_transport_errors() -> Iterator[None]:
    """Re-raise httpx transport failures as OpenCode errors."""
    try:
        yield
    except httpx.ConnectError as exc:  # refused / host unreachable
        raise ServerNotRunningError from exc
    except httpx.TimeoutException as exc:
        raise RequestTimeoutError from exc
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
        raise InvalidURLError(str(exc)) from exc
    except httpx.TransportError as exc:
        raise NetworkError(str(exc) or type(exc).__name__) from exc


def _error_message(response: httpx.Response) -> str | None:
    """Extract ``error`` or ``message`` from a server error envelope."""
    try:
        envelope = response.json()
    except ValueError:
        return None
    if not isinstance(envelope, dict):
        return None
    for key in ("error", "message"):
        if isinstance(value := envelope.get(key), str):
            return value
    return None


class OpenCodeClient:
    """HTTP client for an OpenCode server.

    Holds no per-call state, so concurrent calls need no coordination.
    A port of ``0`` means no server is known yet: every call then fails
    with ServerNotRunningError before touching the network.

    Example:
        async with OpenCodeClient(port=4096) as client:
            health = await client.health()
            session = await client.create_session(title="Scratch")
            reply = await client.send_prompt(session.id, "Hello")
            print(reply.text)
    """

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        hostname: str = "127.0.0.1",
        *,
        timeout: float = 300.0,
        auth: tuple[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            port: Server port, 0 if unknown
            hostname: Server host
            timeout: Request timeout in seconds (prompts block until the model is done)
            auth: Optional basic auth credentials
            transport: Optional httpx transport, e.g. a MockTransport in tests
        """
        self.port = port
        self.hostname = hostname
        self.timeout = timeout
        try:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(timeout),
                auth=auth,
                transport=transport,
            )
        except httpx.InvalidURL as exc:
            raise InvalidURLError(self.base_url) from exc
        logger.debug("Client initialized", base_url=self.base_url)

    @property
    def base_url(self) -> str:
        return f"http://{self.hostname}:{self.port}"

    @property
    def is_configured(self) -> bool:
        return self.port > 0

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # Health

    async def health(self) -> HealthResponse:
        """Check if the server is running and get version info."""
        return await self.get("/global/health", HealthResponse)

    async def is_server_running(self) -> bool:
        """Quick reachability check."""
        try:
            await self.health()
        except Exception:  # noqa: BLE001
            return False
        return True

    # Server info

    async def get_path(self) -> PathInfo:
        """Get the server's current working directory."""
        return await self.get("/path", PathInfo)

    async def get_config(self) -> ServerConfig:
        return await self.get("/config", ServerConfig)

    async def list_agents(self) -> list[Agent]:
        return await self.get("/agent", list[Agent])

    async def list_providers(self) -> ProviderListResponse:
        """Get all providers, their models and which providers are connected."""
        return await self.get("/provider", ProviderListResponse)

    # Sessions

    async def list_sessions(self) -> list[Session]:
        return await self.get("/session", list[Session])

    async def get_session(self, session_id: str) -> Session:
        """Fetch a session.

        Raises:
            SessionNotFoundError: If the server does not know the session
        """
        try:
            return await self.get(f"/session/{session_id}", Session)
        except OpenCodeHTTPError as exc:
            if exc.status_code == HTTP_NOT_FOUND:
                raise SessionNotFoundError(session_id) from exc
            raise

    async def create_session(
        self,
        title: str | None = None,
        parent_id: str | None = None,
    ) -> Session:
        request = SessionCreateRequest(title=title, parent_id=parent_id)
        return await self.post("/session", request, Session)

    async def delete_session(self, session_id: str) -> bool:
        return await self.delete(f"/session/{session_id}", bool)

    async def abort_session(self, session_id: str) -> bool:
        """Ask the server to stop whatever the session is running."""
        return await self.post(f"/session/{session_id}/abort", None, bool)

    # Messages

    async def list_messages(
        self,
        session_id: str,
        limit: int | None = None,
    ) -> list[MessageWithParts]:
        params = {"limit": limit} if limit is not None else None
        return await self.get(f"/session/{session_id}/message", list[MessageWithParts], params)

    async def send_prompt(
        self,
        session_id: str,
        parts: str | Sequence[PromptPart],
        *,
        agent: str | None = None,
        model: ModelRef | None = None,
    ) -> MessageWithParts:
        """Send a prompt and wait for the complete response.

        Args:
            session_id: Session to prompt
            parts: Prompt text, or text and file parts
            agent: Optional agent override
            model: Optional model override

        Returns:
            The assistant message with all of its parts
        """
        request = self._prompt_request(parts, agent=agent, model=model)
        return await self.post(f"/session/{session_id}/message", request, MessageWithParts)

    async def send_prompt_async(
        self,
        session_id: str,
        parts: str | Sequence[PromptPart],
        *,
        agent: str | None = None,
        model: ModelRef | None = None,
    ) -> bool:
        """Send a prompt without waiting; progress arrives on the event feed."""
        request = self._prompt_request(parts, agent=agent, model=model)
        return await self.post(f"/session/{session_id}/prompt_async", request, bool)

    @staticmethod
    def _prompt_request(
        parts: str | Sequence[PromptPart],
        *,
        agent: str | None,
        model: ModelRef | None,
    ) -> PromptRequest:
        prompt_parts = [text_part(parts)] if isinstance(parts, str) else list(parts)
        return PromptRequest(parts=prompt_parts, agent=agent, model=model)

    # Events

    @asynccontextmanager
    async def open_event_stream(self) -> AsyncIterator[AsyncIterator[str]]:
        """Open the ``/event`` feed and yield its text lines.

        Leaving the context closes the connection, which also unblocks a
        pending read.

        Raises:
            OpenCodeHTTPError: If the server answers with anything but 200
        """
        self._ensure_configured()
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        timeout = httpx.Timeout(self.timeout, read=None)
        logger.debug("Opening event stream", base_url=self.base_url)
        with translate_transport_errors():
            async with self._client.stream(
                "GET", "/event", headers=headers, timeout=timeout
            ) as response:
                if response.status_code != 200:  # noqa: PLR2004
                    raise OpenCodeHTTPError(response.status_code, "SSE connection failed")
                yield response.aiter_lines()

    # Generic request helpers

    async def get[T](self, path: str, response_type: type[T], params: Any = None) -> T:
        return await self._request("GET", path, response_type, params=params)

    async def post[T](self, path: str, body: BaseModel | None, response_type: type[T]) -> T:
        return await self._request("POST", path, response_type, body=body)

    async def delete[T](self, path: str, response_type: type[T]) -> T:
        return await self._request("DELETE", path, response_type)

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            msg = "OpenCode server is not configured (no port known yet)."
            raise ServerNotRunningError(msg)

    async def _request(
        self,
        method: str,
        path: str,
        response_type: Any,
        *,
        body: BaseModel | None = None,
        params: Any = None,
    ) -> Any:
        self._ensure_configured()
        headers = {"Accept": "application/json"}
        content: str | None = None
        if method == "POST":
            headers["Content-Type"] = "application/json"
            try:
                content = body.model_dump_json(by_alias=True, exclude_none=True) if body else "{}"
            except (PydanticSerializationError, TypeError, ValueError) as exc:
                raise EncodingError(str(exc)) from exc

        logger.debug("Performing request", method=method, path=path)
        with translate_transport_errors():
            response = await self._client.request(
                method, path, content=content, params=params, headers=headers
            )
        return self._decode(response, response_type)

    def _decode(self, response: httpx.Response, response_type: Any) -> Any:
        body = response.text
        logger.debug(
            "Received response",
            status=response.status_code,
            size=len(response.content),
            body=body[:PREVIEW_LENGTH] + ("..." if len(body) > PREVIEW_LENGTH else ""),
        )
        if not response.is_success:
            message = _error_message(response)
            logger.debug("HTTP error", status=response.status_code, message=message)
            raise OpenCodeHTTPError(response.status_code, message)
        # Boolean endpoints: success means true, whatever the body says.
        if response_type is bool:
            return True
        if response.status_code == 204:  # noqa: PLR2004
            msg = f"Unexpected empty response for {response_type}"
            raise DecodingError(msg)
        try:
            return _adapter(response_type).validate_json(response.content)
        except ValidationError as exc:
            logger.debug("Decode failed", response_type=str(response_type), error=str(exc))
            raise DecodingError(str(exc)) from exc
