"""High-level service owning the active conversation with an OpenCode server."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Self

from psygnal import Signal
from pydantic import BaseModel, ValidationError

from opencode_island.client import OpenCodeClient
from opencode_island.config import ClientConfig
from opencode_island.event_stream import EventStream
from opencode_island.exceptions import (
    AgentNotFoundError,
    NoActiveSessionError,
    OpenCodeError,
    RequestCancelledError,
    ServerNotRunningError,
    StreamError,
    UnknownError,
)
from opencode_island.log import get_logger
from opencode_island.models import (
    MessageUpdatedEvent,
    MessageWithParts,
    ModelRef,
    PartUpdatedEvent,
    SessionDeletedEvent,
    SessionErrorEvent,
    SessionIdleEvent,
    SessionStatusEvent,
    extract_text,
    text_part,
)


if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    import httpx

    from opencode_island.models import Agent, Message, MessagePart, PromptPart, Provider
    from opencode_island.sse import SSEEvent
    from opencode_island.supervisor import ServerSupervisor


logger = get_logger(__name__)

PREFERRED_AGENT = "build"


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class ConnectionState:
    """Connection state to the OpenCode server. ``reason`` is set for errors only."""

    status: ConnectionStatus
    reason: str | None = None

    @classmethod
    def disconnected(cls) -> ConnectionState:
        return cls(ConnectionStatus.DISCONNECTED)

    @classmethod
    def connecting(cls) -> ConnectionState:
        return cls(ConnectionStatus.CONNECTING)

    @classmethod
    def connected(cls) -> ConnectionState:
        return cls(ConnectionStatus.CONNECTED)

    @classmethod
    def error(cls, reason: str) -> ConnectionState:
        return cls(ConnectionStatus.ERROR, reason)

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    def __str__(self) -> str:
        return f"error({self.reason})" if self.reason else self.status.value


class OpenCodeService:
    """Single source of truth for the user's current conversation.

    Bridges the HTTP client and the event feed: it owns the connection
    state, the active session id, the conversation history and the
    processing flag. Observers subscribe to the signals below instead of
    polling attributes.

    Every state mutation happens on the event loop, either in the caller's
    task (connect, prompts) or in the single task consuming the event feed,
    and none of them spans an ``await``, so updates never interleave.

    Example:
        ```python
        async with OpenCodeService(supervisor=my_supervisor) as service:
            service.streaming_text_changed.connect(print)
            await service.connect()
            answer = await service.submit_prompt("Explain this repository")
        ```
    """

    connection_state_changed = Signal(ConnectionState)
    """Emitted on every connection state transition."""

    processing_changed = Signal(bool)
    """Emitted when the processing flag flips."""

    streaming_text_changed = Signal(str)
    """Emitted with the full accumulated streaming text."""

    history_changed = Signal(list)
    """Emitted with the full conversation history after any change."""

    processing_started = Signal()
    """Emitted when a prompt submission begins."""

    prompt_completed = Signal(str)
    """Emitted with the response text of a completed prompt."""

    prompt_failed = Signal(Exception)
    """Emitted when a prompt fails, locally or as reported by the server."""

    def __init__(
        self,
        supervisor: ServerSupervisor | None = None,
        config: ClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            supervisor: Starts a server when none is reachable on the default port
            config: Client configuration
            transport: Optional httpx transport used for every client (tests)
        """
        self.config = config or ClientConfig()
        self._supervisor = supervisor
        self._transport = transport
        # Default port so pre-connect checks work
        self._client = self._make_client(self.config.default_port)
        self._event_stream: EventStream | None = None
        self._event_task: asyncio.Task[None] | None = None
        self._processing_task: asyncio.Task[str] | None = None
        self._prompt_lock = asyncio.Lock()

        self._connection_state = ConnectionState.disconnected()
        self._last_error: OpenCodeError | None = None
        self._server_version: str | None = None
        self._server_directory: str | None = None
        self._agents: list[Agent] = []
        self._providers: list[Provider] = []
        self._available_models: list[ModelRef] = []
        self._active_session_id: str | None = None
        self._history: list[MessageWithParts] = []
        self._is_processing = False
        self._streaming_text = ""

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
        """Disconnect and release the HTTP client."""
        await self.disconnect()
        await self._client.aclose()

    # Observable state

    @property
    def client(self) -> OpenCodeClient:
        return self._client

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def last_error(self) -> OpenCodeError | None:
        """Error behind the latest failed connect, for retry affordances."""
        return self._last_error

    @property
    def server_version(self) -> str | None:
        return self._server_version

    @property
    def server_working_directory(self) -> str | None:
        """Working directory of a server started through the supervisor."""
        return self._server_directory

    @property
    def agents(self) -> list[Agent]:
        return list(self._agents)

    @property
    def providers(self) -> list[Provider]:
        return list(self._providers)

    @property
    def available_models(self) -> list[ModelRef]:
        return list(self._available_models)

    @property
    def active_session_id(self) -> str | None:
        return self._active_session_id

    @property
    def conversation_history(self) -> list[MessageWithParts]:
        return list(self._history)

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def streaming_text(self) -> str:
        return self._streaming_text

    # Connection management

    async def connect(self) -> None:
        """Connect to a server, adopting one on the default port or starting one.

        Failures never raise: they end in an error connection state, with
        the underlying error available as ``last_error``. Cancellation is
        recorded the same way before it propagates.
        """
        if self._connection_state.status is ConnectionStatus.CONNECTING:
            logger.info("Already connecting; ignoring duplicate connect() call")
            return

        logger.info("connect() called", state=str(self._connection_state))
        self._set_connection_state(ConnectionState.connecting())
        self._last_error = None
        try:
            await self._stop_event_stream()
            await self._attach_or_start_server()
            health = await self._client.health()
            self._server_version = health.version
            logger.info("Server health OK", version=health.version)
            # A new or rediscovered server invalidates any cached session
            self._active_session_id = None
            await self.load_agents()
            await self.load_providers()
        except asyncio.CancelledError:
            logger.info("connect() cancelled")
            self._last_error = RequestCancelledError()
            self._set_connection_state(ConnectionState.error(self._last_error.short_description))
            raise
        except OpenCodeError as exc:
            logger.warning("Connection failed", error=str(exc))
            self._last_error = exc
            self._set_connection_state(ConnectionState.error(exc.short_description))
            return
        except Exception as exc:
            logger.exception("Connection failed")
            self._last_error = UnknownError(str(exc))
            self._set_connection_state(ConnectionState.error(f"Connection failed: {exc}"))
            return

        self._set_connection_state(ConnectionState.connected())
        logger.info("Connected", base_url=self._client.base_url)
        await self._start_event_stream()

    async def disconnect(self) -> None:
        """Stop listening, stop a supervised server and forget all server state."""
        logger.info("disconnect() called")
        await self._cancel_processing_task()
        await self._stop_event_stream()
        if self._supervisor is not None and self._supervisor.is_running:
            await self._supervisor.stop()
        self._server_directory = None
        self._server_version = None
        self._agents = []
        self._providers = []
        self._available_models = []
        self._active_session_id = None
        self.clear_conversation_history()
        self._set_processing(False)
        self._set_streaming_text("")
        self._set_connection_state(ConnectionState.disconnected())

    async def check_server_available(self) -> bool:
        """Check whether the current client reaches a server, without connecting."""
        available = await self._client.is_server_running()
        logger.debug("Server available", available=available)
        return available

    async def _attach_or_start_server(self) -> None:
        port = self.config.default_port
        logger.info("Checking for existing OpenCode server", port=port)
        candidate = self._make_client(port)
        try:
            found = await candidate.is_server_running()
            if found:
                logger.info("Found existing OpenCode server", port=port)
                await self._replace_client(candidate)
        finally:
            if candidate is not self._client:
                await candidate.aclose()
        if found:
            self._server_directory = None
            return

        if self._supervisor is None:
            msg = f"No OpenCode server on port {port} and no supervisor to start one."
            raise ServerNotRunningError(msg)
        logger.info("No existing server found, starting our own")
        info = await self._supervisor.start()
        if not self._supervisor.is_running:
            msg = self._supervisor.error_message or "Failed to start server"
            raise ServerNotRunningError(msg)
        logger.info("Server running", port=info.port, directory=info.working_directory)
        await self._replace_client(self._make_client(info.port))
        self._server_directory = info.working_directory

    def _make_client(self, port: int) -> OpenCodeClient:
        return OpenCodeClient(
            port,
            self.config.hostname,
            timeout=self.config.request_timeout,
            auth=self.config.auth,
            transport=self._transport,
        )

    async def _replace_client(self, client: OpenCodeClient) -> None:
        old, self._client = self._client, client
        if old is not client:
            await old.aclose()

    # Catalogs

    async def load_agents(self) -> None:
        """Load the agents users may select directly (primary agents)."""
        seen: set[str] = set()
        agents: list[Agent] = []
        for agent in await self._client.list_agents():
            if agent.is_primary and agent.id not in seen:
                seen.add(agent.id)
                agents.append(agent)
        self._agents = agents
        logger.info("Loaded agents", count=len(agents))

    async def load_providers(self) -> None:
        """Load providers and the models of connected providers."""
        response = await self._client.list_providers()
        self._providers = response.all
        connected = set(response.connected)
        models: dict[str, ModelRef] = {}
        for provider in response.all:
            if provider.id not in connected:
                continue
            for model in provider.models.values():
                ref = ModelRef(
                    provider_id=provider.id,
                    model_id=model.id,
                    display_name=f"{provider.name} - {model.name}",
                )
                models.setdefault(ref.id, ref)
        self._available_models = list(models.values())
        logger.info("Loaded models", count=len(models), providers=len(connected))

    def agent(self, agent_id: str) -> Agent | None:
        return next((a for a in self._agents if a.id == agent_id), None)

    def model(self, model_id: str) -> ModelRef | None:
        """Find a model by its ``providerID/modelID`` id."""
        return next((m for m in self._available_models if m.id == model_id), None)

    @property
    def default_agent(self) -> Agent | None:
        """Configured agent, else "build", else the first primary agent."""
        for agent_id in (self.config.default_agent, PREFERRED_AGENT):
            if agent_id and (agent := self.agent(agent_id)):
                return agent
        return self._agents[0] if self._agents else None

    # Sessions

    async def get_or_create_session(self) -> str:
        """Return the active session id, creating a session if needed.

        A cached id is verified first; if the server no longer knows it,
        it is dropped and a new session is created.
        """
        if (session_id := self._active_session_id) is not None:
            try:
                await self._client.get_session(session_id)
            except OpenCodeError as exc:
                logger.info("Cached session is gone", session_id=session_id, error=str(exc))
                self._active_session_id = None
                self.clear_conversation_history()
            else:
                return session_id

        session = await self._client.create_session(title=self.config.session_title)
        self._active_session_id = session.id
        logger.info("Created new session", session_id=session.id, directory=session.directory)
        return session.id

    async def new_session(self) -> str:
        """Drop the current session and history and start a fresh session."""
        self._active_session_id = None
        self.clear_conversation_history()
        return await self.get_or_create_session()

    async def delete_active_session(self) -> None:
        """Delete the active session on the server and forget it locally.

        Raises:
            NoActiveSessionError: If no session is active
        """
        if (session_id := self._active_session_id) is None:
            raise NoActiveSessionError
        await self._cancel_processing_task()
        await self._client.delete_session(session_id)
        logger.info("Deleted session", session_id=session_id)
        self._active_session_id = None
        self.clear_conversation_history()
        self._set_processing(False)
        self._set_streaming_text("")

    async def abort(self) -> None:
        """Abort the current prompt.

        The local task is cancelled and the server is asked to stop; a
        failing abort request is ignored. The processing flag is cleared
        regardless.
        """
        await self._cancel_processing_task()
        if session_id := self._active_session_id:
            try:
                await self._client.abort_session(session_id)
            except OpenCodeError as exc:
                logger.warning("Abort request failed", session_id=session_id, error=str(exc))
        self._set_processing(False)

    # Prompts

    async def submit_prompt(
        self,
        parts: str | Sequence[PromptPart],
        agent_id: str | None = None,
        model_id: str | None = None,
    ) -> str:
        """Submit a prompt and wait for the complete response.

        Submissions are serialized per service. No retry is attempted; the
        raised error's ``retryable`` flag tells the caller whether to offer one.

        Args:
            parts: Prompt text, or text and file parts
            agent_id: Optional agent to use instead of the configured default
            model_id: Optional ``providerID/modelID`` to use instead of the default

        Returns:
            Text of all text parts of the response, joined by newlines

        Raises:
            ServerNotRunningError: If not connected; no request is made
            AgentNotFoundError: If ``agent_id`` is not in the loaded catalog
        """
        if not self._connection_state.is_connected:
            raise ServerNotRunningError
        prompt_parts = [text_part(parts)] if isinstance(parts, str) else list(parts)
        async with self._prompt_lock:
            return await self._submit(prompt_parts, agent_id, model_id)

    async def _submit(
        self,
        parts: list[PromptPart],
        agent_id: str | None,
        model_id: str | None,
    ) -> str:
        self._set_processing(True)
        self._set_streaming_text("")
        self.processing_started.emit()
        try:
            agent = self._resolve_agent(agent_id)
            model = self._resolve_model(model_id)
            session_id = await self.get_or_create_session()
            response = await self._client.send_prompt(session_id, parts, agent=agent, model=model)
        except asyncio.CancelledError:
            self._set_processing(False)
            raise
        except Exception as exc:
            self._set_processing(False)
            self.prompt_failed.emit(exc)
            raise

        result = extract_text(response.parts)
        self._set_processing(False)
        self._set_streaming_text(result)
        await self.fetch_conversation_history()
        self.prompt_completed.emit(result)
        return result

    def submit_prompt_async(
        self,
        parts: str | Sequence[PromptPart],
        agent_id: str | None = None,
        model_id: str | None = None,
    ) -> asyncio.Task[str]:
        """Run ``submit_prompt`` in a background task that ``abort()`` can cancel.

        A still running previous task is cancelled. Outcomes are reported
        through the signals; the returned task may be awaited as well.
        """
        if self._processing_task is not None and not self._processing_task.done():
            self._processing_task.cancel()
        task = asyncio.create_task(
            self.submit_prompt(parts, agent_id=agent_id, model_id=model_id),
            name="opencode-prompt",
        )
        task.add_done_callback(_log_prompt_task_result)
        self._processing_task = task
        return task

    def _resolve_agent(self, agent_id: str | None) -> str | None:
        if agent_id is not None:
            if self._agents and self.agent(agent_id) is None:
                raise AgentNotFoundError(agent_id)
            return agent_id
        configured = self.config.default_agent
        if configured and (not self._agents or self.agent(configured)):
            return configured
        return None

    def _resolve_model(self, model_id: str | None) -> ModelRef | None:
        chosen = model_id or self.config.default_model
        if chosen is None:
            return None
        return self.model(chosen) or ModelRef.parse(chosen)

    async def _cancel_processing_task(self) -> None:
        task, self._processing_task = self._processing_task, None
        if task is None or task.done():
            return
        task.cancel()
        await _await_cancelled(task)

    # Conversation history

    async def fetch_conversation_history(self) -> None:
        """Rebuild the history of the active session from the server."""
        if (session_id := self._active_session_id) is None:
            logger.debug("No active session for fetching history")
            return
        try:
            messages = await self._client.list_messages(session_id, limit=self.config.history_limit)
        except OpenCodeError as exc:
            logger.warning("Failed to fetch conversation history", error=str(exc))
            return
        if session_id != self._active_session_id:
            logger.debug("Session changed while fetching history", session_id=session_id)
            return
        self._history = messages
        self.history_changed.emit(self.conversation_history)
        logger.debug("Fetched conversation history", count=len(messages))

    def clear_conversation_history(self) -> None:
        if self._history:
            self._history = []
            self.history_changed.emit([])

    # Event handling

    async def _start_event_stream(self) -> None:
        await self._stop_event_stream()
        stream = EventStream(
            self._client,
            max_retries=self.config.max_stream_retries,
            base_delay=self.config.stream_retry_base_delay,
        )
        stream.subscribe()
        self._event_stream = stream
        self._event_task = asyncio.create_task(
            self._consume_events(stream), name="opencode-event-consumer"
        )

    async def _stop_event_stream(self) -> None:
        if self._event_stream is not None:
            await self._event_stream.cancel()
            self._event_stream = None
        task, self._event_task = self._event_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await _await_cancelled(task)

    async def _consume_events(self, stream: EventStream) -> None:
        try:
            async for event in stream.events():
                try:
                    await self.handle_event(event)
                except Exception:
                    logger.exception("Failed to handle event", event_type=event.resolved_type)
        except StreamError as exc:
            logger.warning("Event stream exhausted", error=str(exc))
            self._set_connection_state(ConnectionState.error(exc.message))

    async def handle_event(self, event: SSEEvent) -> None:
        """Apply one event from the feed to the conversation state."""
        match event.resolved_type:
            case "message.part.updated":
                if part_event := _decode(event, PartUpdatedEvent):
                    self._on_part_updated(part_event)
            case "message.updated":
                if message_event := _decode(event, MessageUpdatedEvent):
                    await self._on_message_updated(message_event.properties.info)
            case "session.status":
                status_event = _decode(event, SessionStatusEvent)
                if (
                    status_event
                    and self._is_active(status_event.properties.session_id)
                    and status_event.properties.status.type == "idle"
                ):
                    await self._finish_processing()
            case "session.idle":
                idle_event = _decode(event, SessionIdleEvent)
                if idle_event and self._is_active(idle_event.properties.session_id):
                    await self._finish_processing()
            case "session.error":
                error_event = _decode(event, SessionErrorEvent)
                if error_event and self._is_active(error_event.properties.session_id):
                    message = error_event.properties.message
                    logger.warning("Session error", message=message)
                    self._set_processing(False)
                    self.prompt_failed.emit(UnknownError(message))
            case "session.deleted":
                deleted_event = _decode(event, SessionDeletedEvent)
                if deleted_event and self._is_active(deleted_event.properties.resolved_session_id):
                    logger.info("Active session deleted on server")
                    self._active_session_id = None
            case "server.connected":
                logger.debug("Event stream connected")
            case _:
                pass

    def _is_active(self, session_id: str | None) -> bool:
        return session_id is not None and session_id == self._active_session_id

    def _on_part_updated(self, event: PartUpdatedEvent) -> None:
        props = event.properties
        if not self._is_active(props.resolved_session_id):
            return
        if props.part.is_text and props.delta:
            self._set_streaming_text(self._streaming_text + props.delta)
        self._upsert_part(props.part, props.resolved_message_id)

    async def _on_message_updated(self, message: Message) -> None:
        if not self._is_active(message.session_id):
            return
        self._upsert_message(message)
        if message.is_finished:
            await self._finish_processing()

    async def _finish_processing(self) -> None:
        """Clear the processing flag and refetch history. No-op when already idle."""
        if not self._is_processing:
            return
        self._set_processing(False)
        await self.fetch_conversation_history()

    def _upsert_part(self, part: MessagePart, message_id: str | None) -> None:
        for index, entry in enumerate(self._history):
            if entry.info.id != message_id:
                continue
            parts = list(entry.parts)
            for part_index, existing in enumerate(parts):
                if part.id is not None and existing.id == part.id:
                    parts[part_index] = part
                    break
            else:
                parts.append(part)
            self._history[index] = MessageWithParts(info=entry.info, parts=parts)
            self.history_changed.emit(self.conversation_history)
            return
        logger.debug("Part for message not in history", message_id=message_id, part_id=part.id)

    def _upsert_message(self, message: Message) -> None:
        for index, entry in enumerate(self._history):
            if entry.info.id == message.id:
                self._history[index] = MessageWithParts(info=message, parts=entry.parts)
                break
        else:
            self._history.append(MessageWithParts(info=message))
        self.history_changed.emit(self.conversation_history)

    # State setters

    def _set_connection_state(self, state: ConnectionState) -> None:
        if state == self._connection_state:
            return
        logger.debug("Connection state changed", old=str(self._connection_state), new=str(state))
        self._connection_state = state
        self.connection_state_changed.emit(state)

    def _set_processing(self, value: bool) -> None:
        if value != self._is_processing:
            self._is_processing = value
            self.processing_changed.emit(value)

    def _set_streaming_text(self, text: str) -> None:
        if text != self._streaming_text:
            self._streaming_text = text
            self.streaming_text_changed.emit(text)


def _decode[T: BaseModel](event: SSEEvent, model: type[T]) -> T | None:
    """Decode an event payload, dropping it when it does not match."""
    try:
        return event.decode(model)
    except ValidationError as exc:
        logger.warning("Dropping undecodable event", event_type=event.resolved_type, error=str(exc))
        return None


def _log_prompt_task_result(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        logger.debug("Prompt task cancelled")
    elif exc := task.exception():
        logger.debug("Prompt task failed", error=str(exc))


async def _await_cancelled(task: asyncio.Task[Any]) -> None:
    """Wait for a task that was just cancelled, still honouring our own cancellation."""
    try:
        await task
    except asyncio.CancelledError:
        if (current := asyncio.current_task()) is not None and current.cancelling():
            raise
    except OpenCodeError as exc:
        logger.debug("Cancelled task ended with an error", error=str(exc))
