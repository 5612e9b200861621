"""Long-lived subscription to the server's ``/event`` feed."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from opencode_island.exceptions import OpenCodeError, StreamError
from opencode_island.log import get_logger
from opencode_island.sse import iter_sse_events


if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from opencode_island.client import OpenCodeClient
    from opencode_island.sse import SSEEvent


logger = get_logger(__name__)


class EventStream:
    """Best-effort, always-on subscription to the server event feed.

    A background task reads the feed and pushes parsed events into a queue,
    which a single consumer drains through ``events()`` in wire order.

    When the feed ends (clean EOF or I/O error) the task reconnects, waiting
    ``base_delay * 2 ** (attempt - 1)`` seconds before each attempt. A
    successful reconnect resets the attempt counter. After ``max_retries``
    failed attempts the consumer receives a StreamError and the task stops;
    call ``subscribe()`` again to resume.

    Example:
        stream = EventStream(client)
        stream.subscribe()
        async for event in stream.events():
            print(event.resolved_type)
    """

    def __init__(
        self,
        client: OpenCodeClient,
        *,
        max_retries: int = 5,
        base_delay: float = 1.0,
    ) -> None:
        self._client = client
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._queue: asyncio.Queue[SSEEvent | StreamError | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self) -> None:
        """Start the background reader. No-op while it is already running."""
        if self.is_running:
            logger.debug("Event stream already running")
            return
        self._queue = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="opencode-event-stream")

    async def cancel(self) -> None:
        """Stop the reader, closing its connection or aborting a pending backoff."""
        task, self._task = self._task, None
        try:
            if task is not None:
                task.cancel()
                await task
        except asyncio.CancelledError:
            if (current := asyncio.current_task()) is not None and current.cancelling():
                raise
        finally:
            self._queue.put_nowait(None)

    def retry_delay(self, attempt: int) -> float:
        """Delay before reconnect attempt number ``attempt`` (1-based)."""
        return self.base_delay * 2 ** (attempt - 1)

    async def events(self) -> AsyncIterator[SSEEvent]:
        """Yield events in arrival order until cancelled.

        Raises:
            StreamError: Once the reconnect attempts are exhausted
        """
        queue = self._queue
        while True:
            item = await queue.get()
            if item is None:
                return
            if isinstance(item, StreamError):
                raise item
            yield item

    async def _run(self) -> None:
        attempt = 0
        while True:
            if attempt:
                if attempt > self.max_retries:
                    logger.warning("Event stream retries exhausted", retries=self.max_retries)
                    await self._queue.put(StreamError("Event stream disconnected"))
                    return
                await self._backoff(attempt)
            try:
                logger.info("Starting event stream", attempt=attempt + 1)
                async with self._client.open_event_stream() as lines:
                    attempt = 0
                    async for event in iter_sse_events(lines):
                        await self._queue.put(event)
                logger.info("Event stream ended, reconnecting")
            except OpenCodeError as exc:
                logger.warning("Event stream error", attempt=attempt + 1, error=str(exc))
            except Exception:
                logger.exception("Unexpected event stream failure")
            attempt += 1

    async def _backoff(self, attempt: int) -> None:
        delay = self.retry_delay(attempt)
        logger.info("Retrying event stream", attempt=attempt, delay=delay)
        await asyncio.sleep(delay)
