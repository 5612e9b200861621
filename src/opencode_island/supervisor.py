"""Interface of the component that owns the server process.

Discovering the ``opencode`` binary, picking a port and capturing the
process output is the job of the host application. The service only needs
to start a server, learn where it listens and stop it again.
"""

from __future__ import annotations

from typing import NamedTuple, Protocol, runtime_checkable


class ServerInfo(NamedTuple):
    """Where a freshly started server listens."""

    port: int
    working_directory: str


@runtime_checkable
class ServerSupervisor(Protocol):
    """Starts and stops an OpenCode server process."""

    @property
    def is_running(self) -> bool: ...

    @property
    def error_message(self) -> str | None:
        """Why the last start failed, if it did."""
        ...

    async def start(self) -> ServerInfo:
        """Start a server and return its port and working directory."""
        ...

    async def stop(self) -> None: ...
