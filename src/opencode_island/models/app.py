"""Health, path and server config models."""

from __future__ import annotations

from pydantic import Field

from opencode_island.models.base import OpenCodeBaseModel


class HealthResponse(OpenCodeBaseModel):
    """Response for /global/health endpoint."""

    healthy: bool = True
    version: str


class PathInfo(OpenCodeBaseModel):
    """Response for /path: the server's working directory."""

    cwd: str
    root: str | None = None


class ServerConfig(OpenCodeBaseModel):
    """Subset of /config the client cares about."""

    model: str | None = None
    default_agent: str | None = Field(default=None, alias="defaultAgent")
