"""Session related models."""

from __future__ import annotations

from pydantic import Field

from opencode_island.models.base import OpenCodeBaseModel
from opencode_island.models.common import Timestamp  # noqa: TC001


class SessionTime(OpenCodeBaseModel):
    """Creation and update timestamps of a session."""

    created: Timestamp
    updated: Timestamp | None = None


class SessionShare(OpenCodeBaseModel):
    """Share information for a session."""

    url: str | None = None


class Session(OpenCodeBaseModel):
    """Session information."""

    id: str
    title: str | None = None
    version: str | None = None
    project_id: str | None = Field(default=None, alias="projectID")
    directory: str | None = None
    time: SessionTime | None = None
    parent_id: str | None = Field(default=None, alias="parentID")
    share: SessionShare | None = None


class SessionCreateRequest(OpenCodeBaseModel):
    """Request body for creating a session."""

    title: str | None = None
    parent_id: str | None = Field(default=None, alias="parentID")


class SessionStatus(OpenCodeBaseModel):
    """Status of a session."""

    type: str = "idle"
    """One of "idle", "busy" or "retry"."""
