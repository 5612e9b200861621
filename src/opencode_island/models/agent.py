"""Agent catalog models."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from opencode_island.models.base import OpenCodeBaseModel


AgentMode = Literal["primary", "subagent", "all"]


class Agent(OpenCodeBaseModel):
    """Agent information as returned by ``GET /agent``."""

    name: str
    mode: AgentMode = "all"
    native: bool | None = None
    is_default: bool | None = Field(default=None, alias="default")
    description: str | None = None

    @property
    def id(self) -> str:
        return self.name

    @property
    def is_primary(self) -> bool:
        """Whether users may select this agent directly."""
        return self.mode in ("primary", "all")

    @property
    def display_name(self) -> str:
        return " ".join(chunk[:1].upper() + chunk[1:] for chunk in self.name.split("-"))
