"""Provider and model catalog models."""

from __future__ import annotations

from pydantic import Field

from opencode_island.models.base import OpenCodeBaseModel


class ModelLimit(OpenCodeBaseModel):
    """Limit information for a model."""

    context: float | None = None
    output: float | None = None


class ProviderModel(OpenCodeBaseModel):
    """Model offered by a provider."""

    id: str
    name: str
    provider_id: str | None = Field(default=None, alias="providerID")
    family: str | None = None
    status: str | None = None
    limit: ModelLimit | None = None


class Provider(OpenCodeBaseModel):
    """Provider information."""

    id: str
    name: str
    models: dict[str, ProviderModel] = Field(default_factory=dict)
    """Models keyed by model ID, in server order."""


class ProviderListResponse(OpenCodeBaseModel):
    """Response for /provider endpoint."""

    all: list[Provider]
    default: dict[str, str] = Field(default_factory=dict)
    """Default model ID per provider ID."""
    connected: list[str] = Field(default_factory=list)
    """IDs of providers the server is authenticated with."""
