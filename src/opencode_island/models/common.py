"""Common/shared models used across multiple domains."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Self

from pydantic import BeforeValidator, Field

from opencode_island.models.base import OpenCodeBaseModel


ISO_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")
"""ISO-8601 layouts, tried in order: fractional seconds first."""


def parse_timestamp(value: Any) -> Any:
    """Convert epoch milliseconds or an ISO-8601 string into an aware datetime.

    Values of any other type are handed back untouched so pydantic can report them.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value / 1000.0, tz=UTC)
    if isinstance(value, str):
        for fmt in ISO_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
            except ValueError:
                continue
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
        msg = f"Cannot decode date: {value}"
        raise ValueError(msg)
    return value


Timestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]


class ModelRef(OpenCodeBaseModel):
    """Reference to a provider model, addressed as ``providerID/modelID``."""

    provider_id: str = Field(alias="providerID")
    model_id: str = Field(alias="modelID")
    display_name: str = Field(default="", exclude=True)

    @property
    def id(self) -> str:
        return f"{self.provider_id}/{self.model_id}"

    @classmethod
    def parse(cls, model_id: str) -> Self:
        """Split a composite ``providerID/modelID`` string."""
        provider, sep, model = model_id.partition("/")
        if not sep or not provider or not model:
            msg = f"Model id must look like 'providerID/modelID', got {model_id!r}"
            raise ValueError(msg)
        return cls(provider_id=provider, model_id=model, display_name=model_id)
