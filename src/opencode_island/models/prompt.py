"""Outbound prompt models.

Images never leave the client as raw bytes: they are base64-encoded into a
``data:<mime>;base64,<payload>`` URL carried by a file part.
"""

from __future__ import annotations

import base64
from typing import Annotated, Literal

from pydantic import Field

from opencode_island.models.base import OpenCodeBaseModel
from opencode_island.models.common import ModelRef  # noqa: TC001


class TextPromptPart(OpenCodeBaseModel):
    """Text part for input."""

    type: Literal["text"] = "text"
    text: str


class FilePromptPart(OpenCodeBaseModel):
    """File part for input, referenced by URL (usually a data URL)."""

    type: Literal["file"] = "file"
    url: str
    mime: str
    filename: str | None = None


PromptPart = Annotated[TextPromptPart | FilePromptPart, Field(discriminator="type")]


class PromptRequest(OpenCodeBaseModel):
    """Request body for ``POST /session/{id}/message``."""

    parts: list[PromptPart]
    agent: str | None = None
    model: ModelRef | None = None
    no_reply: bool | None = Field(default=None, alias="noReply")


def text_part(text: str) -> TextPromptPart:
    return TextPromptPart(text=text)


def file_part(url: str, mime: str, filename: str | None = None) -> FilePromptPart:
    return FilePromptPart(url=url, mime=mime, filename=filename)


def image_part(data: bytes | str, mime: str, filename: str | None = None) -> FilePromptPart:
    """Create an image part with a proper data URL.

    Args:
        data: Raw image bytes, or an already base64-encoded string
        mime: The MIME type (e.g. "image/png")
        filename: Optional filename

    Returns:
        A file part whose URL embeds the base64 payload
    """
    payload = base64.b64encode(data).decode("ascii") if isinstance(data, bytes) else data
    return FilePromptPart(url=f"data:{mime};base64,{payload}", mime=mime, filename=filename)
