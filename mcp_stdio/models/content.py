"""Content items and results returned by tool, resource and prompt handlers."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "BlobResourceContents",
    "Content",
    "EmbeddedResource",
    "ImageContent",
    "PromptMessage",
    "ResourceContents",
    "TextContent",
    "TextResourceContents",
    "ToolResult",
]


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready representation using wire aliases."""

        return self.model_dump(by_alias=True, exclude_none=True)


class TextContent(_Model):
    type: Literal["text"] = "text"
    text: str


class ImageContent(_Model):
    type: Literal["image"] = "image"
    data: str = Field(..., description="Base64 encoded image bytes")
    mime_type: str = Field(..., alias="mimeType")


class TextResourceContents(_Model):
    uri: str
    mime_type: str | None = Field(default=None, alias="mimeType")
    text: str


class BlobResourceContents(_Model):
    uri: str
    mime_type: str | None = Field(default=None, alias="mimeType")
    blob: str = Field(..., description="Base64 encoded bytes")


ResourceContents = Union[TextResourceContents, BlobResourceContents]


class EmbeddedResource(_Model):
    type: Literal["resource"] = "resource"
    resource: ResourceContents


Content = Union[TextContent, ImageContent, EmbeddedResource]


class ToolResult(_Model):
    """Outcome of a tool call.

    Failures travel as ordinary results with ``is_error`` set, so the caller's
    channel stays open and it can tell success from failure by the flag alone.
    """

    content: list[Content] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def success(cls, content: Iterable[Content]) -> ToolResult:
        return cls(content=list(content), is_error=False)

    @classmethod
    def failure(cls, message: str, *, content: Iterable[Content] = ()) -> ToolResult:
        return cls(content=[TextContent(text=message), *content], is_error=True)

    @property
    def text(self) -> str:
        """Concatenated text of every text item, mostly useful for messages."""

        return "\n".join(item.text for item in self.content if isinstance(item, TextContent))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"content": [item.to_dict() for item in self.content]}
        if self.is_error:
            payload["isError"] = True
        return payload


class PromptMessage(_Model):
    role: Literal["user", "assistant"] = "user"
    content: Content
