"""Validate arguments, invoke handlers and shape their results."""

from __future__ import annotations

import asyncio
import base64
import copy
import inspect
import json
import logging
from collections.abc import Mapping
from typing import Any, cast

from pydantic import ValidationError

from mcp_stdio.errors import NotFoundError, ProtocolError
from mcp_stdio.models import (
    BlobResourceContents,
    EmbeddedResource,
    ImageContent,
    PromptMessage,
    TextContent,
    TextResourceContents,
    ToolResult,
)
from mcp_stdio.registry import (
    Handler,
    PromptDescriptor,
    Registry,
    ResourceDescriptor,
    ToolDescriptor,
)

__all__ = ["Dispatcher", "HandlerTimeout"]

LOGGER = logging.getLogger(__name__)

_CONTENT_TYPES = (TextContent, ImageContent, EmbeddedResource)
_RESOURCE_TYPES = (TextResourceContents, BlobResourceContents)


class HandlerTimeout(Exception):
    """Raised when a handler runs past the configured timeout."""


def _to_json_text(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _tool_content(item: Any) -> Any:
    if isinstance(item, _CONTENT_TYPES):
        return item
    if isinstance(item, str):
        return TextContent(text=item)
    if isinstance(item, Mapping) and "type" in item:
        return ToolResult.model_validate({"content": [item]}).content[0]
    return TextContent(text=_to_json_text(item))


def _tool_result(value: Any) -> ToolResult:
    if isinstance(value, ToolResult):
        return value
    if value is None:
        return ToolResult.success([])
    if isinstance(value, Mapping) and "content" in value:
        return ToolResult.model_validate(value)
    if isinstance(value, (list, tuple)):
        return ToolResult.success([_tool_content(item) for item in value])
    if isinstance(value, bytes):
        raise TypeError("tools must return text or content items, not bytes")
    return ToolResult.success([_tool_content(value)])


def _resource_contents(
    descriptor: ResourceDescriptor, uri: str, value: Any
) -> list[TextResourceContents | BlobResourceContents]:
    items = value if isinstance(value, list) else [value]
    contents: list[TextResourceContents | BlobResourceContents] = []
    for item in items:
        if isinstance(item, _RESOURCE_TYPES):
            contents.append(item)
        elif isinstance(item, str):
            contents.append(TextResourceContents(uri=uri, mimeType=descriptor.mime_type, text=item))
        elif isinstance(item, (bytes, bytearray)):
            contents.append(
                BlobResourceContents(
                    uri=uri,
                    mimeType=descriptor.mime_type,
                    blob=base64.b64encode(bytes(item)).decode("ascii"),
                )
            )
        elif item is None:
            raise TypeError(f"resource handler '{descriptor.name}' returned no content")
        else:
            contents.append(
                TextResourceContents(uri=uri, mimeType="application/json", text=_to_json_text(item))
            )
    return contents


def _prompt_messages(value: Any) -> list[PromptMessage]:
    items = value if isinstance(value, (list, tuple)) else [value]
    messages: list[PromptMessage] = []
    for item in items:
        if isinstance(item, PromptMessage):
            messages.append(item)
        elif isinstance(item, str):
            messages.append(PromptMessage(role="user", content=TextContent(text=item)))
        elif isinstance(item, Mapping):
            content = item.get("content")
            if isinstance(content, str):
                content = TextContent(text=content)
            messages.append(PromptMessage(role=item.get("role", "user"), content=content))
        else:
            raise TypeError(f"prompt handlers cannot return {type(item).__name__}")
    return messages


class Dispatcher:
    """Invoke registered handlers with validated input.

    Handler faults are data: every exception raised by a handler is turned
    into a failure result (tools) or a correlated JSON-RPC error (resources
    and prompts). Nothing a handler does may escape to the read loop.
    """

    def __init__(
        self,
        registry: Registry,
        *,
        timeout_ms: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._timeout = timeout_ms / 1000 if timeout_ms else None
        self._logger = logger or LOGGER

    @property
    def registry(self) -> Registry:
        return self._registry

    async def _invoke(self, handler: Handler, payload: dict[str, Any]) -> Any:
        if inspect.iscoroutinefunction(handler):
            pending = handler(payload)
        else:
            pending = asyncio.to_thread(handler, payload)
        try:
            result = await asyncio.wait_for(pending, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            if self._timeout is None:
                raise
            raise HandlerTimeout(f"timed out after {int(self._timeout * 1000)} ms") from exc
        if inspect.isawaitable(result):
            result = await asyncio.wait_for(result, timeout=self._timeout)
        return result

    # Tools -----------------------------------------------------------------------

    async def call_tool(self, name: str, arguments: Any) -> ToolResult:
        try:
            descriptor = cast(ToolDescriptor, self._registry.lookup("tools", name))
        except NotFoundError as exc:
            raise ProtocolError("INVALID_PARAMS", f"Unknown tool: {name}") from exc
        return await self.run_tool(descriptor, arguments)

    async def run_tool(self, descriptor: ToolDescriptor, arguments: Any) -> ToolResult:
        if arguments is None:
            arguments = {}
        violations = descriptor.validator.errors(arguments)
        if violations:
            self._logger.info(
                "Rejected arguments for tool %s: %s", descriptor.name, "; ".join(violations)
            )
            return ToolResult.failure(
                f"Invalid arguments for tool '{descriptor.name}': " + "; ".join(violations)
            )

        payload = descriptor.validator.apply_defaults(arguments)
        try:
            value = await self._invoke(descriptor.handler, payload)
        except HandlerTimeout as exc:
            self._logger.warning("Tool %s %s", descriptor.name, exc)
            return ToolResult.failure(f"Tool '{descriptor.name}' {exc}")
        except Exception as exc:
            self._logger.exception("Tool %s raised", descriptor.name)
            return ToolResult.failure(f"Error executing tool '{descriptor.name}': {exc}")

        try:
            return _tool_result(value)
        except (TypeError, ValidationError) as exc:
            self._logger.error("Tool %s returned malformed content: %s", descriptor.name, exc)
            return ToolResult.failure(
                f"Tool '{descriptor.name}' returned malformed content: {exc}"
            )

    # Resources -------------------------------------------------------------------

    async def read_resource(self, uri: str) -> dict[str, Any]:
        try:
            descriptor, params = self._registry.match_resource(uri)
        except NotFoundError as exc:
            raise ProtocolError(
                "RESOURCE_NOT_FOUND", f"Resource not found: {uri}", data={"uri": uri}
            ) from exc

        try:
            value = await self._invoke(descriptor.handler, dict(params))
            contents = _resource_contents(descriptor, uri, value)
        except HandlerTimeout as exc:
            self._logger.warning("Resource %s %s", uri, exc)
            raise ProtocolError("TIMEOUT", f"Reading {uri} {exc}", data={"uri": uri}) from exc
        except Exception as exc:
            self._logger.exception("Resource handler %s raised", descriptor.name)
            raise ProtocolError(
                "INTERNAL_ERROR", f"Error reading resource {uri}: {exc}", data={"uri": uri}
            ) from exc
        return {"contents": [item.to_dict() for item in contents]}

    # Prompts ---------------------------------------------------------------------

    async def get_prompt(self, name: str, arguments: Any) -> dict[str, Any]:
        try:
            descriptor = cast(PromptDescriptor, self._registry.lookup("prompts", name))
        except NotFoundError as exc:
            raise ProtocolError("INVALID_PARAMS", f"Unknown prompt: {name}") from exc

        if arguments is None:
            arguments = {}
        violations = descriptor.validator.errors(arguments)
        if violations:
            raise ProtocolError(
                "INVALID_PARAMS",
                f"Invalid arguments for prompt '{name}': " + "; ".join(violations),
                data={"errors": violations},
            )

        payload = descriptor.validator.apply_defaults(copy.deepcopy(arguments))
        try:
            value = await self._invoke(descriptor.handler, payload)
            messages = _prompt_messages(value)
        except HandlerTimeout as exc:
            self._logger.warning("Prompt %s %s", name, exc)
            raise ProtocolError("TIMEOUT", f"Prompt '{name}' {exc}") from exc
        except Exception as exc:
            self._logger.exception("Prompt handler %s raised", name)
            raise ProtocolError(
                "INTERNAL_ERROR", f"Error rendering prompt '{name}': {exc}"
            ) from exc
        result: dict[str, Any] = {"messages": [message.to_dict() for message in messages]}
        if descriptor.description:
            result["description"] = descriptor.description
        return result
