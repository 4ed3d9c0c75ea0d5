"""Classify decoded envelopes and route them to the dispatcher."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from mcp_stdio.config import SUPPORTED_PROTOCOL_VERSIONS, ServerSettings
from mcp_stdio.dispatcher import Dispatcher
from mcp_stdio.errors import CanonicalError, McpError, ProtocolError
from mcp_stdio.logging import JsonLogWriter, RequestLogEvent, log_event
from mcp_stdio.models import (
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    error_response,
    success_response,
)
from mcp_stdio.models.messages import RequestId
from mcp_stdio.registry import Registry

__all__ = ["DuplicateRequestError", "RemoteError", "Router"]

LOGGER = logging.getLogger(__name__)

MethodHandler = Callable[[Mapping[str, Any]], Awaitable[dict[str, Any]]]


class DuplicateRequestError(ProtocolError):
    def __init__(self, request_id: RequestId) -> None:
        super().__init__(
            "INVALID_REQUEST",
            f"Request id {request_id!r} is already in flight",
            data={"id": request_id},
        )


class RemoteError(McpError):
    """The client answered a server-initiated request with an error."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"{message} (code {code})")
        self.code = code
        self.data = data


def _require_str(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise ProtocolError("INVALID_PARAMS", f"'{key}' must be a non-empty string")
    return value


class Router:
    """Route requests, notifications and responses.

    The router owns two tables: identifiers of client requests currently
    being executed, and futures for requests the server sent to the client
    that are still awaiting a response.
    """

    def __init__(
        self,
        registry: Registry,
        dispatcher: Dispatcher,
        *,
        settings: ServerSettings | None = None,
        log_writer: JsonLogWriter | None = None,
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._settings = settings or ServerSettings()
        self._log_writer = log_writer
        self._in_flight: set[RequestId] = set()
        self._outstanding: dict[RequestId, asyncio.Future[Any]] = {}
        self._outbound_ids = itertools.count(1)
        self.initialized = False
        self.shutdown_requested = False
        self._methods: dict[str, MethodHandler] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "shutdown": self._shutdown,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
            "resources/list": self._list_resources,
            "resources/templates/list": self._list_resource_templates,
            "resources/read": self._read_resource,
            "prompts/list": self._list_prompts,
            "prompts/get": self._get_prompt,
        }

    @property
    def in_flight(self) -> frozenset[RequestId]:
        return frozenset(self._in_flight)

    @property
    def outstanding(self) -> frozenset[RequestId]:
        return frozenset(self._outstanding)

    # Client requests --------------------------------------------------------------

    def begin(self, request: JsonRpcRequest) -> None:
        """Mark ``request`` in flight; its id must not already be in use."""

        if request.id in self._in_flight:
            raise DuplicateRequestError(request.id)
        self._in_flight.add(request.id)

    def finish(self, request: JsonRpcRequest) -> None:
        self._in_flight.discard(request.id)

    async def handle_request(self, request: JsonRpcRequest) -> dict[str, Any]:
        """Produce exactly one response envelope for ``request``."""

        start = time.perf_counter()
        status = "ok"
        error: dict[str, Any] | None = None
        try:
            result = await self._route(request.method, request.params)
            if result.get("isError"):
                status = "failed"
            response = success_response(request.id, result)
        except ProtocolError as exc:
            status = "error"
            error = exc.to_jsonrpc_error()
            response = error_response(request.id, error)
        except Exception as exc:
            LOGGER.exception("Unhandled error while serving %s", request.method)
            status = "error"
            error = CanonicalError.to_jsonrpc_error("INTERNAL_ERROR", message=str(exc) or None)
            response = error_response(request.id, error)
        self._record(request, status, time.perf_counter() - start, error)
        return response

    async def _route(self, method: str, params: Mapping[str, Any]) -> dict[str, Any]:
        handler = self._methods.get(method)
        if handler is not None:
            return await handler(params)
        if self._registry.contains("tools", method):
            result = await self._dispatcher.call_tool(method, dict(params))
            return result.to_dict()
        raise ProtocolError("METHOD_NOT_FOUND", data={"method": method})

    def _record(
        self,
        request: JsonRpcRequest,
        status: str,
        elapsed: float,
        error: dict[str, Any] | None,
    ) -> None:
        duration_ms = elapsed * 1000
        log_event(
            request_id=request.id,
            method=request.method,
            status=status,
            duration_ms=round(duration_ms, 3),
            error_code=error["code"] if error else None,
        )
        if self._log_writer is not None:
            self._log_writer.write(
                RequestLogEvent(
                    ts=datetime.now(timezone.utc),
                    request_id=request.id,
                    method=request.method,
                    status=status,
                    duration_ms=duration_ms,
                    error=error,
                )
            )

    # Notifications ---------------------------------------------------------------

    async def handle_notification(self, notification: JsonRpcNotification) -> None:
        if notification.method == "notifications/initialized":
            self.initialized = True
            LOGGER.debug("Client finished initialisation")
        elif notification.method == "notifications/cancelled":
            # Running handlers always run to completion.
            LOGGER.info(
                "Ignoring cancellation for request %r", notification.params.get("requestId")
            )
        else:
            LOGGER.debug("Ignoring notification %s", notification.method)

    # Server-initiated requests -----------------------------------------------------

    async def send_request(
        self,
        method: str,
        params: Mapping[str, Any] | None,
        send: Callable[[dict[str, Any]], Awaitable[None]],
    ) -> Any:
        """Send a request to the client and wait for its correlated response."""

        request_id = f"srv-{next(self._outbound_ids)}"
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._outstanding[request_id] = future
        message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params:
            message["params"] = dict(params)
        timeout_ms = self._settings.outbound_timeout_ms
        try:
            await send(message)
            return await asyncio.wait_for(future, timeout=timeout_ms / 1000 if timeout_ms else None)
        finally:
            self._outstanding.pop(request_id, None)

    def handle_response(self, response: JsonRpcResponse) -> None:
        future = self._outstanding.pop(response.id, None)
        if future is None:
            LOGGER.debug("Dropping unmatched response for id %r", response.id)
            return
        if future.done():
            return
        if response.error is not None:
            future.set_exception(
                RemoteError(response.error.code, response.error.message, response.error.data)
            )
        else:
            future.set_result(response.result)

    def abandon_outstanding(self) -> None:
        for request_id, future in list(self._outstanding.items()):
            if not future.done():
                future.cancel()
            self._outstanding.pop(request_id, None)

    # Built-in methods --------------------------------------------------------------

    async def _initialize(self, params: Mapping[str, Any]) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
            version = requested
        else:
            version = self._settings.protocol_version
        client = params.get("clientInfo") or {}
        LOGGER.info(
            "Initialising session for %s (protocol %s)",
            client.get("name", "unknown client") if isinstance(client, Mapping) else "unknown client",
            version,
        )
        capabilities: dict[str, Any] = {}
        if self._registry.list("tools"):
            capabilities["tools"] = {"listChanged": False}
        if self._registry.list("resources"):
            capabilities["resources"] = {"subscribe": False, "listChanged": False}
        if self._registry.list("prompts"):
            capabilities["prompts"] = {"listChanged": False}
        result: dict[str, Any] = {
            "protocolVersion": version,
            "capabilities": capabilities,
            "serverInfo": {"name": self._settings.name, "version": self._settings.version},
        }
        if self._settings.instructions:
            result["instructions"] = self._settings.instructions
        return result

    async def _ping(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return {}

    async def _shutdown(self, params: Mapping[str, Any]) -> dict[str, Any]:
        self.shutdown_requested = True
        return {}

    async def _list_tools(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return {"tools": [tool.to_listing() for tool in self._registry.list("tools")]}

    async def _call_tool(self, params: Mapping[str, Any]) -> dict[str, Any]:
        name = _require_str(params, "name")
        result = await self._dispatcher.call_tool(name, params.get("arguments"))
        return result.to_dict()

    async def _list_resources(self, params: Mapping[str, Any]) -> dict[str, Any]:
        resources = [
            item.to_listing()
            for item in self._registry.list("resources")
            if not item.is_template  # type: ignore[union-attr]
        ]
        return {"resources": resources}

    async def _list_resource_templates(self, params: Mapping[str, Any]) -> dict[str, Any]:
        templates = [
            item.to_listing()
            for item in self._registry.list("resources")
            if item.is_template  # type: ignore[union-attr]
        ]
        return {"resourceTemplates": templates}

    async def _read_resource(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return await self._dispatcher.read_resource(_require_str(params, "uri"))

    async def _list_prompts(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return {"prompts": [prompt.to_listing() for prompt in self._registry.list("prompts")]}

    async def _get_prompt(self, params: Mapping[str, Any]) -> dict[str, Any]:
        name = _require_str(params, "name")
        return await self._dispatcher.get_prompt(name, params.get("arguments"))
