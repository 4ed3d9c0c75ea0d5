"""Read loop tying the transport, router and dispatcher together."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from mcp_stdio.config import ServerSettings
from mcp_stdio.dispatcher import Dispatcher
from mcp_stdio.errors import CanonicalError, ProtocolError, TransportError
from mcp_stdio.logging import JsonLogWriter, request_log_path
from mcp_stdio.models import (
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    MessageDecodeError,
    decode_message,
    encode_message,
    error_response,
)
from mcp_stdio.registry import Registry
from mcp_stdio.router import Router
from mcp_stdio.transports import (
    OversizedLineError,
    StdioTransport,
    UndecodableLineError,
    open_stdio,
)

__all__ = ["McpStdioServer"]

LOGGER = logging.getLogger(__name__)


class McpStdioServer:
    """Serve a closed :class:`Registry` over newline-delimited JSON-RPC.

    Lines are read one at a time in arrival order. Each request runs in its
    own task, so responses may be written out of order; every response
    carries the id of the request it answers. Only transport failures end
    the loop abnormally.
    """

    def __init__(
        self,
        registry: Registry,
        *,
        settings: ServerSettings | None = None,
        transport: StdioTransport | None = None,
    ) -> None:
        self._registry = registry
        self._settings = settings or ServerSettings()
        self._transport = transport
        self._log_writer: JsonLogWriter | None = None
        if self._settings.log_dir is not None:
            self._log_writer = JsonLogWriter(request_log_path(self._settings.log_dir))
        self._dispatcher = Dispatcher(registry, timeout_ms=self._settings.request_timeout_ms)
        self._router = Router(
            registry,
            self._dispatcher,
            settings=self._settings,
            log_writer=self._log_writer,
        )
        self._tasks: set[asyncio.Task[None]] = set()
        self._fatal: TransportError | None = None
        self._read_task: asyncio.Task[None] | None = None

    @property
    def router(self) -> Router:
        return self._router

    @property
    def settings(self) -> ServerSettings:
        return self._settings

    async def serve(self) -> None:
        """Serve until end of input or a ``shutdown`` request.

        Raises :class:`TransportError` when the streams fail.
        """

        if self._transport is None:
            self._transport = open_stdio(max_line_bytes=self._settings.max_line_bytes)
        self._registry.close()
        LOGGER.info(
            "Serving %d tool(s), %d resource(s), %d prompt(s) over stdio",
            len(self._registry.list("tools")),
            len(self._registry.list("resources")),
            len(self._registry.list("prompts")),
        )
        self._read_task = asyncio.create_task(self._read_loop())
        try:
            await self._read_task
        except asyncio.CancelledError:
            if self._fatal is None:
                raise
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            self._router.abandon_outstanding()
            if self._log_writer is not None:
                self._log_writer.close()
        if self._fatal is not None:
            raise self._fatal
        LOGGER.info("Input closed; server stopped")

    def run(self) -> None:
        asyncio.run(self.serve())

    async def request(self, method: str, params: Mapping[str, Any] | None = None) -> Any:
        """Send a request to the client and return its result."""

        return await self._router.send_request(method, params, self._send)

    async def _read_loop(self) -> None:
        transport = self._require_transport()
        while True:
            try:
                line = await transport.read_line()
            except OversizedLineError as exc:
                await self._reject_line("INVALID_REQUEST", exc)
                continue
            except UndecodableLineError as exc:
                await self._reject_line("PARSE_ERROR", exc)
                continue
            if line is None:
                return
            if not line.strip():
                continue
            if await self._handle_line(line):
                return

    async def _handle_line(self, line: str) -> bool:
        """Handle one framed line; return ``True`` when the loop should stop."""

        try:
            message = decode_message(line)
        except MessageDecodeError as exc:
            if exc.is_response:
                LOGGER.warning("Dropping malformed response: %s", exc)
                return False
            LOGGER.warning("Rejected malformed message: %s", exc)
            await self._send(error_response(exc.request_id, exc.to_jsonrpc_error()))
            return False

        if isinstance(message, JsonRpcResponse):
            self._router.handle_response(message)
            return False
        if isinstance(message, JsonRpcNotification):
            await self._router.handle_notification(message)
            return False

        try:
            self._router.begin(message)
        except ProtocolError as exc:
            await self._send(error_response(message.id, exc.to_jsonrpc_error()))
            return False
        if message.method == "shutdown":
            await self._respond(message)
            return True
        task = asyncio.create_task(self._respond(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return False

    async def _respond(self, request: JsonRpcRequest) -> None:
        try:
            response = await self._router.handle_request(request)
            await self._send(response)
        except TransportError as exc:
            self._fail(exc)
        finally:
            self._router.finish(request)

    async def _reject_line(self, code: str, exc: Exception) -> None:
        LOGGER.warning("%s", exc)
        error = CanonicalError.to_jsonrpc_error(code, message=str(exc))
        await self._send(error_response(None, error))

    async def _send(self, payload: dict[str, Any]) -> None:
        await self._require_transport().write_line(encode_message(payload))

    def _require_transport(self) -> StdioTransport:
        if self._transport is None:
            raise TransportError("server is not serving")
        return self._transport

    def _fail(self, exc: TransportError) -> None:
        if self._fatal is not None:
            return
        LOGGER.error("Transport failure: %s", exc)
        self._fatal = exc
        if self._read_task is not None and not self._read_task.done():
            self._read_task.cancel()
