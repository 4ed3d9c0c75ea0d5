"""Newline-delimited framing over standard input/output."""

from __future__ import annotations

import asyncio
import sys
from typing import IO

from mcp_stdio.errors import McpError, TransportError

__all__ = [
    "DEFAULT_MAX_LINE_BYTES",
    "OversizedLineError",
    "StdioTransport",
    "UndecodableLineError",
    "open_stdio",
]

DEFAULT_MAX_LINE_BYTES = 4 * 1024 * 1024
_DRAIN_CHUNK = 64 * 1024


class OversizedLineError(McpError):
    """A line exceeded the size limit; it was discarded up to its newline."""


class UndecodableLineError(McpError):
    """A complete line was read but is not valid UTF-8."""


class StdioTransport:
    """Line transport over a pair of binary streams.

    Blocking reads and writes run in worker threads so the event loop keeps
    scheduling handler tasks. Writes are serialised with a lock; a line is
    always written and flushed as a single unit.
    """

    def __init__(
        self,
        reader: IO[bytes],
        writer: IO[bytes],
        *,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
    ) -> None:
        if max_line_bytes <= 0:
            raise ValueError("max_line_bytes must be a positive integer")
        self._reader = reader
        self._writer = writer
        self._max_line_bytes = max_line_bytes
        self._write_lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read_line(self) -> str | None:
        """Return the next line without its terminator, or ``None`` at EOF."""

        if self._closed:
            raise TransportError("transport is closed")
        try:
            raw = await asyncio.to_thread(self._reader.readline, self._max_line_bytes + 1)
        except (OSError, ValueError) as exc:
            raise TransportError(f"failed to read from input stream: {exc}") from exc
        if not raw:
            return None
        if len(raw) > self._max_line_bytes and not raw.endswith(b"\n"):
            await asyncio.to_thread(self._discard_rest_of_line)
            raise OversizedLineError(
                f"message exceeds the {self._max_line_bytes} byte line limit"
            )
        try:
            return raw.rstrip(b"\r\n").decode("utf-8")
        except UnicodeDecodeError as exc:
            raise UndecodableLineError(f"message is not valid UTF-8: {exc}") from exc

    def _discard_rest_of_line(self) -> None:
        while True:
            chunk = self._reader.readline(_DRAIN_CHUNK)
            if not chunk or chunk.endswith(b"\n"):
                return

    async def write_line(self, text: str) -> None:
        """Write ``text`` followed by exactly one newline."""

        if "\n" in text:
            raise ValueError("a framed message must not contain a newline")
        data = text.encode("utf-8") + b"\n"
        async with self._write_lock:
            if self._closed:
                raise TransportError("transport is closed")
            try:
                await asyncio.to_thread(self._write_and_flush, data)
            except (OSError, ValueError) as exc:
                self._closed = True
                raise TransportError(f"failed to write to output stream: {exc}") from exc

    def _write_and_flush(self, data: bytes) -> None:
        self._writer.write(data)
        self._writer.flush()

    def close(self) -> None:
        self._closed = True


def open_stdio(*, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES) -> StdioTransport:
    """Build a transport over the process's standard input and output."""

    try:
        reader = sys.stdin.buffer
        writer = sys.stdout.buffer
    except AttributeError as exc:
        raise TransportError("standard input/output are not available") from exc
    return StdioTransport(reader, writer, max_line_bytes=max_line_bytes)
