"""Transports for the MCP runtime."""

from .stdio import (
    DEFAULT_MAX_LINE_BYTES,
    OversizedLineError,
    StdioTransport,
    UndecodableLineError,
    open_stdio,
)

__all__ = [
    "DEFAULT_MAX_LINE_BYTES",
    "OversizedLineError",
    "StdioTransport",
    "UndecodableLineError",
    "open_stdio",
]
