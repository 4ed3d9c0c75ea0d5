"""Drive a server over in-memory byte streams."""

from __future__ import annotations

import asyncio
import io
import json
from typing import Any

from mcp_stdio.config import ServerSettings
from mcp_stdio.registry import Registry
from mcp_stdio.server import McpStdioServer
from mcp_stdio.transports import StdioTransport


def encode_lines(messages: list[Any]) -> bytes:
    lines: list[bytes] = []
    for message in messages:
        if isinstance(message, bytes):
            lines.append(message)
        elif isinstance(message, str):
            lines.append(message.encode("utf-8"))
        else:
            lines.append(json.dumps(message).encode("utf-8"))
    return b"\n".join(lines) + b"\n"


def run_session(
    registry: Registry,
    messages: list[Any],
    *,
    settings: ServerSettings | None = None,
    max_line_bytes: int = 1024 * 1024,
) -> list[dict[str, Any]]:
    """Feed ``messages`` (dicts, raw lines or raw bytes) to a server and return its output."""

    reader = io.BytesIO(encode_lines(messages))
    writer = io.BytesIO()
    transport = StdioTransport(reader, writer, max_line_bytes=max_line_bytes)
    server = McpStdioServer(registry, settings=settings, transport=transport)
    asyncio.run(server.serve())
    output = writer.getvalue().decode("utf-8")
    assert output == "" or output.endswith("\n")
    return [json.loads(line) for line in output.splitlines()]


def by_id(responses: list[dict[str, Any]]) -> dict[Any, dict[str, Any]]:
    return {response.get("id"): response for response in responses}
