"""Small registry served when no application entrypoint is given."""

from __future__ import annotations

import asyncio
from typing import Any

from mcp_stdio.registry import Registry
from mcp_stdio.validation import Param

__all__ = ["build_registry"]


def build_registry() -> Registry:
    registry = Registry()

    @registry.tool(
        description="Echo a message back to the caller",
        input_shape={"message": Param(type="string", description="Text to echo")},
    )
    def echo(arguments: dict[str, Any]) -> str:
        return f"Echo: {arguments['message']}"

    @registry.tool(
        description="Add two numbers",
        input_shape={"a": "number", "b": "number"},
    )
    def add(arguments: dict[str, Any]) -> str:
        return str(arguments["a"] + arguments["b"])

    @registry.tool(
        description="Wait for a number of milliseconds, then report how long it waited",
        input_shape={
            "ms": Param(type="integer", constraints={"minimum": 0, "maximum": 60_000}),
        },
    )
    async def sleep(arguments: dict[str, Any]) -> str:
        await asyncio.sleep(arguments["ms"] / 1000)
        return f"Slept {arguments['ms']} ms"

    @registry.resource("greeting://{name}", description="A personalised greeting")
    def greeting(params: dict[str, str]) -> str:
        return f"Hello, {params['name']}!"

    @registry.resource("info://server", name="server_info", mime_type="application/json")
    def server_info(params: dict[str, str]) -> dict[str, Any]:
        return {"tools": ["echo", "add", "sleep"], "resources": ["greeting", "server_info"]}

    @registry.prompt(
        description="Ask for a code review",
        parameter_shape={
            "code": Param(type="string", description="Code to review"),
            "focus": Param(type="string", required=False, default="correctness"),
        },
    )
    def review(arguments: dict[str, Any]) -> str:
        return f"Please review this code, focusing on {arguments['focus']}:\n\n{arguments['code']}"

    return registry
