"""Minimal Model Context Protocol server runtime over stdio."""

from mcp_stdio.config import ServerSettings, load_settings
from mcp_stdio.errors import (
    DuplicateNameError,
    McpError,
    NotFoundError,
    ProtocolError,
    RegistryClosedError,
    TransportError,
)
from mcp_stdio.models import TextContent, ToolResult
from mcp_stdio.registry import PromptDescriptor, Registry, ResourceDescriptor, ToolDescriptor
from mcp_stdio.server import McpStdioServer
from mcp_stdio.validation import Param

__all__ = [
    "DuplicateNameError",
    "McpError",
    "McpStdioServer",
    "NotFoundError",
    "Param",
    "PromptDescriptor",
    "ProtocolError",
    "Registry",
    "RegistryClosedError",
    "ResourceDescriptor",
    "ServerSettings",
    "TextContent",
    "ToolDescriptor",
    "ToolResult",
    "TransportError",
    "load_settings",
]
