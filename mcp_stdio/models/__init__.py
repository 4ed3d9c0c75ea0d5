"""Data models used by the MCP stdio runtime."""

from .content import (
    BlobResourceContents,
    Content,
    EmbeddedResource,
    ImageContent,
    PromptMessage,
    ResourceContents,
    TextContent,
    TextResourceContents,
    ToolResult,
)
from .messages import (
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
    MessageDecodeError,
    decode_message,
    encode_message,
    error_response,
    success_response,
)

__all__ = [
    "BlobResourceContents",
    "Content",
    "EmbeddedResource",
    "ImageContent",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "Message",
    "MessageDecodeError",
    "PromptMessage",
    "ResourceContents",
    "TextContent",
    "TextResourceContents",
    "ToolResult",
    "decode_message",
    "encode_message",
    "error_response",
    "success_response",
]
