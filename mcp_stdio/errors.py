from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

__all__ = [
    "CanonicalError",
    "DuplicateNameError",
    "McpError",
    "NotFoundError",
    "ProtocolError",
    "RegistryClosedError",
    "RegistryError",
    "TransportError",
]


@dataclass(frozen=True)
class _CanonicalSpec:
    code: str
    description: str
    jsonrpc_code: int
    message: str


class CanonicalError:
    """Canonical error codes and their JSON-RPC mapping."""

    _SPECS: tuple[_CanonicalSpec, ...] = (
        _CanonicalSpec("PARSE_ERROR", "Message is not valid JSON", -32700, "Parse error"),
        _CanonicalSpec(
            "INVALID_REQUEST",
            "Message is not a well-formed JSON-RPC envelope",
            -32600,
            "Invalid request",
        ),
        _CanonicalSpec(
            "METHOD_NOT_FOUND",
            "Method name is not served",
            -32601,
            "method not found",
        ),
        _CanonicalSpec(
            "INVALID_PARAMS",
            "Request params failed validation",
            -32602,
            "Invalid params",
        ),
        _CanonicalSpec(
            "INTERNAL_ERROR",
            "Unexpected server-side failure",
            -32603,
            "Internal error",
        ),
        _CanonicalSpec(
            "RESOURCE_NOT_FOUND",
            "Resource URI matches no registered resource",
            -32002,
            "Resource not found",
        ),
        _CanonicalSpec(
            "TIMEOUT",
            "Handler exceeded the configured timeout",
            -32001,
            "Request timed out",
        ),
    )

    _JSONRPC_MAP: dict[str, _CanonicalSpec] = {spec.code: spec for spec in _SPECS}

    @classmethod
    def codes(cls) -> Sequence[str]:
        return tuple(spec.code for spec in cls._SPECS)

    @classmethod
    def jsonrpc_code(cls, code: str) -> int:
        if code not in cls._JSONRPC_MAP:
            raise KeyError(f"{code} does not have a JSON-RPC mapping")
        return cls._JSONRPC_MAP[code].jsonrpc_code

    @classmethod
    def to_jsonrpc_error(
        cls,
        code: str,
        *,
        message: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Materialise a JSON-RPC error object for ``code``."""

        if code not in cls._JSONRPC_MAP:
            raise KeyError(f"{code} does not have a JSON-RPC mapping")
        spec = cls._JSONRPC_MAP[code]
        payload: dict[str, Any] = {
            "code": spec.jsonrpc_code,
            "message": message or spec.message,
        }
        if data:
            payload["data"] = dict(data)
        return payload


class McpError(Exception):
    """Base class for all errors raised by the runtime."""


class TransportError(McpError):
    """The underlying byte stream is closed, broken or unframeable."""


class RegistryError(McpError):
    """Raised for invalid registry operations."""


class DuplicateNameError(RegistryError):
    def __init__(self, category: str, name: str) -> None:
        super().__init__(f"{category[:-1]} '{name}' is already registered")
        self.category = category
        self.name = name


class RegistryClosedError(RegistryError):
    """Registration attempted after the server started serving."""


class NotFoundError(RegistryError):
    def __init__(self, category: str, name: str) -> None:
        super().__init__(f"{category[:-1]} '{name}' not found")
        self.category = category
        self.name = name


class ProtocolError(McpError):
    """A request that must be answered with a JSON-RPC error object."""

    def __init__(
        self,
        code: str,
        message: str | None = None,
        *,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message or code)
        self.code = code
        self.message = message
        self.data = dict(data) if data else None

    def to_jsonrpc_error(self) -> dict[str, Any]:
        return CanonicalError.to_jsonrpc_error(self.code, message=self.message, data=self.data)
