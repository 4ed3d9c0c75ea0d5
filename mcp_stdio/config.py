"""Runtime settings for the stdio server."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from mcp_stdio.transports import DEFAULT_MAX_LINE_BYTES

__all__ = [
    "LATEST_PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "ServerSettings",
    "load_settings",
]

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", LATEST_PROTOCOL_VERSION)

_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "WARNING", "ERROR"}

_ENV_PREFIX = "MCP_STDIO_"
_ENV_FIELDS = {
    "LOG_LEVEL": "log_level",
    "REQUEST_TIMEOUT_MS": "request_timeout_ms",
    "OUTBOUND_TIMEOUT_MS": "outbound_timeout_ms",
    "MAX_LINE_BYTES": "max_line_bytes",
    "LOG_DIR": "log_dir",
}


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Server identity, limits and logging configuration."""

    name: str = "mcp-stdio"
    version: str = "0.1.0"
    instructions: str | None = None
    protocol_version: str = LATEST_PROTOCOL_VERSION
    request_timeout_ms: int | None = None
    outbound_timeout_ms: int | None = 30_000
    max_line_bytes: int = DEFAULT_MAX_LINE_BYTES
    log_level: str = "INFO"
    log_dir: Path | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name must be a non-empty string")
        if self.protocol_version not in SUPPORTED_PROTOCOL_VERSIONS:
            raise ValueError(f"Unsupported protocol_version '{self.protocol_version}'")
        for key in ("request_timeout_ms", "outbound_timeout_ms"):
            value = getattr(self, key)
            if value is not None and (not isinstance(value, int) or value <= 0):
                raise ValueError(f"{key} must be a positive integer")
        if not isinstance(self.max_line_bytes, int) or self.max_line_bytes <= 0:
            raise ValueError("max_line_bytes must be a positive integer")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unsupported log_level '{self.log_level}'")

    def with_overrides(self, **overrides: Any) -> ServerSettings:
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})


def _coerce(key: str, value: Any) -> Any:
    if value is None:
        return None
    if key in {"request_timeout_ms", "outbound_timeout_ms", "max_line_bytes"}:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be an integer, got {value!r}") from exc
    if key == "log_dir":
        return Path(value)
    return str(value)


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Config file {path} must contain a mapping")
    known = {field.name for field in fields(ServerSettings)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown setting(s) in {path}: {', '.join(sorted(unknown))}")
    return {key: _coerce(key, value) for key, value in data.items()}


def _read_environ(environ: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for suffix, key in _ENV_FIELDS.items():
        raw = environ.get(_ENV_PREFIX + suffix)
        if raw is not None and raw.strip():
            values[key] = _coerce(key, raw.strip())
    return values


def load_settings(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> ServerSettings:
    """Merge defaults < YAML file < environment < explicit overrides."""

    settings = ServerSettings()
    if config_path is not None:
        settings = settings.with_overrides(**_read_file(Path(config_path)))
    settings = settings.with_overrides(**_read_environ(os.environ if environ is None else environ))
    return settings.with_overrides(**overrides)
