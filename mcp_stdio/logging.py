"""Structured logging utilities for the stdio server.

Stdout carries protocol messages only, so every diagnostic goes to stderr.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any
from uuid import uuid4

__all__ = [
    "JsonLogWriter",
    "LOGGER_NAME",
    "RequestLogEvent",
    "configure_logging",
    "log_event",
    "request_log_path",
]

LOGGER_NAME = "mcp_stdio"

logger = logging.getLogger(LOGGER_NAME)

_LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(name)s] %(levelname)s %(message)s"
_LOG_DATE_FORMAT = "%H:%M:%S"
_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def configure_logging(level: str | int = logging.INFO, *, stream: IO[str] | None = None) -> None:
    """Route the root logger to stderr; must run before the server starts."""

    if isinstance(level, str):
        level = _LEVELS[level.upper()]
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def log_event(*, request_id: Any, method: str | None, status: str, **extra: Any) -> None:
    """Emit a JSON log line describing one handled message."""

    payload: dict[str, Any] = {
        "request_id": request_id,
        "method": method,
        "status": status,
    }
    for key, value in extra.items():
        if value is not None:
            payload[key] = value
    logger.info(json.dumps(payload, sort_keys=True, default=str))


@dataclass
class RequestLogEvent:
    """In-memory representation of one persisted request record."""

    ts: datetime
    request_id: Any
    method: str | None
    status: str
    duration_ms: float
    metadata: Mapping[str, Any] = field(default_factory=dict)
    error: Mapping[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        ts = self.ts
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)
        return {
            "ts": ts.isoformat().replace("+00:00", "Z"),
            "request_id": self.request_id,
            "method": self.method,
            "status": self.status,
            "duration_ms": round(float(self.duration_ms), 3),
            "metadata": dict(self.metadata),
            "error": dict(self.error) if self.error is not None else None,
        }


def request_log_path(log_dir: Path) -> Path:
    return Path(log_dir) / "logs" / "mcp_stdio" / "requests.jsonl"


class JsonLogWriter:
    """Persist request events to newline-delimited JSON."""

    def __init__(self, path: str | Path, *, retention: int = 5) -> None:
        self.path = Path(path)
        self._retention = max(retention, 1)
        self._lock = threading.Lock()
        self._run_id = uuid4().hex
        self._sequence = 0
        self._buffer: list[str] = []
        self._handle: IO[str] | None = None
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._rotate()

    @property
    def run_id(self) -> str:
        return self._run_id

    def write(self, event: RequestLogEvent) -> None:
        """Append ``event``; lines that fail to write stay buffered for a retry."""

        payload = event.to_payload()
        with self._lock:
            payload["run_id"] = self._run_id
            payload["sequence"] = self._sequence
            self._sequence += 1
            self._buffer.append(json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str) + "\n")
            self._ensure_handle()
            self._flush_buffer()

    def close(self) -> None:
        with self._lock:
            self._ensure_handle()
            self._flush_buffer()
            if self._handle is not None:
                try:
                    self._handle.flush()
                finally:
                    self._handle.close()
                    self._handle = None

    def __enter__(self) -> JsonLogWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_handle(self) -> None:
        if self._handle is not None:
            return
        try:
            self._handle = self.path.open("a", encoding="utf-8")
        except OSError:
            logger.warning("Cannot open request log %s", self.path)
            self._handle = None

    def _flush_buffer(self) -> None:
        if not self._buffer or self._handle is None:
            return
        try:
            self._handle.writelines(self._buffer)
            self._handle.flush()
            self._buffer.clear()
        except OSError:
            try:
                self._handle.close()
            finally:
                self._handle = None

    def _rotate(self) -> None:
        """Move a previous run's log aside and keep ``retention`` old files."""

        if self.path.exists() and self.path.stat().st_size > 0:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
            self.path.rename(self.path.with_name(f"{self.path.stem}.{stamp}.jsonl"))
        try:
            candidates = sorted(
                (
                    entry
                    for entry in self.path.parent.glob(f"{self.path.stem}.*.jsonl")
                    if entry.is_file()
                ),
                key=lambda entry: entry.name,
            )
        except OSError:
            return
        excess = len(candidates) - self._retention
        for old_path in candidates[: max(excess, 0)]:
            try:
                old_path.unlink()
            except OSError:
                continue
