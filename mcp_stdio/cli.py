from __future__ import annotations

import argparse
import importlib
import logging
from pathlib import Path

from mcp_stdio.config import ServerSettings, load_settings
from mcp_stdio.errors import McpError, TransportError
from mcp_stdio.logging import configure_logging
from mcp_stdio.registry import Registry
from mcp_stdio.server import McpStdioServer

LOGGER = logging.getLogger(__name__)

_DEFAULT_APP = "mcp_stdio.demo:build_registry"


class EntrypointError(McpError):
    """Raised when ``--app`` does not resolve to a registry."""


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-stdio",
        description="Serve registered MCP tools, resources and prompts over stdio",
    )
    parser.add_argument(
        "--app",
        default=_DEFAULT_APP,
        help="Registry entrypoint as 'module:attribute' (a Registry or a callable returning one)",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARN", "ERROR"],
        default=None,
        help="Logging level (stderr)",
    )
    parser.add_argument(
        "--request-timeout-ms",
        type=int,
        default=None,
        help="Fail handlers that run longer than this many milliseconds",
    )
    parser.add_argument(
        "--max-line-bytes",
        type=int,
        default=None,
        help="Reject input lines longer than this many bytes",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for the JSONL request log",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return create_parser().parse_args(argv)


def resolve_registry(entrypoint: str) -> Registry:
    module_name, sep, attr_name = entrypoint.partition(":")
    if not sep or not module_name or not attr_name:
        raise EntrypointError(f"Entrypoint '{entrypoint}' must use 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise EntrypointError(f"Failed to import module '{module_name}': {exc}") from exc
    try:
        target = getattr(module, attr_name)
    except AttributeError as exc:
        raise EntrypointError(f"Module '{module_name}' has no attribute '{attr_name}'") from exc

    if not isinstance(target, Registry) and callable(target):
        target = target()
    if not isinstance(target, Registry):
        raise EntrypointError(
            f"Entrypoint '{entrypoint}' produced {type(target).__name__}, expected Registry"
        )
    return target


def build_settings(args: argparse.Namespace) -> ServerSettings:
    return load_settings(
        args.config,
        log_level=args.log_level,
        request_timeout_ms=args.request_timeout_ms,
        max_line_bytes=args.max_line_bytes,
        log_dir=args.log_dir,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except (OSError, ValueError) as exc:
        configure_logging("ERROR")
        LOGGER.error("Invalid configuration: %s", exc)
        return 1
    configure_logging(settings.log_level)

    try:
        registry = resolve_registry(args.app)
        server = McpStdioServer(registry, settings=settings)
        server.run()
    except EntrypointError as exc:
        LOGGER.error("%s", exc)
        return 1
    except TransportError as exc:
        LOGGER.error("Stopping after transport failure: %s", exc)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
