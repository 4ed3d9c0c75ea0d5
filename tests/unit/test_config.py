from __future__ import annotations

from pathlib import Path

import pytest

from mcp_stdio.config import ServerSettings, load_settings


def test_defaults() -> None:
    settings = load_settings(environ={})
    assert settings == ServerSettings()
    assert settings.request_timeout_ms is None
    assert settings.log_dir is None


def test_precedence_file_then_environment_then_overrides(tmp_path: Path) -> None:
    config = tmp_path / "server.yaml"
    config.write_text(
        "name: notes\n"
        "instructions: Use the notes tools\n"
        "request_timeout_ms: 1000\n"
        "max_line_bytes: 2048\n"
        "log_level: DEBUG\n",
        encoding="utf-8",
    )
    settings = load_settings(
        config,
        environ={"MCP_STDIO_REQUEST_TIMEOUT_MS": "2000", "MCP_STDIO_LOG_DIR": str(tmp_path)},
        max_line_bytes=4096,
        log_level=None,
    )
    assert settings.name == "notes"
    assert settings.instructions == "Use the notes tools"
    assert settings.request_timeout_ms == 2000
    assert settings.max_line_bytes == 4096
    assert settings.log_level == "DEBUG"
    assert settings.log_dir == tmp_path


def test_unknown_keys_in_file_are_rejected(tmp_path: Path) -> None:
    config = tmp_path / "server.yaml"
    config.write_text("port: 8080\n", encoding="utf-8")
    with pytest.raises(ValueError, match="port"):
        load_settings(config, environ={})


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "absent.yaml", environ={})


def test_non_mapping_file(tmp_path: Path) -> None:
    config = tmp_path / "server.yaml"
    config.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(config, environ={})


@pytest.mark.parametrize(
    "environ",
    [
        {"MCP_STDIO_REQUEST_TIMEOUT_MS": "soon"},
        {"MCP_STDIO_REQUEST_TIMEOUT_MS": "0"},
        {"MCP_STDIO_MAX_LINE_BYTES": "-1"},
        {"MCP_STDIO_LOG_LEVEL": "chatty"},
    ],
)
def test_invalid_values_are_rejected(environ: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        load_settings(environ=environ)


def test_unsupported_protocol_version() -> None:
    with pytest.raises(ValueError):
        ServerSettings(protocol_version="1.0")
