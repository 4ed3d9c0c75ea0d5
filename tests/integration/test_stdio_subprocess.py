"""Run ``python -m mcp_stdio`` as a child process and talk to it over pipes."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


def _run(lines: list[dict[str, Any]], *args: str) -> subprocess.CompletedProcess[str]:
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(REPO_ROOT), env.get("PYTHONPATH")]))
    return subprocess.run(
        [sys.executable, "-m", "mcp_stdio", *args],
        input="".join(json.dumps(line) + "\n" for line in lines),
        capture_output=True,
        text=True,
        cwd=REPO_ROOT,
        env=env,
        timeout=30,
        check=False,
    )


def _responses(stdout: str) -> dict[Any, dict[str, Any]]:
    return {message["id"]: message for message in map(json.loads, stdout.splitlines())}


@pytest.mark.slow
def test_demo_server_session() -> None:
    completed = _run(
        [
            {
                "jsonrpc": "2.0",
                "id": 0,
                "method": "initialize",
                "params": {"protocolVersion": "2025-06-18", "capabilities": {}},
            },
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
            {"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"name": "add", "arguments": {"a": 2, "b": 3}}},
            {"jsonrpc": "2.0", "id": 3, "method": "resources/read", "params": {"uri": "greeting://Ada"}},
            {"jsonrpc": "2.0", "id": 4, "method": "prompts/get", "params": {"name": "review", "arguments": {"code": "x = 1"}}},
            {"id": "5", "method": "echo", "params": {"message": "hi"}},
            {"id": "6", "method": "ghost", "params": {}},
        ]
    )
    assert completed.returncode == 0, completed.stderr
    responses = _responses(completed.stdout)
    assert set(responses) == {0, 1, 2, 3, 4, "5", "6"}
    assert responses[0]["result"]["serverInfo"]["name"] == "mcp-stdio"
    assert {tool["name"] for tool in responses[1]["result"]["tools"]} == {"echo", "add", "sleep"}
    assert responses[2]["result"]["content"][0]["text"] == "5"
    assert responses[3]["result"]["contents"][0]["text"] == "Hello, Ada!"
    prompt_text = responses[4]["result"]["messages"][0]["content"]["text"]
    assert "focusing on correctness" in prompt_text
    assert responses["5"]["result"]["content"] == [{"type": "text", "text": "Echo: hi"}]
    assert responses["6"]["error"]["message"] == "method not found"


@pytest.mark.slow
def test_logs_never_reach_stdout() -> None:
    completed = _run([{"id": 1, "method": "ping"}], "--log-level", "DEBUG")
    assert completed.returncode == 0
    assert completed.stdout.splitlines() == ['{"jsonrpc":"2.0","id":1,"result":{}}']
    assert "Serving 3 tool(s)" in completed.stderr


@pytest.mark.slow
def test_unloadable_app_exits_non_zero() -> None:
    completed = _run([], "--app", "does.not.exist:registry")
    assert completed.returncode == 1
    assert completed.stdout == ""
