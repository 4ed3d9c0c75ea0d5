from __future__ import annotations

import json

import pytest

from mcp_stdio.models import (
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    MessageDecodeError,
    TextContent,
    ToolResult,
    decode_message,
    encode_message,
    error_response,
)


def test_request_without_jsonrpc_member_is_accepted() -> None:
    message = decode_message('{"id": "1", "method": "echo", "params": {"message": "hi"}}')
    assert isinstance(message, JsonRpcRequest)
    assert message.id == "1"
    assert message.params == {"message": "hi"}


def test_null_params_become_empty_mapping() -> None:
    message = decode_message('{"jsonrpc": "2.0", "id": 3, "method": "ping", "params": null}')
    assert isinstance(message, JsonRpcRequest)
    assert message.params == {}


def test_notification_and_response_classification() -> None:
    assert isinstance(decode_message('{"method": "notifications/initialized"}'), JsonRpcNotification)
    response = decode_message('{"jsonrpc": "2.0", "id": 4, "result": {"ok": true}}')
    assert isinstance(response, JsonRpcResponse)
    assert response.result == {"ok": True}


@pytest.mark.parametrize(
    ("line", "code", "request_id"),
    [
        ("{", "PARSE_ERROR", None),
        ("[]", "INVALID_REQUEST", None),
        ("42", "INVALID_REQUEST", None),
        ('{"id": 1}', "INVALID_REQUEST", 1),
        ('{"id": true, "method": "ping"}', "INVALID_REQUEST", None),
        ('{"id": 1.5, "method": "ping"}', "INVALID_REQUEST", None),
        ('{"id": "a", "method": ""}', "INVALID_REQUEST", "a"),
        ('{"id": "b", "method": "ping", "params": "x"}', "INVALID_PARAMS", "b"),
        ('{"id": 2, "result": {}, "error": {"code": 1, "message": "m"}}', "INVALID_REQUEST", 2),
    ],
)
def test_decode_failures_keep_best_effort_id(line: str, code: str, request_id: object) -> None:
    with pytest.raises(MessageDecodeError) as excinfo:
        decode_message(line)
    assert excinfo.value.code == code
    assert excinfo.value.request_id == request_id


def test_encoded_messages_are_single_lines() -> None:
    payload = error_response(None, {"code": -32700, "message": "line\nbreak   ünicode"})
    encoded = encode_message(payload)
    assert "\n" not in encoded
    assert json.loads(encoded) == payload


def test_tool_result_wire_format() -> None:
    assert ToolResult.success([TextContent(text="ok")]).to_dict() == {
        "content": [{"type": "text", "text": "ok"}]
    }
    failure = ToolResult.failure("bad input")
    assert failure.to_dict() == {"content": [{"type": "text", "text": "bad input"}], "isError": True}
    assert ToolResult.model_validate({"content": [], "isError": True}).is_error is True


@pytest.mark.parametrize(
    "line",
    [
        '{"jsonrpc": "2.0", "id": "srv-1", "result": "ok"}',
        '{"jsonrpc": "2.0", "id": "srv-1", "result": null}',
        '{"jsonrpc": "2.0", "id": "srv-1", "result": []}',
        '{"jsonrpc": "2.0", "id": null, "error": {"code": -32700, "message": "Parse error"}}',
    ],
)
def test_responses_accept_any_result_and_null_id(line: str) -> None:
    assert isinstance(decode_message(line), JsonRpcResponse)


def test_malformed_response_is_flagged_as_response() -> None:
    with pytest.raises(MessageDecodeError) as excinfo:
        decode_message('{"id": 2, "error": {"code": "bad", "message": "m"}}')
    assert excinfo.value.is_response
    with pytest.raises(MessageDecodeError) as excinfo:
        decode_message('{"id": 2, "method": 5}')
    assert not excinfo.value.is_response
