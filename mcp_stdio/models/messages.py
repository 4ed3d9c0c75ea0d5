"""JSON-RPC 2.0 envelopes exchanged over the stdio transport."""

from __future__ import annotations

import json
from typing import Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

from mcp_stdio.errors import ProtocolError

__all__ = [
    "JSONRPC_VERSION",
    "JsonRpcError",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "Message",
    "MessageDecodeError",
    "RequestId",
    "decode_message",
    "encode_message",
    "error_response",
    "success_response",
]

JSONRPC_VERSION = "2.0"

RequestId = Union[StrictStr, StrictInt]


class MessageDecodeError(ProtocolError):
    """Raised for lines that cannot be turned into an envelope.

    ``request_id`` holds the identifier recovered from the raw message, when
    there was one, so the error response can still be correlated.
    ``is_response`` is set when the line was classified as a response; those
    are never answered.
    """

    def __init__(
        self,
        code: str,
        message: str | None = None,
        *,
        request_id: Any = None,
        data: dict[str, Any] | None = None,
        is_response: bool = False,
    ) -> None:
        super().__init__(code, message, data=data)
        self.request_id = request_id
        self.is_response = is_response


class _Envelope(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION


class _MethodEnvelope(_Envelope):
    method: StrictStr = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _null_params(cls, value: Any) -> Any:
        return {} if value is None else value


class JsonRpcRequest(_MethodEnvelope):
    """A request expecting exactly one correlated response."""

    id: RequestId


class JsonRpcNotification(_MethodEnvelope):
    """A one-way message; never answered."""


class JsonRpcError(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    code: StrictInt
    message: StrictStr
    data: Any | None = None


class JsonRpcResponse(_Envelope):
    """A response to a request the server sent to the client."""

    id: RequestId | None
    result: Any = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _result_xor_error(self) -> JsonRpcResponse:
        # A null result is still a result; presence is what counts.
        if ("result" in self.model_fields_set) == (self.error is not None):
            raise ValueError("response must carry exactly one of result or error")
        return self


Message = Union[JsonRpcRequest, JsonRpcNotification, JsonRpcResponse]


def _recover_id(raw: dict[str, Any]) -> RequestId | None:
    value = raw.get("id")
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return value
    return None


def _first_error(exc: ValidationError) -> dict[str, Any]:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error["loc"])
    return {"field": location, "reason": error["msg"]}


def decode_message(line: str | bytes) -> Message:
    """Parse one framed line into a request, notification or response."""

    try:
        raw = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MessageDecodeError("PARSE_ERROR", data={"reason": str(exc)}) from exc

    if isinstance(raw, list):
        raise MessageDecodeError(
            "INVALID_REQUEST", "Batch requests are not supported"
        )
    if not isinstance(raw, dict):
        raise MessageDecodeError("INVALID_REQUEST", "Message must be a JSON object")

    request_id = _recover_id(raw)
    if "method" in raw:
        model: type[BaseModel] = JsonRpcRequest if "id" in raw else JsonRpcNotification
    elif "result" in raw or "error" in raw:
        model = JsonRpcResponse
    else:
        raise MessageDecodeError(
            "INVALID_REQUEST",
            "Message has neither a method nor a result",
            request_id=request_id,
        )

    try:
        return model.model_validate(raw)  # type: ignore[return-value]
    except ValidationError as exc:
        details = _first_error(exc)
        code = "INVALID_PARAMS" if details["field"].startswith("params") else "INVALID_REQUEST"
        raise MessageDecodeError(
            code,
            f"Invalid {details['field'] or 'message'}: {details['reason']}",
            request_id=request_id,
            data=details,
            is_response=model is JsonRpcResponse,
        ) from exc


def success_response(request_id: RequestId, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: RequestId | None, error: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def encode_message(payload: dict[str, Any]) -> str:
    """Serialise an envelope to a single line of compact JSON."""

    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
