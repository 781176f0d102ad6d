"""
Wire codec shared by the HTTP and WebSocket transports.

Decoding failures raise ParseError; transports answer them with
parse_error_response(), which is always null-correlated.
"""
import json
from typing import Any, Union

from pydantic import ValidationError

from models.jsonrpc import JsonRpcRequest, JsonRpcResponse
from .errors import ParseError

Payload = Union[str, bytes]


def _load(raw: Payload) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(str(e)) from e


def validate_request(obj: Any) -> JsonRpcRequest:
    if not isinstance(obj, dict):
        raise ParseError("request must be a JSON object")
    try:
        return JsonRpcRequest.model_validate(obj)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "request" for err in e.errors())
        raise ParseError(f"invalid request envelope ({fields})") from e


def decode_request(raw: Payload) -> JsonRpcRequest:
    return validate_request(_load(raw))


def decode_batch(raw: Payload) -> list[Any]:
    """
    Return the raw batch entries. Entries are validated one by one so a bad
    entry only fails its own position.
    """
    batch = _load(raw)
    if not isinstance(batch, list):
        raise ParseError("batch payload must be a JSON array")
    return batch


def parse_error_response(error: ParseError) -> JsonRpcResponse:
    return JsonRpcResponse.failure(None, error.code, f"Parse error: {error.message}")


def encode_response(response: JsonRpcResponse) -> str:
    return json.dumps(response.to_dict(), default=str)
