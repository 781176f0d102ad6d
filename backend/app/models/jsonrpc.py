from pydantic import BaseModel
from typing import Any, Optional, Union

JSONRPC_VERSION = "2.0"

RequestId = Optional[Union[int, float, str]]


class JsonRpcRequest(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: Optional[Union[dict[str, Any], list[Any]]] = None
    id: RequestId = None  # absent id is answered as a null-correlated request


class JsonRpcError(BaseModel):
    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class JsonRpcResponse(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: RequestId = None
    result: Any = None
    error: Optional[JsonRpcError] = None

    @classmethod
    def success(cls, request_id: RequestId, result: Any) -> "JsonRpcResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls,
        request_id: RequestId,
        code: int,
        message: str,
        data: Any = None,
    ) -> "JsonRpcResponse":
        return cls(id=request_id, error=JsonRpcError(code=code, message=message, data=data))

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        """Wire form: id is always present, exactly one of result/error."""
        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.to_dict()
        else:
            payload["result"] = self.result
        return payload
