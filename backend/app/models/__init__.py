# MCP Gateway - Models Package
from .capabilities import Prompt, PromptArgument, Resource, Tool
from .jsonrpc import JsonRpcError, JsonRpcRequest, JsonRpcResponse

__all__ = [
    "Tool",
    "Resource",
    "Prompt",
    "PromptArgument",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "JsonRpcError",
]
