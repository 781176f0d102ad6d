"""
MCP error taxonomy.

Every failure the protocol core can report is an ``MCPError`` carrying a
JSON-RPC code. The dispatcher decides whether that code reaches the wire
or is folded into INTERNAL_ERROR (see ``DISTINCT_ERROR_CODES``).
"""
from typing import Any, Optional

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
TOOL_EXECUTION_ERROR = -32000
RESOURCE_NOT_FOUND = -32002


class MCPError(Exception):
    code: int = INTERNAL_ERROR

    def __init__(self, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data


class ParseError(MCPError):
    code = PARSE_ERROR


class MethodNotFoundError(MCPError):
    code = METHOD_NOT_FOUND

    def __init__(self, method: str):
        super().__init__(f"Unknown method: {method}", data={"method": method})


class InvalidParamsError(MCPError):
    code = INVALID_PARAMS


class ToolNotFoundError(InvalidParamsError):
    def __init__(self, name: str):
        super().__init__(f"Tool not found: {name}", data={"name": name})


class PromptNotFoundError(InvalidParamsError):
    def __init__(self, name: str):
        super().__init__(f"Prompt not found: {name}", data={"name": name})


class ResourceNotFoundError(MCPError):
    code = RESOURCE_NOT_FOUND

    def __init__(self, uri: str):
        super().__init__(f"Resource not found: {uri}", data={"uri": uri})


class ToolExecutionError(MCPError):
    code = TOOL_EXECUTION_ERROR


class DivisionByZeroError(ToolExecutionError):
    def __init__(self):
        super().__init__("Division by zero")
