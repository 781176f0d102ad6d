"""
MCP Client: in-process caller for the dispatcher.

Server-side code (the chat service) invokes tools through the same
JSON-RPC path a remote client uses, instead of calling tool objects
directly:
  1. Wraps the call in a tools/call request with a fresh id
  2. Routes it through MCPDispatcher (same logging and error policy)
  3. Unwraps the first text content block or raises MCPClientError
  4. Keeps a capped call history for traceability

Usage:
    client = MCPClient(caller_name="chat", dispatcher=get_mcp_dispatcher())
    text = await client.call_tool("calculator", {"operation": "add", "a": 1, "b": 2})
"""
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Optional

from models.jsonrpc import JsonRpcError, JsonRpcRequest
from .dispatcher import MCPDispatcher, MCPMethod

logger = logging.getLogger(__name__)


class MCPClientError(Exception):
    def __init__(self, tool_name: str, error: JsonRpcError):
        super().__init__(f"{tool_name}: {error.message}")
        self.tool_name = tool_name
        self.error = error


class MCPClient:

    MAX_HISTORY = 100

    def __init__(self, caller_name: str, dispatcher: MCPDispatcher):
        self.caller_name = caller_name
        self._dispatcher = dispatcher
        self._call_history: list[dict] = []

    async def call_tool(self, tool_name: str, arguments: Optional[dict] = None) -> str:
        """
        Call an MCP tool and return its text result.

        Raises MCPClientError when the dispatcher answers with an error envelope.
        """
        call_id = f"{self.caller_name}-{str(uuid.uuid4())[:8]}"
        request = JsonRpcRequest(
            id=call_id,
            method=MCPMethod.TOOLS_CALL.value,
            params={"name": tool_name, "arguments": arguments or {}},
        )

        logger.info(f"MCPClient [{self.caller_name}]: calling '{tool_name}' ({call_id})")
        start = time.monotonic()
        response = await self._dispatcher.handle(request)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        self._record(call_id, tool_name, "error" if response.is_error else "success", elapsed_ms)

        if response.is_error:
            raise MCPClientError(tool_name, response.error)

        content: list[dict[str, Any]] = response.result.get("content") or []
        return content[0].get("text", "") if content else ""

    async def list_tools(self) -> list[dict]:
        response = await self._dispatcher.handle(
            JsonRpcRequest(id=str(uuid.uuid4())[:8], method=MCPMethod.TOOLS_LIST.value)
        )
        return response.result["tools"]

    # ── History ────────────────────────────────────────────────────────────────

    def _record(self, call_id: str, tool_name: str, status: str, elapsed_ms: int) -> None:
        self._call_history.append({
            "timestamp": datetime.utcnow().isoformat(),
            "call_id": call_id,
            "tool": tool_name,
            "status": status,
            "elapsed_ms": elapsed_ms,
        })
        if len(self._call_history) > self.MAX_HISTORY:
            self._call_history = self._call_history[-self.MAX_HISTORY:]

    @property
    def call_count(self) -> int:
        return len(self._call_history)

    def get_call_history(self) -> list[dict]:
        return list(reversed(self._call_history))
