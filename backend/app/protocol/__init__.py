"""
MCP (Model Context Protocol) core: transport-independent JSON-RPC 2.0.

Registry and executor hold the capabilities, the dispatcher implements the
method table, the codec is shared by the HTTP and WebSocket transports.
"""
from .client import MCPClient, MCPClientError
from .dispatcher import MCPDispatcher, MCPMethod, get_mcp_dispatcher
from .registry import CapabilityRegistry, get_capability_registry
from .tools import ToolExecutor

__all__ = [
    "CapabilityRegistry",
    "get_capability_registry",
    "ToolExecutor",
    "MCPDispatcher",
    "MCPMethod",
    "get_mcp_dispatcher",
    "MCPClient",
    "MCPClientError",
]
