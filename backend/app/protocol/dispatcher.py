"""
MCP Dispatcher: the transport-independent protocol core.

Maps a JSON-RPC request onto a closed method table and wraps the outcome in
a response envelope:

  MCPDispatcher
    ├── registry       : read-only tool/resource/prompt catalog
    ├── executor       : stateless tool execution
    ├── _handlers      : MCPMethod → handler table
    └── handle()       : resolve, run, convert any failure to an error envelope

The dispatcher holds no mutable state; any number of transports may call
handle() concurrently.
"""
import asyncio
import logging
import time
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from config import get_settings
from models.jsonrpc import JsonRpcRequest, JsonRpcResponse
from .content import render_prompt, render_resource
from .errors import (
    INTERNAL_ERROR,
    InvalidParamsError,
    MCPError,
    MethodNotFoundError,
    PromptNotFoundError,
    ResourceNotFoundError,
    ToolNotFoundError,
)
from .registry import CapabilityRegistry, get_capability_registry
from .tools import ToolExecutor

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[dict]]


class MCPMethod(str, Enum):
    INITIALIZE = "initialize"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"
    PROMPTS_LIST = "prompts/list"
    PROMPTS_GET = "prompts/get"


def _require_mapping(params: Any) -> Mapping[str, Any]:
    if params is None:
        return {}
    if not isinstance(params, Mapping):
        raise InvalidParamsError("Params must be an object")
    return params


def _require(params: Mapping[str, Any], key: str) -> Any:
    if key not in params:
        raise InvalidParamsError(f"Missing required parameter: {key}")
    return params[key]


def _optional_mapping(params: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = params.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidParamsError(f"Parameter '{key}' must be an object")
    return value


class MCPDispatcher:

    def __init__(
        self,
        registry: Optional[CapabilityRegistry] = None,
        executor: Optional[ToolExecutor] = None,
        distinct_error_codes: Optional[bool] = None,
    ):
        settings = get_settings()
        self.registry = registry or get_capability_registry()
        self.executor = executor or ToolExecutor()
        self.distinct_error_codes = (
            settings.DISTINCT_ERROR_CODES if distinct_error_codes is None else distinct_error_codes
        )
        self._server_info = {"name": settings.SERVER_NAME, "version": settings.APP_VERSION}
        self._protocol_version = settings.PROTOCOL_VERSION
        self._handlers: Mapping[MCPMethod, Handler] = MappingProxyType({
            MCPMethod.INITIALIZE: self._initialize,
            MCPMethod.TOOLS_LIST: self._list_tools,
            MCPMethod.TOOLS_CALL: self._call_tool,
            MCPMethod.RESOURCES_LIST: self._list_resources,
            MCPMethod.RESOURCES_READ: self._read_resource,
            MCPMethod.PROMPTS_LIST: self._list_prompts,
            MCPMethod.PROMPTS_GET: self._get_prompt,
        })

    # ── Entry points ───────────────────────────────────────────────────────────

    async def handle(self, request: JsonRpcRequest) -> JsonRpcResponse:
        """Run one request. Never raises; failures come back as error envelopes."""
        start = time.monotonic()
        logger.info(f"MCPDispatcher: method={request.method} id={request.id}")
        try:
            handler = self._resolve(request.method)
            result = await handler(request.params)
        except MCPError as e:
            logger.warning(f"MCPDispatcher: {request.method} (id={request.id}) failed: {e.message}")
            return self._error_response(request.id, e)
        except Exception as e:
            logger.error(f"MCPDispatcher: {request.method} (id={request.id}) raised: {e}", exc_info=True)
            return JsonRpcResponse.failure(request.id, INTERNAL_ERROR, f"Internal error: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug(f"MCPDispatcher: {request.method} (id={request.id}) completed in {elapsed_ms}ms")
        return JsonRpcResponse.success(request.id, result)

    async def handle_batch(self, requests: Sequence[JsonRpcRequest]) -> list[JsonRpcResponse]:
        """Run independent requests concurrently; responses keep input order."""
        logger.info(f"MCPDispatcher: batch of {len(requests)} requests")
        return list(await asyncio.gather(*(self.handle(r) for r in requests)))

    # ── Internals ──────────────────────────────────────────────────────────────

    def _resolve(self, method: str) -> Handler:
        try:
            return self._handlers[MCPMethod(method)]
        except ValueError:
            raise MethodNotFoundError(method) from None

    def _error_response(self, request_id: Any, error: MCPError) -> JsonRpcResponse:
        if self.distinct_error_codes:
            return JsonRpcResponse.failure(request_id, error.code, error.message, error.data)
        return JsonRpcResponse.failure(request_id, INTERNAL_ERROR, f"Internal error: {error.message}")

    # ── Method handlers ────────────────────────────────────────────────────────

    async def _initialize(self, params: Any) -> dict:
        return {
            "protocolVersion": self._protocol_version,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"subscribe": False, "listChanged": False},
                "prompts": {"listChanged": False},
            },
            "serverInfo": dict(self._server_info),
        }

    async def _list_tools(self, params: Any) -> dict:
        return {"tools": [t.to_dict() for t in self.registry.list_tools()]}

    async def _call_tool(self, params: Any) -> dict:
        params = _require_mapping(params)
        name = _require(params, "name")
        _require(params, "arguments")
        arguments = _optional_mapping(params, "arguments")

        if self.registry.get_tool(name) is None:
            raise ToolNotFoundError(name)

        text = self.executor.execute(name, arguments)
        return {"content": [{"type": "text", "text": text}]}

    async def _list_resources(self, params: Any) -> dict:
        return {"resources": [r.to_dict() for r in self.registry.list_resources()]}

    async def _read_resource(self, params: Any) -> dict:
        params = _require_mapping(params)
        uri = _require(params, "uri")

        resource = self.registry.get_resource(uri)
        if resource is None:
            raise ResourceNotFoundError(uri)

        return {
            "contents": [{
                "uri": resource.uri,
                "name": resource.name,
                "mimeType": resource.mime_type,
                "text": render_resource(resource.uri),
            }]
        }

    async def _list_prompts(self, params: Any) -> dict:
        return {"prompts": [p.to_dict() for p in self.registry.list_prompts()]}

    async def _get_prompt(self, params: Any) -> dict:
        params = _require_mapping(params)
        name = _require(params, "name")
        arguments = _optional_mapping(params, "arguments")

        prompt = self.registry.get_prompt(name)
        if prompt is None:
            raise PromptNotFoundError(name)

        missing = [arg for arg in prompt.required_arguments if arguments.get(arg) is None]
        if missing:
            raise InvalidParamsError(
                f"Missing required prompt arguments: {', '.join(missing)}",
                data={"missing": missing},
            )

        return {
            "description": prompt.description,
            "messages": [{
                "role": "user",
                "content": {"type": "text", "text": render_prompt(name, arguments)},
            }],
        }


# ─── Singleton ────────────────────────────────────────────────────────────────

_dispatcher_instance: Optional[MCPDispatcher] = None


def get_mcp_dispatcher() -> MCPDispatcher:
    """Return the shared MCPDispatcher instance."""
    global _dispatcher_instance
    if _dispatcher_instance is None:
        _dispatcher_instance = MCPDispatcher()
    return _dispatcher_instance
