from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
import logging

from config import get_settings
from protocol.codec import decode_batch, decode_request, parse_error_response, validate_request
from protocol.dispatcher import get_mcp_dispatcher
from protocol.errors import ParseError

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


# ── JSON-RPC endpoints ─────────────────────────────────────────────────────────

@router.post("/rpc", tags=["mcp"])
async def handle_rpc(request: Request):
    """Single JSON-RPC request → single response. Malformed bodies get a parse error, not a 422."""
    body = await request.body()
    try:
        rpc_request = decode_request(body)
    except ParseError as e:
        logger.warning(f"RPC parse error: {e.message}")
        return JSONResponse(content=parse_error_response(e).to_dict())

    response = await get_mcp_dispatcher().handle(rpc_request)
    return JSONResponse(content=response.to_dict())


@router.post("/rpc/batch", tags=["mcp"])
async def handle_rpc_batch(request: Request):
    """Array of requests → array of responses, same length and order."""
    body = await request.body()
    try:
        entries = decode_batch(body)
    except ParseError as e:
        logger.warning(f"RPC batch parse error: {e.message}")
        return JSONResponse(content=parse_error_response(e).to_dict())

    dispatcher = get_mcp_dispatcher()
    valid = []
    responses: list = [None] * len(entries)
    for position, entry in enumerate(entries):
        try:
            valid.append((position, validate_request(entry)))
        except ParseError as e:
            responses[position] = parse_error_response(e)

    handled = await dispatcher.handle_batch([req for _, req in valid])
    for (position, _), response in zip(valid, handled):
        responses[position] = response

    logger.info(f"RPC batch: {len(entries)} items, {len(entries) - len(valid)} unparseable")
    return JSONResponse(content=[r.to_dict() for r in responses])


# ── Server info ────────────────────────────────────────────────────────────────

@router.get("/info", tags=["system"])
async def server_info():
    return {
        "name": settings.SERVER_NAME,
        "version": settings.APP_VERSION,
        "protocolVersion": settings.PROTOCOL_VERSION,
        "capabilities": {
            "tools": True,
            "resources": True,
            "prompts": True,
        },
        "description": "MCP server over HTTP and WebSocket",
    }
