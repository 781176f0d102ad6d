from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from typing import Optional
import json
import logging

from config import get_settings
from protocol.registry import get_capability_registry
from services.chat_memory import get_chat_memory
from services.llm_service import LLMServiceError, get_llm_service
from services.think_filter import filter_stream, strip_thinking

router = APIRouter(prefix="/chat", tags=["chat"])
settings = get_settings()
logger = logging.getLogger(__name__)


def validate_history_size(history_size: Optional[int]) -> int:
    size = settings.CHAT_DEFAULT_HISTORY if history_size is None else history_size
    if size < 1:
        return settings.CHAT_DEFAULT_HISTORY
    return min(size, settings.CHAT_MAX_HISTORY)


def _require_message(message: str) -> str:
    if not message or not message.strip():
        raise HTTPException(status_code=400, detail="User input must not be empty")
    return message


@router.get("/sync")
async def sync_chat(
    message: str = "Use the calculator to multiply 15 by 8",
    history_size: Optional[int] = None,
    user_id: str = "mcp-user",
):
    _require_message(message)
    memory = get_chat_memory()
    history = memory.get(user_id, validate_history_size(history_size))
    user_message = {"role": "user", "content": message}
    logger.info(f"Sync chat request from user: {user_id} ({len(history)} history messages)")

    try:
        raw = await get_llm_service().complete_chat([*history, user_message])
    except LLMServiceError as e:
        raise HTTPException(status_code=502, detail=f"Upstream model failed: {e}")

    reply = strip_thinking(raw)
    memory.add(user_id, user_message, {"role": "assistant", "content": reply})
    return {"reply": reply, "user_id": user_id}


@router.get("/stream")
async def stream_chat(
    message: str = "What time is it?",
    history_size: Optional[int] = None,
    user_id: str = "mcp-user",
):
    """
    SSE stream of filtered content snapshots.
    Each event carries the full visible content so far; the last event is [DONE].
    """
    _require_message(message)
    memory = get_chat_memory()
    history = memory.get(user_id, validate_history_size(history_size))
    user_message = {"role": "user", "content": message}
    logger.info(f"Stream chat request from user: {user_id} ({len(history)} history messages)")

    async def events():
        raw_parts: list[str] = []

        async def upstream():
            async for chunk in get_llm_service().stream_chat([*history, user_message]):
                raw_parts.append(chunk)
                yield chunk

        try:
            async for snapshot in filter_stream(upstream()):
                yield f"data: {json.dumps({'content': snapshot})}\n\n"
        except LLMServiceError as e:
            logger.error(f"Stream chat failed for user {user_id}: {e}")
            yield f"data: {json.dumps({'error': str(e)})}\n\n"
        else:
            reply = strip_thinking("".join(raw_parts))
            memory.add(user_id, user_message, {"role": "assistant", "content": reply})
        yield "data: [DONE]\n\n"

    return StreamingResponse(events(), media_type="text/event-stream")


@router.post("/memory/clear")
async def clear_memory(user_id: str = "mcp-user"):
    if not user_id.strip():
        raise HTTPException(status_code=400, detail="user_id must not be empty")
    get_chat_memory().clear(user_id)
    return {"status": "cleared", "user_id": user_id}


@router.get("/tools")
async def list_chat_tools():
    return [
        {"name": tool.name, "description": tool.description}
        for tool in get_capability_registry().list_tools()
    ]
