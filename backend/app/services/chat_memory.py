"""
Conversation memory: a key-value store of recent messages per conversation.

Single event loop only: methods are synchronous and never await, so no
locking is needed.
"""
import logging
from collections import deque
from typing import Optional

from config import get_settings

logger = logging.getLogger(__name__)


class ChatMemory:

    def __init__(self, max_messages: Optional[int] = None):
        self.max_messages = max_messages or get_settings().CHAT_MEMORY_MAX_MESSAGES
        self._conversations: dict[str, deque] = {}

    def get(self, conversation_id: str, last_n: Optional[int] = None) -> list[dict]:
        messages = list(self._conversations.get(conversation_id, ()))
        if last_n is not None:
            messages = messages[-last_n:] if last_n > 0 else []
        return messages

    def add(self, conversation_id: str, *messages: dict) -> None:
        history = self._conversations.setdefault(conversation_id, deque(maxlen=self.max_messages))
        history.extend(messages)

    def clear(self, conversation_id: str) -> bool:
        removed = self._conversations.pop(conversation_id, None) is not None
        logger.info(f"ChatMemory: cleared '{conversation_id}' (existed={removed})")
        return removed

    @property
    def conversation_count(self) -> int:
        return len(self._conversations)


# ─── Singleton ────────────────────────────────────────────────────────────────

_memory_instance: Optional[ChatMemory] = None


def get_chat_memory() -> ChatMemory:
    """Return the shared ChatMemory instance."""
    global _memory_instance
    if _memory_instance is None:
        _memory_instance = ChatMemory()
    return _memory_instance
