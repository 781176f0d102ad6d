"""
Thinking-span removal for model output.

Reasoning models wrap internal reasoning in <think>...</think>. The span may
arrive split across any number of stream chunks, so the streaming filter is
a fold over an accumulation buffer:

    state, out = feed(state, chunk)     # per chunk, out is None or a snapshot
    state, out = flush(state)           # at end of stream

Emitted values are full content-so-far snapshots, not deltas. The state
belongs to one stream; filter_stream() keeps it local to a single async
generator, so closing or cancelling the generator drops it.
"""
import logging
import re
from dataclasses import dataclass, replace
from typing import AsyncIterable, AsyncIterator, Optional

logger = logging.getLogger(__name__)

THINK_CLOSE = "</think>"

# Streaming keeps whitespace around the span; the one-shot variant trims it.
THINK_SPAN_PATTERN = re.compile(r"<think>.*?</think>", re.DOTALL)
THINK_BLOCK_PATTERN = re.compile(r"<think>.*?</think>\s*", re.DOTALL)


@dataclass(frozen=True)
class FilterState:
    buffer: str = ""
    last_emitted: Optional[str] = None


def feed(state: FilterState, chunk: str) -> tuple[FilterState, Optional[str]]:
    buffer = state.buffer + chunk
    if THINK_CLOSE not in buffer:
        # Withheld: an opening marker may still be waiting for its close.
        return replace(state, buffer=buffer), None

    cleaned = THINK_SPAN_PATTERN.sub("", buffer)
    return FilterState(buffer=cleaned, last_emitted=cleaned), cleaned


def flush(state: FilterState) -> tuple[FilterState, Optional[str]]:
    """End of stream: release whatever is buffered, unterminated spans included."""
    if state.buffer == state.last_emitted or (not state.buffer and state.last_emitted is None):
        return state, None
    return replace(state, last_emitted=state.buffer), state.buffer


async def filter_stream(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    state = FilterState()
    try:
        async for chunk in chunks:
            if not chunk:
                continue
            state, out = feed(state, chunk)
            if out is not None:
                yield out
        state, out = flush(state)
        if out is not None:
            yield out
    finally:
        logger.debug(f"filter_stream: closed with {len(state.buffer)} buffered chars")


def strip_thinking(text: Optional[str]) -> str:
    """One-shot variant for complete responses. Idempotent."""
    if not text:
        return ""
    return THINK_BLOCK_PATTERN.sub("", text).strip()
