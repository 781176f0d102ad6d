"""
Upstream language model integration (any OpenAI-compatible endpoint).

Auto-detects whether to call a real model or simulate:
  - SIMULATION_MODE False and an API key set → real chat completions
  - otherwise                                → deterministic canned replies

Features:
  - Async OpenAI client, streaming and non-streaming
  - MCP tools offered to the model on both paths; tool calls (including
    ones assembled from streamed fragments) are executed through the
    in-process MCP client and fed back for up to LLM_MAX_TOOL_ROUNDS rounds
  - Exponential backoff retry (3 attempts) for rate limits and transient
    errors; any other API error fails at once as LLMServiceError
  - Token usage logging

The model output is passed through untouched; thinking spans are removed by
the callers with services.think_filter.
"""
import asyncio
import json
import logging
import random
import re
import time
from typing import AsyncIterator, Optional

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    InternalServerError,
    RateLimitError,
)

from config import get_settings
from protocol import MCPClient, MCPClientError, get_mcp_dispatcher

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant. Use the available tools for arithmetic and "
    "for the current date and time instead of guessing."
)

_SIMULATED_REPLY = (
    "<think>The user wrote: {message}. I should answer briefly.</think>\n\n"
    "{answer}"
)
_ARITHMETIC = re.compile(r"(-?\d+(?:\.\d+)?)\s*([+\-*/x×])\s*(-?\d+(?:\.\d+)?)")
_OPERATORS = {"+": "add", "-": "subtract", "*": "multiply", "x": "multiply", "×": "multiply", "/": "divide"}
_SIMULATED_CHUNK_SIZE = 6


class LLMServiceError(Exception):
    pass


def _merge_tool_call_delta(pending: dict[int, dict], delta) -> None:
    """Fold one streamed tool-call fragment into the call at its index."""
    entry = pending.setdefault(delta.index, {"id": "", "name": "", "arguments": ""})
    if delta.id:
        entry["id"] = delta.id
    if delta.function is not None:
        if delta.function.name:
            entry["name"] = delta.function.name
        if delta.function.arguments:
            entry["arguments"] += delta.function.arguments


class LLMService:
    """
    Chat client for the upstream model.

    All public methods are async-safe.
    """

    def __init__(self, mcp_client: Optional[MCPClient] = None):
        settings = get_settings()
        self.model = settings.LLM_MODEL
        self.temperature = settings.LLM_TEMPERATURE
        self.max_tokens = settings.LLM_MAX_TOKENS
        self.max_tool_rounds = settings.LLM_MAX_TOOL_ROUNDS
        self.use_real_ai = bool(settings.LLM_API_KEY and not settings.SIMULATION_MODE)
        self._mcp = mcp_client or MCPClient(caller_name="chat", dispatcher=get_mcp_dispatcher())
        self._client: Optional[AsyncOpenAI] = None
        if self.use_real_ai:
            self._client = AsyncOpenAI(base_url=settings.LLM_BASE_URL, api_key=settings.LLM_API_KEY)
        mode = "REAL" if self.use_real_ai else "SIMULATION"
        logger.info(f"LLMService initialized, mode: {mode}, model: {self.model}")

    # ── Public API ─────────────────────────────────────────────────────────────

    async def stream_chat(self, messages: list[dict], use_tools: bool = True) -> AsyncIterator[str]:
        """
        Yield raw content deltas as the model produces them.

        Tool calls requested mid-stream are collected from the deltas, run
        through the MCP client and answered, then the model is streamed again.
        """
        if not self.use_real_ai:
            async for chunk in self._simulated_stream(messages, use_tools):
                yield chunk
            return

        conversation = self._with_system(messages)
        tools = await self._tool_definitions() if use_tools else None

        for round_no in range(1, self.max_tool_rounds + 1):
            stream = await self._with_retry(
                lambda: self._client.chat.completions.create(
                    model=self.model,
                    messages=conversation,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    stream=True,
                    **({"tools": tools} if tools else {}),
                )
            )

            pending: dict[int, dict] = {}
            try:
                async for event in stream:
                    if not event.choices:
                        continue
                    delta = event.choices[0].delta
                    if delta.content:
                        yield delta.content
                    for call in delta.tool_calls or ():
                        _merge_tool_call_delta(pending, call)
            except APIError as e:
                logger.error(f"LLMService: stream from {self.model} failed: {e}")
                raise LLMServiceError(str(e)) from e

            if not pending:
                return

            calls = [pending[index] for index in sorted(pending)]
            conversation.append({
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {"id": c["id"], "type": "function", "function": {"name": c["name"], "arguments": c["arguments"]}}
                    for c in calls
                ],
            })
            await self._answer_tool_calls(conversation, [(c["id"], c["name"], c["arguments"]) for c in calls])
            logger.debug(f"LLMService: streamed tool round {round_no} ran {len(calls)} calls")

        logger.warning(f"LLMService: gave up streaming after {self.max_tool_rounds} tool rounds")

    async def complete_chat(self, messages: list[dict], use_tools: bool = True) -> str:
        """Return the final assistant text, running any requested MCP tool calls."""
        if not self.use_real_ai:
            return await self._simulated_completion(messages, use_tools)

        conversation = self._with_system(messages)
        tools = await self._tool_definitions() if use_tools else None

        for round_no in range(1, self.max_tool_rounds + 1):
            start = time.monotonic()
            response = await self._with_retry(
                lambda: self._client.chat.completions.create(
                    model=self.model,
                    messages=conversation,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                    **({"tools": tools} if tools else {}),
                )
            )
            latency_ms = int((time.monotonic() - start) * 1000)
            tokens = response.usage.total_tokens if response.usage else "?"
            logger.info(f"LLMService: {self.model} responded in {latency_ms}ms ({tokens} tokens)")

            message = response.choices[0].message
            if not message.tool_calls:
                return message.content or ""

            conversation.append(message.model_dump(exclude_none=True))
            await self._answer_tool_calls(
                conversation,
                [(call.id, call.function.name, call.function.arguments) for call in message.tool_calls],
            )
            logger.debug(f"LLMService: tool round {round_no} ran {len(message.tool_calls)} calls")

        logger.warning(f"LLMService: gave up after {self.max_tool_rounds} tool rounds")
        return ""

    # ── Tools ──────────────────────────────────────────────────────────────────

    async def _tool_definitions(self) -> list[dict]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool["description"],
                    "parameters": tool["inputSchema"],
                },
            }
            for tool in await self._mcp.list_tools()
        ]

    async def _answer_tool_calls(
        self, conversation: list[dict], calls: list[tuple[str, str, Optional[str]]]
    ) -> None:
        for call_id, name, raw_arguments in calls:
            conversation.append({
                "role": "tool",
                "tool_call_id": call_id,
                "content": await self._run_tool(name, raw_arguments),
            })

    async def _run_tool(self, name: str, raw_arguments: Optional[str]) -> str:
        try:
            arguments = json.loads(raw_arguments or "{}")
        except json.JSONDecodeError:
            return f"Tool error: arguments for '{name}' are not valid JSON"
        try:
            return await self._mcp.call_tool(name, arguments)
        except MCPClientError as e:
            return f"Tool error: {e.error.message}"

    # ── Internal: retry ────────────────────────────────────────────────────────

    async def _with_retry(self, call, max_retries: int = 3):
        """Run an API call with exponential backoff on transient errors."""
        last_error: Optional[Exception] = None

        for attempt in range(1, max_retries + 1):
            try:
                return await call()
            except AuthenticationError as e:
                logger.error(f"LLMService: Auth/config error, will not retry: {e}")
                raise LLMServiceError(str(e)) from e
            except RateLimitError as e:
                last_error = e
                wait = (2 ** attempt) + random.uniform(0, 1)
                logger.warning(f"LLMService: Rate limited (attempt {attempt}/{max_retries}). Waiting {wait:.1f}s")
            except (APIConnectionError, APITimeoutError, InternalServerError) as e:
                last_error = e
                wait = (2 ** attempt) * 0.5 + random.uniform(0, 0.5)
                logger.warning(f"LLMService: Transient error (attempt {attempt}/{max_retries}): {e}. Waiting {wait:.1f}s")
            except APIError as e:
                logger.error(f"LLMService: Request rejected, will not retry: {e}")
                raise LLMServiceError(str(e)) from e
            if attempt < max_retries:
                await asyncio.sleep(wait)

        logger.error(f"LLMService: All {max_retries} retries failed. Last error: {last_error}")
        raise LLMServiceError(str(last_error)) from last_error

    @staticmethod
    def _with_system(messages: list[dict]) -> list[dict]:
        return [{"role": "system", "content": SYSTEM_PROMPT}, *messages]

    # ── Internal: simulation ───────────────────────────────────────────────────

    async def _simulated_completion(self, messages: list[dict], use_tools: bool) -> str:
        message = messages[-1]["content"] if messages else ""
        answer = f"Simulated reply to: {message}"

        match = _ARITHMETIC.search(message) if use_tools else None
        if match:
            a, op, b = match.groups()
            arguments = {"operation": _OPERATORS[op], "a": float(a), "b": float(b)}
            answer = await self._run_tool("calculator", json.dumps(arguments))

        return _SIMULATED_REPLY.format(message=message, answer=answer)

    async def _simulated_stream(self, messages: list[dict], use_tools: bool) -> AsyncIterator[str]:
        text = await self._simulated_completion(messages, use_tools)
        for i in range(0, len(text), _SIMULATED_CHUNK_SIZE):
            await asyncio.sleep(0)
            yield text[i:i + _SIMULATED_CHUNK_SIZE]


# ─── Singleton ────────────────────────────────────────────────────────────────

_llm_instance: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Return the shared LLMService instance (created once)."""
    global _llm_instance
    if _llm_instance is None:
        _llm_instance = LLMService()
    return _llm_instance
