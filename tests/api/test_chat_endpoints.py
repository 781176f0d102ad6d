"""Chat endpoint tests, run against the simulated model and a stubbed upstream."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient
from openai import APIError, NotFoundError

from api.chat import validate_history_size
from config import get_settings
from protocol.client import MCPClient
from protocol.dispatcher import MCPDispatcher
from services.chat_memory import get_chat_memory
from services.llm_service import LLMService


def _sse_events(body: str) -> list[str]:
    return [line[len("data: "):] for line in body.splitlines() if line.startswith("data: ")]


UPSTREAM_URL = "http://upstream.test/v1/chat/completions"


@pytest.fixture
def upstream(monkeypatch: pytest.MonkeyPatch) -> LLMService:
    """An LLMService in real mode whose OpenAI client is replaced per test."""
    service = LLMService(mcp_client=MCPClient(caller_name="test", dispatcher=MCPDispatcher()))
    service.use_real_ai = True
    monkeypatch.setattr("api.chat.get_llm_service", lambda: service)
    return service


def _use_create(service: LLMService, create: AsyncMock) -> None:
    service._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _content_event(text: str) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text, tool_calls=None))])


class TestHistorySize:
    @pytest.mark.parametrize("requested, expected", [(None, 10), (0, 10), (-3, 10), (1, 1), (25, 25), (500, 50)])
    def test_bounds(self, requested: int | None, expected: int) -> None:
        settings = get_settings()
        assert settings.CHAT_DEFAULT_HISTORY == 10
        assert settings.CHAT_MAX_HISTORY == 50
        assert validate_history_size(requested) == expected


class TestSyncChat:
    def test_reply_has_no_thinking(self, client: TestClient) -> None:
        response = client.get("/chat/sync", params={"message": "hello there", "user_id": "sync-plain"})
        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "sync-plain"
        assert "<think>" not in body["reply"]
        assert "hello there" in body["reply"]

    def test_arithmetic_goes_through_calculator(self, client: TestClient) -> None:
        body = client.get("/chat/sync", params={"message": "15 * 8", "user_id": "sync-calc"}).json()
        assert body["reply"] == "Result: 120.00"

    def test_exchange_is_remembered(self, client: TestClient) -> None:
        client.post("/chat/memory/clear", params={"user_id": "sync-memory"})
        client.get("/chat/sync", params={"message": "remember me", "user_id": "sync-memory"})
        history = get_chat_memory().get("sync-memory", 10)
        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[0]["content"] == "remember me"

    def test_empty_message_rejected(self, client: TestClient) -> None:
        assert client.get("/chat/sync", params={"message": "   "}).status_code == 400


class TestStreamChat:
    def test_snapshots_then_done(self, client: TestClient) -> None:
        response = client.get("/chat/stream", params={"message": "stream please", "user_id": "stream-user"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        events = _sse_events(response.text)
        assert events[-1] == "[DONE]"
        snapshots = [json.loads(e)["content"] for e in events[:-1]]
        assert snapshots
        assert all("<think>" not in s and "</think>" not in s for s in snapshots)
        assert snapshots[-1].strip() == "Simulated reply to: stream please"

    def test_stream_is_remembered_without_thinking(self, client: TestClient) -> None:
        client.post("/chat/memory/clear", params={"user_id": "stream-memory"})
        client.get("/chat/stream", params={"message": "keep this", "user_id": "stream-memory"})
        history = get_chat_memory().get("stream-memory", 10)
        assert history[-1] == {"role": "assistant", "content": "Simulated reply to: keep this"}

    def test_empty_message_rejected(self, client: TestClient) -> None:
        assert client.get("/chat/stream", params={"message": ""}).status_code == 400


class TestChatSupport:
    def test_clear_memory(self, client: TestClient) -> None:
        client.get("/chat/sync", params={"message": "something", "user_id": "to-clear"})
        body = client.post("/chat/memory/clear", params={"user_id": "to-clear"}).json()
        assert body == {"status": "cleared", "user_id": "to-clear"}
        assert get_chat_memory().get("to-clear", 10) == []

    def test_tools_listing(self, client: TestClient) -> None:
        names = {tool["name"] for tool in client.get("/chat/tools").json()}
        assert names == {"calculator", "get_current_time"}


class TestStreamTools:
    def test_arithmetic_is_streamed_through_calculator(self, client: TestClient) -> None:
        response = client.get("/chat/stream", params={"message": "6*7", "user_id": "stream-calc"})
        events = _sse_events(response.text)
        assert events[-1] == "[DONE]"
        assert json.loads(events[-2])["content"].strip() == "Result: 42.00"


class TestUpstreamFailures:
    def test_rejected_request_is_bad_gateway(self, client: TestClient, upstream: LLMService) -> None:
        not_found = NotFoundError(
            "model not found",
            response=httpx.Response(404, request=httpx.Request("POST", UPSTREAM_URL)),
            body=None,
        )
        create = AsyncMock(side_effect=not_found)
        _use_create(upstream, create)

        response = client.get("/chat/sync", params={"message": "hi", "user_id": "sync-rejected"})

        assert response.status_code == 502
        assert "model not found" in response.json()["detail"]
        assert create.await_count == 1

    def test_broken_stream_ends_with_error_and_done(self, client: TestClient, upstream: LLMService) -> None:
        async def dropped() -> AsyncIterator[SimpleNamespace]:
            yield _content_event("hello ")
            raise APIError("connection dropped", httpx.Request("POST", UPSTREAM_URL), body=None)

        _use_create(upstream, AsyncMock(return_value=dropped()))

        response = client.get("/chat/stream", params={"message": "hi", "user_id": "stream-dropped"})

        events = _sse_events(response.text)
        assert events[-1] == "[DONE]"
        assert "connection dropped" in json.loads(events[-2])["error"]
        assert get_chat_memory().get("stream-dropped", 10) == []
