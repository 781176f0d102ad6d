"""Shared fixtures for the MCP gateway test suite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from protocol.dispatcher import MCPDispatcher


@pytest.fixture
def dispatcher() -> MCPDispatcher:
    return MCPDispatcher(distinct_error_codes=False)


@pytest.fixture
def strict_dispatcher() -> MCPDispatcher:
    return MCPDispatcher(distinct_error_codes=True)


@pytest.fixture
def client() -> Iterator[TestClient]:
    from main import app

    with TestClient(app) as test_client:
        yield test_client
