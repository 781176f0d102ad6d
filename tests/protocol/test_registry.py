"""Tests for the read-only CapabilityRegistry."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from models.capabilities import Tool
from protocol.registry import CapabilityRegistry, build_default_registry, get_capability_registry


class TestCapabilityRegistry:
    def test_builtin_catalog(self) -> None:
        registry = build_default_registry()
        assert [t.name for t in registry.list_tools()] == ["calculator", "get_current_time"]
        assert registry.get_resource("resource://example/data").mime_type == "application/json"
        assert registry.get_prompt("code_review").required_arguments == ["code"]

    def test_absent_keys_return_none(self) -> None:
        registry = build_default_registry()
        assert registry.get_tool("missing") is None
        assert registry.get_resource("resource://missing") is None
        assert registry.get_prompt("missing") is None

    def test_insertion_order_is_stable(self) -> None:
        tools = [Tool(name=n, description=n) for n in ("zeta", "alpha", "mid")]
        registry = CapabilityRegistry(tools=tools)
        assert [t.name for t in registry.list_tools()] == ["zeta", "alpha", "mid"]
        assert registry.list_tools() == registry.list_tools()

    def test_empty_registry_lists_nothing(self) -> None:
        registry = CapabilityRegistry()
        assert registry.list_tools() == ()
        assert registry.list_resources() == ()
        assert registry.list_prompts() == ()

    def test_catalog_is_read_only(self) -> None:
        registry = build_default_registry()
        with pytest.raises(TypeError):
            registry._tools["injected"] = Tool(name="injected", description="")  # type: ignore[index]

    def test_descriptors_are_frozen(self) -> None:
        tool = build_default_registry().get_tool("calculator")
        with pytest.raises(ValidationError):
            tool.name = "renamed"  # type: ignore[misc]

    def test_wire_form_uses_camel_case(self) -> None:
        registry = build_default_registry()
        assert "inputSchema" in registry.get_tool("calculator").to_dict()
        assert registry.get_resource("resource://example/data").to_dict()["mimeType"] == "application/json"
        prompt = registry.get_prompt("code_review").to_dict()
        assert prompt["arguments"][0] == {"name": "code", "description": "The code to review", "required": True}

    def test_singleton(self) -> None:
        assert get_capability_registry() is get_capability_registry()
