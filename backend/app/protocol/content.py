"""
Resource bodies and prompt templates.

Both are pure functions of their key: a resource URI maps to a body
renderer, a prompt name maps to a template.
"""
import json
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from config import get_settings

EXAMPLE_DATA_URI = "resource://example/data"
SERVER_INFO_URI = "resource://server/info"


def _example_data() -> str:
    return json.dumps({
        "message": "This is example data",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


def _server_info() -> str:
    settings = get_settings()
    return json.dumps({
        "name": settings.SERVER_NAME,
        "version": settings.APP_VERSION,
        "protocolVersion": settings.PROTOCOL_VERSION,
    })


_RESOURCE_RENDERERS: dict[str, Callable[[], str]] = {
    EXAMPLE_DATA_URI: _example_data,
    SERVER_INFO_URI: _server_info,
}


def render_resource(uri: str) -> str:
    renderer = _RESOURCE_RENDERERS.get(uri)
    if renderer is None:
        return "{}"
    return renderer()


def _code_review(arguments: Mapping[str, Any]) -> str:
    language = arguments.get("language") or "unknown"
    return f"Please review the following {language} code:\n\n{arguments.get('code', '')}"


_PROMPT_TEMPLATES: dict[str, Callable[[Mapping[str, Any]], str]] = {
    "code_review": _code_review,
}


def render_prompt(name: str, arguments: Mapping[str, Any]) -> str:
    template = _PROMPT_TEMPLATES.get(name)
    if template is None:
        return f"Prompt: {name}"
    return template(arguments)
