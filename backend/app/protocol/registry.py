"""
Capability Registry: the read-only catalog of tools, resources and prompts.

Built once at startup from the built-in seeds and never mutated afterwards,
so concurrent readers need no locking. Lookups return None for absent keys;
turning absence into a protocol error is the dispatcher's job.
"""
import logging
from types import MappingProxyType
from typing import Iterable, Optional

from models.capabilities import Prompt, PromptArgument, Resource, Tool
from .content import EXAMPLE_DATA_URI, SERVER_INFO_URI
from .tools import default_tools

logger = logging.getLogger(__name__)


class CapabilityRegistry:

    def __init__(
        self,
        tools: Iterable[Tool] = (),
        resources: Iterable[Resource] = (),
        prompts: Iterable[Prompt] = (),
    ):
        self._tools = MappingProxyType({t.name: t for t in tools})
        self._resources = MappingProxyType({r.uri: r for r in resources})
        self._prompts = MappingProxyType({p.name: p for p in prompts})
        logger.info(
            f"CapabilityRegistry initialized: {len(self._tools)} tools, "
            f"{len(self._resources)} resources, {len(self._prompts)} prompts"
        )

    # ── Discovery ──────────────────────────────────────────────────────────────

    def list_tools(self) -> tuple[Tool, ...]:
        return tuple(self._tools.values())

    def list_resources(self) -> tuple[Resource, ...]:
        return tuple(self._resources.values())

    def list_prompts(self) -> tuple[Prompt, ...]:
        return tuple(self._prompts.values())

    # ── Lookup ─────────────────────────────────────────────────────────────────

    def get_tool(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def get_resource(self, uri: str) -> Optional[Resource]:
        return self._resources.get(uri)

    def get_prompt(self, name: str) -> Optional[Prompt]:
        return self._prompts.get(name)


# ─── Built-in seeds ───────────────────────────────────────────────────────────

BUILTIN_RESOURCES = (
    Resource(
        uri=EXAMPLE_DATA_URI,
        name="Example Data",
        description="An example resource containing sample data",
        mime_type="application/json",
    ),
    Resource(
        uri=SERVER_INFO_URI,
        name="Server Info",
        description="Name, version and protocol version of this server",
        mime_type="application/json",
    ),
)

BUILTIN_PROMPTS = (
    Prompt(
        name="code_review",
        description="Review code and provide feedback",
        arguments=(
            PromptArgument(name="code", description="The code to review", required=True),
            PromptArgument(name="language", description="Programming language", required=False),
        ),
    ),
)


def build_default_registry() -> CapabilityRegistry:
    return CapabilityRegistry(
        tools=[tool.descriptor for tool in default_tools()],
        resources=BUILTIN_RESOURCES,
        prompts=BUILTIN_PROMPTS,
    )


# ─── Singleton ────────────────────────────────────────────────────────────────

_registry_instance: Optional[CapabilityRegistry] = None


def get_capability_registry() -> CapabilityRegistry:
    """Return the shared CapabilityRegistry instance."""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = build_default_registry()
    return _registry_instance
