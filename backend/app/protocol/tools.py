"""
MCP Tool implementations: schema + description + execute() for each tool.

Each tool follows the MCP tool shape:
  - name:         unique key
  - description:  human-readable purpose
  - input_schema: JSON Schema for arguments (advisory, not enforced)
  - execute():    actual implementation, returns the result text

Failures are raised as MCPError subclasses; the dispatcher turns them into
JSON-RPC errors.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models.capabilities import Tool
from .errors import DivisionByZeroError, InvalidParamsError, ToolNotFoundError

logger = logging.getLogger(__name__)


class MCPTool(ABC):
    """Base class for all MCP tools."""

    name: str
    description: str
    input_schema: dict

    @abstractmethod
    def execute(self, arguments: Mapping[str, Any]) -> str:
        """Execute the tool with the given arguments."""

    @property
    def descriptor(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )


class CalculatorTool(MCPTool):
    name = "calculator"
    description = "Perform basic arithmetic operations"
    input_schema = {
        "type": "object",
        "properties": {
            "operation": {
                "type": "string",
                "enum": ["add", "subtract", "multiply", "divide"],
                "description": "The arithmetic operation to perform",
            },
            "a": {"type": "number", "description": "First operand"},
            "b": {"type": "number", "description": "Second operand"},
        },
        "required": ["operation", "a", "b"],
    }

    _OPERATIONS = {
        "add": lambda a, b: a + b,
        "subtract": lambda a, b: a - b,
        "multiply": lambda a, b: a * b,
        "divide": lambda a, b: a / b,
    }

    def execute(self, arguments: Mapping[str, Any]) -> str:
        operation = arguments.get("operation")
        if operation not in self._OPERATIONS:
            raise InvalidParamsError(f"Unknown operation: {operation}")

        a = self._operand(arguments, "a")
        b = self._operand(arguments, "b")
        if operation == "divide" and b == 0:
            raise DivisionByZeroError()

        result = self._OPERATIONS[operation](a, b)
        return f"Result: {result:.2f}"

    @staticmethod
    def _operand(arguments: Mapping[str, Any], key: str) -> float:
        value = arguments.get(key)
        # bool is an int subclass but never a valid operand
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidParamsError(f"Argument '{key}' must be a number")
        return float(value)


class CurrentTimeTool(MCPTool):
    name = "get_current_time"
    description = "Get the current date and time"
    input_schema = {
        "type": "object",
        "properties": {
            "timezone": {
                "type": "string",
                "description": "Timezone (e.g., UTC, Asia/Shanghai)",
            },
        },
    }

    DEFAULT_TIMEZONE = "UTC"

    def execute(self, arguments: Mapping[str, Any]) -> str:
        label = arguments.get("timezone")
        if not isinstance(label, str) or not label.strip():
            label = self.DEFAULT_TIMEZONE
        now = datetime.now(self._resolve_zone(label))
        return f"Current time ({label}): {now.strftime('%Y-%m-%d %H:%M:%S %Z')}"

    @staticmethod
    def _resolve_zone(label: str):
        # Unknown identifiers keep their label but read the UTC clock.
        try:
            return ZoneInfo(label)
        except (ZoneInfoNotFoundError, ValueError):
            logger.debug(f"CurrentTimeTool: unknown timezone '{label}', using UTC clock")
            return timezone.utc


class ToolExecutor:
    """Stateless name → tool dispatch. Safe to call concurrently."""

    def __init__(self, tools: Optional[list[MCPTool]] = None):
        tools = tools if tools is not None else default_tools()
        self._tools: Mapping[str, MCPTool] = MappingProxyType({t.name: t for t in tools})

    @property
    def tools(self) -> list[MCPTool]:
        return list(self._tools.values())

    def execute(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> str:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        logger.debug(f"ToolExecutor: executing '{name}' with {arguments}")
        return tool.execute(arguments or {})


def default_tools() -> list[MCPTool]:
    return [CalculatorTool(), CurrentTimeTool()]
