"""Tests for the built-in MCP tools and the ToolExecutor."""

from __future__ import annotations

import pytest

from protocol.errors import DivisionByZeroError, InvalidParamsError, ToolNotFoundError
from protocol.tools import CalculatorTool, CurrentTimeTool, ToolExecutor


class TestCalculatorTool:
    @pytest.mark.parametrize(
        ("operation", "expected"),
        [
            ("add", "Result: 15.00"),
            ("subtract", "Result: 5.00"),
            ("multiply", "Result: 50.00"),
            ("divide", "Result: 2.00"),
        ],
    )
    def test_operations(self, operation: str, expected: str) -> None:
        assert CalculatorTool().execute({"operation": operation, "a": 10, "b": 5}) == expected

    def test_result_has_two_decimals(self) -> None:
        assert CalculatorTool().execute({"operation": "divide", "a": 1, "b": 3}) == "Result: 0.33"

    def test_divide_by_zero_raises(self) -> None:
        with pytest.raises(DivisionByZeroError):
            CalculatorTool().execute({"operation": "divide", "a": 10, "b": 0})

    def test_divide_by_float_zero_raises(self) -> None:
        with pytest.raises(DivisionByZeroError):
            CalculatorTool().execute({"operation": "divide", "a": 10, "b": 0.0})

    def test_unknown_operation(self) -> None:
        with pytest.raises(InvalidParamsError, match="Unknown operation: modulo"):
            CalculatorTool().execute({"operation": "modulo", "a": 1, "b": 2})

    def test_missing_operand(self) -> None:
        with pytest.raises(InvalidParamsError, match="'b'"):
            CalculatorTool().execute({"operation": "add", "a": 1})

    def test_non_numeric_operand(self) -> None:
        with pytest.raises(InvalidParamsError):
            CalculatorTool().execute({"operation": "add", "a": "1", "b": 2})

    def test_bool_is_not_a_number(self) -> None:
        with pytest.raises(InvalidParamsError):
            CalculatorTool().execute({"operation": "add", "a": True, "b": 2})


class TestCurrentTimeTool:
    def test_defaults_to_utc(self) -> None:
        assert CurrentTimeTool().execute({}).startswith("Current time (UTC): ")

    def test_blank_timezone_defaults_to_utc(self) -> None:
        assert CurrentTimeTool().execute({"timezone": "   "}).startswith("Current time (UTC): ")

    def test_unknown_timezone_passes_through(self) -> None:
        text = CurrentTimeTool().execute({"timezone": "Mars/Olympus_Mons"})
        assert text.startswith("Current time (Mars/Olympus_Mons): ")


class TestToolExecutor:
    def test_executes_by_name(self) -> None:
        executor = ToolExecutor()
        assert executor.execute("calculator", {"operation": "add", "a": 1, "b": 2}) == "Result: 3.00"

    def test_unknown_tool(self) -> None:
        with pytest.raises(ToolNotFoundError, match="Tool not found: nope"):
            ToolExecutor().execute("nope", {})

    def test_none_arguments_treated_as_empty(self) -> None:
        assert ToolExecutor().execute("get_current_time", None).startswith("Current time (UTC)")

    def test_custom_tool_set(self) -> None:
        executor = ToolExecutor([CalculatorTool()])
        assert [t.name for t in executor.tools] == ["calculator"]
        with pytest.raises(ToolNotFoundError):
            executor.execute("get_current_time", {})
