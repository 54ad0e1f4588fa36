"""Tests for Toolsets and the capability Menu."""

import pytest

from polis_kernel.errors import NotFound, ToolNameCollision
from polis_kernel.menu.menu import Menu
from polis_kernel.models.tooling import ToolCall, ToolDescriptor
from polis_kernel.toolset.registry import Toolset, unknown_tool


def _make_toolset(name, *tool_names) -> Toolset:
    def callback(agent, call):
        if call.name not in tool_names:
            return unknown_tool(call)
        if call.name == "boom":
            raise RuntimeError("boom")
        if call.name == "missing":
            raise NotFound("nothing here")
        return f"{name}:{call.name}"

    tools = [ToolDescriptor(name=t, description=f"{t} tool") for t in tool_names]
    return Toolset(name, tools, callback)


def _make_counter() -> Toolset:
    state = {"count": 0}

    def callback(agent, call):
        state["count"] += 1
        return str(state["count"])

    return Toolset("Counter", [ToolDescriptor(name="bump", description="Increment")], callback)


class TestToolset:
    def test_duplicate_tool_names_rejected(self):
        with pytest.raises(ValueError):
            _make_toolset("A", "ping", "ping")

    def test_get_tools_returns_copy(self):
        toolset = _make_toolset("A", "ping", "pong")
        tools = toolset.get_tools()
        tools.clear()
        assert toolset.tool_names() == ["ping", "pong"]

    def test_tool_error_becomes_result_text(self):
        toolset = _make_toolset("A", "missing")
        assert toolset.call_tool(None, ToolCall(name="missing")) == "Error: nothing here"

    def test_other_exceptions_propagate(self):
        toolset = _make_toolset("A", "boom")
        with pytest.raises(RuntimeError):
            toolset.call_tool(None, ToolCall(name="boom"))

    def test_unknown_name_is_reported(self):
        toolset = _make_toolset("A", "ping")
        assert toolset.call_tool(None, ToolCall(name="nope")) == "Unknown tool: nope"


class TestMenuConstruction:
    def test_tool_collision_rejected(self):
        with pytest.raises(ToolNameCollision):
            Menu([_make_toolset("A", "ping"), _make_toolset("B", "ping")])

    def test_collision_is_value_error(self):
        assert issubclass(ToolNameCollision, ValueError)

    def test_reserved_names_rejected(self):
        with pytest.raises(ToolNameCollision):
            Menu([_make_toolset("A", "loadToolset")])
        with pytest.raises(ToolNameCollision):
            Menu([_make_toolset("A", "toolList")])

    def test_duplicate_toolset_name_rejected(self):
        menu = Menu([_make_toolset("A", "ping")])
        with pytest.raises(ToolNameCollision):
            menu.add_toolset(_make_toolset("A", "pong"))

    def test_all_tools_in_menu_order(self):
        menu = Menu([_make_toolset("A", "ping"), _make_toolset("B", "pong", "pang")])
        assert [t.name for t in menu.all_tools()] == ["ping", "pong", "pang"]


class TestGatedNavigation:
    def setup_method(self):
        self.menu = Menu([_make_toolset("A", "ping"), _make_toolset("B", "pong")])

    def test_starts_in_directory(self):
        assert self.menu.current_toolset is None
        text = self.menu.get_menu()
        assert "[0] A" in text
        assert "[1] B" in text
        assert "loadToolset(toolsetIndex)" in text

    def test_tool_call_without_loaded_toolset(self):
        assert self.menu.parse_tool_call(ToolCall(name="ping")) == "No toolset loaded"
        assert self.menu.current_toolset is None

    def test_load_toolset(self):
        result = self.menu.parse_tool_call(
            ToolCall(name="loadToolset", parameters={"toolsetIndex": "1"})
        )
        assert result == "Toolset menu loaded"
        assert self.menu.current_toolset == "B"
        text = self.menu.get_menu()
        assert "Tool Menu (B):" in text
        assert "pong" in text
        assert "toolList()" in text

    def test_invalid_index_keeps_state(self):
        result = self.menu.parse_tool_call(
            ToolCall(name="loadToolset", parameters={"toolsetIndex": "abc"})
        )
        assert result.startswith("Error: invalid toolset index")
        result = self.menu.parse_tool_call(
            ToolCall(name="loadToolset", parameters={"toolsetIndex": 5})
        )
        assert result == "Error: toolset index 5 not found"
        assert self.menu.current_toolset is None

    def test_loaded_state_runs_only_loaded_tools(self):
        self.menu.parse_tool_call(ToolCall(name="loadToolset", parameters={"toolsetIndex": 0}))
        assert self.menu.parse_tool_call(ToolCall(name="ping")) == "A:ping"
        assert self.menu.parse_tool_call(ToolCall(name="pong")) == "Tool not found"
        assert self.menu.current_toolset == "A"

    def test_tool_list_returns_to_directory(self):
        self.menu.parse_tool_call(ToolCall(name="loadToolset", parameters={"toolsetIndex": 0}))
        assert self.menu.parse_tool_call(ToolCall(name="toolList")) == "Toolset menu loaded"
        assert self.menu.current_toolset is None


class TestDirectDispatch:
    def test_dispatch_ignores_navigation_state(self):
        menu = Menu([_make_toolset("A", "ping"), _make_toolset("B", "pong")])
        assert menu.call_tool(None, ToolCall(name="pong")) == "B:pong"
        menu.parse_tool_call(ToolCall(name="loadToolset", parameters={"toolsetIndex": 0}))
        assert menu.call_tool(None, ToolCall(name="pong")) == "B:pong"
        assert menu.current_toolset == "A"

    def test_unknown_tool(self):
        menu = Menu([_make_toolset("A", "ping")])
        assert menu.call_tool(None, ToolCall(name="nope")) == "Unknown tool: nope"

    def test_exceptions_become_error_text(self):
        menu = Menu([_make_toolset("A", "boom")])
        assert menu.call_tool(None, ToolCall(name="boom")) == "Error: boom"

    def test_toolsets_shared_by_reference(self):
        counter = _make_counter()
        first = Menu([counter])
        second = Menu([_make_toolset("A", "ping"), counter])
        assert first.call_tool(None, ToolCall(name="bump")) == "1"
        assert second.call_tool(None, ToolCall(name="bump")) == "2"
        assert first.get_toolset("Counter") is second.get_toolset("Counter")
