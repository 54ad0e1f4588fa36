"""
Capability Menu: the set of Toolsets currently bound to one agent.

Two dispatch paths coexist:
- Gated navigation (parse_tool_call): a two-state machine, Directory or
  Loaded(name). Directory accepts only loadToolset(toolsetIndex); Loaded
  accepts only toolList() or a tool of the loaded toolset.
- Direct dispatch (call_tool): forwards to the Toolset that declares the
  tool name, whatever the navigation state. The scheduler always uses this.

Tool names are unique across a Menu; collisions are rejected on construction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

from polis_kernel.errors import ToolNameCollision
from polis_kernel.models.tooling import ToolCall, ToolDescriptor
from polis_kernel.toolset.registry import Toolset

if TYPE_CHECKING:
    from polis_kernel.agents.agent import Agent

logger = logging.getLogger(__name__)

LOAD_TOOLSET = "loadToolset"
TOOL_LIST = "toolList"
RESERVED_NAMES = (LOAD_TOOLSET, TOOL_LIST)


class Menu:
    """Ordered composition of shared Toolsets with one optional loaded toolset."""

    def __init__(self, toolsets: Sequence[Toolset]):
        self._toolsets: List[Toolset] = []
        self._current: Optional[str] = None
        for toolset in toolsets:
            self.add_toolset(toolset)

    @property
    def toolsets(self) -> List[Toolset]:
        return list(self._toolsets)

    @property
    def current_toolset(self) -> Optional[str]:
        """Name of the loaded toolset, or None in the directory state."""
        return self._current

    def add_toolset(self, toolset: Toolset) -> None:
        """Append a toolset. Raises ToolNameCollision on a shadowed name."""
        if any(t.name == toolset.name for t in self._toolsets):
            raise ToolNameCollision(f"Toolset {toolset.name!r} already in menu")
        taken = {name for t in self._toolsets for name in t.tool_names()}
        for name in toolset.tool_names():
            if name in RESERVED_NAMES:
                raise ToolNameCollision(f"Tool name {name!r} is reserved for navigation")
            if name in taken:
                raise ToolNameCollision(
                    f"Tool {name!r} of toolset {toolset.name!r} collides with another toolset"
                )
        self._toolsets.append(toolset)

    def get_toolset(self, name: str) -> Optional[Toolset]:
        return next((t for t in self._toolsets if t.name == name), None)

    def find_toolset_for(self, tool_name: str) -> Optional[Toolset]:
        return next((t for t in self._toolsets if t.has_tool(tool_name)), None)

    def has_tool(self, tool_name: str) -> bool:
        return self.find_toolset_for(tool_name) is not None

    def all_tools(self) -> List[ToolDescriptor]:
        """Every tool reachable through direct dispatch, in menu order."""
        return [tool for t in self._toolsets for tool in t.get_tools()]

    # --- Rendering ---

    def get_menu(self) -> str:
        """Plain-text description of the current navigation state."""
        if self._current is not None:
            toolset = self.get_toolset(self._current)
            lines = [f"Tool Menu ({self._current}):"]
            for tool in toolset.get_tools() if toolset else []:
                params = ", ".join(p.name for p in tool.parameters)
                lines.append(f"\t{tool.name} ({params}): {tool.description}")
            lines.append(f"To return to the toolset menu, use {TOOL_LIST}()")
            return "\n".join(lines) + "\n"

        lines = ["Tool Sets Available:"]
        for i, toolset in enumerate(self._toolsets):
            lines.append(f"\t[{i}] {toolset.name}")
        lines.append("")
        lines.append(f"To load a toolset, use {LOAD_TOOLSET}(toolsetIndex)")
        return "\n".join(lines) + "\n"

    # --- Gated navigation ---

    def parse_tool_call(self, call: ToolCall, agent: Optional["Agent"] = None) -> str:
        """Navigate or run a tool of the loaded toolset. Rejections never change state."""
        if self._current is None:
            if call.name != LOAD_TOOLSET:
                return "No toolset loaded"
            raw = call.parameters.get("toolsetIndex")
            try:
                index = int(raw)
            except (TypeError, ValueError):
                return f"Error: invalid toolset index {raw!r}"
            if index < 0 or index >= len(self._toolsets):
                return f"Error: toolset index {index} not found"
            self._current = self._toolsets[index].name
            return "Toolset menu loaded"

        if call.name == TOOL_LIST:
            self._current = None
            return "Toolset menu loaded"
        toolset = self.get_toolset(self._current)
        if toolset is None or not toolset.has_tool(call.name):
            return "Tool not found"
        return self.call_tool(agent, call)

    # --- Direct dispatch ---

    def call_tool(self, agent: Optional["Agent"], call: ToolCall) -> str:
        """Run any tool held by this menu. Failures come back as text."""
        toolset = self.find_toolset_for(call.name)
        if toolset is None:
            return f"Unknown tool: {call.name}"
        try:
            return toolset.call_tool(agent, call)
        except Exception as e:
            logger.debug("Tool %s in %s raised", call.name, toolset.name, exc_info=True)
            return f"Error: {e}"
