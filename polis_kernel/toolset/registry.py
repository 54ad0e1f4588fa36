"""
Toolset: a named, immutable bundle of tool descriptors plus one callback.

A Toolset is a closure over whatever private state its tools need (a chat
log, an item list). The same instance is shared by reference across every
Menu that includes it, so a mutation made through one Menu is visible to all.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from polis_kernel.errors import ToolError
from polis_kernel.models.tooling import ToolCall, ToolDescriptor

if TYPE_CHECKING:
    from polis_kernel.agents.agent import Agent

ToolsetCallback = Callable[[Optional["Agent"], ToolCall], str]


class Toolset:
    """Named bundle of tools executed by a single callback."""

    def __init__(
        self,
        name: str,
        tools: Sequence[ToolDescriptor],
        callback: ToolsetCallback,
    ):
        names = [t.name for t in tools]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate tool name in toolset {name!r}")
        self.name = name
        self._tools: tuple = tuple(tools)
        self._index: Dict[str, ToolDescriptor] = {t.name: t for t in tools}
        self._callback = callback

    def get_tools(self) -> List[ToolDescriptor]:
        """Ordered tool descriptors (read-only copy)."""
        return list(self._tools)

    def has_tool(self, name: str) -> bool:
        return name in self._index

    def tool_names(self) -> List[str]:
        return [t.name for t in self._tools]

    def call_tool(self, agent: Optional["Agent"], call: ToolCall) -> str:
        """
        Forward a call to the callback. Recoverable toolset errors come
        back as result text; anything else propagates to the Menu.
        """
        try:
            return self._callback(agent, call)
        except ToolError as e:
            return f"Error: {e}"

    def __repr__(self) -> str:
        return f"Toolset({self.name!r}, tools={self.tool_names()})"


def unknown_tool(call: ToolCall) -> str:
    return f"Unknown tool: {call.name}"
