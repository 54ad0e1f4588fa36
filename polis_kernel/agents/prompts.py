"""Prompt assembly for one decision: tool catalog, output contract, context sections."""

import json
from typing import Iterable, List

from polis_kernel.menu.menu import Menu
from polis_kernel.models.agent_pass import AgentPass

OUTPUT_CONTRACT = """Respond with a single JSON object with these fields:
- intent: what you are trying to achieve this pass (short text)
- agentThoughts: your rationale (short text)
- toolCalls: ordered list of {"name": <tool name>, "parameters": {<param>: <value>}}
- followupInstructions: the concrete next step for your following pass
Every tool listed below can be called directly by name; you never need to load a toolset first."""


def render_tool_catalog(menu: Menu) -> str:
    """One example call per reachable tool, grouped by toolset."""
    lines: List[str] = []
    for toolset in menu.toolsets:
        lines.append(f"## {toolset.name}")
        for tool in toolset.get_tools():
            example = json.dumps({"name": tool.name, "parameters": tool.example_parameters()})
            lines.append(f"- {tool.name}: {tool.description}")
            lines.append(f"  example: {example}")
    return "\n".join(lines) if lines else "(no tools available)"


def output_schema_text() -> str:
    return json.dumps(AgentPass.model_json_schema(), indent=2)


def build_user_prompt(
    menu: Menu,
    history: Iterable[str],
    pre_results: str,
    instructions: str,
) -> str:
    history_lines = list(history)
    sections = [
        "# Available tools",
        render_tool_catalog(menu),
        "",
        "# Output contract",
        OUTPUT_CONTRACT,
        output_schema_text(),
        "",
        "# Recent history",
        "\n".join(f"- {h}" for h in history_lines) if history_lines else "(none yet)",
        "",
        "# Current observations",
        pre_results or "(nothing observed)",
        "",
        "# Instructions",
        instructions,
    ]
    return "\n".join(sections)
