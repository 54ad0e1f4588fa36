"""
Agent: identity, self-state, bounded history and one live Menu.

A pass runs in three strictly sequential steps:
  compute_pre_results -> do_pass -> post_pass
The Menu reference is replaced whole on every room transition; it is never
patched in place.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Collection, Deque, Dict, List, Optional, Sequence, Tuple

from polis_kernel.agents.identity import normalize_agent_id
from polis_kernel.agents.prompts import build_user_prompt
from polis_kernel.menu.menu import Menu
from polis_kernel.models.agent_pass import AgentPass, ExecutionOutcome
from polis_kernel.models.tooling import ToolCall
from polis_kernel.reasoning.client import Reasoner, parse_structured
from polis_kernel.rooms.chat import ChatToolset

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 12
FALLBACK_FOLLOWUP = "Propose the next concrete action or reflection step."
NONE_LIKE = {"", "none", "n/a", "na", "null", "nothing", "-"}

# Snapshot calls run before every decision; absent tools are omitted.
SNAPSHOT_CALLS: Tuple[Tuple[str, ToolCall], ...] = (
    ("self", ToolCall(name="getSelf")),
    ("rooms", ToolCall(name="listRooms")),
    ("recentActivity", ToolCall(name="recentActivity", parameters={"limit": 5})),
    ("who", ToolCall(name="who")),
)
NEVER_AUTO_CALLED = ("enter", "chat")


def _clip(text: str, limit: int) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


def sanitize_followup(followup: Optional[str], fallback: str = FALLBACK_FOLLOWUP) -> str:
    """Blank or none-like followups become the fallback so the loop never stalls."""
    cleaned = (followup or "").strip()
    if cleaned.strip(".!").lower() in NONE_LIKE:
        return fallback
    return cleaned


def _is_error(result: str) -> bool:
    return result.startswith("Error") or result.startswith("Unknown tool")


class Agent:
    """An autonomous participant in the Polis."""

    def __init__(
        self,
        agent_id: str,
        model: str,
        system_prompt: str,
        menu: Menu,
        handle: str = "",
        history_capacity: int = DEFAULT_HISTORY_CAPACITY,
    ):
        self.id = normalize_agent_id(agent_id)
        self.model = model
        self.system_prompt = system_prompt
        self.handle = handle
        self.self_state: Dict[str, str] = {}
        self.history: Deque[str] = deque(maxlen=history_capacity)
        self._menu = menu
        self._last_executed: List[ToolCall] = []

    # --- Capability set ---

    @property
    def menu(self) -> Menu:
        return self._menu

    def set_menu(self, menu: Menu) -> None:
        """Swap the whole capability set (join / return to directory)."""
        self._menu = menu

    # --- Self state ---

    def set_self_field(self, key: str, value: str) -> None:
        self.self_state[key] = value

    def get_self(self) -> Dict[str, str]:
        return dict(self.self_state)

    def remember(self, entry: str) -> None:
        """Append to the rolling history; the oldest entry drops at capacity."""
        self.history.append(entry)

    # --- Pass steps ---

    def compute_pre_results(self, extra_calls: Sequence[ToolCall] = ()) -> str:
        """Read-only snapshot through the current Menu."""
        outputs: List[str] = []
        menu = self._menu
        for label, call in SNAPSHOT_CALLS:
            if not menu.has_tool(call.name):
                continue
            result = menu.call_tool(self, call)
            if result and result.strip():
                separator = "\n" if "\n" in result else " "
                outputs.append(f"- {label}:{separator}{result}")

        for call in extra_calls:
            if call.name in NEVER_AUTO_CALLED or not menu.has_tool(call.name):
                continue
            result = menu.call_tool(self, call)
            if result and result.strip():
                outputs.append(f"- {call.name}: {result}")
        return "\n".join(outputs)

    def do_pass(
        self,
        reasoner: Reasoner,
        instructions: str,
        pre_results: str,
        fallback_followup: str = FALLBACK_FOLLOWUP,
    ) -> AgentPass:
        """
        Ask the reasoning collaborator for one decision.

        Raises UpstreamFailure when the collaborator returns nothing and
        ValidationFailed when its output breaks the contract.
        """
        user_prompt = build_user_prompt(self._menu, self.history, pre_results, instructions)
        raw = reasoner.complete(
            self.system_prompt,
            [{"role": "user", "content": user_prompt}],
            self.model,
            AgentPass,
        )
        decision = parse_structured(raw, AgentPass)
        decision.followup_instructions = sanitize_followup(
            decision.followup_instructions, fallback_followup
        )

        tools = ", ".join(c.name for c in decision.tool_calls) or "none"
        self.remember(
            f"intent: {_clip(decision.intent, 120)} | why: {_clip(decision.agent_thoughts, 160)} "
            f"| tools: {tools} | next: {_clip(decision.followup_instructions, 120)}"
        )
        return decision

    def post_pass(
        self,
        decision: AgentPass,
        post_calls: Sequence[ToolCall] = (),
        repeat_guarded: Collection[str] = (),
    ) -> List[ExecutionOutcome]:
        """Execute requested calls then post calls, in order. One failure never stops the rest."""
        outcomes: List[ExecutionOutcome] = []
        previous = self._last_executed
        executed: List[ToolCall] = []

        for call in [*decision.tool_calls, *post_calls]:
            skip_reason = self._skip_reason(call, previous, repeat_guarded)
            if skip_reason:
                outcomes.append(ExecutionOutcome(
                    name=call.name, parameters=call.parameters, result=skip_reason, skipped=True,
                ))
                continue
            try:
                # Menu is re-read each call: a join earlier in the pass changes it.
                result = self._menu.call_tool(self, call)
            except Exception as e:
                logger.debug("Tool %s failed for agent %s", call.name, self.id, exc_info=True)
                result = f"Error: {e}"
            outcomes.append(ExecutionOutcome(
                name=call.name, parameters=call.parameters, result=result, error=_is_error(result),
            ))
            executed.append(call)

        self._last_executed = executed
        names = ", ".join(c.name for c in executed) or "none"
        self.remember(f"executed: {names}")
        return outcomes

    def _skip_reason(
        self,
        call: ToolCall,
        previous: List[ToolCall],
        repeat_guarded: Collection[str],
    ) -> Optional[str]:
        if call.name == "enter":
            chat = self._menu.find_toolset_for("enter")
            if isinstance(chat, ChatToolset) and chat.is_present(self.id):
                return "Skipped: already entered chat in this room"
        if call.name in repeat_guarded and any(
            p.name == call.name and p.parameters == call.parameters for p in previous
        ):
            return f"Skipped: repeated {call.name} with the same parameters as last pass"
        return None
