"""
Room chat: a self-contained multi-agent chat Toolset with its own registry.

Tools: enter, leave, changeHandle, who, chat, read. The caller's identity
always comes from the calling agent, never from parameters.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from polis_kernel.agents.identity import normalize_agent_id
from polis_kernel.errors import Conflict, PreconditionFailed, ValidationFailed
from polis_kernel.models.chat import ChatMessage, Participant
from polis_kernel.models.tooling import ParameterSchema, ToolCall, ToolDescriptor
from polis_kernel.toolset.registry import Toolset, unknown_tool

if TYPE_CHECKING:
    from polis_kernel.agents.agent import Agent

DEFAULT_READ_LIMIT = 10
READ_HARD_CAP = 20

CHAT_TOOLS = [
    ToolDescriptor(
        name="enter",
        description="Enter the chat by registering your handle",
        parameters=[
            ParameterSchema(
                name="handle",
                description="Handle to use in chat, pick something that matches your personality",
            ),
        ],
    ),
    ToolDescriptor(name="leave", description="Leave the chat"),
    ToolDescriptor(
        name="changeHandle",
        description="Change your chat handle in this room (must have entered)",
        parameters=[ParameterSchema(name="handle", description="New handle to use in this room chat")],
    ),
    ToolDescriptor(name="who", description="List agents currently in the chat"),
    ToolDescriptor(
        name="chat",
        description="Post a message to the shared chat (as yourself)",
        parameters=[ParameterSchema(name="content", description="Message content")],
    ),
    ToolDescriptor(
        name="read",
        description="Read the most recent messages (must have entered)",
        parameters=[
            ParameterSchema(
                name="limit",
                description="Maximum number of recent messages to return (default 10)",
                type="number",
                default=str(DEFAULT_READ_LIMIT),
            ),
        ],
    ),
]


def format_message(message: ChatMessage) -> str:
    return f"[{message.timestamp.isoformat()}] {message.handle} (#{message.agent_id}): {message.content}"


class ChatToolset(Toolset):
    """Chat toolset for one room. Shared by every member's Menu."""

    def __init__(
        self,
        name: str,
        room: str,
        on_message: Optional[Callable[[ChatMessage], None]] = None,
        read_hard_cap: int = READ_HARD_CAP,
    ):
        super().__init__(name, CHAT_TOOLS, self._dispatch)
        self.room = room
        self.read_hard_cap = read_hard_cap
        self._on_message = on_message
        self._messages: List[ChatMessage] = []
        self._participants: Dict[str, Participant] = {}

    # --- Read-only views (snapshots, dashboard) ---

    def get_recent_messages(self, limit: int = DEFAULT_READ_LIMIT) -> List[ChatMessage]:
        limit = max(0, int(limit))
        return self._messages[-limit:] if limit else []

    def get_participants(self) -> List[Participant]:
        return list(self._participants.values())

    def is_present(self, agent_id: str) -> bool:
        return agent_id in self._participants

    # --- Dispatch ---

    def _dispatch(self, agent: Optional["Agent"], call: ToolCall) -> str:
        handlers = {
            "enter": self._enter,
            "leave": self._leave,
            "changeHandle": self._change_handle,
            "who": self._who,
            "chat": self._chat,
            "read": self._read,
        }
        handler = handlers.get(call.name)
        if handler is None:
            return unknown_tool(call)
        return handler(agent, call.parameters)

    def _caller_id(self, agent: Optional["Agent"]) -> str:
        if agent is None:
            raise ValidationFailed("agent is required")
        return normalize_agent_id(agent.id)

    def _require_entered(self, agent_id: str, action: str) -> Participant:
        info = self._participants.get(agent_id)
        if info is None:
            raise PreconditionFailed(f"Agent #{agent_id} must enter before {action}")
        return info

    def _ensure_handle_free(self, agent_id: str, handle: str) -> None:
        taken = any(
            other_id != agent_id and p.handle == handle
            for other_id, p in list(self._participants.items())
        )
        if taken:
            raise Conflict("this handle already exists, please choose another one")

    def _enter(self, agent: Optional["Agent"], params: dict) -> str:
        agent_id = self._caller_id(agent)
        handle = str(params.get("handle") or "")
        if not handle:
            raise ValidationFailed("'handle' is required")
        self._ensure_handle_free(agent_id, handle)

        existing = self._participants.get(agent_id)
        joined_at = existing.joined_at if existing else datetime.utcnow()
        self._participants[agent_id] = Participant(
            agent_id=agent_id, handle=handle, joined_at=joined_at
        )
        action = "updated handle in" if existing else "entered"
        return f"Agent {handle} (#{agent_id}) {action} chat"

    def _leave(self, agent: Optional["Agent"], params: dict) -> str:
        agent_id = self._caller_id(agent)
        info = self._participants.pop(agent_id, None)
        if info is None:
            raise PreconditionFailed(f"Agent #{agent_id} is not in chat")
        return f"Agent {info.handle} (#{agent_id}) left chat"

    def _change_handle(self, agent: Optional["Agent"], params: dict) -> str:
        agent_id = self._caller_id(agent)
        info = self._require_entered(agent_id, "changing handle")
        handle = str(params.get("handle") or "")
        if not handle:
            raise ValidationFailed("'handle' must be a non-empty string")
        self._ensure_handle_free(agent_id, handle)
        self._participants[agent_id] = Participant(
            agent_id=agent_id, handle=handle, joined_at=info.joined_at
        )
        agent.handle = handle
        return f"Handle changed to {handle}"

    def _who(self, agent: Optional["Agent"], params: dict) -> str:
        if not self._participants:
            return "No agents in chat"
        return "\n".join(
            f"{p.handle} (#{p.agent_id}) since {p.joined_at.isoformat()}"
            for p in list(self._participants.values())
        )

    def _chat(self, agent: Optional["Agent"], params: dict) -> str:
        agent_id = self._caller_id(agent)
        info = self._require_entered(agent_id, "chatting")
        content = params.get("content")
        if not content or not isinstance(content, str):
            raise ValidationFailed("'content' must be a non-empty string")
        message = ChatMessage(
            timestamp=datetime.utcnow(),
            room=self.room,
            agent_id=agent_id,
            handle=info.handle,
            content=content,
        )
        self._messages.append(message)
        if self._on_message is not None:
            self._on_message(message)
        return f"Message posted by {message.handle} (#{agent_id})"

    def _read(self, agent: Optional["Agent"], params: dict) -> str:
        agent_id = self._caller_id(agent)
        self._require_entered(agent_id, "reading")
        try:
            requested = int(params.get("limit", DEFAULT_READ_LIMIT))
        except (TypeError, ValueError):
            requested = DEFAULT_READ_LIMIT
        window = self.get_recent_messages(min(self.read_hard_cap, max(0, requested)))
        if not window:
            return "No messages"
        return "\n".join(format_message(m) for m in window)
