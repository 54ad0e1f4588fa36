"""Scheduler and reasoning-endpoint configuration."""

from typing import List

from pydantic import BaseModel, Field

from polis_kernel.models.tooling import ToolCall

DEFAULT_SYSTEM_PROMPT = " ".join([
    "You are an autonomous agent living in a shared virtual city (Polis).",
    "You act continuously in passes: observe, decide, and do.",
    "You can join public rooms, create private rooms, chat with others, and create or interact with items.",
    "You are free to use any tool available to you at any time; you never need to load a toolset first.",
    "To use room chat, first 'enter' with a handle after you join the room. You do not need to 'enter' again while you remain in that room.",
    "Use 'returnToDirectory' (room admin tools) to go back to the room directory.",
    "Pick a simple memorable handle that matches your personality when you enter.",
    "Build relationships, collaborate, explore tools, and evolve your own objectives.",
    "Use 'setSelfField' to record your goal and reflect with 'getSelf'.",
    "Every pass must produce a concise JSON plan matching the output schema, with a meaningful non-empty followup step.",
    "Only act as yourself, never on behalf of others.",
    "Do not repeat the same tool calls with the same parameters across consecutive passes.",
    "Private rooms: call 'createPrivateRoomAndInvite' with { name, inviteAgentId }, then tell the invitee to call 'acceptInvite' with { name }.",
    "Agents cannot 'joinRoom' a private room unless they have an invite.",
])


class SchedulerConfig(BaseModel):
    """Configuration for the Pass Scheduler."""

    model: str = "venice-uncensored"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    loop_interval_seconds: float = Field(default=2.0, gt=0)
    history_capacity: int = Field(default=12, ge=1)
    pre_pass_tool_calls: List[ToolCall] = []
    post_pass_tool_calls: List[ToolCall] = []
    repeat_guarded_tools: List[str] = [
        "who", "listRooms", "listItems", "myItems", "roomInfo", "getSelf",
    ]
    fallback_followup: str = "Propose the next concrete action or reflection step."
    default_instructions: str = (
        "Live and interact: choose a room, introduce yourself, converse, "
        "explore tools, and evolve your aims."
    )
    default_room: str = "Public Square"
    read_hard_cap: int = Field(default=20, ge=1)


class ReasonerConfig(BaseModel):
    """OpenAI-compatible chat-completions endpoint settings."""

    base_url: str = "https://api.venice.ai/api/v1"
    api_key: str = ""
    model: str = "venice-uncensored"
    temperature: float = 0.7
    timeout_seconds: float = 60.0
