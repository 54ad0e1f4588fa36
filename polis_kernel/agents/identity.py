"""Identity toolset: an agent's own handle and self-state."""

import json

from polis_kernel.errors import ValidationFailed
from polis_kernel.models.tooling import ParameterSchema, ToolCall, ToolDescriptor
from polis_kernel.toolset.registry import Toolset, unknown_tool


def normalize_agent_id(agent_id) -> str:
    """Agent ids are stored without a leading "#", which is only a display prefix."""
    text = str(agent_id)
    return text[1:] if text.startswith("#") else text


IDENTITY_TOOLS = [
    ToolDescriptor(name="getHandle", description="Get current handle"),
    ToolDescriptor(
        name="setHandle",
        description="Set a new handle for yourself (does not auto-enter chat)",
        parameters=[ParameterSchema(name="handle", description="New handle")],
    ),
    ToolDescriptor(
        name="getSelf",
        description="Get your self state (includes handle and all self fields)",
    ),
    ToolDescriptor(
        name="setSelfField",
        description="Set a key/value in your self state",
        parameters=[
            ParameterSchema(name="key", description="Field name"),
            ParameterSchema(name="value", description="Field value"),
        ],
    ),
]


def create_identity_toolset(name: str = "Identity") -> Toolset:
    """Stateless toolset acting on whichever agent calls it; safe to share."""

    def callback(agent, call: ToolCall) -> str:
        if agent is None:
            raise ValidationFailed("agent required")
        params = call.parameters
        if call.name == "getHandle":
            return f"Handle: {agent.handle or '(unset)'}"
        if call.name == "setHandle":
            handle = params.get("handle")
            if not handle:
                raise ValidationFailed("handle is required")
            agent.handle = str(handle)
            return f"Handle set to {handle}"
        if call.name == "getSelf":
            return json.dumps({"handle": agent.handle or "(unset)", **agent.self_state}, indent=2)
        if call.name == "setSelfField":
            key = params.get("key")
            if not key:
                raise ValidationFailed("key is required")
            agent.set_self_field(str(key), str(params.get("value") or ""))
            return f"Self[{key}] set"
        return unknown_tool(call)

    return Toolset(name, IDENTITY_TOOLS, callback)
