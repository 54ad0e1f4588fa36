"""Expose a single item as a Toolset: one tool per interaction, plus reset."""

from typing import Callable, Optional

from polis_kernel.items.item import Item, ItemSimulator
from polis_kernel.models.items import InteractionRequest, InteractionResponse
from polis_kernel.models.tooling import ParameterSchema, ToolCall, ToolDescriptor
from polis_kernel.toolset.registry import Toolset, unknown_tool

RESET_TOOL = ToolDescriptor(name="reset", description="Reset this item to its initial state")

InteractionHook = Callable[[object, InteractionRequest, InteractionResponse], None]


def item_toolset(
    item: Item,
    simulator: ItemSimulator,
    name: Optional[str] = None,
    on_interaction: Optional[InteractionHook] = None,
    include_reset: bool = True,
) -> Toolset:
    """
    Build a Toolset driving one item through the simulator.

    on_interaction(agent, request, response) runs after each successful
    interaction, once the item state has been merged. Rooms use it to
    persist the new state and the interaction record.
    """
    tools = [
        ToolDescriptor(
            name=interaction.name,
            description=interaction.description,
            parameters=[
                ParameterSchema(
                    name=io.name_and_amount,
                    description=f"Input: {io.name_and_amount} ({io.type.value})",
                )
                for io in interaction.action_inputs
            ],
        )
        for interaction in item.template.interactions
        if interaction.name != RESET_TOOL.name
    ]
    interactions = {t.name for t in tools}
    if include_reset:
        tools.append(RESET_TOOL)

    def callback(agent, call: ToolCall) -> str:
        if include_reset and call.name == RESET_TOOL.name:
            item.reset()
            return f"Reset {item.name} to its initial state"
        if call.name not in interactions:
            return unknown_tool(call)
        if agent is not None:
            intent = f"Agent {agent.handle} (#{agent.id}) wants to {call.name}"
        else:
            intent = f"User wants to {call.name}"
        request = InteractionRequest(
            interaction=call.name,
            inputs={str(k): str(v) for k, v in call.parameters.items()},
            intent=intent,
        )
        response = item.interact(simulator, request)
        if on_interaction is not None:
            on_interaction(agent, request, response)
        return f"{item.name}: {response.description}"

    return Toolset(name or item.name, tools, callback)
