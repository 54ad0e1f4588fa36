"""
Items: room objects whose behavior is simulated by the reasoning collaborator.

The kernel never interprets item semantics. It keeps the template and the
state map, asks the simulator for outcomes, and merges returned state deltas
key-wise into the current state.
"""

from __future__ import annotations

import json
from typing import Dict, Optional, Protocol

from polis_kernel.models.items import (
    InteractionRequest,
    InteractionResponse,
    ItemState,
    ItemTemplate,
)
from polis_kernel.reasoning.client import Reasoner, parse_structured


class ItemSimulator(Protocol):
    """Protocol for the item simulation collaborator."""

    def create_template(self, description: str) -> ItemTemplate: ...

    def initial_state(self, template: ItemTemplate, creation_prompt: str) -> ItemState: ...

    def interact(
        self, template: ItemTemplate, state: Dict[str, str], request: InteractionRequest
    ) -> InteractionResponse: ...


class Item:
    """An item instance: template, live state, and the state it started with."""

    def __init__(self, template: ItemTemplate, state: Dict[str, str]):
        self.template = template
        self.state: Dict[str, str] = dict(state)
        self.initial_state: Dict[str, str] = dict(state)

    @classmethod
    def create(
        cls, simulator: ItemSimulator, template: ItemTemplate, creation_prompt: str = ""
    ) -> "Item":
        instance = simulator.initial_state(template, creation_prompt)
        return cls(template, instance.item_state)

    @property
    def name(self) -> str:
        return self.template.name

    def interact(self, simulator: ItemSimulator, request: InteractionRequest) -> InteractionResponse:
        """Run an interaction and merge the returned state delta (overwrite per key)."""
        response = simulator.interact(self.template, dict(self.state), request)
        self.state.update(response.updated_item_state)
        return response

    def reset(self) -> Dict[str, str]:
        self.state = dict(self.initial_state)
        return self.state

    def render_menu(self) -> str:
        lines = [f"# Item: {self.template.name}", self.template.description, "## Interactions"]
        for interaction in self.template.interactions:
            inputs = ", ".join(
                f"{io.name_and_amount}: {io.type.value}" for io in interaction.action_inputs
            )
            lines.append(f"- {interaction.name} ({inputs}) - {interaction.description}")
        lines.append("## State")
        lines.extend(f"- {k}: {v}" for k, v in self.state.items())
        return "\n".join(lines)


# --- LLM-backed simulator ---

TEMPLATE_SYSTEM_PROMPT = """You generate in-game item templates for items whose logic is run by an LLM.
Each item has a name, a description, a list of state parameters, a core prompt,
and a list of interactions that users of the item can perform. Each interaction
has inputs and outputs typed as one of: item, sound, smell, status, feeling, text, force.
It can be any type of item or device that a player or npc can interact with."""

STATE_SYSTEM_PROMPT = "You generate the initial state of an item."

INTERACTION_SYSTEM_PROMPT = "You simulate an interaction between a user and an item."


def _schema_text(schema) -> str:
    return json.dumps(schema.model_json_schema(), indent=2)


class LLMItemSimulator:
    """Item simulator that delegates every judgement to a Reasoner."""

    def __init__(self, reasoner: Reasoner, model: str = "venice-uncensored"):
        self.reasoner = reasoner
        self.model = model

    def create_template(self, description: str) -> ItemTemplate:
        prompt = (
            f"Generate an item template for the following description:\n{description}\n\n"
            f"Respond with the template in the following JSON format:\n{_schema_text(ItemTemplate)}"
        )
        raw = self.reasoner.complete(
            TEMPLATE_SYSTEM_PROMPT, [{"role": "user", "content": prompt}], self.model, ItemTemplate
        )
        return parse_structured(raw, ItemTemplate)

    def initial_state(self, template: ItemTemplate, creation_prompt: str) -> ItemState:
        prompt = (
            "Generate the initial state of an item for the following template:\n"
            f"{template.model_dump_json(indent=2)}\n\n"
            "Do not include location or time in the state.\n\n"
            f"The item is created with the following prompt:\n{creation_prompt}"
        )
        raw = self.reasoner.complete(
            STATE_SYSTEM_PROMPT, [{"role": "user", "content": prompt}], self.model, ItemState
        )
        return parse_structured(raw, ItemState)

    def interact(
        self, template: ItemTemplate, state: Dict[str, str], request: InteractionRequest
    ) -> InteractionResponse:
        prompt = f"""Your task is to simulate the interaction of an item with a user.

Rules:
    * Realistically simulate the interaction based on the request and the current state of the item.
    * If the request is not possible with the item or its current state, refuse and do not update the state.
    * Update the state of the item as necessary.
    * Any generated output is given to the user, so it does not remain in the state of this item.

The item is described by the following template:
{template.model_dump_json(indent=2)}

The current state of the item is:
{json.dumps(state, indent=2)}

The user has the following interaction request:
{request.model_dump_json(indent=2)}

Respond with the interaction response in the following JSON format:
{_schema_text(InteractionResponse)}
"""
        raw = self.reasoner.complete(
            INTERACTION_SYSTEM_PROMPT,
            [{"role": "user", "content": prompt}],
            self.model,
            InteractionResponse,
        )
        return parse_structured(raw, InteractionResponse)
