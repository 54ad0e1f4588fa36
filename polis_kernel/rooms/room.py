"""
Room: a named shared context owning chat, items and administration Toolsets.

Joining a room swaps the agent's whole Menu for the room's Menu; the three
Toolsets are single shared instances, so every member sees the same chat,
items and visibility.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Set

from polis_kernel.agents.identity import normalize_agent_id
from polis_kernel.errors import NotFound, PermissionDenied, UpstreamFailure, ValidationFailed
from polis_kernel.items.adapter import item_toolset
from polis_kernel.items.item import Item
from polis_kernel.menu.menu import Menu
from polis_kernel.models.items import ItemInteractionRecord
from polis_kernel.models.tooling import ParameterSchema, ToolCall, ToolDescriptor
from polis_kernel.rooms.chat import ChatToolset
from polis_kernel.toolset.registry import Toolset, unknown_tool

if TYPE_CHECKING:
    from polis_kernel.agents.agent import Agent
    from polis_kernel.rooms.directory import Polis

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_CAP = 20

ADMIN_TOOLS = [
    ToolDescriptor(name="roomInfo", description="Get current room info"),
    ToolDescriptor(
        name="invite",
        description="Invite an agentId to this room",
        parameters=[ParameterSchema(name="agentId", description="Agent id to invite")],
    ),
    ToolDescriptor(name="makePrivate", description="Make this room private"),
    ToolDescriptor(name="makePublic", description="Make this room public"),
    ToolDescriptor(
        name="recentActivity",
        description="Show recent chat and item overview",
        parameters=[
            ParameterSchema(
                name="limit", description="Max chat messages to show", type="number", default="5"
            ),
        ],
    ),
    ToolDescriptor(name="returnToDirectory", description="Return to the polis room directory"),
]

ITEM_TOOLS = [
    ToolDescriptor(name="listItems", description="List items in room"),
    ToolDescriptor(
        name="createItem",
        description="Create an item in this room (you will own it)",
        parameters=[
            ParameterSchema(name="description", description="Template description"),
            ParameterSchema(name="creationPrompt", description="Creation prompt for initial state"),
        ],
    ),
    ToolDescriptor(
        name="interact",
        description="Interact with an item",
        parameters=[
            ParameterSchema(name="index", description="Item index", type="number", default="0"),
            ParameterSchema(name="interaction", description="Interaction name"),
            ParameterSchema(name="inputs", description="JSON of inputs", default="{}"),
        ],
    ),
    ToolDescriptor(
        name="removeItem",
        description="Remove an item you own",
        parameters=[ParameterSchema(name="index", description="Item index", type="number", default="0")],
    ),
    ToolDescriptor(name="myItems", description="List items you own"),
]


class RoomItem:
    """An item placed in a room, with its owner and persisted id."""

    def __init__(self, owner_id: str, item: Item, item_id: Optional[int] = None):
        self.owner_id = owner_id
        self.item = item
        self.item_id = item_id


def _require_agent(agent: Optional["Agent"]) -> "Agent":
    if agent is None:
        raise ValidationFailed("agent required")
    return agent


class Room:
    """A shared room. Created by the directory, never deleted."""

    def __init__(self, polis: "Polis", name: str, is_private: bool = False):
        self.polis = polis
        self.name = name
        self.is_private = is_private
        self.invites: Set[str] = set()
        self.items: List[RoomItem] = []
        self.created_at = datetime.utcnow()

        self.chat = ChatToolset(
            f"{name}: Chat",
            room=name,
            on_message=polis.on_chat_message,
            read_hard_cap=polis.read_hard_cap,
        )
        self.items_toolset = Toolset(f"{name}: Items", ITEM_TOOLS, self._items_callback)
        self.admin = Toolset(f"{name}: Room Admin", ADMIN_TOOLS, self._admin_callback)
        self.menu = Menu([self.chat, self.items_toolset, self.admin, *polis.shared_toolsets])

    @property
    def visibility(self) -> str:
        return "private" if self.is_private else "public"

    def invite(self, agent_id: str) -> str:
        """Idempotent; returns the normalized id."""
        normalized = normalize_agent_id(agent_id)
        self.invites.add(normalized)
        return normalized

    def is_invited(self, agent_id: str) -> bool:
        return normalize_agent_id(agent_id) in self.invites

    def set_private(self, is_private: bool) -> None:
        self.is_private = is_private
        if self.polis.store is not None:
            self.polis.persist(
                "room visibility", self.polis.store.set_room_visibility, self.name, is_private
            )

    def get_snapshot(self, limit_messages: int = 8) -> dict:
        """Structured view for dashboards."""
        return {
            "name": self.name,
            "is_private": self.is_private,
            "created_at": self.created_at.isoformat(),
            "invites": sorted(list(self.invites)),
            "participants": [p.model_dump(mode="json") for p in self.chat.get_participants()],
            "items": [
                {
                    "index": idx,
                    "item_id": ri.item_id,
                    "name": ri.item.name,
                    "owner_id": ri.owner_id,
                }
                for idx, ri in enumerate(list(self.items))
            ],
            "recent_chat": [
                m.model_dump(mode="json") for m in self.chat.get_recent_messages(limit_messages)
            ],
        }

    # --- Items ---

    def _item_lines(self) -> str:
        if not self.items:
            return "No items"
        return "\n".join(
            f"[{idx}] {ri.item.name} (owner:#{ri.owner_id})" for idx, ri in enumerate(self.items)
        )

    def _entry(self, raw_index) -> RoomItem:
        try:
            idx = int(raw_index)
        except (TypeError, ValueError):
            raise NotFound(f"item {raw_index!r} not found")
        if idx < 0 or idx >= len(self.items):
            raise NotFound(f"item {idx} not found")
        return self.items[idx]

    def _items_callback(self, agent: Optional["Agent"], call: ToolCall) -> str:
        agent = _require_agent(agent)
        params = call.parameters

        if call.name == "listItems":
            return self._item_lines()

        if call.name == "myItems":
            mine = [
                f"[{idx}] {ri.item.name}"
                for idx, ri in enumerate(self.items)
                if ri.owner_id == agent.id
            ]
            return "\n".join(mine) if mine else "You own no items"

        if call.name == "createItem":
            description = params.get("description")
            if not description:
                raise ValidationFailed("description required")
            simulator = self.polis.item_simulator
            if simulator is None:
                raise UpstreamFailure("item simulation is unavailable")
            template = simulator.create_template(str(description))
            item = Item.create(simulator, template, str(params.get("creationPrompt") or ""))
            entry = RoomItem(agent.id, item)
            if self.polis.store is not None:
                entry.item_id = self.polis.persist(
                    "item", self.polis.store.insert_item, self.name, agent.id, template, item.state
                )
            self.items.append(entry)
            return f"Created item '{item.name}' (owner:#{agent.id})"

        if call.name == "interact":
            entry = self._entry(params.get("index", 0))
            interaction = str(params.get("interaction") or "")
            if not interaction:
                raise ValidationFailed("interaction required")
            inputs = params.get("inputs") or {}
            if isinstance(inputs, str):
                try:
                    inputs = json.loads(inputs) if inputs.strip() else {}
                except json.JSONDecodeError:
                    raise ValidationFailed("invalid JSON for inputs")
            if not isinstance(inputs, dict):
                raise ValidationFailed("inputs must be a JSON object")
            simulator = self.polis.item_simulator
            if simulator is None:
                raise UpstreamFailure("item simulation is unavailable")
            completed = []

            def record(who, request, response):
                self._record_interaction(entry, who, request, response)
                completed.append(response)

            toolset = item_toolset(
                entry.item, simulator, include_reset=False, on_interaction=record
            )
            if not toolset.has_tool(interaction):
                raise NotFound(f"interaction '{interaction}' not found on {entry.item.name}")
            result = toolset.call_tool(agent, ToolCall(name=interaction, parameters=inputs))
            if not completed:
                return result
            return f"Interaction '{interaction}' completed on {result}"

        if call.name == "removeItem":
            entry = self._entry(params.get("index", 0))
            if entry.owner_id != agent.id:
                raise PermissionDenied("permission denied: only the owner can remove this item")
            idx = self.items.index(entry)
            self.items.pop(idx)
            if self.polis.store is not None and entry.item_id is not None:
                self.polis.persist("item removal", self.polis.store.delete_item, entry.item_id)
            return f"Removed item {idx}"

        return unknown_tool(call)

    def _record_interaction(self, entry: RoomItem, agent: "Agent", request, response) -> None:
        store = self.polis.store
        if store is None or entry.item_id is None:
            return
        self.polis.persist("item state", store.update_item_state, entry.item_id, entry.item.state)
        self.polis.persist(
            "item interaction",
            store.insert_item_interaction,
            ItemInteractionRecord(
                timestamp=datetime.utcnow(),
                item_id=entry.item_id,
                room=self.name,
                agent_id=agent.id,
                interaction_name=request.interaction,
                inputs=request.inputs,
                outputs=response.outputs,
                description=response.description,
                updated_state=entry.item.state,
            ),
        )

    # --- Admin ---

    def _admin_callback(self, agent: Optional["Agent"], call: ToolCall) -> str:
        agent = _require_agent(agent)
        params = call.parameters

        if call.name == "roomInfo":
            return (
                f"{self.name} | {self.visibility} | items: {len(self.items)} "
                f"| invites: {len(self.invites)}"
            )

        if call.name == "invite":
            agent_id = params.get("agentId")
            if not agent_id:
                raise ValidationFailed("agentId required")
            invited = self.invite(agent_id)
            return f"Invited #{invited} to {self.name}"

        if call.name == "makePrivate":
            self.set_private(True)
            return f"Room {self.name} is now private"

        if call.name == "makePublic":
            self.set_private(False)
            return f"Room {self.name} is now public"

        if call.name == "recentActivity":
            try:
                limit = int(params.get("limit", 5))
            except (TypeError, ValueError):
                limit = 5
            chat = self.polis.recent_chat_text(
                self.name, min(RECENT_ACTIVITY_CAP, max(0, limit)), agent.id
            )
            return f"Room: {self.name}\nItems:\n{self._item_lines()}\n\nRecent Chat:\n{chat}"

        if call.name == "returnToDirectory":
            agent.set_menu(self.polis.directory_menu)
            return "Returned to directory"

        return unknown_tool(call)
