"""
Polis: the root directory of rooms.

Exposes room discovery, creation, joining and invitations as a Toolset. The
directory Menu is the capability set every new agent starts with and the one
it gets back from returnToDirectory.

Membership rules:
- joinRoom: unknown room -> not found; private room -> caller must be invited
- acceptInvite: caller must be invited whatever the visibility; the invite
  is not consumed
- On success the caller's Menu is replaced by the room's Menu
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from polis_kernel.agents.identity import normalize_agent_id
from polis_kernel.errors import NotFound, PermissionDenied, ValidationFailed
from polis_kernel.items.item import ItemSimulator
from polis_kernel.menu.menu import Menu
from polis_kernel.models.chat import ChatMessage
from polis_kernel.models.tooling import ParameterSchema, ToolCall, ToolDescriptor
from polis_kernel.persistence.store import PolisStore
from polis_kernel.rooms.chat import READ_HARD_CAP
from polis_kernel.rooms.room import Room
from polis_kernel.toolset.registry import Toolset, unknown_tool

if TYPE_CHECKING:
    from polis_kernel.agents.agent import Agent

logger = logging.getLogger(__name__)

DIRECTORY_TOOLSET_NAME = "Polis Directory"
RECENT_CHAT_CAP = 20

DIRECTORY_TOOLS = [
    ToolDescriptor(name="listRooms", description="List available rooms"),
    ToolDescriptor(
        name="createRoom",
        description="Create a room",
        parameters=[
            ParameterSchema(name="name", description="Room name"),
            ParameterSchema(
                name="visibility",
                description="public or private",
                enum=["public", "private"],
                default="public",
            ),
        ],
    ),
    ToolDescriptor(
        name="createPrivateRoomAndInvite",
        description="Create a private room and invite an agent",
        parameters=[
            ParameterSchema(name="name", description="Room name"),
            ParameterSchema(name="inviteAgentId", description="Agent id to invite"),
        ],
    ),
    ToolDescriptor(
        name="joinRoom",
        description="Join a room by name",
        parameters=[ParameterSchema(name="name", description="Room name")],
    ),
    ToolDescriptor(
        name="acceptInvite",
        description="Accept an invite to a private room",
        parameters=[ParameterSchema(name="name", description="Room name")],
    ),
]


class Polis:
    """Registry of rooms for the lifetime of the process."""

    def __init__(
        self,
        store: Optional[PolisStore] = None,
        item_simulator: Optional[ItemSimulator] = None,
        shared_toolsets: Sequence[Toolset] = (),
        read_hard_cap: int = READ_HARD_CAP,
    ):
        self.store = store
        self.item_simulator = item_simulator
        self.read_hard_cap = read_hard_cap
        self.shared_toolsets: List[Toolset] = list(shared_toolsets)
        self._rooms: Dict[str, Room] = {}
        self.directory_toolset = Toolset(
            DIRECTORY_TOOLSET_NAME, DIRECTORY_TOOLS, self._directory_callback
        )
        self.directory_menu = Menu([self.directory_toolset, *self.shared_toolsets])

    # --- Best-effort persistence ---

    def persist(self, what: str, write: Callable[..., Any], *args) -> Any:
        """Run a store write; failures are logged and swallowed."""
        try:
            return write(*args)
        except Exception:
            logger.warning("Failed to persist %s", what, exc_info=True)
            return None

    def on_chat_message(self, message: ChatMessage) -> None:
        if self.store is not None:
            self.persist("chat message", self.store.insert_chat_message, message)

    def recent_chat_text(self, room: str, limit: int = 20, self_agent_id: Optional[str] = None) -> str:
        """
        Recent chat for a room, from the store when attached, else from memory.
        Messages by self_agent_id are labeled "You".
        """
        limit = min(RECENT_CHAT_CAP, max(0, int(limit)))
        if self_agent_id is not None:
            self_agent_id = normalize_agent_id(self_agent_id)
        if self.store is not None:
            try:
                messages = self.store.list_recent_chat_by_room(room, limit)
            except Exception:
                logger.warning("Failed to read chat for room %s", room, exc_info=True)
                return "(chat unavailable)"
        else:
            known = self._rooms.get(room)
            messages = known.chat.get_recent_messages(limit) if known else []
        if not messages:
            return "No messages"
        lines = []
        for m in messages:
            who = "You" if self_agent_id and m.agent_id == self_agent_id else f"{m.handle} (#{m.agent_id})"
            lines.append(f"[{m.timestamp.isoformat()}] {who}: {m.content}")
        return "\n".join(lines)

    # --- Rooms ---

    def get_or_create_room(self, name: str, is_private: bool = False) -> Room:
        """Idempotent: an existing room keeps the visibility it was created with."""
        room = self._rooms.get(name)
        if room is None:
            room = Room(self, name, is_private)
            self._rooms[name] = room
            logger.info("Room %s created (%s)", name, room.visibility)
            if self.store is not None:
                self.persist("room", self.store.upsert_room, name, is_private, room.created_at)
        return room

    def _room_list(self) -> List[Room]:
        # Copy first: the dashboard reads from another thread while a pass may add rooms.
        return list(self._rooms.values())

    def get_room(self, name: str) -> Optional[Room]:
        return self._rooms.get(name)

    def list_rooms(self) -> List[str]:
        return list(self._rooms.keys())

    def list_room_snapshots(self, limit_messages: int = 8) -> List[dict]:
        return [room.get_snapshot(limit_messages) for room in self._room_list()]

    def locate(self, menu: Menu) -> Optional[str]:
        """Name of the room whose Menu this is, or None for the directory."""
        return next((r.name for r in self._room_list() if r.menu is menu), None)

    # --- Directory toolset ---

    def _room_or_raise(self, name) -> Room:
        room = self._rooms.get(str(name))
        if room is None:
            raise NotFound(f"room {name} not found")
        return room

    def _directory_callback(self, agent: Optional["Agent"], call: ToolCall) -> str:
        if agent is None:
            raise ValidationFailed("agent required")
        params = call.parameters

        if call.name == "listRooms":
            if not self._rooms:
                return "No rooms"
            return "\n".join(f"{r.name} ({r.visibility})" for r in self._room_list())

        if call.name == "createRoom":
            name = params.get("name")
            if not name:
                raise ValidationFailed("name required")
            existed = str(name) in self._rooms
            visibility = str(params.get("visibility") or "public")
            room = self.get_or_create_room(str(name), visibility == "private")
            if existed:
                return f"Room {room.name} already exists ({room.visibility})"
            return f"Created room {room.name} ({room.visibility})"

        if call.name == "createPrivateRoomAndInvite":
            name = params.get("name")
            invitee = params.get("inviteAgentId")
            if not name or not invitee:
                raise ValidationFailed("name and inviteAgentId required")
            room = self.get_or_create_room(str(name), True)
            if not room.is_private:
                room.set_private(True)
            invited = room.invite(invitee)
            return f"Created private room {room.name} and invited #{invited}"

        if call.name == "joinRoom":
            room = self._room_or_raise(params.get("name"))
            if room.is_private and not room.is_invited(agent.id):
                raise PermissionDenied(f"room {room.name} is private; invite required")
            agent.set_menu(room.menu)
            return f"Joined room {room.name}"

        if call.name == "acceptInvite":
            room = self._room_or_raise(params.get("name"))
            if not room.is_invited(agent.id):
                raise PermissionDenied(f"no invite for you in {room.name}")
            agent.set_menu(room.menu)
            return f"Accepted invite and joined {room.name}"

        return unknown_tool(call)

