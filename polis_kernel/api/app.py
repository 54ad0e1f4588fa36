"""
Polis Dashboard API: FastAPI endpoints.

Read-only views over the persistence store and, when a live scheduler is
attached, over the in-memory rooms and agents:
- Pass history
- Agents and their current location
- Rooms, room snapshots and room chat
- Items and their interaction history
"""

from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException

from polis_kernel.persistence.store import PolisStore
from polis_kernel.scheduler.orchestrator import PassScheduler


def create_app(
    store: Optional[PolisStore] = None,
    scheduler: Optional[PassScheduler] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Polis Dashboard API",
        description="Read-only views of agents, rooms, chat and items",
        version="0.1.0",
    )

    db = store or (scheduler.store if scheduler and scheduler.store else PolisStore())
    app.state.store = db
    app.state.scheduler = scheduler

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "scheduler": scheduler.status if scheduler else "detached",
            "passes": db.count_passes(),
        }

    # === PASSES ===

    @app.get("/api/passes")
    def list_passes(
        limit: int = 50, agent_id: Optional[str] = None, since: Optional[datetime] = None
    ):
        """Recent pass records, newest first; with since, the passes after it, oldest first."""
        limit = max(1, min(limit, 500))
        if since is not None:
            records = db.list_passes_since(since, limit, agent_id)
        elif agent_id:
            records = db.list_recent_by_agent(agent_id, limit)
        else:
            records = db.list_recent(limit)
        return [r.model_dump(mode="json") for r in records]

    # === AGENTS ===

    @app.get("/api/agents")
    def list_agents():
        """Agents from pass history, enriched with live state when available."""
        agents = {a["agent_id"]: dict(a) for a in db.list_agents()}
        if scheduler is not None:
            for agent_id in scheduler.list_agents():
                agent = scheduler.get_agent(agent_id)
                entry = agents.setdefault(agent_id, {"agent_id": agent_id, "passes": 0})
                entry.update({
                    "handle": agent.handle,
                    "room": scheduler.polis.locate(agent.menu),
                    "self_state": agent.get_self(),
                    "next_instructions": scheduler.next_instructions(agent_id),
                })
        return list(agents.values())

    # === ROOMS ===

    @app.get("/api/rooms")
    def list_rooms():
        if scheduler is not None:
            return [
                {
                    "name": s["name"],
                    "is_private": s["is_private"],
                    "created_at": s["created_at"],
                }
                for s in scheduler.polis.list_room_snapshots(limit_messages=0)
            ]
        return db.list_rooms()

    @app.get("/api/room-snapshots")
    def room_snapshots(limit_messages: int = 8):
        """Live room state when attached; otherwise rebuilt from stored rows."""
        limit_messages = max(0, min(limit_messages, 50))
        if scheduler is not None:
            return scheduler.polis.list_room_snapshots(limit_messages)

        items_by_room = {}
        for item in db.list_items():
            items_by_room.setdefault(item.room, []).append({
                "item_id": item.id,
                "name": item.template.name,
                "owner_id": item.owner_id,
            })
        return [
            {
                **room,
                "participants": [],
                "items": items_by_room.get(room["name"], []),
                "recent_chat": [
                    m.model_dump(mode="json")
                    for m in db.list_recent_chat_by_room(room["name"], limit_messages)
                ],
            }
            for room in db.list_rooms()
        ]

    @app.get("/api/room-chat")
    def room_chat(room: str, since: Optional[datetime] = None, limit: int = 50):
        limit = max(1, min(limit, 200))
        if since is not None:
            messages = db.list_chat_by_room_since(room, since, limit)
        else:
            messages = db.list_recent_chat_by_room(room, limit)
        return [m.model_dump(mode="json") for m in messages]

    # === ITEMS ===

    @app.get("/api/items")
    def list_items():
        return [i.model_dump(mode="json") for i in db.list_items()]

    @app.get("/api/items/{item_id}")
    def get_item(item_id: int):
        item = db.get_item(item_id)
        if not item:
            raise HTTPException(404, "Item not found")
        return item.model_dump(mode="json")

    @app.get("/api/items/{item_id}/interactions")
    def item_interactions(item_id: int, limit: int = 50):
        if not db.get_item(item_id):
            raise HTTPException(404, "Item not found")
        records = db.list_recent_item_interactions(item_id, max(1, min(limit, 200)))
        return [r.model_dump(mode="json") for r in records]

    return app
