"""Tests for the dashboard API endpoints."""

import random
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from fakes import LAMP, FakeItemSimulator, ScriptedReasoner, decision

from polis_kernel.api.app import create_app
from polis_kernel.models import ChatMessage, ItemInteractionRecord, PassRecord
from polis_kernel.models.scheduler import SchedulerConfig
from polis_kernel.models.tooling import ToolCall
from polis_kernel.persistence.store import PolisStore
from polis_kernel.scheduler.orchestrator import PassScheduler


@pytest.fixture
def store():
    s = PolisStore()
    yield s
    s.close()


@pytest.fixture
def live(store):
    """A scheduler with two agents that have each run one pass."""
    reasoner = ScriptedReasoner([
        decision(("joinRoom", {"name": "Public Square"}), ("enter", {"handle": "Alpha"}),
                 ("chat", {"content": "hello"})),
        decision(("listRooms", {})),
    ])
    scheduler = PassScheduler(
        reasoner,
        store=store,
        config=SchedulerConfig(),
        item_simulator=FakeItemSimulator(),
        rng=random.Random(1),
    )
    scheduler.create_and_add_agent("agent-1", "Alpha")
    scheduler.create_and_add_agent("agent-2", "Beta")
    scheduler.tick()
    scheduler.tick()
    return scheduler


class TestHealth:
    def test_health_detached(self, store):
        client = TestClient(create_app(store=store))
        data = client.get("/health").json()
        assert data == {"status": "ok", "scheduler": "detached", "passes": 0}

    def test_health_live(self, live):
        client = TestClient(create_app(scheduler=live))
        data = client.get("/health").json()
        assert data["scheduler"] == "stopped"
        assert data["passes"] == 2


class TestPassEndpoints:
    def test_list_passes(self, live):
        client = TestClient(create_app(scheduler=live))
        passes = client.get("/api/passes").json()
        assert [p["agent_id"] for p in passes] == ["agent-2", "agent-1"]
        assert passes[1]["executions"][0]["result"] == "Joined room Public Square"

    def test_filter_by_agent(self, live):
        client = TestClient(create_app(scheduler=live))
        passes = client.get("/api/passes", params={"agent_id": "agent-1", "limit": 5}).json()
        assert len(passes) == 1
        assert passes[0]["agent_id"] == "agent-1"

    def test_passes_since(self, store):
        base = datetime(2025, 1, 1, 12, 0, 0)
        for minutes, agent_id in [(0, "a1"), (2, "a2"), (4, "a1")]:
            store.insert_pass(PassRecord(
                timestamp=base + timedelta(minutes=minutes),
                agent_id=agent_id,
                intent=f"at {minutes}",
                followup_instructions="wait",
            ))
        client = TestClient(create_app(store=store))

        since = (base + timedelta(minutes=1)).isoformat()
        passes = client.get("/api/passes", params={"since": since}).json()
        assert [p["intent"] for p in passes] == ["at 2", "at 4"]

        passes = client.get("/api/passes", params={"since": since, "agent_id": "a1"}).json()
        assert [p["intent"] for p in passes] == ["at 4"]


class TestAgentEndpoints:
    def test_live_agents_with_location(self, live):
        client = TestClient(create_app(scheduler=live))
        agents = {a["agent_id"]: a for a in client.get("/api/agents").json()}
        assert agents["agent-1"]["room"] == "Public Square"
        assert agents["agent-2"]["room"] is None
        assert agents["agent-1"]["passes"] == 1
        assert agents["agent-1"]["self_state"]["goal"] == "live and interact"

    def test_agents_from_store_only(self, live, store):
        client = TestClient(create_app(store=store))
        agents = client.get("/api/agents").json()
        assert {a["agent_id"] for a in agents} == {"agent-1", "agent-2"}
        assert "room" not in agents[0]


class TestRoomEndpoints:
    def test_rooms(self, live):
        client = TestClient(create_app(scheduler=live))
        rooms = client.get("/api/rooms").json()
        assert rooms[0]["name"] == "Public Square"
        assert rooms[0]["is_private"] is False

    def test_live_snapshots(self, live):
        client = TestClient(create_app(scheduler=live))
        snapshot = client.get("/api/room-snapshots").json()[0]
        assert [p["handle"] for p in snapshot["participants"]] == ["Alpha"]
        assert snapshot["recent_chat"][0]["content"] == "hello"

    def test_snapshots_from_store(self, live, store):
        client = TestClient(create_app(store=store))
        snapshot = client.get("/api/room-snapshots").json()[0]
        assert snapshot["name"] == "Public Square"
        assert snapshot["recent_chat"][0]["content"] == "hello"

    def test_room_chat(self, store):
        base = datetime(2025, 1, 1)
        for i in range(3):
            store.insert_chat_message(ChatMessage(
                timestamp=base + timedelta(seconds=i),
                room="Agora",
                agent_id="a1",
                handle="Alpha",
                content=f"m{i}",
            ))
        client = TestClient(create_app(store=store))

        messages = client.get("/api/room-chat", params={"room": "Agora"}).json()
        assert [m["content"] for m in messages] == ["m0", "m1", "m2"]

        since = base.isoformat()
        messages = client.get("/api/room-chat", params={"room": "Agora", "since": since}).json()
        assert [m["content"] for m in messages] == ["m1", "m2"]

        assert client.get("/api/room-chat", params={"room": "Nowhere"}).json() == []

    def test_room_chat_requires_room(self, store):
        client = TestClient(create_app(store=store))
        assert client.get("/api/room-chat").status_code == 422


class TestItemEndpoints:
    def test_items_and_interactions(self, store):
        item_id = store.insert_item("Workshop", "a1", LAMP, {"power": "off"})
        store.insert_item_interaction(ItemInteractionRecord(
            timestamp=datetime(2025, 1, 1),
            item_id=item_id,
            room="Workshop",
            agent_id="a1",
            interaction_name="toggle",
            description="Click",
            updated_state={"power": "on"},
        ))
        client = TestClient(create_app(store=store))

        items = client.get("/api/items").json()
        assert items[0]["template"]["name"] == "Lamp"
        assert client.get(f"/api/items/{item_id}").json()["owner_id"] == "a1"

        history = client.get(f"/api/items/{item_id}/interactions").json()
        assert history[0]["interaction_name"] == "toggle"

    def test_item_not_found(self, store):
        client = TestClient(create_app(store=store))
        assert client.get("/api/items/999").status_code == 404
        assert client.get("/api/items/999/interactions").status_code == 404

    def test_items_created_by_agents(self, live):
        agent = live.get_agent("agent-1")
        agent.menu.call_tool(agent, ToolCall(name="createItem", parameters={"description": "lamp"}))
        client = TestClient(create_app(scheduler=live))
        items = client.get("/api/items").json()
        assert items[0]["room"] == "Public Square"
        assert items[0]["state"] == {"power": "off", "color": "white"}
