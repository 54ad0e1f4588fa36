"""Tests for the Polis SQLite store."""

from datetime import datetime, timedelta

import pytest

from fakes import LAMP

from polis_kernel.models import (
    ChatMessage,
    ExecutionOutcome,
    InteractionIO,
    InteractionIOType,
    ItemInteractionRecord,
    PassRecord,
    ToolCall,
)
from polis_kernel.persistence.store import PolisStore

BASE = datetime(2025, 1, 1, 12, 0, 0)


def _make_pass(agent_id: str, minutes: int = 0, intent: str = "act") -> PassRecord:
    return PassRecord(
        timestamp=BASE + timedelta(minutes=minutes),
        agent_id=agent_id,
        intent=intent,
        tool_calls=[ToolCall(name="who")],
        followup_instructions="next",
        executions=[ExecutionOutcome(name="who", result="No agents in chat")],
    )


def _make_message(room: str, content: str, seconds: int, agent_id: str = "a1") -> ChatMessage:
    return ChatMessage(
        timestamp=BASE + timedelta(seconds=seconds),
        room=room,
        agent_id=agent_id,
        handle="Alpha",
        content=content,
    )


@pytest.fixture
def store():
    s = PolisStore()
    yield s
    s.close()


class TestPasses:
    def test_insert_assigns_id(self, store):
        record = store.insert_pass(_make_pass("a1"))
        assert record.id is not None
        assert store.count_passes() == 1

    def test_list_recent_newest_first(self, store):
        for i in range(3):
            store.insert_pass(_make_pass("a1", i, intent=f"pass {i}"))
        assert [r.intent for r in store.list_recent(2)] == ["pass 2", "pass 1"]

    def test_list_by_agent(self, store):
        store.insert_pass(_make_pass("a1", 0))
        store.insert_pass(_make_pass("b2", 1))
        store.insert_pass(_make_pass("a1", 2))
        records = store.list_recent_by_agent("a1")
        assert len(records) == 2
        assert records[0].executions[0].result == "No agents in chat"

    def test_list_since(self, store):
        store.insert_pass(_make_pass("a1", 0))
        store.insert_pass(_make_pass("a1", 5))
        assert len(store.list_passes_since(BASE + timedelta(minutes=1))) == 1

    def test_list_since_for_agent(self, store):
        store.insert_pass(_make_pass("a1", 2))
        store.insert_pass(_make_pass("a2", 3))
        store.insert_pass(_make_pass("a1", 4))
        records = store.list_passes_since(BASE + timedelta(minutes=1), agent_id="a1")
        assert [r.timestamp for r in records] == [
            BASE + timedelta(minutes=2),
            BASE + timedelta(minutes=4),
        ]

    def test_list_agents(self, store):
        store.insert_pass(_make_pass("a1", 0))
        store.insert_pass(_make_pass("b2", 1))
        store.insert_pass(_make_pass("a1", 2))
        agents = store.list_agents()
        assert [a["agent_id"] for a in agents] == ["a1", "b2"]
        assert agents[0]["passes"] == 2


class TestChat:
    def test_recent_by_room_is_chronological(self, store):
        for i in range(5):
            store.insert_chat_message(_make_message("Agora", f"m{i}", i))
        store.insert_chat_message(_make_message("Vault", "secret", 10))
        messages = store.list_recent_chat_by_room("Agora", 3)
        assert [m.content for m in messages] == ["m2", "m3", "m4"]

    def test_since(self, store):
        for i in range(5):
            store.insert_chat_message(_make_message("Agora", f"m{i}", i))
        messages = store.list_chat_by_room_since("Agora", BASE + timedelta(seconds=2))
        assert [m.content for m in messages] == ["m3", "m4"]

    def test_chat_rooms(self, store):
        store.insert_chat_message(_make_message("Agora", "a", 0))
        store.insert_chat_message(_make_message("Vault", "b", 5))
        assert [r["room"] for r in store.list_chat_rooms()] == ["Vault", "Agora"]


class TestRooms:
    def test_upsert_keeps_created_at(self, store):
        store.upsert_room("Agora", False, BASE)
        store.upsert_room("Agora", True, BASE + timedelta(days=1))
        rooms = store.list_rooms()
        assert len(rooms) == 1
        assert rooms[0]["is_private"] is True
        assert rooms[0]["created_at"] == BASE.isoformat()

    def test_set_visibility(self, store):
        store.upsert_room("Agora", True)
        store.set_room_visibility("Agora", False)
        assert store.list_rooms()[0]["is_private"] is False


class TestItems:
    def test_item_lifecycle(self, store):
        item_id = store.insert_item("Workshop", "a1", LAMP, {"power": "off"})
        store.update_item_state(item_id, {"power": "on"})
        item = store.get_item(item_id)
        assert item.template == LAMP
        assert item.state == {"power": "on"}
        assert item.owner_id == "a1"

        store.delete_item(item_id)
        assert store.get_item(item_id) is None
        assert store.list_items() == []

    def test_interactions(self, store):
        item_id = store.insert_item("Workshop", "a1", LAMP, {"power": "off"})
        store.insert_item_interaction(ItemInteractionRecord(
            timestamp=BASE,
            item_id=item_id,
            room="Workshop",
            agent_id="b2",
            interaction_name="paint",
            inputs={"color": "red"},
            outputs=[InteractionIO(name_and_amount="smell", type=InteractionIOType.SMELL)],
            description="Painted red",
            updated_state={"power": "off", "color": "red"},
        ))
        history = store.list_recent_item_interactions(item_id)
        assert len(history) == 1
        assert history[0].outputs[0].type == InteractionIOType.SMELL
        assert store.list_items()[0].last_interaction_at == BASE
