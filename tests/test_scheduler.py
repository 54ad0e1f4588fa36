"""Tests for the Pass Scheduler."""

import asyncio
import logging
import random

from fakes import FakeItemSimulator, ScriptedReasoner, decision

from polis_kernel.models.scheduler import SchedulerConfig
from polis_kernel.models.tooling import ToolCall
from polis_kernel.persistence.store import PolisStore
from polis_kernel.scheduler.orchestrator import PassScheduler


def _make_scheduler(reasoner, store=None, **config_overrides) -> PassScheduler:
    config = SchedulerConfig(loop_interval_seconds=0.01, **config_overrides)
    return PassScheduler(
        reasoner,
        store=store,
        config=config,
        item_simulator=FakeItemSimulator(),
        rng=random.Random(7),
    )


def _add_agents(scheduler: PassScheduler, count: int):
    for n in range(1, count + 1):
        scheduler.create_and_add_agent(f"agent-{n}", f"Agent{n}")


class TestAgentRegistry:
    def test_default_room_seeded(self):
        scheduler = _make_scheduler(ScriptedReasoner())
        assert scheduler.polis.list_rooms() == ["Public Square"]

    def test_seeded_self_state(self):
        scheduler = _make_scheduler(ScriptedReasoner())
        agent = scheduler.create_and_add_agent("agent-1", "Agent1")
        state = agent.get_self()
        assert state["goal"] == "live and interact"
        assert "createdAt" in state
        assert len(state["interests"].split(", ")) == 3
        assert agent.menu is scheduler.polis.directory_menu

    def test_initial_instructions(self):
        scheduler = _make_scheduler(ScriptedReasoner())
        scheduler.create_and_add_agent("agent-1", "Agent1", initial_instructions="Find a room.")
        scheduler.create_and_add_agent("agent-2", "Agent2")
        assert scheduler.next_instructions("agent-1") == "Find a room."
        assert scheduler.next_instructions("agent-2") == SchedulerConfig().default_instructions

    def test_remove_agent_leaves_chat(self):
        scheduler = _make_scheduler(ScriptedReasoner())
        agent = scheduler.create_and_add_agent("agent-1", "Agent1")
        agent.menu.call_tool(agent, ToolCall(name="joinRoom", parameters={"name": "Public Square"}))
        agent.menu.call_tool(agent, ToolCall(name="enter", parameters={"handle": "Agent1"}))

        assert scheduler.remove_agent("agent-1")
        assert not scheduler.polis.get_room("Public Square").chat.is_present("agent-1")
        assert scheduler.list_agents() == []
        assert not scheduler.remove_agent("agent-1")


class TestPasses:
    def test_round_robin(self):
        reasoner = ScriptedReasoner([decision() for _ in range(4)])
        scheduler = _make_scheduler(reasoner)
        _add_agents(scheduler, 3)
        records = [scheduler.tick() for _ in range(4)]
        assert [r.agent_id for r in records] == ["agent-1", "agent-2", "agent-3", "agent-1"]

    def test_tick_without_agents(self):
        assert _make_scheduler(ScriptedReasoner()).tick() is None

    def test_failed_pass_logged_and_loop_continues(self, caplog):
        reasoner = ScriptedReasoner([None, decision(intent="recovered")])
        scheduler = _make_scheduler(reasoner)
        _add_agents(scheduler, 2)

        with caplog.at_level(logging.ERROR):
            assert scheduler.tick() is None
        assert "Pass failed for agent agent-1" in caplog.text

        record = scheduler.tick()
        assert record.agent_id == "agent-2"
        assert record.intent == "recovered"

    def test_followup_becomes_next_instructions(self):
        reasoner = ScriptedReasoner([
            decision(("joinRoom", {"name": "Public Square"}), followup="Introduce yourself"),
            decision(),
        ])
        scheduler = _make_scheduler(reasoner)
        _add_agents(scheduler, 1)

        record = scheduler.tick()
        assert scheduler.next_instructions("agent-1") == "Introduce yourself"
        assert record.executions[0].result == "Joined room Public Square"
        assert "Tool Sets Available" in record.menu_snapshot

        scheduler.tick()
        assert reasoner.last_prompt.endswith("Introduce yourself")
        assert "- recentActivity:\nRoom: Public Square" in reasoner.last_prompt

    def test_post_pass_calls_configured(self):
        reasoner = ScriptedReasoner([decision()])
        scheduler = _make_scheduler(
            reasoner, post_pass_tool_calls=[ToolCall(name="listRooms")]
        )
        _add_agents(scheduler, 1)
        record = scheduler.tick()
        assert record.executions[-1].result == "Public Square (public)"

    def test_repeat_guard_configured(self):
        reasoner = ScriptedReasoner([decision(("listRooms", {})), decision(("listRooms", {}))])
        scheduler = _make_scheduler(reasoner)
        _add_agents(scheduler, 1)
        scheduler.tick()
        record = scheduler.tick()
        assert record.executions[0].skipped

    def test_pass_persisted(self):
        store = PolisStore()
        reasoner = ScriptedReasoner([decision(("listRooms", {}))])
        scheduler = _make_scheduler(reasoner, store=store)
        _add_agents(scheduler, 1)

        record = scheduler.tick()
        assert record.id is not None
        stored = store.list_recent_by_agent("agent-1")
        assert len(stored) == 1
        assert stored[0].executions[0].name == "listRooms"
        assert store.list_rooms()[0]["name"] == "Public Square"

    def test_store_failure_does_not_fail_pass(self, caplog):
        store = PolisStore()
        scheduler = _make_scheduler(ScriptedReasoner([decision()]), store=store)
        _add_agents(scheduler, 1)
        store.close()

        with caplog.at_level(logging.WARNING):
            record = scheduler.tick()
        assert record is not None
        assert record.id is None
        assert "Failed to persist pass for agent agent-1" in caplog.text

    def test_on_pass_complete(self):
        seen = []
        scheduler = _make_scheduler(ScriptedReasoner([decision(), decision()]))
        scheduler.on_pass_complete = seen.append
        _add_agents(scheduler, 1)
        scheduler.tick()
        assert seen[0].agent_id == "agent-1"

        def broken(record):
            raise RuntimeError("hook down")

        scheduler.on_pass_complete = broken
        assert scheduler.tick() is not None


class TestRunLoop:
    def test_run_async_until_stopped(self):
        reasoner = ScriptedReasoner([decision() for _ in range(200)])
        scheduler = _make_scheduler(reasoner)
        _add_agents(scheduler, 2)

        async def main():
            stop_event = asyncio.Event()
            task = asyncio.create_task(scheduler.run_async(stop_event))
            await asyncio.sleep(0.1)
            assert scheduler.status == "running"
            scheduler.stop()
            await task

        asyncio.run(main())
        assert scheduler.status == "stopped"
        assert len(reasoner.calls) >= 2

    def test_stop_before_start_is_harmless(self):
        scheduler = _make_scheduler(ScriptedReasoner())
        scheduler.stop()
        assert scheduler.status == "stopped"
