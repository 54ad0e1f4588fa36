"""
Pass Scheduler: the heartbeat of the Polis.

Each tick picks the next agent round-robin and drives one pass for it:
  SNAPSHOT -> DECIDE -> EXECUTE -> PERSIST -> (next tick)

Scheduling discipline:
- Exactly one pass per tick; passes never overlap
- Cycling index modulo the live agent count (adding or removing agents
  shifts later assignments)
- A failed pass is logged and never stops the loop or skips other agents
- Persistence is best-effort
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from polis_kernel.agents.agent import Agent
from polis_kernel.agents.identity import create_identity_toolset
from polis_kernel.items.item import ItemSimulator
from polis_kernel.models.agent_pass import PassRecord
from polis_kernel.models.scheduler import SchedulerConfig
from polis_kernel.models.tooling import ToolCall
from polis_kernel.persistence.store import PolisStore
from polis_kernel.reasoning.client import Reasoner
from polis_kernel.rooms.directory import Polis
from polis_kernel.toolset.registry import Toolset

logger = logging.getLogger(__name__)

INTEREST_POOL = [
    "gardening", "classical music", "hip-hop production", "bird watching", "rock climbing",
    "baking sourdough", "urban planning", "quantum computing", "vintage cars", "calligraphy",
    "origami", "street photography", "foraging", "astronomy", "ceramics", "woodworking",
    "trail running", "open-source software", "digital privacy", "climate activism",
    "cryptography", "ancient history", "mycology", "jazz improvisation", "poetry slam",
    "stand-up comedy", "chess", "tabletop RPGs", "marine biology", "permaculture", "sailing",
    "beekeeping", "coffee roasting", "fashion design", "film editing", "screenwriting",
    "game design", "machine learning", "robotics", "3D printing", "architecture",
    "philosophy", "ethics", "meditation", "psychology", "behavioral economics", "cartography",
    "linguistics", "mythology", "paleontology", "archaeology", "sound design", "podcasting",
    "documentary filmmaking",
]


class RegisteredAgent:
    """An agent plus the instructions it will receive on its next tick."""

    def __init__(self, agent: Agent, next_instructions: str):
        self.agent = agent
        self.next_instructions = next_instructions


class PassScheduler:
    """
    Single-threaded cooperative orchestrator of agent passes.

    States:
      STOPPED -> RUNNING (tick every loop_interval_seconds) -> STOPPED
    """

    def __init__(
        self,
        reasoner: Reasoner,
        store: Optional[PolisStore] = None,
        config: Optional[SchedulerConfig] = None,
        polis: Optional[Polis] = None,
        item_simulator: Optional[ItemSimulator] = None,
        shared_toolsets: Sequence[Toolset] = (),
        on_pass_complete: Optional[Callable[[PassRecord], None]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.reasoner = reasoner
        self.store = store
        self.config = config or SchedulerConfig()
        self.polis = polis or Polis(
            store=store,
            item_simulator=item_simulator,
            shared_toolsets=[create_identity_toolset(), *shared_toolsets],
            read_hard_cap=self.config.read_hard_cap,
        )
        self.on_pass_complete = on_pass_complete
        self._rng = rng or random.Random()

        self._agents: Dict[str, RegisteredAgent] = {}
        self._index = 0
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None

        # At least one public room so agents have somewhere to go
        if not self.polis.list_rooms():
            self.polis.get_or_create_room(self.config.default_room, False)

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    # --- Agent registry ---

    def create_and_add_agent(
        self,
        agent_id: str,
        handle: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        initial_instructions: Optional[str] = None,
    ) -> Agent:
        """Create an agent attached to the directory Menu and register it."""
        agent = Agent(
            agent_id=agent_id,
            model=model or self.config.model,
            system_prompt=system_prompt or self.config.system_prompt,
            menu=self.polis.directory_menu,
            handle=handle,
            history_capacity=self.config.history_capacity,
        )
        self.add_agent(agent, initial_instructions)
        return agent

    def add_agent(self, agent: Agent, initial_instructions: Optional[str] = None) -> None:
        """Register an agent and seed its self-state."""
        agent.set_self_field("goal", "live and interact")
        agent.set_self_field("createdAt", datetime.utcnow().isoformat())
        agent.set_self_field("interests", ", ".join(self._rng.sample(INTEREST_POOL, 3)))
        self._agents[agent.id] = RegisteredAgent(
            agent, initial_instructions or self.config.default_instructions
        )
        logger.info("Agent %s registered", agent.id)

    def remove_agent(self, agent_id: str) -> bool:
        """Unregister an agent, leaving its current room chat if it had entered."""
        reg = self._agents.pop(agent_id, None)
        if reg is None:
            return False
        if reg.agent.menu.has_tool("leave"):
            reg.agent.menu.call_tool(reg.agent, ToolCall(name="leave"))
        logger.info("Agent %s removed", agent_id)
        return True

    def list_agents(self) -> List[str]:
        return list(self._agents.keys())

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        reg = self._agents.get(agent_id)
        return reg.agent if reg else None

    def next_instructions(self, agent_id: str) -> Optional[str]:
        reg = self._agents.get(agent_id)
        return reg.next_instructions if reg else None

    # --- Passes ---

    def run_one_pass(self, agent_id: str) -> Optional[PassRecord]:
        """
        Drive one observe -> decide -> act cycle for an agent.
        Reasoning failures propagate; persistence failures do not.
        """
        reg = self._agents.get(agent_id)
        if reg is None:
            return None
        agent = reg.agent

        pre_results = agent.compute_pre_results(self.config.pre_pass_tool_calls)
        decision = agent.do_pass(
            self.reasoner, reg.next_instructions, pre_results, self.config.fallback_followup
        )
        executions = agent.post_pass(
            decision,
            self.config.post_pass_tool_calls,
            self.config.repeat_guarded_tools,
        )
        reg.next_instructions = decision.followup_instructions

        record = PassRecord(
            timestamp=datetime.utcnow(),
            agent_id=agent.id,
            intent=decision.intent,
            agent_thoughts=decision.agent_thoughts,
            tool_calls=decision.tool_calls,
            followup_instructions=decision.followup_instructions,
            pre_results=pre_results,
            menu_snapshot=agent.menu.get_menu(),
            executions=executions,
        )
        if self.store is not None:
            try:
                record = self.store.insert_pass(record)
            except Exception:
                logger.warning("Failed to persist pass for agent %s", agent.id, exc_info=True)

        if self.on_pass_complete is not None:
            try:
                self.on_pass_complete(record)
            except Exception:
                logger.warning("on_pass_complete hook failed for %s", agent.id, exc_info=True)
        return record

    def tick(self) -> Optional[PassRecord]:
        """Run the next agent's pass. Never raises."""
        ids = self.list_agents()
        if not ids:
            return None
        agent_id = ids[self._index % len(ids)]
        self._index += 1
        try:
            return self.run_one_pass(agent_id)
        except Exception as e:
            logger.error("Pass failed for agent %s: %s", agent_id, e, exc_info=True)
            return None

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Tick every loop_interval_seconds until stopped. The next tick is not
        considered before the current pass has settled; stopping never
        cancels an in-flight pass.
        """
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()
        self._stop_event = stop_event

        try:
            while not stop_event.is_set():
                await asyncio.to_thread(self.tick)
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.config.loop_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
            self._stop_event = None

    def stop(self) -> None:
        """Prevent future ticks."""
        if self._stop_event is not None:
            self._stop_event.set()
