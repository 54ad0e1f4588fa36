"""
polis-kernel command line.

  polis-kernel run        Run N agents for S seconds against the reasoning endpoint
  polis-kernel dashboard  Serve the read-only dashboard API over a pass database
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import uvicorn

from polis_kernel.api.app import create_app
from polis_kernel.config import Settings, load_settings
from polis_kernel.items.item import LLMItemSimulator
from polis_kernel.persistence.store import PolisStore
from polis_kernel.reasoning.client import OpenAICompatibleReasoner
from polis_kernel.scheduler.orchestrator import PassScheduler

logger = logging.getLogger(__name__)

START_INSTRUCTIONS = (
    "Start in directory: choose a room and introduce yourself in chat, then pick a tool to use."
)


def build_scheduler(settings: Settings, store: PolisStore) -> PassScheduler:
    reasoner = OpenAICompatibleReasoner(settings.reasoner)
    simulator = LLMItemSimulator(reasoner, settings.reasoner.model)
    scheduler = PassScheduler(
        reasoner,
        store=store,
        config=settings.scheduler,
        item_simulator=simulator,
    )
    for n in range(1, settings.agents + 1):
        scheduler.create_and_add_agent(
            f"agent-{n}", f"Agent{n}", initial_instructions=START_INSTRUCTIONS
        )
    return scheduler


async def _run_for(scheduler: PassScheduler, seconds: float) -> None:
    stop_event = asyncio.Event()
    loop_task = asyncio.create_task(scheduler.run_async(stop_event))
    await asyncio.sleep(seconds)
    stop_event.set()
    await loop_task


def cmd_run(settings: Settings) -> int:
    store = PolisStore(settings.db_path)
    try:
        scheduler = build_scheduler(settings, store)
        logger.info(
            "Running %d agents for %.0fs (db=%s)",
            settings.agents, settings.run_seconds, settings.db_path,
        )
        asyncio.run(_run_for(scheduler, settings.run_seconds))
        logger.info("Stopped after %d passes", store.count_passes())
    finally:
        store.close()
    return 0


def cmd_dashboard(settings: Settings, host: str, port: int) -> int:
    store = PolisStore(settings.db_path)
    try:
        uvicorn.run(create_app(store=store), host=host, port=port)
    finally:
        store.close()
    return 0


def run(argv: List[str]) -> int:
    ap = argparse.ArgumentParser(prog="polis-kernel")
    ap.add_argument("--log-level", default="INFO")
    sub = ap.add_subparsers(dest="cmd")

    run_p = sub.add_parser("run", help="Run the pass scheduler")
    run_p.add_argument("--agents", type=int, default=None, help="Number of agents")
    run_p.add_argument("--seconds", type=float, default=None, help="Run duration")
    run_p.add_argument("--db", default=None, help="SQLite database path")

    dash = sub.add_parser("dashboard", help="Serve the dashboard API")
    dash.add_argument("--db", default=None, help="SQLite database path")
    dash.add_argument("--host", default="127.0.0.1")
    dash.add_argument("--port", type=int, default=8000)

    args = ap.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.cmd:
        ap.print_help()
        return 2

    settings = load_settings()
    overrides = {}
    if args.db:
        overrides["db_path"] = args.db
    if getattr(args, "agents", None) is not None:
        overrides["agents"] = max(0, args.agents)
    if getattr(args, "seconds", None) is not None:
        overrides["run_seconds"] = max(0.0, args.seconds)
    if overrides:
        settings = settings.model_copy(update=overrides)

    if args.cmd == "run":
        return cmd_run(settings)
    if args.cmd == "dashboard":
        return cmd_dashboard(settings, args.host, args.port)
    return 2


def main(argv: Optional[List[str]] = None) -> int:
    return run(list(sys.argv[1:] if argv is None else argv))


if __name__ == "__main__":
    raise SystemExit(main())
