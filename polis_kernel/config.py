"""
Centralized configuration: environment variables and their defaults.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from polis_kernel.models.scheduler import ReasonerConfig, SchedulerConfig

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """Process-level settings for running a Polis."""

    db_path: str = "polis.sqlite3"
    agents: int = 3
    run_seconds: float = 60.0
    scheduler: SchedulerConfig = SchedulerConfig()
    reasoner: ReasonerConfig = ReasonerConfig()


def load_settings(environ: Optional[dict] = None, env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment, or from a supplied mapping.

    Reading the process environment first loads env_file (default: ENV_FILE
    or .env in the working directory). Variables already set are kept.
    """
    if environ is None:
        load_dotenv(env_file or os.getenv("ENV_FILE", ".env"))
    env = os.environ if environ is None else environ

    def get(name: str, default: str) -> str:
        return (env.get(name) or default).strip()

    model = get("LLM_MODEL", get("POLIS_MODEL", "venice-uncensored"))
    reasoner = ReasonerConfig(
        base_url=get("LLM_BASE_URL", "https://api.venice.ai/api/v1").rstrip("/"),
        api_key=get("LLM_API_KEY", get("VENICE_API_KEY", "")),
        model=model,
        temperature=float(get("LLM_TEMPERATURE", "0.7")),
        timeout_seconds=float(get("LLM_TIMEOUT_SECONDS", "60")),
    )
    scheduler = SchedulerConfig(
        model=get("POLIS_MODEL", model),
        loop_interval_seconds=float(get("POLIS_LOOP_INTERVAL_SECONDS", "2")),
        history_capacity=int(get("POLIS_HISTORY_CAPACITY", "12")),
    )
    if not reasoner.api_key:
        logger.warning("No LLM_API_KEY set; the reasoning endpoint may reject requests")
    return Settings(
        db_path=get("POLIS_DB", "polis.sqlite3"),
        agents=int(get("POLIS_AGENTS", "3")),
        run_seconds=float(get("POLIS_RUN_SECS", "60")),
        scheduler=scheduler,
        reasoner=reasoner,
    )
