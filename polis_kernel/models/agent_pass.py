"""Agent Pass: the decision contract and the persisted record of one pass."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from polis_kernel.models.tooling import ToolCall


class AgentPass(BaseModel):
    """Structured decision returned by the reasoning collaborator."""

    model_config = ConfigDict(populate_by_name=True)

    intent: str
    agent_thoughts: str = Field(default="", alias="agentThoughts")
    tool_calls: List[ToolCall] = Field(default=[], alias="toolCalls")
    followup_instructions: str = Field(default="", alias="followupInstructions")


class ExecutionOutcome(BaseModel):
    """Result of running (or skipping) one tool call during a pass."""

    name: str
    parameters: Dict[str, Any] = {}
    result: str
    skipped: bool = False
    error: bool = False


class PassRecord(BaseModel):
    """
    One completed observe -> decide -> act cycle for one agent.
    Written once by the scheduler, never mutated afterwards.
    """

    id: Optional[int] = None
    timestamp: datetime
    agent_id: str
    intent: str
    agent_thoughts: str = ""
    tool_calls: List[ToolCall] = []
    followup_instructions: str
    pre_results: str = ""
    menu_snapshot: str = ""
    executions: List[ExecutionOutcome] = []
