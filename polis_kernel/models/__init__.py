"""Polis kernel data models."""

from polis_kernel.models.agent_pass import AgentPass, ExecutionOutcome, PassRecord
from polis_kernel.models.chat import ChatMessage, Participant
from polis_kernel.models.items import (
    InteractionDefinition,
    InteractionIO,
    InteractionIOType,
    InteractionRequest,
    InteractionResponse,
    ItemInteractionRecord,
    ItemRecord,
    ItemState,
    ItemTemplate,
)
from polis_kernel.models.scheduler import ReasonerConfig, SchedulerConfig
from polis_kernel.models.tooling import ParameterSchema, ToolCall, ToolDescriptor

__all__ = [
    "AgentPass",
    "ChatMessage",
    "ExecutionOutcome",
    "InteractionDefinition",
    "InteractionIO",
    "InteractionIOType",
    "InteractionRequest",
    "InteractionResponse",
    "ItemInteractionRecord",
    "ItemRecord",
    "ItemState",
    "ItemTemplate",
    "ParameterSchema",
    "PassRecord",
    "Participant",
    "ReasonerConfig",
    "SchedulerConfig",
    "ToolCall",
    "ToolDescriptor",
]
