"""Item models: templates, state and interactions produced by the item simulator."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel


class InteractionIOType(str, Enum):
    ITEM = "item"
    SOUND = "sound"
    SMELL = "smell"
    STATUS = "status"
    FEELING = "feeling"
    TEXT = "text"
    FORCE = "force"


class InteractionIO(BaseModel):
    """An input or output of an interaction."""

    name_and_amount: str
    type: InteractionIOType


class InteractionDefinition(BaseModel):
    """One named interaction a user of the item can perform."""

    name: str
    description: str
    required_state: List[str] = []
    action_inputs: List[InteractionIO] = []
    action_outputs: List[InteractionIO] = []


class ItemTemplate(BaseModel):
    """Structured description of an item, generated from natural language."""

    name: str
    description: str
    state_parameters: List[str] = []
    interactions: List[InteractionDefinition] = []
    core_prompt: str = ""


class ItemState(BaseModel):
    """Current state of an item instance."""

    item_state: Dict[str, str] = {}


class InteractionRequest(BaseModel):
    interaction: str
    inputs: Dict[str, str] = {}
    intent: str = ""


class InteractionResponse(BaseModel):
    """Simulator verdict: a state delta, produced outputs and a narrative."""

    updated_item_state: Dict[str, str] = {}
    outputs: List[InteractionIO] = []
    description: str = ""


class ItemRecord(BaseModel):
    """Persisted view of an item (dashboard and store queries)."""

    id: int
    created_at: datetime
    room: str
    owner_id: str
    template: ItemTemplate
    state: Dict[str, str] = {}
    last_interaction_at: Optional[datetime] = None


class ItemInteractionRecord(BaseModel):
    """Persisted record of one interaction with an item."""

    id: Optional[int] = None
    timestamp: datetime
    item_id: int
    room: str
    agent_id: str
    interaction_name: str
    inputs: Dict[str, str] = {}
    outputs: List[InteractionIO] = []
    description: str = ""
    updated_state: Dict[str, str] = {}
