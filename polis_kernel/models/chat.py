"""Chat records: room messages and participant registrations."""

from datetime import datetime

from pydantic import BaseModel


class ChatMessage(BaseModel):
    """A message posted in a room's chat."""

    timestamp: datetime
    room: str
    agent_id: str
    handle: str
    content: str


class Participant(BaseModel):
    """A registered chat participant. joined_at survives handle changes."""

    agent_id: str
    handle: str
    joined_at: datetime
