"""Pydantic models for the memory system."""

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class ConversationRecord(BaseModel):
    """A conversation owned by one user."""

    id: str
    user_id: str
    title: str = "New Chat"
    created_at: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)


class TurnRecord(BaseModel):
    """One message authored by the user or the assistant. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    conversation_id: str
    role: Role
    text: str
    created_at: datetime = Field(default_factory=utcnow)


class MemoryMetadata(BaseModel):
    """Metadata stored alongside each long-term memory vector."""

    conversation_id: str
    user_id: str
    source_text: str
    linked_turn_id: str
    role: Role = "user"
    created_at: float = 0.0  # epoch seconds, recency tie-break

    @classmethod
    def for_turn(cls, turn: TurnRecord, user_id: str) -> "MemoryMetadata":
        return cls(
            conversation_id=turn.conversation_id,
            user_id=user_id,
            source_text=turn.text,
            linked_turn_id=turn.id,
            role=turn.role,
            created_at=turn.created_at.timestamp(),
        )


class MemoryHit(BaseModel):
    """A long-term memory returned by a similarity query."""

    id: str
    score: float  # cosine similarity, higher is closer
    metadata: MemoryMetadata


def vector_id_for_turn(turn_id: str) -> str:
    """Deterministic vector id, so re-upserting a turn overwrites it."""
    return f"turn_{turn_id}"
