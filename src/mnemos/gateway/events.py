"""Real-time channel events.

Frames are JSON objects discriminated by ``type``; field names are camelCase
on the wire.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from mnemos.errors import ValidationError


class WireEvent(BaseModel):
    """Base for events exchanged over a connection."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class UserMessageEvent(WireEvent):
    """Client to server: a new message in a conversation."""

    type: Literal["user-message"] = "user-message"
    conversation_id: str = Field(min_length=1, max_length=128)
    content: str = Field(max_length=32000)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("content must not be empty")
        return v


class AssistantMessageEvent(WireEvent):
    type: Literal["assistant-message"] = "assistant-message"
    conversation_id: str
    content: str


class ErrorEvent(WireEvent):
    type: Literal["error"] = "error"
    conversation_id: str | None = None
    reason: str

    @classmethod
    def from_error(cls, error: ValidationError) -> "ErrorEvent":
        """Client-facing report of a rejected message."""
        return cls(conversation_id=error.conversation_id, reason=error.reason)


class RateLimitedEvent(WireEvent):
    type: Literal["rate-limited"] = "rate-limited"
    retry_after_ms: int
