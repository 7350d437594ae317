"""Tests for wire event serialization."""

import pytest
from pydantic import ValidationError

from mnemos import errors
from mnemos.gateway.events import (
    AssistantMessageEvent,
    ErrorEvent,
    RateLimitedEvent,
    UserMessageEvent,
)


def test_user_message_from_wire():
    event = UserMessageEvent.model_validate(
        {"type": "user-message", "conversationId": "c-1", "content": "  hello  "}
    )
    assert event.conversation_id == "c-1"
    assert event.content == "hello"


@pytest.mark.parametrize(
    "payload",
    [
        {"conversationId": "c-1", "content": "   "},
        {"conversationId": "", "content": "hi"},
        {"content": "hi"},
        {"conversationId": "c-1"},
    ],
)
def test_user_message_rejects_malformed(payload):
    with pytest.raises(ValidationError):
        UserMessageEvent.model_validate(payload)


def test_outbound_events_use_camel_case():
    assert AssistantMessageEvent(conversation_id="c-1", content="hi").to_wire() == {
        "type": "assistant-message",
        "conversationId": "c-1",
        "content": "hi",
    }
    assert ErrorEvent(conversation_id="c-1", reason="nope").to_wire() == {
        "type": "error",
        "conversationId": "c-1",
        "reason": "nope",
    }
    assert RateLimitedEvent(retry_after_ms=1200).to_wire() == {
        "type": "rate-limited",
        "retryAfterMs": 1200,
    }


def test_error_event_from_rejection():
    error = errors.ValidationError("unknown conversation", conversation_id="c-9")

    assert ErrorEvent.from_error(error).to_wire() == {
        "type": "error",
        "conversationId": "c-9",
        "reason": "unknown conversation",
    }
