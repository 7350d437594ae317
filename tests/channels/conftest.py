"""Shared fixtures for channel tests."""

from unittest.mock import AsyncMock

import pytest

from mnemos.gateway.events import AssistantMessageEvent


@pytest.fixture
def mock_orchestrator():
    """Create a mock orchestrator that echoes each message back."""

    async def echo(session, conversation_id, content):
        await session.emit(
            AssistantMessageEvent(conversation_id=conversation_id, content=f"echo: {content}")
        )

    orchestrator = AsyncMock()
    orchestrator.handle_message = AsyncMock(side_effect=echo)
    return orchestrator
