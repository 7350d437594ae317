"""Tests for WebSocket web chat adapter."""

import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from mnemos.channels.base import ChannelAdapter
from mnemos.channels.web import WebChatAdapter
from mnemos.gateway.auth import JWTCredentialVerifier, issue_token
from mnemos.gateway.events import RateLimitedEvent
from mnemos.gateway.gateway import ConnectionGateway

SECRET = "test-secret"


@pytest.fixture
def gateway(mock_orchestrator):
    return ConnectionGateway(JWTCredentialVerifier(SECRET), mock_orchestrator)


@pytest.fixture
def web_adapter(gateway):
    """Create WebChatAdapter bound to the gateway."""
    return WebChatAdapter(gateway=gateway)


@pytest.fixture
def app(web_adapter):
    """Create FastAPI app with web adapter router."""
    app = FastAPI()
    app.include_router(web_adapter.router)
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def token():
    return issue_token("alice", SECRET)


def _message(content: str, conversation_id: str = "c-1") -> str:
    return json.dumps(
        {"type": "user-message", "conversationId": conversation_id, "content": content}
    )


class TestWebChatAdapter:
    def test_init(self, gateway):
        adapter = WebChatAdapter(gateway=gateway)
        assert adapter.gateway is gateway
        assert adapter.path == "/ws/chat"
        assert adapter._connections == {}
        assert isinstance(adapter, ChannelAdapter)

    def test_custom_path(self, gateway):
        adapter = WebChatAdapter(gateway=gateway, path="/ws/custom")
        assert adapter.path == "/ws/custom"

    def test_rejects_missing_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/chat"):
                pass
        assert exc_info.value.code == 1008

    def test_rejects_invalid_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/chat?token=bogus"):
                pass
        assert exc_info.value.code == 1008

    def test_message_round_trip(self, client, token, mock_orchestrator):
        with client.websocket_connect(f"/ws/chat?token={token}") as ws:
            ws.send_text(_message("hello"))
            data = ws.receive_json()

        assert data == {"type": "assistant-message", "conversationId": "c-1", "content": "echo: hello"}
        session = mock_orchestrator.handle_message.await_args.args[0]
        assert session.user_id == "alice"

    def test_bearer_header(self, client, token):
        headers = {"Authorization": f"Bearer {token}"}
        with client.websocket_connect("/ws/chat", headers=headers) as ws:
            ws.send_text(_message("hi"))
            assert ws.receive_json()["type"] == "assistant-message"

    def test_cookie(self, client, token):
        with client.websocket_connect("/ws/chat", headers={"cookie": f"token={token}"}) as ws:
            ws.send_text(_message("hi"))
            assert ws.receive_json()["type"] == "assistant-message"

    def test_malformed_frame_keeps_connection(self, client, token):
        with client.websocket_connect(f"/ws/chat?token={token}") as ws:
            ws.send_text("{not json")
            error = ws.receive_json()
            ws.send_text(_message("still here"))
            reply = ws.receive_json()

        assert error == {"type": "error", "conversationId": None, "reason": "malformed message"}
        assert reply["content"] == "echo: still here"

    def test_connection_cleanup(self, client, token, web_adapter, gateway):
        with client.websocket_connect(f"/ws/chat?token={token}") as ws:
            ws.send_text(_message("hi"))
            ws.receive_json()
            assert len(web_adapter._connections) == 1

        assert web_adapter._connections == {}
        assert gateway.active_connections == 0

    @pytest.mark.asyncio
    async def test_stop_clears_connections(self, web_adapter, gateway):
        """Test stop closes all connections and their sessions."""
        mock_ws = AsyncMock()
        session = await gateway.connect(issue_token("alice", SECRET), AsyncMock())
        web_adapter._connections[session.connection_id] = mock_ws
        web_adapter._sessions[session.connection_id] = session

        await web_adapter.stop()

        mock_ws.close.assert_awaited_once()
        assert not session.is_open
        assert web_adapter._connections == {}

    @pytest.mark.asyncio
    async def test_send_event(self, web_adapter, gateway):
        send = AsyncMock()
        session = await gateway.connect(issue_token("alice", SECRET), send)
        web_adapter._sessions[session.connection_id] = session

        event = RateLimitedEvent(retry_after_ms=500)
        assert await web_adapter.send_event(session.connection_id, event) is True
        send.assert_awaited_once_with({"type": "rate-limited", "retryAfterMs": 500})

        assert await web_adapter.send_event("nonexistent", event) is False
