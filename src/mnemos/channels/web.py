"""WebSocket chat adapter.

Provides a WebSocket endpoint for web frontends. The client authenticates
with a token (``?token=`` query parameter, ``Authorization: Bearer``
header, or the auth cookie) and then exchanges JSON events:

    -> {"type": "user-message", "conversationId": "...", "content": "..."}
    <- {"type": "assistant-message", "conversationId": "...", "content": "..."}
    <- {"type": "error", "conversationId": "...", "reason": "..."}
    <- {"type": "rate-limited", "retryAfterMs": 1200}

Usage:
    from fastapi import FastAPI
    from mnemos.channels.web import WebChatAdapter

    app = FastAPI()
    adapter = WebChatAdapter(gateway=gateway)
    app.include_router(adapter.router)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from mnemos.errors import AuthError
from mnemos.gateway.events import WireEvent

if TYPE_CHECKING:
    from mnemos.gateway.gateway import ConnectionGateway
    from mnemos.gateway.session import ConnectionSession

logger = logging.getLogger(__name__)


def extract_credential(websocket: WebSocket, cookie_name: str = "token") -> str | None:
    """Find the token on a connection request."""
    token = websocket.query_params.get("token")
    if token:
        return token

    authorization = websocket.headers.get("authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()

    return websocket.cookies.get(cookie_name)


class WebChatAdapter:
    """WebSocket-based web chat adapter."""

    def __init__(
        self,
        gateway: ConnectionGateway,
        path: str = "/ws/chat",
        cookie_name: str = "token",
    ) -> None:
        """Initialize WebSocket chat adapter.

        Args:
            gateway: Connection gateway handling auth, throttling and dispatch
            path: WebSocket endpoint path
            cookie_name: Cookie checked for the credential
        """
        self.gateway = gateway
        self.path = path
        self.cookie_name = cookie_name
        self.router = APIRouter()
        self._connections: dict[str, WebSocket] = {}
        self._sessions: dict[str, ConnectionSession] = {}

        self.router.add_api_websocket_route(path, self._websocket_handler)

    async def _websocket_handler(self, websocket: WebSocket) -> None:
        """Handle a WebSocket connection."""
        send_lock = asyncio.Lock()

        async def send(frame: dict[str, Any]) -> None:
            async with send_lock:
                await websocket.send_json(frame)

        try:
            session = await self.gateway.connect(
                extract_credential(websocket, self.cookie_name), send
            )
        except AuthError as e:
            logger.info("WebSocket connection rejected: %s", e.reason)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.reason)
            return

        await websocket.accept()
        conn_id = session.connection_id
        self._connections[conn_id] = websocket
        self._sessions[conn_id] = session
        logger.info("WebSocket client connected: %s (user %s)", conn_id, session.user_id)

        try:
            while True:
                data = await websocket.receive_text()
                await self.gateway.dispatch(session, data)
        except WebSocketDisconnect:
            logger.info("WebSocket client disconnected: %s", conn_id)
        finally:
            self.gateway.disconnect(session)
            self._connections.pop(conn_id, None)
            self._sessions.pop(conn_id, None)

    async def start(self) -> None:
        """No-op for WebSocket adapter (runs as part of FastAPI app)."""
        pass

    async def stop(self) -> None:
        """Close all WebSocket connections."""
        for session in list(self._sessions.values()):
            self.gateway.disconnect(session)
        for _conn_id, ws in list(self._connections.items()):
            with contextlib.suppress(Exception):
                await ws.close()
        self._connections.clear()
        self._sessions.clear()

    async def send_event(self, connection_id: str, event: WireEvent) -> bool:
        """Send an event to a specific WebSocket connection."""
        session = self._sessions.get(connection_id)
        if session is None:
            return False
        return await session.emit(event)
