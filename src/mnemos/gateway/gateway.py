"""Connection gateway: authenticate, throttle, dispatch."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from mnemos.errors import RateLimitError, ValidationError
from mnemos.gateway.auth import CredentialVerifier
from mnemos.gateway.events import ErrorEvent, RateLimitedEvent, UserMessageEvent
from mnemos.gateway.rate_limit import RateLimiter
from mnemos.gateway.session import ConnectionSession, SendFn

if TYPE_CHECKING:
    from mnemos.memory.orchestrator import RetrievalOrchestrator

logger = logging.getLogger(__name__)


def parse_frame(payload: str | dict[str, Any]) -> UserMessageEvent:
    """Decode and validate an inbound frame.

    Raises:
        ValidationError: If the frame is not a well-formed ``user-message``;
            carries the conversation id when the frame names one
    """
    try:
        if isinstance(payload, str):
            payload = json.loads(payload)
        if not isinstance(payload, dict):
            raise ValueError("frame must be a JSON object")
        if payload.get("type", "user-message") != "user-message":
            raise ValueError(f"unsupported event type: {payload.get('type')}")
        return UserMessageEvent.model_validate(payload)
    except (ValueError, PydanticValidationError) as e:
        conversation_id = payload.get("conversationId") if isinstance(payload, dict) else None
        raise ValidationError(
            "malformed message",
            conversation_id=conversation_id if isinstance(conversation_id, str) else None,
        ) from e


class ConnectionGateway:
    """Entry point for persistent client connections.

    A connection is authenticated once; every inbound ``user-message`` is
    validated, passed through the rate limiter and run by the orchestrator
    in its own task. Rejected messages never reach the orchestrator.
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        orchestrator: RetrievalOrchestrator,
        rate_limiter: RateLimiter | None = None,
    ):
        self.verifier = verifier
        self.orchestrator = orchestrator
        self.rate_limiter = rate_limiter
        self._sessions: dict[str, ConnectionSession] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def active_connections(self) -> int:
        return len(self._sessions)

    @property
    def in_flight(self) -> int:
        """Pipelines still running, across open and closed connections."""
        return len(self._tasks)

    async def connect(self, credential: str | None, send: SendFn) -> ConnectionSession:
        """Authenticate a new connection and open its session.

        Raises:
            AuthError: If the credential is rejected
        """
        identity = await self.verifier.verify(credential)
        session = ConnectionSession(user_id=identity.user_id, send=send, claims=identity.claims)
        self._sessions[session.connection_id] = session
        logger.info("Connection %s opened for user %s", session.connection_id, session.user_id)
        return session

    async def dispatch(
        self, session: ConnectionSession, payload: str | dict[str, Any]
    ) -> asyncio.Task[Any] | None:
        """Handle one inbound frame.

        Returns:
            The task running the pipeline, or None if the frame was rejected
        """
        try:
            event = parse_frame(payload)
        except ValidationError as e:
            logger.info("Malformed frame on connection %s: %s", session.connection_id, e.__cause__)
            await session.emit(ErrorEvent.from_error(e))
            return None

        if self.rate_limiter is not None:
            try:
                self.rate_limiter.check(session.user_id)
            except RateLimitError as e:
                await session.emit(RateLimitedEvent(retry_after_ms=e.retry_after_ms))
                return None

        task = asyncio.create_task(
            self.orchestrator.handle_message(session, event.conversation_id, event.content),
            name=f"turn-{event.conversation_id}",
        )
        session.track(task)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(self._report_crash)
        return task

    @staticmethod
    def _report_crash(task: asyncio.Task[Any]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Pipeline task %s crashed", task.get_name(), exc_info=task.exception())

    def disconnect(self, session: ConnectionSession) -> None:
        """Close a session. Its in-flight pipelines finish without emitting."""
        session.close()
        self._sessions.pop(session.connection_id, None)
        logger.info(
            "Connection %s closed (%d task(s) still running)",
            session.connection_id,
            len(session.tasks),
        )

    async def drain(self, session: ConnectionSession) -> None:
        """Wait for a session's in-flight pipelines."""
        if session.tasks:
            await asyncio.gather(*list(session.tasks), return_exceptions=True)

    async def shutdown(self, timeout: float | None = 10.0) -> None:
        """Close every session and wait for in-flight pipelines.

        Pipelines finish their persistence and hand their writeback to the
        memory writer, so the writer must be stopped after this returns.

        Args:
            timeout: Maximum seconds to wait for pipelines
        """
        for session in list(self._sessions.values()):
            self.disconnect(session)
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning("Shutting down with %d pipeline(s) still running", len(pending))
