"""Per-connection session state."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from mnemos.gateway.events import WireEvent

logger = logging.getLogger(__name__)

SendFn = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass
class ConnectionSession:
    """Identity and outbound channel of one authenticated connection.

    Lives exactly as long as the connection. Nothing here is shared
    between connections; the pipeline receives the session explicitly.
    """

    user_id: str
    send: SendFn
    claims: dict[str, Any] = field(default_factory=dict)
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_open: bool = True
    tasks: set[asyncio.Task[Any]] = field(default_factory=set)

    async def emit(self, event: WireEvent) -> bool:
        """Send an event if the connection is still open.

        Returns:
            True if the event was written to the connection
        """
        if not self.is_open:
            return False
        try:
            await self.send(event.to_wire())
        except Exception as e:
            logger.info("Connection %s went away while sending: %s", self.connection_id, e)
            self.is_open = False
            return False
        return True

    def track(self, task: asyncio.Task[Any]) -> None:
        """Keep a reference to an in-flight pipeline until it finishes."""
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    def close(self) -> None:
        """Mark the connection closed. In-flight tasks keep running."""
        self.is_open = False
