"""Async message store over the SQLite conversation log."""

import asyncio
import functools
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Literal, TypeVar

from mnemos.errors import StorageError
from mnemos.memory.schema import ConversationRecord, Role, TurnRecord, new_id
from mnemos.memory.storage import MessageStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MessageStore:
    """Append-only turn log with bounded retry.

    Each call runs the blocking SQLite operation in the default executor
    and retries :class:`StorageError` with exponential backoff before
    surfacing it.
    """

    def __init__(
        self,
        storage: MessageStorage | str | Path,
        max_attempts: int = 3,
        backoff: float = 0.05,
    ):
        """Initialize the message store.

        Args:
            storage: Storage backend, or a path to its SQLite database
            max_attempts: Attempts per operation before StorageError is raised
            backoff: Base delay in seconds, doubled after each failed attempt
        """
        if not isinstance(storage, MessageStorage):
            storage = MessageStorage(storage)
        self.storage = storage
        self.max_attempts = max_attempts
        self.backoff = backoff

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        call = functools.partial(fn, *args, **kwargs)

        for attempt in range(self.max_attempts):
            try:
                return await loop.run_in_executor(None, call)
            except StorageError as e:
                if attempt < self.max_attempts - 1:
                    logger.warning(
                        "Message store call failed (attempt %d/%d): %s",
                        attempt + 1,
                        self.max_attempts,
                        e,
                    )
                    await asyncio.sleep(self.backoff * (2**attempt))
                    continue
                raise

        raise StorageError("Message store retry loop exhausted")  # pragma: no cover

    # Conversations

    async def create_conversation(
        self,
        user_id: str,
        title: str | None = None,
        conversation_id: str | None = None,
    ) -> ConversationRecord:
        """Create a conversation owned by ``user_id``.

        A blank title falls back to "New Chat".
        """
        record = ConversationRecord(
            id=conversation_id or new_id(),
            user_id=user_id,
            title=(title or "").strip() or "New Chat",
        )
        return await self._run(self.storage.create_conversation, record)

    async def get_conversation(self, conversation_id: str) -> ConversationRecord | None:
        return await self._run(self.storage.get_conversation, conversation_id)

    async def list_conversations(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> list[ConversationRecord]:
        return await self._run(self.storage.list_conversations, user_id, limit, offset)

    async def rename_conversation(self, conversation_id: str, title: str) -> bool:
        return await self._run(self.storage.rename_conversation, conversation_id, title)

    async def delete_conversation(self, conversation_id: str) -> bool:
        return await self._run(self.storage.delete_conversation, conversation_id)

    # Turns

    async def append(self, conversation_id: str, role: Role, text: str) -> TurnRecord:
        """Append a new turn and update the conversation's last activity.

        Raises:
            StorageError: After all retries fail
        """
        turn = TurnRecord(conversation_id=conversation_id, role=role, text=text)
        return await self.save(turn)

    async def save(self, turn: TurnRecord) -> TurnRecord:
        """Persist an already-constructed turn (idempotent on turn id)."""
        return await self._run(self.storage.append_turn, turn)

    async def find(
        self,
        conversation_id: str,
        limit: int | None = None,
        order: Literal["asc", "desc"] = "asc",
    ) -> list[TurnRecord]:
        """Load turns for a conversation in the requested order."""
        return await self._run(self.storage.find_turns, conversation_id, limit, order)

    async def mark_embedded(self, turn_ids: list[str]) -> int:
        return await self._run(self.storage.mark_embedded, turn_ids)

    async def find_unembedded(
        self, limit: int = 100, older_than: timedelta | None = None
    ) -> list[tuple[TurnRecord, str]]:
        return await self._run(self.storage.find_unembedded, limit, older_than)
