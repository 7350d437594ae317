"""Short-term memory: a bounded read over the persisted turn log."""

from mnemos.memory.schema import TurnRecord
from mnemos.memory.store import MessageStore


class ShortTermMemory:
    """Recent-turn window derived purely from the message store.

    There is no separate in-process cache; the persisted log is the single
    source of truth.
    """

    def __init__(self, store: MessageStore, window: int = 10):
        """Initialize the provider.

        Args:
            store: Message store to read from
            window: Default window size N
        """
        if window < 1:
            raise ValueError("STM window must be at least 1")
        self.store = store
        self.window = window

    async def recent_turns(
        self,
        conversation_id: str,
        n: int | None = None,
        exclude_ids: set[str] | None = None,
    ) -> list[TurnRecord]:
        """Return up to ``n`` most recent turns, oldest to newest.

        Args:
            conversation_id: Conversation identifier
            n: Window size (defaults to the configured N)
            exclude_ids: Turn ids to leave out (e.g. the message being answered);
                excluded turns do not count against the window

        Returns:
            Turns in chronological order
        """
        n = self.window if n is None else n
        if n <= 0:
            return []

        exclude_ids = exclude_ids or set()
        newest_first = await self.store.find(
            conversation_id, limit=n + len(exclude_ids), order="desc"
        )
        window = [t for t in newest_first if t.id not in exclude_ids][:n]
        window.reverse()
        return window
