"""SQLite storage backend for the conversation log."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterator, Literal

from mnemos.errors import StorageError
from mnemos.memory.schema import ConversationRecord, TurnRecord, utcnow


def _ts(value: datetime) -> str:
    # Fixed-width timestamps keep lexical order equal to chronological order
    return value.isoformat(timespec="microseconds")


class MessageStorage:
    """SQLite-based append-only log of conversation turns.

    Every public method opens its own connection, so one instance can be
    shared across executor threads. sqlite3 errors are reported as
    :class:`StorageError`.
    """

    def __init__(self, db_path: str | Path):
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path, timeout=10.0)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open message store {self.db_path}: {e}") from e
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Message store operation failed: {e}") from e
        finally:
            conn.close()

    def _initialize_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    last_activity TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS turns (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
                    text TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    embedded INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_turns_conversation "
                "ON turns(conversation_id, created_at, seq)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_turns_embedded ON turns(embedded)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversations_user "
                "ON conversations(user_id, last_activity)"
            )

    @staticmethod
    def _conversation_from_row(row: sqlite3.Row) -> ConversationRecord:
        return ConversationRecord(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            created_at=datetime.fromisoformat(row["created_at"]),
            last_activity=datetime.fromisoformat(row["last_activity"]),
        )

    @staticmethod
    def _turn_from_row(row: sqlite3.Row) -> TurnRecord:
        return TurnRecord(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            text=row["text"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # Conversations

    def create_conversation(self, conversation: ConversationRecord) -> ConversationRecord:
        """Insert a conversation; an existing id is left untouched.

        Returns:
            The stored conversation record
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO conversations (id, user_id, title, created_at, last_activity)
                VALUES (?, ?, ?, ?, ?)
            """,
                (
                    conversation.id,
                    conversation.user_id,
                    conversation.title,
                    _ts(conversation.created_at),
                    _ts(conversation.last_activity),
                ),
            )
            row = conn.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation.id,)
            ).fetchone()
        return self._conversation_from_row(row)

    def get_conversation(self, conversation_id: str) -> ConversationRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
        return self._conversation_from_row(row) if row else None

    def list_conversations(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> list[ConversationRecord]:
        """List a user's conversations, most recently active first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM conversations
                WHERE user_id = ?
                ORDER BY last_activity DESC
                LIMIT ? OFFSET ?
            """,
                (user_id, limit, offset),
            ).fetchall()
        return [self._conversation_from_row(row) for row in rows]

    def rename_conversation(self, conversation_id: str, title: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE conversations SET title = ?, last_activity = ? WHERE id = ?",
                (title, _ts(utcnow()), conversation_id),
            )
            return cursor.rowcount > 0

    def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and, by cascade, all its turns."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
            return cursor.rowcount > 0

    # Turns

    def append_turn(self, turn: TurnRecord) -> TurnRecord:
        """Append a turn and update the conversation's last activity.

        Re-appending a turn with the same id is a no-op, so retries are safe.

        Raises:
            StorageError: If the conversation does not exist or the write fails
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO turns (id, conversation_id, role, text, created_at)
                VALUES (?, ?, ?, ?, ?)
            """,
                (turn.id, turn.conversation_id, turn.role, turn.text, _ts(turn.created_at)),
            )
            conn.execute(
                "UPDATE conversations SET last_activity = MAX(last_activity, ?) WHERE id = ?",
                (_ts(turn.created_at), turn.conversation_id),
            )
        return turn

    def find_turns(
        self,
        conversation_id: str,
        limit: int | None = None,
        order: Literal["asc", "desc"] = "asc",
    ) -> list[TurnRecord]:
        """Load turns for a conversation.

        Args:
            conversation_id: Conversation identifier
            limit: Maximum number of turns to return
            order: "asc" for oldest first, "desc" for newest first

        Returns:
            Turns in the requested order
        """
        direction = "DESC" if order == "desc" else "ASC"
        query = f"""
            SELECT * FROM turns
            WHERE conversation_id = ?
            ORDER BY created_at {direction}, seq {direction}
        """
        params: list[Any] = [conversation_id]

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._turn_from_row(row) for row in rows]

    def get_turn_count(self, conversation_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM turns WHERE conversation_id = ?", (conversation_id,)
            ).fetchone()
        return int(row[0])

    def mark_embedded(self, turn_ids: list[str]) -> int:
        """Flag turns whose vectors have been upserted."""
        if not turn_ids:
            return 0
        with self._connect() as conn:
            cursor = conn.executemany(
                "UPDATE turns SET embedded = 1 WHERE id = ?", [(tid,) for tid in turn_ids]
            )
            return cursor.rowcount

    def find_unembedded(
        self, limit: int = 100, older_than: timedelta | None = None
    ) -> list[tuple[TurnRecord, str]]:
        """Turns without a vector yet, oldest first, paired with their owner.

        Args:
            limit: Maximum number of turns to return
            older_than: Only include turns at least this old

        Returns:
            List of (turn, user_id) tuples
        """
        cutoff = _ts(utcnow() - (older_than or timedelta(0)))
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT t.*, c.user_id AS owner FROM turns t
                JOIN conversations c ON c.id = t.conversation_id
                WHERE t.embedded = 0 AND t.created_at <= ?
                ORDER BY t.seq ASC
                LIMIT ?
            """,
                (cutoff, limit),
            ).fetchall()
        return [(self._turn_from_row(row), row["owner"]) for row in rows]
