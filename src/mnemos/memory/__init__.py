"""Conversation memory for mnemos.

Components:

- :class:`MessageStore` - append-only turn log over SQLite, with bounded retry
- :class:`ShortTermMemory` - recent-turn window read from the message store
- :class:`LongTermMemory` - owner-scoped similarity search over the vector index
- :func:`assemble_context` - persona, memories, recent turns and message under a token budget
- :class:`BackgroundMemoryWriter` - bounded queue persisting and indexing turns after replies
- :class:`RetrievalOrchestrator` - the per-message pipeline tying these together
"""

from mnemos.memory.context import AssembledContext, assemble_context
from mnemos.memory.ltm import LongTermMemory
from mnemos.memory.orchestrator import RetrievalOrchestrator, TurnOutcome
from mnemos.memory.schema import ConversationRecord, MemoryHit, MemoryMetadata, TurnRecord
from mnemos.memory.stm import ShortTermMemory
from mnemos.memory.storage import MessageStorage
from mnemos.memory.store import MessageStore
from mnemos.memory.writer import BackgroundMemoryWriter, PendingTurn, WriteJob, WriterStats

__all__ = [
    "AssembledContext",
    "BackgroundMemoryWriter",
    "ConversationRecord",
    "LongTermMemory",
    "MemoryHit",
    "MemoryMetadata",
    "MessageStorage",
    "MessageStore",
    "PendingTurn",
    "RetrievalOrchestrator",
    "ShortTermMemory",
    "TurnOutcome",
    "TurnRecord",
    "WriteJob",
    "WriterStats",
    "assemble_context",
]
