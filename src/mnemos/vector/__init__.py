"""Vector store backends for long-term memory."""

from mnemos.vector.memory import InMemoryVectorStore
from mnemos.vector.store import VectorStore

try:
    from mnemos.vector.chromadb import ChromaDBVectorStore
except Exception:
    ChromaDBVectorStore = None  # type: ignore[assignment,misc]

__all__ = ["ChromaDBVectorStore", "InMemoryVectorStore", "VectorStore"]
