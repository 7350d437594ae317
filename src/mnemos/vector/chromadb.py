"""ChromaDB vector store implementation."""

from pathlib import Path
from typing import Any

import chromadb


def _build_where(where: dict[str, Any] | None) -> dict[str, Any] | None:
    """Translate a flat equality filter into ChromaDB's where syntax."""
    if not where:
        return None
    if len(where) == 1:
        return dict(where)
    return {"$and": [{key: value} for key, value in where.items()]}


class ChromaDBVectorStore:
    """Vector store using ChromaDB for semantic search.

    ChromaDB is a lightweight, embedded vector database that works well
    for local deployments. It uses SQLite for persistence and HNSW for
    fast approximate nearest neighbor search.
    """

    def __init__(
        self,
        collection_name: str = "mnemos_memories",
        persist_directory: str | Path | None = None,
    ):
        """Initialize ChromaDB vector store.

        Args:
            collection_name: Name of the ChromaDB collection
            persist_directory: Directory for persistent storage (None = in-memory)
        """
        self.collection_name = collection_name

        if persist_directory is None:
            self.client = chromadb.EphemeralClient()
        else:
            persist_path = Path(persist_directory).expanduser().resolve()
            persist_path.mkdir(parents=True, exist_ok=True)

            self.client = chromadb.PersistentClient(path=str(persist_path))

        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadata: list[dict[str, Any]],
    ) -> None:
        """Insert or replace embeddings.

        Args:
            ids: Unique identifiers for each embedding
            embeddings: List of embedding vectors
            documents: Original text documents
            metadata: Metadata for each document
        """
        if not ids:
            return

        self.collection.upsert(
            ids=ids,
            embeddings=embeddings,  # type: ignore[arg-type]
            documents=documents,
            metadatas=metadata,  # type: ignore[arg-type]
        )

    def search(
        self,
        query_embedding: list[float],
        top_k: int = 10,
        where: dict[str, Any] | None = None,
    ) -> tuple[list[str], list[str], list[dict[str, Any]], list[float]]:
        """Search for similar embeddings.

        Args:
            query_embedding: Query vector
            top_k: Number of results to return
            where: Optional metadata filters

        Returns:
            Tuple of (ids, documents, metadatas, distances)
        """
        results = self.collection.query(
            query_embeddings=[query_embedding],  # type: ignore[arg-type]
            n_results=top_k,
            where=_build_where(where),
        )

        # ChromaDB returns results in a batched format
        ids = results["ids"][0] if results["ids"] else []
        documents = results["documents"][0] if results["documents"] else []
        metadatas = results["metadatas"][0] if results["metadatas"] else []
        distances = results["distances"][0] if results["distances"] else []

        return ids, documents, metadatas, distances  # type: ignore[return-value]

    def delete(
        self,
        ids: list[str] | None = None,
        where: dict[str, Any] | None = None,
    ) -> None:
        """Delete embeddings by ID or metadata filter.

        Args:
            ids: IDs to delete
            where: Metadata filter
        """
        if not ids and not where:
            return

        self.collection.delete(ids=ids or None, where=_build_where(where))

    def count(self) -> int:
        """Get total number of embeddings in the store."""
        count_result: int = self.collection.count()
        return count_result

    def clear(self) -> None:
        """Clear all embeddings from the store."""
        self.client.delete_collection(name=self.collection_name)
        self.collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )
