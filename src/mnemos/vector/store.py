"""Abstract vector store interface."""

from typing import Any, Protocol


class VectorStore(Protocol):
    """Protocol for vector store implementations.

    Implementations are synchronous; callers on the event loop run them in
    an executor. ``where`` filters are equality matches on metadata keys and
    all given keys must match.
    """

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
        ...

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
            Tuple of (ids, documents, metadatas, cosine distances), closest first
        """
        ...

    def delete(
        self,
        ids: list[str] | None = None,
        where: dict[str, Any] | None = None,
    ) -> None:
        """Delete embeddings by ID or by metadata filter.

        Args:
            ids: IDs to delete
            where: Metadata filter selecting embeddings to delete
        """
        ...

    def count(self) -> int:
        """Get total number of embeddings in the store.

        Returns:
            Count of embeddings
        """
        ...
