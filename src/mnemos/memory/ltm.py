"""Long-term memory: owner-scoped similarity search over the vector index."""

import asyncio
import functools
import logging
from typing import Any, Callable, TypeVar

from mnemos.errors import VectorStoreError
from mnemos.memory.schema import MemoryHit, MemoryMetadata, vector_id_for_turn
from mnemos.vector.store import VectorStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LongTermMemory:
    """Vector index adapter enforcing per-user isolation.

    Queries always filter on ``user_id`` in the backend *and* re-check every
    returned record, so a backend that ignores or mis-applies the filter can
    never leak another user's memory. LTM is advisory: a failing query
    yields no hits instead of an error.
    """

    def __init__(self, vector_store: VectorStore, overfetch: int = 2):
        """Initialize long-term memory.

        Args:
            vector_store: Backend vector store
            overfetch: Multiplier on k for the backend query, leaving room to
                rank by recency and drop filtered records
        """
        self.vector_store = vector_store
        self.overfetch = max(1, overfetch)

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    async def upsert(self, vector: list[float], metadata: MemoryMetadata) -> str:
        """Insert or replace the memory for a turn.

        Returns:
            Vector id (deterministic per linked turn)

        Raises:
            VectorStoreError: If the backend write fails
        """
        vector_id = vector_id_for_turn(metadata.linked_turn_id)
        flat = metadata.model_dump(exclude={"source_text"})
        try:
            await self._run(
                self.vector_store.upsert,
                ids=[vector_id],
                embeddings=[vector],
                documents=[metadata.source_text],
                metadata=[flat],
            )
        except Exception as e:
            raise VectorStoreError(f"Vector upsert failed for {vector_id}: {e}") from e
        return vector_id

    async def query(
        self,
        vector: list[float],
        k: int,
        user_id: str,
        conversation_id: str | None = None,
        min_similarity: float | None = None,
        exclude_turn_ids: set[str] | None = None,
    ) -> list[MemoryHit]:
        """Find the user's memories closest to ``vector``.

        Args:
            vector: Query embedding
            k: Maximum number of hits
            user_id: Owner filter (always enforced)
            conversation_id: Optional narrower filter
            min_similarity: Drop hits below this cosine similarity
            exclude_turn_ids: Turns already in the prompt; their memories are
                skipped before the cut to ``k``

        Returns:
            Hits ranked by similarity, most recent first on ties; empty if the
            index is unavailable
        """
        if k <= 0:
            return []

        exclude = exclude_turn_ids or set()
        where: dict[str, Any] = {"user_id": user_id}
        if conversation_id is not None:
            where["conversation_id"] = conversation_id

        try:
            ids, documents, metadatas, distances = await self._run(
                self.vector_store.search,
                query_embedding=vector,
                top_k=k * self.overfetch + len(exclude),
                where=where,
            )
        except Exception as e:
            logger.warning("LTM query failed for user %s, continuing without it: %s", user_id, e)
            return []

        hits: list[MemoryHit] = []
        for vector_id, doc, meta, distance in zip(ids, documents, metadatas, distances, strict=False):
            if not meta or meta.get("user_id") != user_id:
                logger.error("Vector store returned a record outside the user filter: %s", vector_id)
                continue
            if conversation_id is not None and meta.get("conversation_id") != conversation_id:
                continue
            if meta.get("linked_turn_id") in exclude:
                continue

            score = 1.0 - float(distance)
            if min_similarity is not None and score < min_similarity:
                continue

            try:
                metadata = MemoryMetadata(source_text=doc or "", **meta)
            except Exception as e:
                logger.warning("Skipping malformed memory %s: %s", vector_id, e)
                continue
            hits.append(MemoryHit(id=vector_id, score=score, metadata=metadata))

        hits.sort(key=lambda h: (-round(h.score, 6), -h.metadata.created_at))
        return hits[:k]

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        """Remove every memory of one conversation.

        Raises:
            VectorStoreError: If the backend delete fails
        """
        try:
            await self._run(
                self.vector_store.delete,
                where={"conversation_id": conversation_id, "user_id": user_id},
            )
        except Exception as e:
            raise VectorStoreError(
                f"Vector delete failed for conversation {conversation_id}: {e}"
            ) from e

    async def count(self) -> int:
        return await self._run(self.vector_store.count)
