"""Retrieval orchestrator: the per-message memory pipeline.

For each user message: persist the turn, embed it while reading the
recent-turn window, query long-term memory, assemble the context, call the
completion service, emit the reply and hand both turns to the background
writer. Messages of one conversation run strictly one after another;
different conversations run in parallel.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from mnemos.embeddings.service import EmbeddingService
from mnemos.errors import CompletionServiceError, EmbeddingError, StorageError, ValidationError
from mnemos.gateway.events import AssistantMessageEvent, ErrorEvent
from mnemos.llm.service import CompletionService
from mnemos.memory.context import AssembledContext, assemble_context
from mnemos.memory.ltm import LongTermMemory
from mnemos.memory.schema import ConversationRecord, MemoryHit, TurnRecord
from mnemos.memory.stm import ShortTermMemory
from mnemos.memory.store import MessageStore
from mnemos.memory.writer import BackgroundMemoryWriter, PendingTurn, WriteJob

if TYPE_CHECKING:
    from mnemos.gateway.session import ConnectionSession

logger = logging.getLogger(__name__)


def check_owner(conversation: ConversationRecord, user_id: str) -> None:
    """Raise :class:`ValidationError` unless ``user_id`` owns the conversation.

    Another user's conversation is reported as unknown so its existence
    is not revealed.
    """
    if conversation.user_id != user_id:
        raise ValidationError("unknown conversation", conversation_id=conversation.id)


class ConversationLocks:
    """Per-conversation mutexes, created on demand and released when idle.

    ``asyncio.Lock`` wakes waiters in FIFO order, so messages of one
    conversation are processed in arrival order.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @contextlib.asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]


@dataclass
class TurnOutcome:
    """What happened to one inbound message."""

    status: Literal["replied", "failed", "rejected"]
    conversation_id: str
    reply: str | None = None
    reason: str | None = None
    user_turn: TurnRecord | None = None
    assistant_turn: TurnRecord | None = None
    context: AssembledContext | None = None
    emitted: bool = False
    degraded: list[str] = field(default_factory=list)
    job: WriteJob | None = None


class RetrievalOrchestrator:
    """Coordinates store, STM, embeddings, LTM, completion and writeback."""

    def __init__(
        self,
        store: MessageStore,
        stm: ShortTermMemory,
        embeddings: EmbeddingService,
        ltm: LongTermMemory,
        completion: CompletionService,
        writer: BackgroundMemoryWriter,
        persona: str,
        top_k: int = 3,
        min_similarity: float | None = None,
        token_budget: int = 4096,
        writeback_wait_timeout: float = 2.0,
    ):
        """Initialize the orchestrator.

        Args:
            store: Message store (user turns are appended synchronously)
            stm: Recent-turn provider
            embeddings: Embedding service
            ltm: Long-term memory index
            completion: Completion service
            writer: Background writer for assistant turns and vectors
            persona: Persona preamble
            top_k: Long-term memories per turn
            min_similarity: Optional similarity floor for memories
            token_budget: Maximum estimated tokens in the context
            writeback_wait_timeout: Seconds to wait for the previous reply to be
                persisted before reading the recent-turn window
        """
        self.store = store
        self.stm = stm
        self.embeddings = embeddings
        self.ltm = ltm
        self.completion = completion
        self.writer = writer
        self.persona = persona
        self.top_k = top_k
        self.min_similarity = min_similarity
        self.token_budget = token_budget
        self.writeback_wait_timeout = writeback_wait_timeout
        self.locks = ConversationLocks()
        self._last_jobs: dict[str, WriteJob] = {}

    async def handle_message(
        self, session: ConnectionSession, conversation_id: str, content: str
    ) -> TurnOutcome:
        """Run the pipeline for one message.

        Failures on the primary path (conversation lookup, user-turn
        persistence, completion) are reported to the session as an error
        event. Embedding and LTM failures only narrow the context.
        """
        async with self.locks.hold(conversation_id):
            return await self._run(session, conversation_id, content)

    async def _fail(
        self,
        session: ConnectionSession,
        conversation_id: str,
        reason: str,
        **fields,
    ) -> TurnOutcome:
        emitted = await session.emit(ErrorEvent(conversation_id=conversation_id, reason=reason))
        return TurnOutcome(
            status="failed",
            conversation_id=conversation_id,
            reason=reason,
            emitted=emitted,
            **fields,
        )

    async def _run(
        self, session: ConnectionSession, conversation_id: str, content: str
    ) -> TurnOutcome:
        user_id = session.user_id

        try:
            conversation = await self.store.get_conversation(conversation_id)
            if conversation is None:
                conversation = await self.store.create_conversation(
                    user_id, conversation_id=conversation_id
                )
                logger.info("Created conversation %s for user %s", conversation_id, user_id)
        except StorageError as e:
            logger.error("Conversation lookup failed for %s: %s", conversation_id, e)
            return await self._fail(session, conversation_id, "message could not be saved")

        try:
            check_owner(conversation, user_id)
        except ValidationError as e:
            logger.warning(
                "User %s sent a message to conversation %s owned by someone else",
                user_id,
                conversation_id,
            )
            emitted = await session.emit(ErrorEvent.from_error(e))
            return TurnOutcome(
                status="rejected",
                conversation_id=conversation_id,
                reason=e.reason,
                emitted=emitted,
            )

        try:
            user_turn = await self.store.append(conversation_id, "user", content)
        except StorageError as e:
            logger.error("Could not persist user turn in %s: %s", conversation_id, e)
            return await self._fail(session, conversation_id, "message could not be saved")

        logger.info("Message in %s from %s: %s", conversation_id, user_id, content[:100])

        previous = self._last_jobs.pop(conversation_id, None)
        if previous is not None and not await previous.wait_settled(self.writeback_wait_timeout):
            logger.warning(
                "Previous reply in %s not persisted after %.1fs, reading history without it",
                conversation_id,
                self.writeback_wait_timeout,
            )

        degraded: list[str] = []
        vector, stm_turns = await asyncio.gather(
            self._embed(content, conversation_id, degraded),
            self._recent_turns(conversation_id, user_turn.id, degraded),
        )

        hits: list[MemoryHit] = []
        if vector is not None:
            hits = await self.ltm.query(
                vector,
                k=self.top_k,
                user_id=user_id,
                min_similarity=self.min_similarity,
                exclude_turn_ids={t.id for t in stm_turns} | {user_turn.id},
            )

        context = assemble_context(
            self.persona,
            ltm_hits=hits,
            stm_turns=stm_turns,
            current_message=content,
            token_budget=self.token_budget,
        )
        if context.dropped_stm or context.dropped_ltm:
            logger.debug(
                "Context for %s over budget: dropped %d recent turn(s), %d memory(ies)",
                conversation_id,
                context.dropped_stm,
                context.dropped_ltm,
            )

        try:
            reply = await self.completion.complete(context.messages)
        except CompletionServiceError as e:
            logger.error("Completion failed for %s: %s", conversation_id, e)
            # The user turn is kept and still indexed; no assistant turn is recorded
            job = await self._hand_off(
                user_id, conversation_id, [PendingTurn(user_turn, persisted=True, vector=vector)]
            )
            return await self._fail(
                session,
                conversation_id,
                "the assistant is unavailable right now, please try again",
                user_turn=user_turn,
                context=context,
                degraded=degraded,
                job=job,
            )

        assistant_turn = TurnRecord(conversation_id=conversation_id, role="assistant", text=reply)
        emitted = await session.emit(
            AssistantMessageEvent(conversation_id=conversation_id, content=reply)
        )
        if not emitted:
            logger.info("Connection for %s closed, reply not delivered", conversation_id)

        job = await self._hand_off(
            user_id,
            conversation_id,
            [
                PendingTurn(user_turn, persisted=True, vector=vector),
                PendingTurn(assistant_turn),
            ],
        )

        return TurnOutcome(
            status="replied",
            conversation_id=conversation_id,
            reply=reply,
            user_turn=user_turn,
            assistant_turn=assistant_turn,
            context=context,
            emitted=emitted,
            degraded=degraded,
            job=job,
        )

    async def _embed(
        self, text: str, conversation_id: str, degraded: list[str]
    ) -> list[float] | None:
        try:
            return await self.embeddings.embed(text)
        except EmbeddingError as e:
            logger.warning("Embedding failed in %s, using recent turns only: %s", conversation_id, e)
            degraded.append("embedding")
            return None

    async def _recent_turns(
        self, conversation_id: str, current_turn_id: str, degraded: list[str]
    ) -> list[TurnRecord]:
        try:
            return await self.stm.recent_turns(conversation_id, exclude_ids={current_turn_id})
        except StorageError as e:
            logger.warning("Recent-turn read failed in %s: %s", conversation_id, e)
            degraded.append("stm")
            return []

    async def _hand_off(
        self, user_id: str, conversation_id: str, turns: list[PendingTurn]
    ) -> WriteJob:
        job = WriteJob(user_id=user_id, conversation_id=conversation_id, turns=turns)
        await self.writer.submit(job)
        self._last_jobs = {k: j for k, j in self._last_jobs.items() if not j.done.is_set()}
        self._last_jobs[conversation_id] = job
        return job
