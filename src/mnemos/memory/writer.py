"""Background memory writer: bounded, observable writeback after replies."""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Awaitable, Callable, Literal, TypeVar

from mnemos.embeddings.service import EmbeddingService
from mnemos.errors import EmbeddingError, StorageError, VectorStoreError
from mnemos.memory.ltm import LongTermMemory
from mnemos.memory.schema import MemoryMetadata, TurnRecord
from mnemos.memory.store import MessageStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

JobStatus = Literal["queued", "persisted", "completed", "failed", "dropped"]


@dataclass
class PendingTurn:
    """A turn awaiting writeback."""

    turn: TurnRecord
    persisted: bool = False
    vector: list[float] | None = None


@dataclass
class WriteJob:
    """Writeback for one exchange: persist turns, then embed and index them."""

    user_id: str
    conversation_id: str
    turns: list[PendingTurn]
    status: JobStatus = "queued"
    error: str | None = None
    # Set once every turn is in the message store, or the job can no longer get there
    settled: asyncio.Event = field(default_factory=asyncio.Event)
    done: asyncio.Event = field(default_factory=asyncio.Event)

    async def wait_settled(self, timeout: float | None = None) -> bool:
        """Wait until the job's turns are persisted (or the job gave up)."""
        try:
            await asyncio.wait_for(self.settled.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


@dataclass
class WriterStats:
    """Counters exposed on the health endpoint."""

    submitted: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0
    turns_persisted: int = 0
    turns_indexed: int = 0
    turns_backfilled: int = 0

    def as_dict(self) -> dict[str, int]:
        return dict(self.__dict__)


class BackgroundMemoryWriter:
    """Runs writeback jobs through a bounded queue and a fixed worker pool.

    Jobs are never detached: each one is tracked through the queue, its
    outcome is recorded on the job and in :attr:`stats`, and
    :meth:`stop` drains outstanding work. A turn that is persisted but
    whose embedding or upsert fails stays flagged as unembedded for
    :meth:`backfill` (best-effort, at-least-once).
    """

    def __init__(
        self,
        store: MessageStore,
        embeddings: EmbeddingService,
        ltm: LongTermMemory,
        queue_size: int = 256,
        overflow: Literal["reject_newest", "drop_oldest"] = "reject_newest",
        workers: int = 2,
        max_attempts: int = 3,
        backoff: float = 0.1,
        backfill_interval: float | None = None,
    ):
        """Initialize the writer.

        Args:
            store: Message store for turn persistence
            embeddings: Embedding service for turns without a vector
            ltm: Long-term memory index
            queue_size: Maximum queued jobs
            overflow: Policy when the queue is full
            workers: Number of concurrent worker tasks
            max_attempts: Attempts for each embed/upsert step
            backoff: Base delay in seconds between attempts
            backfill_interval: Seconds between reconciliation sweeps (None = off)
        """
        self.store = store
        self.embeddings = embeddings
        self.ltm = ltm
        self.overflow = overflow
        self.worker_count = workers
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.backfill_interval = backfill_interval
        self.stats = WriterStats()
        self._queue: asyncio.Queue[WriteJob] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task[None]] = []
        self._sweeper: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def pending(self) -> int:
        """Jobs waiting in the queue."""
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return any(not w.done() for w in self._workers)

    async def start(self) -> None:
        """Start worker tasks (and the backfill sweeper, if configured)."""
        if self.running:
            return
        self._stopped = False
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"memory-writer-{i}")
            for i in range(self.worker_count)
        ]
        if self.backfill_interval:
            self._sweeper = asyncio.create_task(self._sweep(), name="memory-backfill")

    async def stop(self, drain: bool = True, timeout: float | None = 10.0) -> None:
        """Stop the writer.

        Args:
            drain: Wait for queued jobs to finish first
            timeout: Maximum seconds to wait while draining
        """
        self._stopped = True
        if drain and self.running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Memory writer stopped with %d job(s) still queued", self.pending)

        tasks = [*self._workers, *([self._sweeper] if self._sweeper else [])]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._workers = []
        self._sweeper = None

        while not self._queue.empty():
            job = self._queue.get_nowait()
            self._queue.task_done()
            await self._drop(job, "memory writer stopped")

    async def drain(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def submit(self, job: WriteJob) -> bool:
        """Queue a job.

        When the queue is full the overflow policy picks a job to drop, and
        once :meth:`stop` has been called every new job is dropped. A
        dropped job still has its turns written to the message store by
        the caller's coroutine; only vector indexing is shed, and the turns
        stay flagged for :meth:`backfill`.

        Returns:
            True if ``job`` was queued, False if it was the one dropped
        """
        self.stats.submitted += 1
        if self._stopped:
            await self._drop(job, "memory writer stopped")
            return False

        try:
            self._queue.put_nowait(job)
            return True
        except asyncio.QueueFull:
            pass

        if self.overflow == "drop_oldest":
            dropped = self._queue.get_nowait()
            self._queue.task_done()
            self._queue.put_nowait(job)
        else:
            dropped = job

        await self._drop(dropped, "writeback queue full")
        return dropped is not job

    async def _drop(self, job: WriteJob, reason: str) -> None:
        self.stats.dropped += 1
        job.status = "dropped"
        job.error = reason
        logger.warning(
            "Dropped indexing for conversation %s (%s); turns left for backfill",
            job.conversation_id,
            reason,
        )
        try:
            for pending in job.turns:
                if not pending.persisted:
                    await self.store.save(pending.turn)
                    pending.persisted = True
                    self.stats.turns_persisted += 1
        except StorageError as e:
            logger.error(
                "Could not persist turns of dropped job for conversation %s: %s",
                job.conversation_id,
                e,
            )
        finally:
            job.settled.set()
            job.done.set()

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.process(job)
            except Exception:
                logger.exception("Memory writer %d crashed on a job", index)
                job.status = "failed"
                job.settled.set()
                job.done.set()
            finally:
                self._queue.task_done()

    async def _attempt(self, step: str, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        for attempt in range(self.max_attempts):
            try:
                return await fn(*args)
            except (EmbeddingError, VectorStoreError) as e:
                if attempt < self.max_attempts - 1:
                    logger.warning(
                        "Writeback %s failed (attempt %d/%d): %s",
                        step,
                        attempt + 1,
                        self.max_attempts,
                        e,
                    )
                    await asyncio.sleep(self.backoff * (2**attempt))
                    continue
                raise
        raise RuntimeError("unreachable")  # pragma: no cover

    async def process(self, job: WriteJob) -> None:
        """Run one job: persist, embed missing vectors, upsert, flag as embedded."""
        for pending in job.turns:
            if pending.persisted:
                continue
            try:
                await self.store.save(pending.turn)
            except StorageError as e:
                job.status = "failed"
                job.error = str(e)
                self.stats.failed += 1
                logger.error(
                    "Could not persist %s turn %s for conversation %s: %s",
                    pending.turn.role,
                    pending.turn.id,
                    job.conversation_id,
                    e,
                )
                job.settled.set()
                job.done.set()
                return
            pending.persisted = True
            self.stats.turns_persisted += 1

        job.status = "persisted"
        job.settled.set()

        missing = [p for p in job.turns if p.vector is None]
        if missing:
            try:
                vectors = await self._attempt(
                    "embed", self.embeddings.embed_many, [p.turn.text for p in missing]
                )
                for pending, vector in zip(missing, vectors, strict=True):
                    pending.vector = vector
            except EmbeddingError as e:
                logger.error(
                    "Embedding failed for conversation %s, left for backfill: %s",
                    job.conversation_id,
                    e,
                )
                job.error = str(e)

        indexed: list[str] = []
        for pending in job.turns:
            if pending.vector is None:
                continue
            metadata = MemoryMetadata.for_turn(pending.turn, job.user_id)
            try:
                await self._attempt("upsert", self.ltm.upsert, pending.vector, metadata)
            except VectorStoreError as e:
                logger.error("Upsert failed for turn %s, left for backfill: %s", pending.turn.id, e)
                job.error = str(e)
                continue
            indexed.append(pending.turn.id)

        if indexed:
            try:
                await self.store.mark_embedded(indexed)
            except StorageError as e:
                # Vectors are upserted by deterministic id; a later backfill just overwrites them
                logger.warning("Could not flag turns as embedded: %s", e)
            self.stats.turns_indexed += len(indexed)

        if len(indexed) == len(job.turns):
            job.status = "completed"
            self.stats.completed += 1
        else:
            job.status = "failed"
            self.stats.failed += 1
        job.done.set()

    async def backfill(
        self, limit: int = 100, older_than: timedelta = timedelta(seconds=30)
    ) -> int:
        """Embed and index persisted turns that have no vector yet.

        Best-effort reconciliation; failures are logged and left for the next sweep.

        Args:
            limit: Maximum turns to process
            older_than: Skip very recent turns that in-flight jobs may still index

        Returns:
            Number of turns indexed
        """
        rows = await self.store.find_unembedded(limit=limit, older_than=older_than)
        indexed: list[str] = []

        for turn, user_id in rows:
            try:
                vector = await self.embeddings.embed(turn.text)
                await self.ltm.upsert(vector, MemoryMetadata.for_turn(turn, user_id))
            except (EmbeddingError, VectorStoreError) as e:
                logger.warning("Backfill skipped turn %s: %s", turn.id, e)
                continue
            indexed.append(turn.id)

        if indexed:
            await self.store.mark_embedded(indexed)
            self.stats.turns_backfilled += len(indexed)
            logger.info("Backfilled %d turn(s) into long-term memory", len(indexed))
        return len(indexed)

    async def _sweep(self) -> None:
        assert self.backfill_interval is not None
        while True:
            await asyncio.sleep(self.backfill_interval)
            try:
                await self.backfill()
            except StorageError as e:
                logger.warning("Backfill sweep failed: %s", e)
