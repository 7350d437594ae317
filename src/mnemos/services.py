"""Build the memory pipeline from configuration."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from pathlib import Path

from mnemos.config.schema import MnemosConfig
from mnemos.embeddings.client import EmbeddingClient
from mnemos.embeddings.factory import create_embedding_client
from mnemos.embeddings.service import EmbeddingService
from mnemos.gateway.auth import CredentialVerifier, JWTCredentialVerifier
from mnemos.gateway.gateway import ConnectionGateway
from mnemos.gateway.rate_limit import RateLimiter
from mnemos.llm.client import LLMClient
from mnemos.llm.factory import create_llm_client
from mnemos.llm.service import CompletionService
from mnemos.memory.ltm import LongTermMemory
from mnemos.memory.orchestrator import RetrievalOrchestrator
from mnemos.memory.stm import ShortTermMemory
from mnemos.memory.store import MessageStore
from mnemos.memory.writer import BackgroundMemoryWriter
from mnemos.vector.memory import InMemoryVectorStore
from mnemos.vector.store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every long-lived component of a running server."""

    config: MnemosConfig
    store: MessageStore
    embeddings: EmbeddingService
    ltm: LongTermMemory
    stm: ShortTermMemory
    completion: CompletionService
    writer: BackgroundMemoryWriter
    orchestrator: RetrievalOrchestrator
    verifier: CredentialVerifier
    rate_limiter: RateLimiter | None
    gateway: ConnectionGateway

    async def start(self) -> None:
        await self.writer.start()

    async def stop(self, timeout: float = 10.0) -> None:
        """Shut down in dependency order.

        In-flight pipelines finish first so their writeback reaches the
        writer, then the writer drains its queue.
        """
        await self.gateway.shutdown(timeout=timeout)
        await self.writer.stop(drain=True, timeout=timeout)


def create_vector_store(config: MnemosConfig) -> VectorStore:
    """Create the configured vector store backend."""
    vs = config.memory.vector_store

    if vs.backend == "memory":
        return InMemoryVectorStore()

    from mnemos.vector.chromadb import ChromaDBVectorStore

    return ChromaDBVectorStore(
        collection_name=vs.collection_name,
        persist_directory=vs.persist_directory,
    )


def create_verifier(config: MnemosConfig) -> JWTCredentialVerifier:
    secret = config.auth.jwt_secret
    if not secret:
        logger.warning(
            "No JWT secret configured (auth.jwt_secret or MNEMOS_JWT_SECRET); "
            "using a random secret, issued tokens will not survive a restart"
        )
        secret = secrets.token_urlsafe(32)
        config.auth.jwt_secret = secret
    return JWTCredentialVerifier(secret=secret, algorithm=config.auth.algorithm)


def build_services(
    config: MnemosConfig,
    *,
    llm: LLMClient | None = None,
    embedding_client: EmbeddingClient | None = None,
    vector_store: VectorStore | None = None,
    verifier: CredentialVerifier | None = None,
) -> Services:
    """Wire the pipeline together.

    Args:
        config: Mnemos configuration
        llm: LLM client override (defaults to the configured backend)
        embedding_client: Embedding client override
        vector_store: Vector store override
        verifier: Credential verifier override

    Returns:
        Services ready to be started
    """
    mem = config.memory

    store = MessageStore(
        Path(mem.storage_path).expanduser(),
        max_attempts=mem.storage_retries,
        backoff=mem.storage_backoff,
    )
    embeddings = EmbeddingService(
        embedding_client or create_embedding_client(config),
        dimension=mem.vector_store.dimension,
    )
    ltm = LongTermMemory(
        vector_store or create_vector_store(config),
        overfetch=mem.retrieval.overfetch,
    )
    stm = ShortTermMemory(store, window=mem.stm_window)
    completion = CompletionService(
        llm or create_llm_client(config),
        timeout=config.model.completion_timeout,
        max_tokens=config.model.max_tokens,
    )
    writer = BackgroundMemoryWriter(
        store,
        embeddings,
        ltm,
        queue_size=mem.writer.queue_size,
        overflow=mem.writer.overflow,
        workers=mem.writer.workers,
        max_attempts=mem.writer.max_attempts,
        backoff=mem.writer.backoff,
        backfill_interval=mem.writer.backfill_interval,
    )
    orchestrator = RetrievalOrchestrator(
        store=store,
        stm=stm,
        embeddings=embeddings,
        ltm=ltm,
        completion=completion,
        writer=writer,
        persona=config.assistant.persona,
        top_k=mem.retrieval.top_k,
        min_similarity=mem.retrieval.min_similarity,
        token_budget=mem.context_token_budget,
        writeback_wait_timeout=mem.retrieval.writeback_wait_timeout,
    )

    rate_limiter = None
    if config.rate_limit.enabled:
        rate_limiter = RateLimiter(
            max_messages=config.rate_limit.max_messages,
            window_ms=config.rate_limit.window_ms,
            strategy=config.rate_limit.strategy,
        )

    verifier = verifier or create_verifier(config)
    gateway = ConnectionGateway(verifier, orchestrator, rate_limiter=rate_limiter)

    return Services(
        config=config,
        store=store,
        embeddings=embeddings,
        ltm=ltm,
        stm=stm,
        completion=completion,
        writer=writer,
        orchestrator=orchestrator,
        verifier=verifier,
        rate_limiter=rate_limiter,
        gateway=gateway,
    )
