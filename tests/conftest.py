"""Pytest configuration and shared fixtures."""

import asyncio
import hashlib
import re
from typing import Any

import numpy as np
import pytest

from mnemos.config.schema import MnemosConfig
from mnemos.embeddings.service import EmbeddingService
from mnemos.gateway.session import ConnectionSession
from mnemos.llm.client import CompletionResponse, Message
from mnemos.llm.service import CompletionService
from mnemos.memory.ltm import LongTermMemory
from mnemos.memory.orchestrator import RetrievalOrchestrator
from mnemos.memory.stm import ShortTermMemory
from mnemos.memory.store import MessageStore
from mnemos.memory.writer import BackgroundMemoryWriter
from mnemos.vector.memory import InMemoryVectorStore

PERSONA = "You are a test assistant."

# One axis per topic; texts sharing a topic land close together
TOPICS = {
    "color": {"color", "colour", "blue", "red", "green"},
    "weather": {"weather", "rain", "sunny", "forecast"},
    "food": {"pizza", "pasta", "dinner", "lunch", "eat"},
    "music": {"music", "guitar", "song", "jazz"},
    "work": {"work", "meeting", "deadline", "office"},
    "sport": {"football", "tennis", "run", "gym"},
    "travel": {"travel", "flight", "paris", "trip"},
    "movie": {"movie", "film", "cinema", "actor"},
}
NOISE_DIMS = 8


class KeywordEmbedding:
    """Deterministic embedding stub mapping topic keywords to fixed axes."""

    def __init__(self) -> None:
        self.calls = 0

    def vector(self, text: str) -> list[float]:
        words = re.findall(r"[a-z']+", text.lower())
        vec = np.zeros(len(TOPICS) + NOISE_DIMS)
        for i, keywords in enumerate(TOPICS.values()):
            vec[i] = sum(1.0 for w in words if w in keywords)
        for w in words:
            digest = hashlib.md5(w.encode()).digest()
            vec[len(TOPICS) + digest[0] % NOISE_DIMS] += 0.15
        norm = np.linalg.norm(vec)
        return (vec / norm).tolist() if norm else vec.tolist()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        return [self.vector(t) for t in texts]

    @property
    def dimension(self) -> int:
        return len(TOPICS) + NOISE_DIMS

    @property
    def model_name(self) -> str:
        return "keyword-stub"

    @property
    def model_version(self) -> str:
        return "keyword-stub@1"


class FakeLLM:
    """LLM stand-in recording every context it is given."""

    def __init__(self, reply: Any = "Sure thing.") -> None:
        self.reply = reply
        self.calls: list[list[Message]] = []
        self.error: Exception | None = None
        self.delay = 0.0

    async def complete(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        self.calls.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        text = self.reply(messages) if callable(self.reply) else self.reply
        return CompletionResponse(content=text)


class Outbox:
    """Collects frames sent to a session."""

    def __init__(self) -> None:
        self.frames: list[dict[str, Any]] = []

    async def __call__(self, frame: dict[str, Any]) -> None:
        self.frames.append(frame)

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [f for f in self.frames if f["type"] == event_type]


@pytest.fixture
def default_config() -> MnemosConfig:
    """Provide a default configuration for tests."""
    return MnemosConfig()


@pytest.fixture
def test_config(tmp_path) -> MnemosConfig:
    """Configuration pointing every store at a temporary directory."""
    config = MnemosConfig()
    config.memory.storage_path = str(tmp_path / "memory.db")
    config.memory.vector_store.backend = "memory"
    config.memory.writer.backoff = 0.0
    config.memory.storage_backoff = 0.0
    config.auth.jwt_secret = "test-secret"
    config.assistant.persona = PERSONA
    return config


@pytest.fixture
def embedding_client() -> KeywordEmbedding:
    return KeywordEmbedding()


@pytest.fixture
def embeddings(embedding_client) -> EmbeddingService:
    return EmbeddingService(embedding_client)


@pytest.fixture
def store(tmp_path) -> MessageStore:
    return MessageStore(tmp_path / "memory.db", backoff=0.0)


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def ltm(vector_store) -> LongTermMemory:
    return LongTermMemory(vector_store)


@pytest.fixture
def stm(store) -> ShortTermMemory:
    return ShortTermMemory(store, window=10)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
async def writer(store, embeddings, ltm):
    writer = BackgroundMemoryWriter(store, embeddings, ltm, backoff=0.0)
    await writer.start()
    yield writer
    await writer.stop()


@pytest.fixture
def orchestrator(store, stm, embeddings, ltm, fake_llm, writer) -> RetrievalOrchestrator:
    return RetrievalOrchestrator(
        store=store,
        stm=stm,
        embeddings=embeddings,
        ltm=ltm,
        completion=CompletionService(fake_llm, timeout=5.0),
        writer=writer,
        persona=PERSONA,
        top_k=3,
    )


@pytest.fixture
def make_session():
    """Factory for sessions whose outbound frames are recorded."""

    def _make(user_id: str = "alice") -> tuple[ConnectionSession, Outbox]:
        outbox = Outbox()
        return ConnectionSession(user_id=user_id, send=outbox), outbox

    return _make
