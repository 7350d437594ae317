"""Pydantic models for mnemos.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_PERSONA = (
    "You are Mnemos, a warm and direct conversational assistant. "
    "Talk like a thoughtful friend: short sentences, plain words, no corporate tone. "
    "You may be given memories from earlier conversations with this user. "
    "Use them when they are relevant and never invent details they do not contain. "
    "If a request is unclear, ask one short clarifying question."
)


class ModelConfig(BaseModel):
    """Language model configuration."""

    name: str = Field(default="llama-3.1-8b-instant", description="Model name served by the backend")
    temperature: float = Field(default=0.7, description="Sampling temperature", ge=0.0, le=2.0)
    max_tokens: int | None = Field(
        default=None, description="Maximum tokens to generate per reply", ge=1
    )
    completion_timeout: float = Field(
        default=60.0, description="Seconds before a completion call is abandoned", gt=0
    )


class OllamaConfig(BaseModel):
    """Ollama server configuration."""

    host: str = Field(default="http://localhost:11434", description="Ollama server URL")
    timeout: int = Field(default=120, description="Request timeout in seconds", ge=1)


class OpenAIConfig(BaseModel):
    """Any OpenAI-compatible chat completion endpoint (OpenAI, Groq, vLLM, ...)."""

    base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI-compatible endpoint (must include /v1)",
    )
    api_key: str | None = Field(default=None, description="API key for the endpoint")
    timeout: int = Field(default=120, description="Request timeout in seconds", ge=1)


class InferenceConfig(BaseModel):
    """Inference backend configuration."""

    backend: Literal["ollama", "openai"] = Field(
        default="ollama",
        description="Inference backend to use",
    )
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)


class AssistantConfig(BaseModel):
    """Assistant behaviour configuration."""

    persona: str = Field(
        default=DEFAULT_PERSONA,
        description="Persona preamble placed first in every assembled context",
    )


class VectorStoreConfig(BaseModel):
    """Vector store configuration for long-term memory."""

    backend: Literal["chromadb", "memory"] = Field(
        default="chromadb",
        description="Vector store backend ('memory' keeps vectors in-process, for development)",
    )
    embedding_provider: Literal["sentence-transformers", "ollama"] = Field(
        default="sentence-transformers",
        description="Embedding provider: 'sentence-transformers' (local) or 'ollama'",
    )
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Embedding model name",
    )
    dimension: int | None = Field(
        default=None,
        description="Expected embedding dimension (None = learned from the first vector)",
        ge=1,
    )
    persist_directory: str | None = Field(
        default="~/.mnemos/vectors",
        description="Directory for persistent vector storage (None = in-memory)",
    )
    collection_name: str = Field(
        default="mnemos_memories",
        description="Name of the vector store collection",
    )


class RetrievalConfig(BaseModel):
    """Long-term memory retrieval configuration."""

    top_k: int = Field(
        default=3,
        description="Number of long-term memories to retrieve per turn",
        ge=1,
        le=20,
    )
    min_similarity: float | None = Field(
        default=None,
        description="Minimum cosine similarity for a memory to be used (None = no threshold)",
        ge=-1.0,
        le=1.0,
    )
    overfetch: int = Field(
        default=2,
        description="Multiplier on top_k when querying the index, before ranking and filtering",
        ge=1,
        le=10,
    )
    writeback_wait_timeout: float = Field(
        default=2.0,
        description="Seconds to wait for the previous reply's writeback before reading STM",
        ge=0.0,
    )


class WriterConfig(BaseModel):
    """Background memory writer configuration."""

    queue_size: int = Field(default=256, description="Maximum queued writeback jobs", ge=1)
    overflow: Literal["reject_newest", "drop_oldest"] = Field(
        default="reject_newest",
        description="Backpressure policy when the queue is full",
    )
    workers: int = Field(default=2, description="Concurrent writeback workers", ge=1, le=32)
    max_attempts: int = Field(
        default=3, description="Attempts per write step before giving up", ge=1, le=10
    )
    backoff: float = Field(
        default=0.1, description="Base backoff in seconds between attempts", ge=0.0
    )
    backfill_interval: float | None = Field(
        default=None,
        description="Seconds between reconciliation sweeps for unembedded turns (None = off)",
        gt=0,
    )


class MemoryConfig(BaseModel):
    """Conversation memory configuration."""

    storage_path: str = Field(
        default="~/.mnemos/memory.db",
        description="Path to SQLite database for the conversation log",
    )
    stm_window: int = Field(
        default=10,
        description="Number of recent turns (N) placed in short-term context",
        ge=1,
        le=100,
    )
    context_token_budget: int = Field(
        default=4096,
        description="Maximum estimated tokens in an assembled context",
        ge=256,
        le=128000,
    )
    storage_retries: int = Field(
        default=3, description="Attempts for a message store operation", ge=1, le=10
    )
    storage_backoff: float = Field(
        default=0.05, description="Base backoff in seconds between store attempts", ge=0.0
    )
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    writer: WriterConfig = Field(default_factory=WriterConfig)


class RateLimitConfig(BaseModel):
    """Per-user inbound message throttle."""

    enabled: bool = Field(default=True, description="Enable per-user rate limiting")
    max_messages: int = Field(default=10, description="Messages allowed per window", ge=1)
    window_ms: int = Field(
        default=60000,
        description="Window length in milliseconds (whole seconds only)",
        ge=1000,
        multiple_of=1000,
    )
    strategy: Literal["fixed-window", "moving-window"] = Field(
        default="fixed-window",
        description="Rate limiting strategy",
    )


class AuthConfig(BaseModel):
    """Credential verification configuration."""

    jwt_secret: str | None = Field(
        default=None,
        description="HMAC secret for signed credentials (falls back to MNEMOS_JWT_SECRET)",
    )
    algorithm: Literal["HS256", "HS384", "HS512"] = Field(default="HS256")
    token_ttl_minutes: int = Field(
        default=60, description="Lifetime of issued development tokens", ge=1
    )
    cookie_name: str = Field(default="token", description="Cookie carrying the credential")


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins (use ['*'] for development only)",
    )


class MnemosConfig(BaseModel):
    """Root configuration schema for Mnemos."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
