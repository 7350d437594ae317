"""Error taxonomy for the memory and retrieval pipeline.

Enrichment failures (:class:`EmbeddingError`, :class:`VectorStoreError`)
degrade a turn to STM-only context. Primary-path failures
(:class:`StorageError` on the user turn, :class:`CompletionServiceError`)
abort the turn and are surfaced to the client.
"""


class MnemosError(Exception):
    """Base class for all mnemos errors."""


class AuthError(MnemosError):
    """Credential rejected; fatal for that connection attempt."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationError(MnemosError):
    """Malformed or unacceptable client payload."""

    def __init__(self, reason: str, conversation_id: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.conversation_id = conversation_id


class StorageError(MnemosError):
    """Message store unavailable or a write failed."""


class EmbeddingError(MnemosError):
    """Embedding generation failed or input was not embeddable."""


class VectorStoreError(MnemosError):
    """Vector index upsert, query, or delete failed."""


class CompletionServiceError(MnemosError):
    """Language-model call failed (timeout, quota, network)."""


class RateLimitError(MnemosError):
    """Inbound message rejected by the per-user throttle."""

    def __init__(self, retry_after_ms: int):
        super().__init__(f"Rate limit exceeded, retry after {retry_after_ms}ms")
        self.retry_after_ms = retry_after_ms
