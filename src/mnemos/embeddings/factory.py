"""Factory function for creating embedding clients from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mnemos.embeddings.ollama import OllamaEmbedding
from mnemos.embeddings.sentence_transformer import SentenceTransformerEmbedding

if TYPE_CHECKING:
    from mnemos.config.schema import MnemosConfig
    from mnemos.embeddings.client import EmbeddingClient


def create_embedding_client(config: MnemosConfig) -> EmbeddingClient:
    """Create an embedding client based on ``memory.vector_store.embedding_provider``.

    Args:
        config: Mnemos configuration.

    Returns:
        An embedding client for the configured provider.

    Raises:
        ValueError: If the provider is not recognised.
    """
    vs = config.memory.vector_store

    if vs.embedding_provider == "sentence-transformers":
        return SentenceTransformerEmbedding(model_name=vs.embedding_model)
    elif vs.embedding_provider == "ollama":
        return OllamaEmbedding(
            model=vs.embedding_model,
            host=config.inference.ollama.host,
            timeout=config.inference.ollama.timeout,
        )
    else:
        raise ValueError(f"Unknown embedding provider: {vs.embedding_provider}")
