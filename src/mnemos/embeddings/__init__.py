"""Embedding generation for long-term memory."""

from mnemos.embeddings.client import EmbeddingClient
from mnemos.embeddings.factory import create_embedding_client
from mnemos.embeddings.service import EmbeddingService
from mnemos.embeddings.sentence_transformer import SentenceTransformerEmbedding

__all__ = [
    "EmbeddingClient",
    "EmbeddingService",
    "SentenceTransformerEmbedding",
    "create_embedding_client",
]
