"""Tests for sentence-transformers embedding client."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from mnemos.embeddings.sentence_transformer import SentenceTransformerEmbedding
from mnemos.errors import EmbeddingError


@pytest.fixture
def embedding_client():
    """Create a client with a stubbed model so no weights are downloaded."""
    client = SentenceTransformerEmbedding(
        model_name="sentence-transformers/all-MiniLM-L6-v2",
        device="cpu",
    )
    model = MagicMock()
    model.encode.side_effect = lambda texts, normalize_embeddings: np.array(
        [[float(len(t)), 1.0, 0.0] for t in texts]
    )
    client._model = model
    client._dimension = 3
    return client


@pytest.mark.asyncio
async def test_embed_returns_float_lists(embedding_client):
    embeddings = await embedding_client.embed(["hello"])

    assert embeddings == [[5.0, 1.0, 0.0]]
    assert all(isinstance(x, float) for x in embeddings[0])


@pytest.mark.asyncio
async def test_embed_requests_normalized_vectors(embedding_client):
    await embedding_client.embed(["a", "bb"])

    embedding_client._model.encode.assert_called_once_with(["a", "bb"], normalize_embeddings=True)


@pytest.mark.asyncio
async def test_embed_empty_list(embedding_client):
    assert await embedding_client.embed([]) == []
    embedding_client._model.encode.assert_not_called()


@pytest.mark.asyncio
async def test_inconsistent_batch_raises(embedding_client):
    embedding_client._model.encode.side_effect = lambda texts, normalize_embeddings: [
        np.array([1.0, 0.0]),
        np.array([1.0]),
    ]

    with pytest.raises(EmbeddingError, match="mixed dimension"):
        await embedding_client.embed(["a", "b"])


def test_dimension_and_model_name(embedding_client):
    assert embedding_client.dimension == 3
    assert embedding_client.model_name == "sentence-transformers/all-MiniLM-L6-v2"


def test_model_version_tracks_revision():
    pinned = SentenceTransformerEmbedding(model_name="all-MiniLM-L6-v2", revision="v1.0")
    raw = SentenceTransformerEmbedding(model_name="all-MiniLM-L6-v2", normalize=False)

    assert pinned.model_version == "all-MiniLM-L6-v2@v1.0"
    assert raw.model_version == "all-MiniLM-L6-v2@latest:raw"
    assert pinned.dimension is None
