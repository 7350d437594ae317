"""Sentence-transformers embedding client (local, privacy-first)."""

import asyncio
from typing import Any

import numpy as np  # type: ignore[import-not-found]

from mnemos.embeddings.client import check_batch


class SentenceTransformerEmbedding:
    """Local embedding generation using sentence-transformers.

    This is the default embedding backend for mnemos:
    - Fully local execution (no API calls)
    - Deterministic for a fixed model version
    - Normalized output, so cosine similarity equals the dot product
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        device: str | None = None,
        cache_dir: str | None = None,
        normalize: bool = True,
        revision: str | None = None,
    ):
        """Initialize sentence-transformers client.

        Args:
            model_name: HuggingFace model identifier
            device: Device to run on ("cuda", "mps", "cpu", or None for auto)
            cache_dir: Directory to cache models (None uses default)
            normalize: L2-normalize embeddings
            revision: Model revision (branch, tag or commit) to pin; None = latest
        """
        self._model_name = model_name
        self._device = device
        self._cache_dir = cache_dir
        self._normalize = normalize
        self._revision = revision
        self._model: Any = None
        self._dimension: int | None = None

    def _load_model(self) -> None:
        """Load the sentence-transformers model (lazy initialization)."""
        if self._model is not None:
            return

        try:
            from sentence_transformers import SentenceTransformer  # type: ignore[import-not-found]
        except ImportError as e:
            msg = (
                "sentence-transformers is required for local embeddings. "
                "Install with: pip install 'mnemos[local]'"
            )
            raise ImportError(msg) from e

        self._model = SentenceTransformer(
            self._model_name,
            device=self._device,
            cache_folder=self._cache_dir,
            revision=self._revision,
        )

        self._dimension = self._model.get_sentence_embedding_dimension()

    def _encode(self, texts: list[str]) -> Any:
        return self._model.encode(texts, normalize_embeddings=self._normalize)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors
        """
        if not texts:
            return []

        self._load_model()

        # Model inference is blocking; keep it off the event loop
        loop = asyncio.get_running_loop()
        embeddings_raw = await loop.run_in_executor(None, self._encode, texts)

        if isinstance(embeddings_raw, np.ndarray):
            embeddings: list[list[float]] = embeddings_raw.tolist()
        else:
            embeddings = [e.tolist() if isinstance(e, np.ndarray) else list(e) for e in embeddings_raw]

        check_batch(self._model_name, texts, embeddings)
        return embeddings

    @property
    def dimension(self) -> int | None:
        """Vector length reported by the model, None before it is loaded."""
        return self._dimension

    @property
    def model_name(self) -> str:
        """Get the name of the embedding model."""
        return self._model_name

    @property
    def model_version(self) -> str:
        suffix = "" if self._normalize else ":raw"
        return f"{self._model_name}@{self._revision or 'latest'}{suffix}"
