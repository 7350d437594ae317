"""Embedding service: validated text-to-vector conversion."""

import logging

from mnemos.embeddings.client import EmbeddingClient
from mnemos.errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Validating front for an :class:`EmbeddingClient`.

    Rejects empty input, pins the deployment dimension D and the backend's
    model version on the first vector (the dimension may also be fixed in
    configuration) and reports every backend failure as
    :class:`EmbeddingError`. A later change of either means new vectors
    would not be comparable with the index, so it is an error too.
    """

    def __init__(self, client: EmbeddingClient, dimension: int | None = None):
        self.client = client
        self._dimension = dimension
        self._model_version: str | None = None

    @property
    def dimension(self) -> int | None:
        """Vector dimension D, or None until the first embedding is produced."""
        return self._dimension

    @property
    def model_name(self) -> str:
        return self.client.model_name

    @property
    def model_version(self) -> str | None:
        """Model version the deployment is pinned to, None before the first embedding."""
        return self._model_version

    async def embed(self, text: str) -> list[float]:
        """Embed one text.

        Args:
            text: Text to embed

        Returns:
            Vector of length D

        Raises:
            EmbeddingError: On empty input, backend failure, or a dimension
                or model mismatch
        """
        return (await self.embed_many([text]))[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts in one backend call."""
        if any(not t or not t.strip() for t in texts):
            raise EmbeddingError("Cannot embed empty text")
        if not texts:
            return []

        try:
            vectors = await self.client.embed(texts)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Embedding failed: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding backend returned {len(vectors)} vector(s) for {len(texts)} text(s)"
            )
        self._check_model()
        return [self._check_dimension(v) for v in vectors]

    def _check_model(self) -> None:
        version = self.client.model_version
        if self._model_version is None:
            self._model_version = version
            logger.info("Embedding model pinned to %s", version)
        elif version != self._model_version:
            raise EmbeddingError(
                f"Embedding model changed from {self._model_version} to {version}; "
                "new vectors would not be comparable with the index"
            )

    def _check_dimension(self, vector: list[float]) -> list[float]:
        if not vector:
            raise EmbeddingError("Embedding backend returned an empty vector")
        if self._dimension is None:
            self._dimension = len(vector)
            logger.info("Embedding dimension pinned to %d (%s)", self._dimension, self.model_name)
        elif len(vector) != self._dimension:
            raise EmbeddingError(
                f"Embedding dimension {len(vector)} does not match deployment dimension "
                f"{self._dimension}"
            )
        return [float(x) for x in vector]
