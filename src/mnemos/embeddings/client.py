"""Embedding backend protocol.

Vectors are only comparable when they come from the same model at the
same dimension. A backend therefore reports a ``model_version`` that
changes whenever its output would stop being comparable with what is
already indexed, and :class:`~mnemos.embeddings.service.EmbeddingService`
pins it together with the dimension on first use.
"""

from typing import Protocol

from mnemos.errors import EmbeddingError


class EmbeddingClient(Protocol):
    """A batch embedding backend."""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts.

        Args:
            texts: Non-empty texts to embed

        Returns:
            One vector per input text, in input order

        Raises:
            EmbeddingError: If the backend returned an inconsistent batch
        """
        ...

    @property
    def dimension(self) -> int | None:
        """Vector length, or None until the backend has produced a vector."""
        ...

    @property
    def model_name(self) -> str:
        """Configured model name."""
        ...

    @property
    def model_version(self) -> str:
        """Exact model identity (name plus revision or digest) behind the vectors."""
        ...


def check_batch(model: str, texts: list[str], vectors: list[list[float]]) -> int:
    """Validate a backend response and return its dimension.

    Raises:
        EmbeddingError: If the count does not match the input or the
            vectors are empty or of mixed length
    """
    if len(vectors) != len(texts):
        raise EmbeddingError(f"{model} returned {len(vectors)} vector(s) for {len(texts)} text(s)")
    lengths = {len(v) for v in vectors}
    if 0 in lengths:
        raise EmbeddingError(f"{model} returned an empty vector")
    if len(lengths) > 1:
        raise EmbeddingError(f"{model} returned vectors of mixed dimension {sorted(lengths)}")
    return lengths.pop()
