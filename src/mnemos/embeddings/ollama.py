"""Ollama embedding backend (batch ``/api/embed`` endpoint)."""

import logging

import httpx

from mnemos.embeddings.client import check_batch
from mnemos.errors import EmbeddingError

logger = logging.getLogger(__name__)


class OllamaEmbedding:
    """Embeddings served by a local Ollama instance.

    Useful when Ollama already serves the completion model. The model
    digest is looked up once from ``/api/tags`` so that pulling a new
    build of the same tag shows up as a different ``model_version``.
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        host: str = "http://localhost:11434",
        timeout: int = 30,
    ):
        """Initialize Ollama embedding client.

        Args:
            model: Ollama model tag (e.g., "nomic-embed-text")
            host: Ollama server URL
            timeout: Request timeout in seconds
        """
        self._model = model
        self._host = host.rstrip("/")
        self._timeout = timeout
        self._dimension: int | None = None
        self._digest: str | None = None

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch with a single request."""
        if not texts:
            return []

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            if self._digest is None:
                self._digest = await self._lookup_digest(client)

            response = await client.post(
                f"{self._host}/api/embed",
                json={"model": self._model, "input": texts},
            )
            response.raise_for_status()
            vectors = response.json().get("embeddings")

        if not isinstance(vectors, list):
            raise EmbeddingError(f"{self._model} response has no embeddings")

        dimension = check_batch(self._model, texts, vectors)
        if self._dimension is not None and dimension != self._dimension:
            raise EmbeddingError(
                f"{self._model} switched from dimension {self._dimension} to {dimension}"
            )
        self._dimension = dimension
        return vectors

    async def _lookup_digest(self, client: httpx.AsyncClient) -> str:
        """Digest of the local model build, or "" if the server does not list it."""
        try:
            response = await client.get(f"{self._host}/api/tags")
            response.raise_for_status()
            models = response.json().get("models", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Could not list Ollama models: %s", e)
            return ""

        names = {self._model, f"{self._model}:latest"}
        for entry in models:
            if entry.get("name") in names or entry.get("model") in names:
                return entry.get("digest", "")
        return ""

    @property
    def dimension(self) -> int | None:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def model_version(self) -> str:
        if self._digest:
            return f"{self._model}@{self._digest[:12]}"
        return self._model
