"""Factory function for creating LLM clients from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mnemos.llm.ollama import OllamaClient
from mnemos.llm.openai_compat import OpenAICompatibleClient

if TYPE_CHECKING:
    from mnemos.config.schema import MnemosConfig


def create_llm_client(config: MnemosConfig) -> OpenAICompatibleClient:
    """Create an LLM client based on configuration.

    Reads ``config.inference.backend`` and returns the appropriate client
    instance, configured from the corresponding backend-specific section.

    Args:
        config: Mnemos configuration.

    Returns:
        An LLM client for the configured backend.

    Raises:
        ValueError: If the backend is not recognised.
    """
    backend = config.inference.backend

    if backend == "ollama":
        return OllamaClient(
            model=config.model.name,
            base_url=config.inference.ollama.host + "/v1",
            timeout=config.inference.ollama.timeout,
            temperature=config.model.temperature,
        )
    elif backend == "openai":
        return OpenAICompatibleClient(
            model=config.model.name,
            base_url=config.inference.openai.base_url,
            api_key=config.inference.openai.api_key or "none",
            timeout=config.inference.openai.timeout,
            temperature=config.model.temperature,
        )
    else:
        raise ValueError(f"Unknown inference backend: {backend}")
