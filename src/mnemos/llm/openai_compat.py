"""Base client for OpenAI-compatible inference servers."""

from typing import Any

from openai import AsyncOpenAI

from mnemos.llm.client import CompletionResponse, Message


class OpenAICompatibleClient:
    """LLM client for any OpenAI-compatible inference server.

    OpenAI, Groq, vLLM and Ollama all expose OpenAI-compatible
    ``/v1/chat/completions`` endpoints. This class encapsulates the
    shared request/response logic so that backend-specific subclasses only
    need to supply config defaults.
    """

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: str = "none",
        timeout: int = 120,
        temperature: float = 0.7,
    ) -> None:
        """Initialise the client.

        Args:
            model: Model name served by the backend.
            base_url: OpenAI-compatible endpoint (must include ``/v1``).
            api_key: API key (many local backends ignore this but the SDK requires one).
            timeout: Request timeout in seconds.
            temperature: Default sampling temperature.
        """
        self.model = model
        self.temperature = temperature
        self.client = AsyncOpenAI(base_url=base_url, api_key=api_key, timeout=timeout)

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert internal Message format to OpenAI format."""
        return [{"role": msg.role, "content": msg.content} for msg in messages]

    async def complete(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        """Generate a completion.

        Args:
            messages: Ordered context
            temperature: Sampling temperature override
            max_tokens: Maximum tokens to generate

        Returns:
            CompletionResponse with content
        """
        params: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "temperature": temperature if temperature is not None else self.temperature,
        }

        if max_tokens:
            params["max_tokens"] = max_tokens

        response = await self.client.chat.completions.create(**params)

        choice = response.choices[0]
        return CompletionResponse(
            content=choice.message.content or "",
            finish_reason=choice.finish_reason or "stop",
        )
