"""LLM client protocol and data types."""

from dataclasses import dataclass
from typing import Protocol


@dataclass
class Message:
    """A message in an assembled completion context."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class CompletionResponse:
    """Response from LLM completion."""

    content: str
    finish_reason: str = "stop"


class LLMClient(Protocol):
    """Protocol for LLM client implementations."""

    async def complete(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResponse:
        """Generate a completion from the LLM.

        Args:
            messages: Ordered context (persona, memories, recent turns, current message)
            temperature: Sampling temperature override
            max_tokens: Maximum tokens to generate

        Returns:
            CompletionResponse with content
        """
        ...
