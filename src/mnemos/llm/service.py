"""Completion service: the reply-generation boundary of the pipeline."""

import asyncio
import logging

from mnemos.errors import CompletionServiceError
from mnemos.llm.client import LLMClient, Message

logger = logging.getLogger(__name__)


class CompletionService:
    """Wraps an :class:`LLMClient` with a timeout and error normalisation.

    Any failure of the underlying client (timeout, quota, network, malformed
    response) is reported as :class:`CompletionServiceError` so the
    orchestrator has exactly one failure type to surface to the client.
    """

    def __init__(
        self,
        llm: LLMClient,
        timeout: float = 60.0,
        max_tokens: int | None = None,
    ):
        self.llm = llm
        self.timeout = timeout
        self.max_tokens = max_tokens

    async def complete(self, messages: list[Message]) -> str:
        """Generate reply text for an ordered context.

        Args:
            messages: Assembled context, persona first, current message last

        Returns:
            Reply text

        Raises:
            CompletionServiceError: On timeout, backend error, or an empty reply
        """
        try:
            response = await asyncio.wait_for(
                self.llm.complete(messages, max_tokens=self.max_tokens),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise CompletionServiceError(
                f"Completion timed out after {self.timeout:.0f}s"
            ) from e
        except Exception as e:
            raise CompletionServiceError(f"Completion failed: {e}") from e

        text = (response.content or "").strip()
        if not text:
            raise CompletionServiceError("Completion returned an empty reply")
        return text
