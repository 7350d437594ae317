"""Utility functions for memory management."""

from mnemos.llm.client import Message

# Per-message framing overhead (role markers, separators)
MESSAGE_OVERHEAD_TOKENS = 4


def estimate_text_tokens(text: str) -> int:
    """Estimate token count for a piece of text.

    Uses a simple heuristic: ~4 characters per token.
    """
    return (len(text) + 3) // 4


def estimate_tokens(message: Message) -> int:
    """Estimate token count for a message, including framing overhead.

    Args:
        message: Message to estimate tokens for

    Returns:
        Estimated token count
    """
    return estimate_text_tokens(message.content or "") + MESSAGE_OVERHEAD_TOKENS


def estimate_total_tokens(messages: list[Message]) -> int:
    """Estimate total token count for a list of messages.

    Args:
        messages: List of messages

    Returns:
        Total estimated token count
    """
    return sum(estimate_tokens(msg) for msg in messages)
