"""LLM client implementations and the completion service."""

from .client import CompletionResponse, LLMClient, Message
from .factory import create_llm_client
from .ollama import OllamaClient
from .openai_compat import OpenAICompatibleClient
from .service import CompletionService

__all__ = [
    "CompletionResponse",
    "CompletionService",
    "LLMClient",
    "Message",
    "OllamaClient",
    "OpenAICompatibleClient",
    "create_llm_client",
]
