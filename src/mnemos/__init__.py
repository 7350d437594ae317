"""Mnemos - Memory-grounded conversational assistant backend.

Mnemos grounds every reply in two kinds of context: a bounded window of
recent turns read from the persisted conversation log (short-term memory)
and semantically related older turns recalled from a vector index
(long-term memory). Memory writeback happens off the reply path.

Key modules:

- :mod:`mnemos.memory` - Message store, STM/LTM providers, retrieval orchestrator, background writer
- :mod:`mnemos.embeddings` - Embedding service (sentence-transformers, Ollama)
- :mod:`mnemos.vector` - Vector index backends (ChromaDB, in-process)
- :mod:`mnemos.llm` - Completion service over OpenAI-compatible endpoints
- :mod:`mnemos.gateway` - Credential verification, sessions, rate limiting
- :mod:`mnemos.channels` - WebSocket transport
- :mod:`mnemos.server` - FastAPI application and conversation routes
"""

__version__ = "0.1.0"
