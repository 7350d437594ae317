"""Tests for LLM and embedding client factories."""

import pytest

from mnemos.config.schema import InferenceConfig, MnemosConfig
from mnemos.embeddings.factory import create_embedding_client
from mnemos.embeddings.ollama import OllamaEmbedding
from mnemos.embeddings.sentence_transformer import SentenceTransformerEmbedding
from mnemos.llm.factory import create_llm_client
from mnemos.llm.ollama import OllamaClient
from mnemos.llm.openai_compat import OpenAICompatibleClient


def test_inference_config_default_backend():
    assert InferenceConfig().backend == "ollama"


def test_factory_creates_ollama_client():
    config = MnemosConfig()
    config.model.name = "llama3.2"

    client = create_llm_client(config)

    assert isinstance(client, OllamaClient)
    assert client.model == "llama3.2"
    assert str(client.client.base_url).rstrip("/") == "http://localhost:11434/v1"


def test_factory_creates_openai_client():
    config = MnemosConfig()
    config.inference.backend = "openai"
    config.inference.openai.base_url = "https://api.groq.com/openai/v1"
    config.inference.openai.api_key = "gsk-test"
    config.model.temperature = 0.3

    client = create_llm_client(config)

    assert type(client) is OpenAICompatibleClient
    assert client.temperature == 0.3
    assert client.client.api_key == "gsk-test"


def test_factory_rejects_unknown_backend():
    config = MnemosConfig()
    config.inference.backend = "llamacpp"  # type: ignore[assignment]

    with pytest.raises(ValueError, match="Unknown inference backend"):
        create_llm_client(config)


def test_embedding_factory_defaults_to_sentence_transformers():
    client = create_embedding_client(MnemosConfig())

    assert isinstance(client, SentenceTransformerEmbedding)
    assert client.model_name == "sentence-transformers/all-MiniLM-L6-v2"


def test_embedding_factory_ollama():
    config = MnemosConfig()
    config.memory.vector_store.embedding_provider = "ollama"
    config.memory.vector_store.embedding_model = "nomic-embed-text"

    client = create_embedding_client(config)

    assert isinstance(client, OllamaEmbedding)
    assert client.model_name == "nomic-embed-text"
