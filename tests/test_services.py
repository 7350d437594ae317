"""Tests for wiring the pipeline from configuration."""

import asyncio

import pytest

from mnemos.gateway.auth import issue_token
from mnemos.services import build_services, create_vector_store, create_verifier
from mnemos.vector.memory import InMemoryVectorStore


def test_create_vector_store_memory(test_config):
    assert isinstance(create_vector_store(test_config), InMemoryVectorStore)


@pytest.mark.asyncio
async def test_create_verifier_uses_configured_secret(test_config):
    verifier = create_verifier(test_config)

    identity = await verifier.verify(issue_token("alice", "test-secret"))
    assert identity.user_id == "alice"


@pytest.mark.asyncio
async def test_create_verifier_generates_secret_when_missing(test_config, caplog):
    test_config.auth.jwt_secret = None

    verifier = create_verifier(test_config)

    assert test_config.auth.jwt_secret
    assert "random secret" in caplog.text
    token = issue_token("bob", test_config.auth.jwt_secret)
    identity = await verifier.verify(token)
    assert identity.user_id == "bob"


def test_build_services_wires_config(test_config, fake_llm, embedding_client):
    test_config.memory.stm_window = 4
    test_config.memory.retrieval.top_k = 2
    test_config.memory.context_token_budget = 2048

    services = build_services(test_config, llm=fake_llm, embedding_client=embedding_client)

    assert services.stm.window == 4
    assert services.orchestrator.top_k == 2
    assert services.orchestrator.token_budget == 2048
    assert services.orchestrator.persona == test_config.assistant.persona
    assert services.orchestrator.writer is services.writer
    assert services.gateway.orchestrator is services.orchestrator
    assert services.rate_limiter is not None
    assert services.completion.llm is fake_llm


def test_build_services_without_rate_limit(test_config, fake_llm, embedding_client):
    test_config.rate_limit.enabled = False

    services = build_services(test_config, llm=fake_llm, embedding_client=embedding_client)

    assert services.rate_limiter is None
    assert services.gateway.rate_limiter is None


@pytest.mark.asyncio
async def test_services_start_and_stop(test_config, fake_llm, embedding_client):
    services = build_services(test_config, llm=fake_llm, embedding_client=embedding_client)

    await services.start()
    assert services.writer.running

    await services.stop()
    assert not services.writer.running


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_replies(test_config, fake_llm, embedding_client):
    fake_llm.delay = 0.2
    services = build_services(test_config, llm=fake_llm, embedding_client=embedding_client)
    await services.start()

    frames = []

    async def send(frame):
        frames.append(frame)

    session = await services.gateway.connect(issue_token("alice", "test-secret"), send)
    task = await services.gateway.dispatch(
        session, {"type": "user-message", "conversationId": "c-1", "content": "hello"}
    )
    await asyncio.sleep(0.05)

    # Same order as the app shutdown: connections close, then services stop
    services.gateway.disconnect(session)
    await services.stop()

    assert task.done()
    outcome = task.result()
    assert outcome.status == "replied"
    assert outcome.emitted is False
    assert outcome.job.status == "completed"
    assert [t.role for t in await services.store.find("c-1")] == ["user", "assistant"]
    assert services.writer.pending == 0
    assert services.gateway.in_flight == 0
    assert frames == []
