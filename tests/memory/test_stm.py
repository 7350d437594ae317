"""Tests for the short-term memory window."""

import pytest

from mnemos.memory.stm import ShortTermMemory


@pytest.fixture
async def conversation(store):
    return await store.create_conversation("alice", conversation_id="c-1")


@pytest.mark.asyncio
async def test_round_trip_single_turn(store, stm, conversation):
    await store.append("c-1", "user", "hi")

    turns = await stm.recent_turns("c-1", 1)
    assert len(turns) == 1
    assert turns[0].text == "hi"
    assert turns[0].role == "user"


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [1, 4, 10])
async def test_returns_all_turns_when_under_window(store, stm, conversation, count):
    appended = [await store.append("c-1", "user", f"message {i}") for i in range(count)]

    turns = await stm.recent_turns("c-1", 10)
    assert [t.id for t in turns] == [t.id for t in appended]


@pytest.mark.asyncio
async def test_window_keeps_newest_in_chronological_order(store, stm, conversation):
    for i in range(15):
        await store.append("c-1", "user" if i % 2 == 0 else "assistant", f"message {i}")

    turns = await stm.recent_turns("c-1", 5)
    assert [t.text for t in turns] == [f"message {i}" for i in range(10, 15)]


@pytest.mark.asyncio
async def test_excluded_turns_do_not_count(store, stm, conversation):
    for i in range(3):
        await store.append("c-1", "user", f"old {i}")
    current = await store.append("c-1", "user", "current")

    turns = await stm.recent_turns("c-1", 2, exclude_ids={current.id})
    assert [t.text for t in turns] == ["old 1", "old 2"]


@pytest.mark.asyncio
async def test_default_window(store, conversation):
    stm = ShortTermMemory(store, window=2)
    for i in range(4):
        await store.append("c-1", "user", f"m{i}")

    assert [t.text for t in await stm.recent_turns("c-1")] == ["m2", "m3"]


@pytest.mark.asyncio
async def test_empty_and_zero_window(stm, conversation):
    assert await stm.recent_turns("c-1") == []
    assert await stm.recent_turns("c-1", 0) == []


def test_window_must_be_positive(store):
    with pytest.raises(ValueError):
        ShortTermMemory(store, window=0)
