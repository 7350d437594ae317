"""Tests for context assembly under a token budget."""

from mnemos.memory.context import MEMORY_HEADER, assemble_context
from mnemos.memory.schema import MemoryHit, MemoryMetadata, TurnRecord
from mnemos.memory.utils import estimate_text_tokens


def _hit(text: str, score: float, role: str = "user") -> MemoryHit:
    return MemoryHit(
        id=f"turn_{text}",
        score=score,
        metadata=MemoryMetadata(
            conversation_id="c-0",
            user_id="alice",
            source_text=text,
            linked_turn_id=text,
            role=role,
        ),
    )


def _turns(*texts: str) -> list[TurnRecord]:
    return [
        TurnRecord(conversation_id="c-1", role="user" if i % 2 == 0 else "assistant", text=t)
        for i, t in enumerate(texts)
    ]


def test_estimate_text_tokens():
    assert estimate_text_tokens("") == 0
    assert estimate_text_tokens("abcd") == 1
    assert estimate_text_tokens("abcde") == 2


def test_order_persona_memories_turns_current():
    ctx = assemble_context(
        "PERSONA",
        ltm_hits=[_hit("low", 0.2), _hit("high", 0.9, role="assistant")],
        stm_turns=_turns("t1", "t2"),
        current_message="now",
        token_budget=10_000,
    )

    roles = [m.role for m in ctx.messages]
    assert roles == ["system", "system", "user", "assistant", "user"]
    assert ctx.messages[0].content == "PERSONA"
    memory = ctx.messages[1].content
    assert memory.startswith(MEMORY_HEADER)
    assert memory.index("Assistant: high") < memory.index("User: low")
    assert [m.content for m in ctx.messages[2:]] == ["t1", "t2", "now"]
    assert ctx.dropped_stm == ctx.dropped_ltm == 0


def test_no_memory_message_without_hits():
    ctx = assemble_context("P", [], _turns("t1"), "now", token_budget=10_000)
    assert [m.content for m in ctx.messages] == ["P", "t1", "now"]


def test_drops_oldest_turns_first():
    long = "x" * 400
    ctx = assemble_context(
        "P",
        ltm_hits=[_hit("fact", 0.9)],
        stm_turns=_turns(f"old {long}", f"mid {long}", f"new {long}"),
        current_message="now",
        token_budget=230,
    )

    assert ctx.dropped_stm == 2
    assert ctx.dropped_ltm == 0
    assert [t.text[:3] for t in ctx.stm_turns] == ["new"]
    assert ctx.messages[-1].content == "now"
    assert ctx.estimated_tokens <= 230


def test_drops_lowest_memories_after_turns():
    long = "y" * 400
    ctx = assemble_context(
        "P",
        ltm_hits=[_hit(f"best {long}", 0.9), _hit(f"worst {long}", 0.1)],
        stm_turns=_turns(f"turn {long}"),
        current_message="now",
        token_budget=140,
    )

    assert ctx.dropped_stm == 1
    assert ctx.dropped_ltm == 1
    assert [h.score for h in ctx.ltm_hits] == [0.9]


def test_persona_and_current_message_never_dropped():
    ctx = assemble_context(
        "P" * 2000,
        ltm_hits=[_hit("fact", 0.5)],
        stm_turns=_turns("t1"),
        current_message="now " * 500,
        token_budget=256,
    )

    assert ctx.messages[0].content == "P" * 2000
    assert ctx.messages[-1].content == "now " * 500
    assert len(ctx.messages) == 2
