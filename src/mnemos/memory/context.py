"""Assemble the ordered completion context from persona, LTM and STM."""

from dataclasses import dataclass, field

from mnemos.llm.client import Message
from mnemos.memory.schema import MemoryHit, TurnRecord
from mnemos.memory.utils import estimate_tokens, estimate_total_tokens

MEMORY_HEADER = "Relevant memories from earlier conversations with this user:"


@dataclass
class AssembledContext:
    """Ordered messages plus a record of what the budget forced out."""

    messages: list[Message]
    ltm_hits: list[MemoryHit] = field(default_factory=list)
    stm_turns: list[TurnRecord] = field(default_factory=list)
    dropped_stm: int = 0
    dropped_ltm: int = 0

    @property
    def estimated_tokens(self) -> int:
        return estimate_total_tokens(self.messages)


def _memory_message(hits: list[MemoryHit]) -> Message:
    lines = [MEMORY_HEADER]
    for hit in hits:
        speaker = "User" if hit.metadata.role == "user" else "Assistant"
        lines.append(f"- {speaker}: {hit.metadata.source_text}")
    return Message(role="system", content="\n".join(lines))


def _build(
    persona: str,
    hits: list[MemoryHit],
    turns: list[TurnRecord],
    current: str,
) -> list[Message]:
    messages = [Message(role="system", content=persona)]
    if hits:
        messages.append(_memory_message(hits))
    messages.extend(Message(role=t.role, content=t.text) for t in turns)
    messages.append(Message(role="user", content=current))
    return messages


def assemble_context(
    persona: str,
    ltm_hits: list[MemoryHit],
    stm_turns: list[TurnRecord],
    current_message: str,
    token_budget: int,
) -> AssembledContext:
    """Build [persona] + [LTM hits] + [STM turns] + [current message].

    LTM hits are placed highest similarity first, STM turns chronologically.
    When the estimate exceeds ``token_budget``, the oldest STM turns are
    dropped first, then the lowest-scoring LTM hits. The persona and the
    current message are never dropped.

    Args:
        persona: Persona preamble
        ltm_hits: Long-term memories (any order)
        stm_turns: Recent turns, oldest first, excluding the current message
        current_message: Text being answered
        token_budget: Maximum estimated tokens

    Returns:
        The assembled context
    """
    hits = sorted(ltm_hits, key=lambda h: h.score, reverse=True)
    turns = list(stm_turns)
    dropped_stm = dropped_ltm = 0

    fixed = estimate_tokens(Message("system", persona)) + estimate_tokens(
        Message("user", current_message)
    )
    turn_costs = [estimate_tokens(Message(t.role, t.text)) for t in turns]

    def memory_cost() -> int:
        return estimate_tokens(_memory_message(hits)) if hits else 0

    total = fixed + memory_cost() + sum(turn_costs)

    while total > token_budget and turns:
        turns.pop(0)
        total -= turn_costs.pop(0)
        dropped_stm += 1

    while total > token_budget and hits:
        before = memory_cost()
        hits.pop()
        total += memory_cost() - before
        dropped_ltm += 1

    return AssembledContext(
        messages=_build(persona, hits, turns, current_message),
        ltm_hits=hits,
        stm_turns=turns,
        dropped_stm=dropped_stm,
        dropped_ltm=dropped_ltm,
    )
