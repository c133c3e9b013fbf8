"""Tests for episodic memory decay, strength and consolidation."""

from datetime import datetime, timedelta

import pytest

from cortex.memory.episodic import (
    META_SEPARATOR,
    ConsolidationState,
    EmotionalValence,
    EpisodicMemory,
    MemorySource,
    describe_age,
)

T0 = datetime(2024, 3, 1, 12, 0, 0)


def make_memory(**kwargs) -> EpisodicMemory:
    defaults = dict(
        id="mem-1",
        content="Talked about the trip to Lisbon",
        timestamp=T0,
        source=MemorySource.CONVERSATION,
    )
    defaults.update(kwargs)
    return EpisodicMemory(**defaults)


def test_fresh_memory_is_fully_retained():
    """Decay is 1.0 at the moment of creation."""
    memory = make_memory()
    assert memory.decay_score(T0) == pytest.approx(1.0)
    assert memory.strength(T0) == pytest.approx(0.5 * 0.4 + 1.0 * 0.35)


def test_decay_after_one_half_life():
    """Medium importance gives a 24h half-life; recency uses half of it."""
    memory = make_memory()
    score = memory.decay_score(T0 + timedelta(hours=24))
    assert score == pytest.approx(0.7 * 0.36788 + 0.3 * 0.13534, abs=1e-4)


def test_decay_is_monotonic():
    """Without access, decay and strength never increase as time passes."""
    memory = make_memory()
    times = [T0 + timedelta(hours=h) for h in (0, 1, 6, 24, 72, 24 * 30)]
    scores = [memory.decay_score(t) for t in times]
    strengths = [memory.strength(t) for t in times]
    assert scores == sorted(scores, reverse=True)
    assert strengths == sorted(strengths, reverse=True)


def test_future_timestamp_is_clamped():
    """Clock skew does not push retention above 1."""
    memory = make_memory()
    assert memory.decay_score(T0 - timedelta(hours=5)) == pytest.approx(1.0)


def test_zero_importance_decays_immediately():
    memory = make_memory(importance=0.0)
    assert memory.decay_score(T0) == pytest.approx(1.0)
    assert memory.decay_score(T0 + timedelta(minutes=1)) == 0.0


def test_access_strengthens():
    """Recording an access never lowers strength at that instant."""
    memory = make_memory()
    now = T0 + timedelta(hours=30)
    before = memory.strength(now)

    memory.record_access(now)

    assert memory.access_count == 1
    assert memory.last_accessed_at == now
    assert memory.strength(now) > before


def test_access_extends_half_life():
    memory = make_memory()
    base = memory.effective_half_life()
    memory.record_access(T0)
    assert memory.effective_half_life() == pytest.approx(base * 1.15)


def test_emotional_memories_are_stronger():
    neutral = make_memory()
    charged = make_memory(valence=EmotionalValence.NEGATIVE)
    assert charged.strength(T0) == pytest.approx(neutral.strength(T0) + 0.01)


def test_consolidation_thresholds():
    """State advances at 3 and 7 accesses and never regresses."""
    memory = make_memory()
    states = []
    for i in range(10):
        memory.record_access(T0 + timedelta(minutes=i))
        states.append(memory.consolidation_state)

    assert states[1] == ConsolidationState.SHORT_TERM
    assert states[2] == ConsolidationState.CONSOLIDATING
    assert states[5] == ConsolidationState.CONSOLIDATING
    assert states[6] == ConsolidationState.LONG_TERM
    assert states[9] == ConsolidationState.LONG_TERM


def test_rehearsal_starts_consolidation():
    memory = make_memory()
    for _ in range(4):
        memory.rehearse()
    assert memory.consolidation_state == ConsolidationState.SHORT_TERM
    memory.rehearse()
    assert memory.consolidation_state == ConsolidationState.CONSOLIDATING


def test_long_term_half_life_bonus():
    memory = make_memory(consolidation_state=ConsolidationState.LONG_TERM)
    assert memory.effective_half_life() == pytest.approx(24.0 * 3.0)


def test_storage_format_keeps_content_and_metadata():
    memory = make_memory(access_count=4, emotional_tags=["travel"])
    stored = memory.to_storage_format()

    assert stored.startswith("Talked about the trip to Lisbon")
    assert META_SEPARATOR in stored
    assert EpisodicMemory.extract_content(stored) == memory.content

    restored = EpisodicMemory.from_storage_format(stored)
    assert restored.id == "mem-1"
    assert restored.access_count == 4
    assert restored.timestamp == T0
    assert restored.emotional_tags == ["travel"]


def test_unparseable_metadata_recovers_content():
    """A damaged trailer yields a fresh conversation memory with the same text."""
    stored = f"Met Sam for coffee\n\n{META_SEPARATOR}\n{{not json"
    restored = EpisodicMemory.from_storage_format(stored)

    assert restored.content == "Met Sam for coffee"
    assert restored.id.startswith("recovered_")
    assert restored.source == MemorySource.CONVERSATION
    assert EpisodicMemory.extract_metadata(stored) is None


def test_plain_text_has_no_metadata():
    assert EpisodicMemory.extract_metadata("just text") is None


def test_describe_age():
    assert describe_age(T0, T0) == "just now"
    assert describe_age(T0, T0 + timedelta(minutes=5)) == "5m ago"
    assert describe_age(T0, T0 + timedelta(hours=3)) == "3h ago"
    assert describe_age(T0, T0 + timedelta(days=2)) == "2d ago"
    assert describe_age(T0, T0 + timedelta(days=14)) == "2w ago"
    assert describe_age(T0, T0 + timedelta(days=65)) == "2mo ago"


def test_strength_label():
    memory = make_memory(importance=1.0, access_count=9)
    assert memory.strength_label(T0) == "Very Strong"
    faded = make_memory(importance=0.1)
    assert faded.strength_label(T0 + timedelta(days=60)) == "Fading"
