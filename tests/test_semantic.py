"""Tests for semantic facts and the fact store."""

from datetime import datetime, timedelta

import pytest

from cortex.memory.semantic import FactCategory, FactStore, SemanticFact

T0 = datetime(2024, 3, 1, 9, 0, 0)


def fact(predicate: str, obj: str, subject: str = "User", **kwargs) -> SemanticFact:
    return SemanticFact.create(predicate, obj, subject=subject, **kwargs)


def test_new_fact_confidence():
    """A single observation sits just above 0.5."""
    f = SemanticFact(id="f1", subject="User", predicate="likes", object="tea", extracted_at=T0)
    assert f.confidence(T0) == pytest.approx(0.5 + 0.30103 * 0.25, abs=1e-4)


def test_confidence_fades_by_whole_days():
    f = SemanticFact(id="f1", subject="User", predicate="likes", object="tea", extracted_at=T0)
    fresh = f.confidence(T0)
    assert f.confidence(T0 + timedelta(hours=23)) == pytest.approx(fresh)
    assert f.confidence(T0 + timedelta(days=10)) == pytest.approx(fresh / 1.1)


def test_reinforcement_raises_confidence():
    f = SemanticFact(id="f1", subject="User", predicate="likes", object="tea", extracted_at=T0)
    before = f.confidence(T0)
    f.reinforce(now=T0)
    assert f.reinforce_count == 2
    assert f.confidence(T0) > before


def test_contradicted_confidence_is_fixed():
    f = fact("works_at", "Acme")
    f.mark_contradicted("fact_other")
    assert f.confidence() == 0.1
    assert f.contradicted_by == "fact_other"


def test_category_lookup():
    assert fact("name_is", "Alex").category == FactCategory.IDENTITY
    assert fact("works_at", "Acme").category == FactCategory.WORK
    assert fact("feels", "tired").category == FactCategory.HEALTH
    assert fact("collects", "stamps").category == FactCategory.OTHER


def test_natural_language():
    f = fact("lives_in", "Oslo")
    assert f.as_natural_language == "User lives in Oslo"
    assert f.short_form == "lives in: Oslo"


def test_reconcile_identical_fact_reinforces():
    """Reconciling the same triple N times leaves one fact with count N."""
    store = FactStore()
    for i in range(4):
        store.reconcile(fact("name_is", "Alex", source_memory_ids=[f"mem_{i}"]))

    active = store.active()
    assert len(active) == 1
    assert active[0].reinforce_count == 4
    assert active[0].source_memory_ids == ["mem_0", "mem_1", "mem_2", "mem_3"]


def test_reconcile_is_case_insensitive():
    store = FactStore()
    store.reconcile(fact("works_at", "Acme"))
    result = store.reconcile(fact("works_at", "acme", subject="user"))
    assert len(store) == 1
    assert result.reinforce_count == 2


def test_reconcile_contradiction():
    """A new object for the same subject+predicate supersedes the old fact."""
    store = FactStore()
    old = store.reconcile(fact("works_at", "Acme"))
    new = store.reconcile(fact("works_at", "Globex"))

    active = store.active()
    assert [f.object for f in active] == ["Globex"]
    assert old.is_contradicted
    assert old.contradicted_by == new.id
    assert len(store.all_facts) == 2


def test_contradicted_fact_is_not_revived():
    """Only active facts are candidates for reinforcement."""
    store = FactStore()
    store.reconcile(fact("works_at", "Acme"))
    store.reconcile(fact("works_at", "Globex"))
    back = store.reconcile(fact("works_at", "Acme"))

    active = store.active()
    assert len(active) == 1
    assert active[0] is back
    assert back.reinforce_count == 1


def test_all_facts_is_a_snapshot():
    store = FactStore([fact("likes", "tea")])
    snapshot = store.all_facts
    store.reconcile(fact("likes_color", "blue"))
    assert len(snapshot) == 1
    assert isinstance(snapshot, tuple)


def test_top_orders_by_confidence():
    store = FactStore()
    store.reconcile(fact("likes", "tea"))
    store.reconcile(fact("name_is", "Alex"))
    store.reconcile(fact("name_is", "Alex"))

    top = store.top(1)
    assert top[0].object == "Alex"


def test_summary_and_grouping():
    store = FactStore()
    assert store.summary() == "No facts known yet."
    assert store.list_grouped() == "No facts stored yet."

    store.reconcile(fact("name_is", "Alex"))
    store.reconcile(fact("works_at", "Acme"))

    assert "- User name is Alex" in store.summary()
    grouped = store.list_grouped()
    assert "IDENTITY:" in grouped
    assert "WORK:" in grouped
    assert "  - User works at Acme (" in grouped


def test_by_category_skips_contradicted():
    store = FactStore()
    store.reconcile(fact("works_at", "Acme"))
    store.reconcile(fact("works_at", "Globex"))
    assert [f.object for f in store.by_category(FactCategory.WORK)] == ["Globex"]


def test_stats():
    store = FactStore()
    store.reconcile(fact("works_at", "Acme"))
    store.reconcile(fact("works_at", "Globex"))
    stats = store.stats()
    assert stats.total_facts == 2
    assert stats.contradicted_count == 1
    assert stats.facts_by_category[FactCategory.WORK] == 2


def test_dict_round_trip_keeps_contradiction():
    f = fact("works_at", "Acme", source_memory_ids=["mem_1"])
    f.mark_contradicted("fact_2")
    restored = SemanticFact.from_dict(f.to_dict())
    assert restored == f
