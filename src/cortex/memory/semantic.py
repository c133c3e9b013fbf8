"""Semantic memory: subject-predicate-object facts with reconciliation."""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from cortex.core.logging import get_logger

logger = get_logger("memory.semantic")

CONTRADICTED_CONFIDENCE = 0.1


class FactCategory(Enum):
    IDENTITY = "identity"
    WORK = "work"
    RELATIONSHIPS = "relationships"
    PREFERENCES = "preferences"
    EVENTS = "events"
    LOCATION = "location"
    HEALTH = "health"
    HOBBIES = "hobbies"
    OTHER = "other"


PREDICATE_CATEGORIES: dict[str, FactCategory] = {
    **dict.fromkeys(["name_is", "age_is", "gender_is", "nickname_is"], FactCategory.IDENTITY),
    **dict.fromkeys(
        ["works_at", "job_is", "role_is", "company_is", "profession_is"], FactCategory.WORK
    ),
    **dict.fromkeys(
        ["likes", "dislikes", "prefers", "favorite_is", "hates"], FactCategory.PREFERENCES
    ),
    **dict.fromkeys(["lives_in", "is_from", "located_in", "hometown_is"], FactCategory.LOCATION),
    **dict.fromkeys(["birthday_is", "anniversary_is", "graduated_on"], FactCategory.EVENTS),
    **dict.fromkeys(
        ["married_to", "has_child", "sibling_is", "parent_is", "friend_is", "pet_is"],
        FactCategory.RELATIONSHIPS,
    ),
    **dict.fromkeys(["hobby_is", "interested_in", "plays", "practices"], FactCategory.HOBBIES),
    **dict.fromkeys(["allergic_to", "condition_is", "diet_is", "feels"], FactCategory.HEALTH),
}


def category_for(predicate: str) -> FactCategory:
    return PREDICATE_CATEGORIES.get(predicate.lower(), FactCategory.OTHER)


@dataclass
class SemanticFact:
    """A durable fact about the user."""

    id: str
    subject: str
    predicate: str
    object: str
    extracted_at: datetime = field(default_factory=datetime.now)
    source_memory_ids: list[str] = field(default_factory=list)
    reinforce_count: int = 1
    last_reinforced_at: datetime | None = None
    is_contradicted: bool = False
    contradicted_by: str | None = None

    def __post_init__(self) -> None:
        if self.last_reinforced_at is None:
            self.last_reinforced_at = self.extracted_at

    @classmethod
    def create(
        cls,
        predicate: str,
        obj: str,
        subject: str = "User",
        source_memory_ids: Iterable[str] = (),
    ) -> "SemanticFact":
        return cls(
            id=f"fact_{uuid4()}",
            subject=subject,
            predicate=predicate,
            object=obj,
            source_memory_ids=list(source_memory_ids),
        )

    @property
    def category(self) -> FactCategory:
        return category_for(self.predicate)

    def confidence(self, now: datetime | None = None) -> float:
        """Certainty in [0, 1]: grows with reinforcement, fades slowly without it."""
        if self.is_contradicted:
            return CONTRADICTED_CONFIDENCE
        now = now or datetime.now()
        base = min(1.0, 0.5 + math.log10(self.reinforce_count + 1) * 0.25)
        days_since = max(0, (now - self.last_reinforced_at).days)
        recency_factor = 1.0 / (1.0 + days_since * 0.01)
        return base * recency_factor

    @property
    def as_natural_language(self) -> str:
        return f"{self.subject} {self.predicate.replace('_', ' ')} {self.object}"

    @property
    def short_form(self) -> str:
        return f"{self.predicate.replace('_', ' ')}: {self.object}"

    def confidence_indicator(self, now: datetime | None = None) -> str:
        c = self.confidence(now)
        if c >= 0.8:
            return "●●●●"
        if c >= 0.6:
            return "●●●○"
        if c >= 0.4:
            return "●●○○"
        if c >= 0.2:
            return "●○○○"
        return "○○○○"

    def reinforce(self, source_memory_ids: Iterable[str] = (), now: datetime | None = None) -> None:
        self.reinforce_count += 1
        self.last_reinforced_at = now or datetime.now()
        for memory_id in source_memory_ids:
            if memory_id not in self.source_memory_ids:
                self.source_memory_ids.append(memory_id)

    def mark_contradicted(self, new_fact_id: str) -> None:
        self.is_contradicted = True
        self.contradicted_by = new_fact_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "predicate": self.predicate,
            "object": self.object,
            "extracted_at": self.extracted_at.isoformat(),
            "source_memory_ids": self.source_memory_ids,
            "reinforce_count": self.reinforce_count,
            "last_reinforced_at": self.last_reinforced_at.isoformat(),
            "is_contradicted": self.is_contradicted,
            "contradicted_by": self.contradicted_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SemanticFact":
        last = data.get("last_reinforced_at")
        return cls(
            id=data["id"],
            subject=data["subject"],
            predicate=data["predicate"],
            object=data["object"],
            extracted_at=datetime.fromisoformat(data["extracted_at"]),
            source_memory_ids=list(data.get("source_memory_ids", [])),
            reinforce_count=int(data.get("reinforce_count", 1)),
            last_reinforced_at=datetime.fromisoformat(last) if last else None,
            is_contradicted=bool(data.get("is_contradicted", False)),
            contradicted_by=data.get("contradicted_by"),
        )


@dataclass
class SemanticMemoryStats:
    """Aggregate view over every stored fact, contradicted ones included."""

    total_facts: int
    facts_by_category: dict[FactCategory, int]
    average_confidence: float
    contradicted_count: int


class FactStore:
    """Owns all semantic facts. Contradicted facts stay for audit."""

    def __init__(self, facts: Iterable[SemanticFact] = ()):
        self._facts: list[SemanticFact] = list(facts)

    def __len__(self) -> int:
        return len(self._facts)

    @property
    def all_facts(self) -> tuple[SemanticFact, ...]:
        """Every fact including contradicted history."""
        return tuple(self._facts)

    def replace_all(self, facts: Iterable[SemanticFact]) -> None:
        self._facts = list(facts)

    def clear(self) -> None:
        self._facts.clear()

    def reconcile(self, new_fact: SemanticFact) -> SemanticFact:
        """Merge a candidate fact; returns the fact that is active afterwards.

        Same subject+predicate+object reinforces the existing fact. Same
        subject+predicate with a different object supersedes it.
        """
        existing = next(
            (
                f
                for f in self._facts
                if not f.is_contradicted
                and f.subject.lower() == new_fact.subject.lower()
                and f.predicate == new_fact.predicate
            ),
            None,
        )

        if existing is None:
            self._facts.append(new_fact)
            logger.info(f"Added new fact: {new_fact.as_natural_language}")
            return new_fact

        if existing.object.lower() == new_fact.object.lower():
            existing.reinforce(new_fact.source_memory_ids)
            logger.debug(
                f"Reinforced fact: {existing.as_natural_language} "
                f"(count={existing.reinforce_count})"
            )
            return existing

        existing.mark_contradicted(new_fact.id)
        self._facts.append(new_fact)
        logger.info(
            f"Fact superseded: {existing.as_natural_language} -> {new_fact.as_natural_language}"
        )
        return new_fact

    def active(self) -> list[SemanticFact]:
        return [f for f in self._facts if not f.is_contradicted]

    def by_category(self, category: FactCategory) -> list[SemanticFact]:
        return [f for f in self.active() if f.category == category]

    def top(self, limit: int, now: datetime | None = None) -> list[SemanticFact]:
        """Active facts ranked by confidence."""
        now = now or datetime.now()
        ranked = sorted(self.active(), key=lambda f: f.confidence(now), reverse=True)
        return ranked[:limit]

    def summary(self, limit: int = 10) -> str:
        """Ranked bullet list for prompt injection."""
        facts = self.top(limit)
        if not facts:
            return "No facts known yet."
        return "\n".join(f"- {f.as_natural_language}" for f in facts)

    def list_grouped(self) -> str:
        """Active facts grouped under category headings."""
        facts = self.active()
        if not facts:
            return "No facts stored yet."

        grouped: dict[FactCategory, list[SemanticFact]] = {}
        for fact in facts:
            grouped.setdefault(fact.category, []).append(fact)

        lines = []
        for category, items in grouped.items():
            lines.append(f"{category.value.upper()}:")
            for fact in items:
                lines.append(f"  - {fact.as_natural_language} ({fact.confidence_indicator()})")
        return "\n".join(lines)

    def stats(self) -> SemanticMemoryStats:
        by_category: dict[FactCategory, int] = {}
        total_confidence = 0.0
        contradicted = 0
        now = datetime.now()
        for fact in self._facts:
            by_category[fact.category] = by_category.get(fact.category, 0) + 1
            total_confidence += fact.confidence(now)
            if fact.is_contradicted:
                contradicted += 1

        return SemanticMemoryStats(
            total_facts=len(self._facts),
            facts_by_category=by_category,
            average_confidence=total_confidence / len(self._facts) if self._facts else 0.0,
            contradicted_count=contradicted,
        )
