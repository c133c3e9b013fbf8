"""Episodic memory: single remembered events with Ebbinghaus-style decay.

Decay runs on an hours/days timescale. Each access lengthens the effective
half-life and pushes the memory through consolidation states
(short-term -> consolidating -> long-term), which never regress.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import uuid4

from cortex.core.logging import get_logger

logger = get_logger("memory.episodic")

META_SEPARATOR = "---CORTEX_META---"

# Decay constants (hours)
BASE_HALF_LIFE_HOURS = 24.0
ACCESS_HALF_LIFE_BONUS = 0.15  # each access extends half-life by 15%
IMPORTANCE_MULTIPLIER = 2.0

CONSOLIDATING_AT_ACCESSES = 3
LONG_TERM_AT_ACCESSES = 7
CONSOLIDATING_AT_REHEARSALS = 5


class MemorySource(Enum):
    CONVERSATION = "conversation"
    VOICE = "voice"
    PHOTO = "photo"
    NOTE = "note"
    EXPLICIT = "explicit"


class ImportanceLevel(Enum):
    LOW = 0.3
    MEDIUM = 0.5
    HIGH = 0.8
    CRITICAL = 1.0


class EmotionalValence(Enum):
    POSITIVE = 1.0
    NEUTRAL = 0.0
    NEGATIVE = -1.0


class ConsolidationState(Enum):
    SHORT_TERM = "short_term"
    CONSOLIDATING = "consolidating"
    LONG_TERM = "long_term"


CONSOLIDATION_BONUS = {
    ConsolidationState.SHORT_TERM: 1.0,
    ConsolidationState.CONSOLIDATING: 1.5,
    ConsolidationState.LONG_TERM: 3.0,
}


def _hours_between(earlier: datetime, now: datetime) -> float:
    """Elapsed hours, clamped at zero for timestamps in the future."""
    return max(0.0, (now - earlier).total_seconds() / 3600.0)


def describe_age(timestamp: datetime, now: datetime | None = None) -> str:
    """Compact relative age ("3h ago")."""
    now = now or datetime.now()
    diff = max(now - timestamp, timedelta(0))
    minutes = int(diff.total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 60 * 24:
        return f"{minutes // 60}h ago"
    if diff.days < 7:
        return f"{diff.days}d ago"
    if diff.days < 30:
        return f"{diff.days // 7}w ago"
    return f"{diff.days // 30}mo ago"


@dataclass
class EpisodicMemory:
    """A single remembered event."""

    id: str
    content: str
    timestamp: datetime
    source: MemorySource
    importance: float = 0.5  # 0-1
    valence: EmotionalValence = EmotionalValence.NEUTRAL
    emotional_tags: list[str] = field(default_factory=list)
    access_count: int = 0
    last_accessed_at: datetime | None = None
    consolidation_state: ConsolidationState = ConsolidationState.SHORT_TERM
    rehearsal_count: int = 0

    def __post_init__(self) -> None:
        if self.last_accessed_at is None:
            self.last_accessed_at = self.timestamp

    @classmethod
    def create(
        cls,
        content: str,
        source: MemorySource,
        importance: float = 0.5,
        valence: EmotionalValence = EmotionalValence.NEUTRAL,
        emotional_tags: list[str] | None = None,
    ) -> "EpisodicMemory":
        """Build a fresh memory stamped with the current time."""
        return cls(
            id=f"mem_{uuid4()}",
            content=content,
            timestamp=datetime.now(),
            source=source,
            importance=importance,
            valence=valence,
            emotional_tags=list(emotional_tags or []),
        )

    def effective_half_life(self) -> float:
        """Half-life in hours after access, importance and consolidation bonuses."""
        access_multiplier = 1.0 + self.access_count * ACCESS_HALF_LIFE_BONUS
        importance_bonus = self.importance * IMPORTANCE_MULTIPLIER
        consolidation_bonus = CONSOLIDATION_BONUS[self.consolidation_state]
        return BASE_HALF_LIFE_HOURS * access_multiplier * importance_bonus * consolidation_bonus

    def decay_score(self, now: datetime | None = None) -> float:
        """Retention estimate in [0, 1] following the Ebbinghaus forgetting curve.

        R = e^(-t/S) over time since creation, blended 70/30 with a recency
        weight over time since last access (recently touched memories feel
        stronger).
        """
        now = now or datetime.now()
        hours_since_creation = _hours_between(self.timestamp, now)
        hours_since_access = _hours_between(self.last_accessed_at, now)

        half_life = self.effective_half_life()
        if half_life <= 0:
            # Zero importance collapses the half-life; treat as fully decayed
            # except for the instant of creation.
            retention = 1.0 if hours_since_creation == 0 else 0.0
            recency = 1.0 if hours_since_access == 0 else 0.0
        else:
            retention = math.exp(-hours_since_creation / half_life)
            recency = math.exp(-hours_since_access / (half_life * 0.5))

        return min(1.0, retention * 0.7 + recency * 0.3)

    def strength(self, now: datetime | None = None) -> float:
        """Composite ranking score: importance, decay, access frequency, emotion."""
        access_bonus = math.log10(self.access_count + 1)
        emotional_bonus = 0.1 if self.valence != EmotionalValence.NEUTRAL else 0.0
        return min(
            1.0,
            self.importance * 0.4
            + self.decay_score(now) * 0.35
            + access_bonus * 0.15
            + emotional_bonus * 0.1,
        )

    def record_access(self, now: datetime | None = None) -> None:
        """Mark memory as retrieved. Call exactly once per retrieval."""
        self.access_count += 1
        self.last_accessed_at = now or datetime.now()

        if (
            self.consolidation_state == ConsolidationState.SHORT_TERM
            and self.access_count >= CONSOLIDATING_AT_ACCESSES
        ):
            self.consolidation_state = ConsolidationState.CONSOLIDATING
            logger.debug(f"Memory {self.id} consolidating after {self.access_count} accesses")
        elif (
            self.consolidation_state == ConsolidationState.CONSOLIDATING
            and self.access_count >= LONG_TERM_AT_ACCESSES
        ):
            self.consolidation_state = ConsolidationState.LONG_TERM
            logger.debug(f"Memory {self.id} reached long-term storage")

    def rehearse(self) -> None:
        """Strengthen consolidation without a full retrieval."""
        self.rehearsal_count += 1
        if (
            self.rehearsal_count >= CONSOLIDATING_AT_REHEARSALS
            and self.consolidation_state == ConsolidationState.SHORT_TERM
        ):
            self.consolidation_state = ConsolidationState.CONSOLIDATING

    def age_description(self, now: datetime | None = None) -> str:
        return describe_age(self.timestamp, now)

    def strength_label(self, now: datetime | None = None) -> str:
        s = self.strength(now)
        if s >= 0.8:
            return "Very Strong"
        if s >= 0.6:
            return "Strong"
        if s >= 0.4:
            return "Moderate"
        if s >= 0.2:
            return "Weak"
        return "Fading"

    # Serialization

    def to_metadata(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
            "importance": self.importance,
            "access_count": self.access_count,
            "last_accessed_at": self.last_accessed_at.isoformat(),
            "emotional_tags": self.emotional_tags,
            "valence": self.valence.name.lower(),
            "consolidation_state": self.consolidation_state.value,
            "rehearsal_count": self.rehearsal_count,
        }

    def to_storage_format(self) -> str:
        """Content followed by a JSON metadata trailer (what the search index stores)."""
        return f"{self.content}\n\n{META_SEPARATOR}\n{json.dumps(self.to_metadata())}"

    @staticmethod
    def extract_content(stored: str) -> str:
        return stored.split(META_SEPARATOR)[0].strip()

    @staticmethod
    def extract_metadata(stored: str) -> dict[str, Any] | None:
        parts = stored.split(META_SEPARATOR)
        if len(parts) < 2:
            return None
        try:
            meta = json.loads(parts[1].strip())
        except json.JSONDecodeError:
            return None
        return meta if isinstance(meta, dict) else None

    @classmethod
    def from_storage_format(cls, stored: str) -> "EpisodicMemory":
        """Rebuild a memory; unparseable trailers yield a fresh conversation memory."""
        content = cls.extract_content(stored)
        meta = cls.extract_metadata(stored)

        if meta is None:
            return cls(
                id=f"recovered_{uuid4()}",
                content=content,
                timestamp=datetime.now(),
                source=MemorySource.CONVERSATION,
            )

        last_accessed = meta.get("last_accessed_at")
        return cls(
            id=meta["id"],
            content=content,
            timestamp=datetime.fromisoformat(meta["timestamp"]),
            source=_enum_by_value(MemorySource, meta.get("source"), MemorySource.CONVERSATION),
            importance=float(meta.get("importance", 0.5)),
            access_count=int(meta.get("access_count", 0)),
            last_accessed_at=datetime.fromisoformat(last_accessed) if last_accessed else None,
            emotional_tags=list(meta.get("emotional_tags", [])),
            valence=_enum_by_name(EmotionalValence, meta.get("valence"), EmotionalValence.NEUTRAL),
            consolidation_state=_enum_by_value(
                ConsolidationState,
                meta.get("consolidation_state"),
                ConsolidationState.SHORT_TERM,
            ),
            rehearsal_count=int(meta.get("rehearsal_count", 0)),
        )


def _enum_by_value(enum_cls: type[Enum], value: Any, default: Enum) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _enum_by_name(enum_cls: type[Enum], name: Any, default: Enum) -> Any:
    if isinstance(name, str) and name.upper() in enum_cls.__members__:
        return enum_cls[name.upper()]
    return default
