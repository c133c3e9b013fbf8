"""Procedural memory: learned preferences, habits, patterns, rules and skills."""

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from cortex.core.logging import get_logger

logger = get_logger("memory.procedural")

DECAY_RATE_PER_DAY = 0.02

_KEYWORD_SPLIT = re.compile(r"[\s,]+")


class ProceduralType(Enum):
    PREFERENCE = "preference"  # "User prefers X over Y"
    HABIT = "habit"  # "User usually does X at time Y"
    PATTERN = "pattern"  # "When X happens, user tends to Y"
    RULE = "rule"  # "Always/never do X"
    SKILL = "skill"  # "User knows how to X"


class ConfidenceLevel(Enum):
    TENTATIVE = 0.3
    EMERGING = 0.5
    ESTABLISHED = 0.75
    CERTAIN = 0.95


# Tier ladder with the observation count required to climb onto each rung
_TIERS = list(ConfidenceLevel)
_PROMOTE_AT = {
    ConfidenceLevel.EMERGING: 3,
    ConfidenceLevel.ESTABLISHED: 7,
    ConfidenceLevel.CERTAIN: 15,
}


@dataclass
class ProceduralMemory:
    """A learned behavioral pattern or preference."""

    id: str
    type: ProceduralType
    description: str
    condition: str  # keywords describing when it applies
    action: str
    learned_at: datetime = field(default_factory=datetime.now)
    evidence_ids: list[str] = field(default_factory=list)
    observation_count: int = 1
    success_count: int = 0
    failure_count: int = 0
    last_observed_at: datetime | None = None
    confidence: ConfidenceLevel = ConfidenceLevel.TENTATIVE

    def __post_init__(self) -> None:
        if self.last_observed_at is None:
            self.last_observed_at = self.learned_at

    @classmethod
    def create(
        cls,
        type: ProceduralType,
        description: str,
        condition: str,
        action: str,
        evidence_ids: Iterable[str] = (),
    ) -> "ProceduralMemory":
        return cls(
            id=f"proc_{uuid4()}",
            type=type,
            description=description,
            condition=condition,
            action=action,
            evidence_ids=list(evidence_ids),
        )

    def current_confidence(self, now: datetime | None = None) -> float:
        now = now or datetime.now()
        days_since = max(0.0, (now - self.last_observed_at).total_seconds() / 86400.0)
        decay_factor = math.exp(-DECAY_RATE_PER_DAY * days_since)
        success_rate = (
            self.success_count / self.observation_count if self.observation_count > 0 else 0.5
        )
        return min(1.0, self.confidence.value * decay_factor * (0.5 + success_rate * 0.5))

    @property
    def reliability(self) -> float:
        """How often this pattern held when it was tested."""
        total = self.success_count + self.failure_count
        if total == 0:
            return 0.5
        return self.success_count / total

    def reinforce(self, success: bool = True, now: datetime | None = None) -> None:
        self.observation_count += 1
        self.last_observed_at = now or datetime.now()

        index = _TIERS.index(self.confidence)
        if success:
            self.success_count += 1
            if index + 1 < len(_TIERS):
                next_tier = _TIERS[index + 1]
                if self.observation_count >= _PROMOTE_AT[next_tier]:
                    self.confidence = next_tier
                    logger.debug(f"Procedure {self.id} promoted to {next_tier.name.lower()}")
        else:
            self.failure_count += 1
            if self.failure_count > self.success_count and index > 0:
                self.confidence = _TIERS[index - 1]
                logger.debug(f"Procedure {self.id} demoted to {self.confidence.name.lower()}")

    def matches_context(self, text: str) -> bool:
        """True if any condition keyword occurs in the text."""
        lowered = text.lower()
        keywords = _KEYWORD_SPLIT.split(self.condition.lower())
        return any(kw and kw in lowered for kw in keywords)

    @property
    def as_instruction(self) -> str:
        match self.type:
            case ProceduralType.PREFERENCE:
                return f"The user prefers: {self.description}"
            case ProceduralType.HABIT:
                return f"User habit: {self.description}"
            case ProceduralType.PATTERN:
                return f"Pattern observed: When {self.condition}, {self.action}"
            case ProceduralType.RULE:
                return f"Important rule: {self.description}"
            case ProceduralType.SKILL:
                return f"User skill: {self.description}"

    @property
    def confidence_indicator(self) -> str:
        return {
            ConfidenceLevel.TENTATIVE: "○○○○",
            ConfidenceLevel.EMERGING: "●○○○",
            ConfidenceLevel.ESTABLISHED: "●●●○",
            ConfidenceLevel.CERTAIN: "●●●●",
        }[self.confidence]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "condition": self.condition,
            "action": self.action,
            "learned_at": self.learned_at.isoformat(),
            "evidence_ids": self.evidence_ids,
            "observation_count": self.observation_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "last_observed_at": self.last_observed_at.isoformat(),
            "confidence": self.confidence.name.lower(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProceduralMemory":
        try:
            proc_type = ProceduralType(data.get("type"))
        except ValueError:
            proc_type = ProceduralType.PATTERN
        confidence_name = str(data.get("confidence", "")).upper()
        last = data.get("last_observed_at")
        return cls(
            id=data["id"],
            type=proc_type,
            description=data["description"],
            condition=data.get("condition", ""),
            action=data.get("action", ""),
            learned_at=datetime.fromisoformat(data["learned_at"]),
            evidence_ids=list(data.get("evidence_ids", [])),
            observation_count=int(data.get("observation_count", 1)),
            success_count=int(data.get("success_count", 0)),
            failure_count=int(data.get("failure_count", 0)),
            last_observed_at=datetime.fromisoformat(last) if last else None,
            confidence=ConfidenceLevel.__members__.get(confidence_name, ConfidenceLevel.TENTATIVE),
        )


class ProcedureStore:
    """Owns all learned procedures."""

    def __init__(self, procedures: Iterable[ProceduralMemory] = ()):
        self._procedures: list[ProceduralMemory] = list(procedures)

    def __len__(self) -> int:
        return len(self._procedures)

    @property
    def all_procedures(self) -> tuple[ProceduralMemory, ...]:
        return tuple(self._procedures)

    def replace_all(self, procedures: Iterable[ProceduralMemory]) -> None:
        self._procedures = list(procedures)

    def clear(self) -> None:
        self._procedures.clear()

    def reconcile(self, new_proc: ProceduralMemory) -> ProceduralMemory:
        """Reinforce a near-duplicate of the same type, else append."""
        words = new_proc.description.lower().split()
        first_word = words[0] if words else ""
        existing = next(
            (
                p
                for p in self._procedures
                if p.type == new_proc.type and first_word in p.description.lower()
            ),
            None,
        )

        if existing is not None:
            existing.reinforce(success=True)
            for evidence_id in new_proc.evidence_ids:
                if evidence_id not in existing.evidence_ids:
                    existing.evidence_ids.append(evidence_id)
            logger.debug(f"Reinforced procedure: {existing.description}")
            return existing

        self._procedures.append(new_proc)
        logger.info(f"Learned new procedure: {new_proc.description}")
        return new_proc

    def relevant(
        self, text: str, min_confidence: float = 0.3, now: datetime | None = None
    ) -> list[ProceduralMemory]:
        """Procedures whose condition matches the text, strongest first."""
        now = now or datetime.now()
        matches = [
            p
            for p in self._procedures
            if p.matches_context(text) and p.current_confidence(now) > min_confidence
        ]
        matches.sort(key=lambda p: p.current_confidence(now), reverse=True)
        return matches
