"""Working memory: a capacity-bounded attention window rebuilt every turn.

Slot activation fades on a minutes timescale, independent of the day-scale
decay of episodic memories. Only facts, episodes and rules compete for the
Miller's-Law capacity; the user statement, goal and dialogue turns are
protected from eviction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import uuid4

from cortex.core.logging import get_logger
from cortex.memory.episodic import EpisodicMemory
from cortex.memory.procedural import ProceduralMemory
from cortex.memory.semantic import SemanticFact

logger = get_logger("memory.working")

ACTIVATION_FLOOR = 0.1
ACTIVATION_TIMESCALE_SECONDS = 60.0


class SlotType(Enum):
    USER_STATEMENT = "user_statement"
    RELEVANT_EPISODE = "relevant_episode"
    ACTIVE_FACT = "active_fact"
    ACTIVE_RULE = "active_rule"
    CONVERSATION_TURN = "conversation_turn"
    GOAL = "goal"


# Types that may hold several slots at once; any other type (rules included) keeps one slot
MULTI_SLOT_TYPES = frozenset(
    {
        SlotType.CONVERSATION_TURN,
        SlotType.RELEVANT_EPISODE,
        SlotType.ACTIVE_FACT,
    }
)
PROTECTED_TYPES = frozenset({SlotType.CONVERSATION_TURN, SlotType.USER_STATEMENT, SlotType.GOAL})


@dataclass
class WorkingMemorySlot:
    """One unit of attention."""

    id: str
    type: SlotType
    content: str
    activation: float = 1.0  # base activation at insertion
    added_at: datetime = field(default_factory=datetime.now)
    source_id: str | None = None

    def current_activation(self, now: datetime | None = None) -> float:
        now = now or datetime.now()
        seconds = max(0.0, (now - self.added_at).total_seconds())
        return self.activation / (1.0 + seconds / ACTIVATION_TIMESCALE_SECONDS)

    def is_active(self, now: datetime | None = None) -> bool:
        return self.current_activation(now) > ACTIVATION_FLOOR


class WorkingMemory:
    """Bounded scratchpad combining facts, rules, episodes and dialogue."""

    def __init__(self, max_slots: int = 7, max_conversation_turns: int = 4):
        self.max_slots = max_slots
        self.max_conversation_turns = max_conversation_turns
        self._slots: list[WorkingMemorySlot] = []
        self._current_goal: str | None = None
        self._current_topic: str | None = None

    @property
    def slots(self) -> tuple[WorkingMemorySlot, ...]:
        return tuple(self._slots)

    def active_slots(self, now: datetime | None = None) -> list[WorkingMemorySlot]:
        now = now or datetime.now()
        return [s for s in self._slots if s.is_active(now)]

    @property
    def current_goal(self) -> str | None:
        return self._current_goal

    @property
    def current_topic(self) -> str | None:
        return self._current_topic

    def add(self, slot: WorkingMemorySlot, now: datetime | None = None) -> None:
        if slot.type in MULTI_SLOT_TYPES:
            self._slots = [s for s in self._slots if s.id != slot.id]
        else:
            self._slots = [s for s in self._slots if s.type != slot.type]

        self._slots.append(slot)
        self._enforce_capacity(now)

    def set_user_statement(self, statement: str) -> None:
        self.add(
            WorkingMemorySlot(
                id=f"user_{uuid4()}",
                type=SlotType.USER_STATEMENT,
                content=statement,
                activation=1.0,
            )
        )

    def set_goal(self, goal: str) -> None:
        self._current_goal = goal
        self.add(
            WorkingMemorySlot(
                id=f"goal_{uuid4()}",
                type=SlotType.GOAL,
                content=goal,
                activation=0.9,
            )
        )

    def set_topic(self, topic: str) -> None:
        self._current_topic = topic

    def add_episode(self, episode: EpisodicMemory, relevance: float = 0.5) -> None:
        self.add(
            WorkingMemorySlot(
                id=f"ep_{episode.id}",
                type=SlotType.RELEVANT_EPISODE,
                content=episode.content,
                activation=relevance * episode.strength(),
                source_id=episode.id,
            )
        )

    def add_fact(self, fact: SemanticFact, relevance: float = 0.5) -> None:
        self.add(
            WorkingMemorySlot(
                id=f"fact_{fact.id}",
                type=SlotType.ACTIVE_FACT,
                content=fact.as_natural_language,
                activation=relevance * fact.confidence(),
                source_id=fact.id,
            )
        )

    def add_rule(self, rule: ProceduralMemory, relevance: float = 0.5) -> None:
        self.add(
            WorkingMemorySlot(
                id=f"rule_{rule.id}",
                type=SlotType.ACTIVE_RULE,
                content=rule.as_instruction,
                activation=relevance * rule.current_confidence(),
                source_id=rule.id,
            )
        )

    def add_conversation_turn(self, role: str, content: str) -> None:
        turns = [s for s in self._slots if s.type == SlotType.CONVERSATION_TURN]
        if len(turns) >= self.max_conversation_turns * 2:
            oldest = turns[0]
            self._slots = [s for s in self._slots if s is not oldest]

        self.add(
            WorkingMemorySlot(
                id=f"turn_{uuid4()}",
                type=SlotType.CONVERSATION_TURN,
                content=f"[{role}]: {content}",
                activation=0.8,
            )
        )

    def _enforce_capacity(self, now: datetime | None = None) -> None:
        """Evict the weakest competing slots beyond capacity."""
        now = now or datetime.now()
        removable = [s for s in self._slots if s.type not in PROTECTED_TYPES]
        overflow = len(removable) - self.max_slots
        if overflow <= 0:
            return

        removable.sort(key=lambda s: s.current_activation(now))
        evicted = {id(s) for s in removable[:overflow]}
        self._slots = [s for s in self._slots if id(s) not in evicted]
        logger.debug(f"Evicted {overflow} working memory slot(s)")

    def prune(self, now: datetime | None = None) -> None:
        """Drop slots whose activation fell below the floor."""
        now = now or datetime.now()
        self._slots = [s for s in self._slots if s.is_active(now)]

    def clear(self) -> None:
        self._slots.clear()
        self._current_goal = None
        self._current_topic = None

    def build_context_prompt(self, now: datetime | None = None) -> str:
        """Render active facts, rules and episodes as labelled bullet sections."""
        active = self.active_slots(now)
        sections = [
            ("Known Facts", [s for s in active if s.type == SlotType.ACTIVE_FACT]),
            ("Behavioral Guidelines", [s for s in active if s.type == SlotType.ACTIVE_RULE]),
            ("Relevant Memories", [s for s in active if s.type == SlotType.RELEVANT_EPISODE]),
        ]

        blocks = []
        if self._current_goal is not None:
            blocks.append(f"## Current Goal\n{self._current_goal}\n")
        for title, items in sections:
            if items:
                lines = [f"## {title}"] + [f"- {s.content}" for s in items]
                blocks.append("\n".join(lines) + "\n")
        return "\n".join(blocks)

    def stats(self, now: datetime | None = None) -> dict[str, int]:
        active = self.active_slots(now)

        def count(slot_type: SlotType) -> int:
            return sum(1 for s in active if s.type == slot_type)

        return {
            "total": len(active),
            "facts": count(SlotType.ACTIVE_FACT),
            "episodes": count(SlotType.RELEVANT_EPISODE),
            "rules": count(SlotType.ACTIVE_RULE),
            "turns": count(SlotType.CONVERSATION_TURN),
        }

    def load(self, now: datetime | None = None) -> float:
        """Fraction of capacity currently active."""
        return len(self.active_slots(now)) / self.max_slots
