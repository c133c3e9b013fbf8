"""Candidate fact/procedure extraction from raw text.

The stores never parse text themselves; an extractor proposes candidates
and the manager reconciles them. `PatternExtractor` is the default,
regex-based proposer and can be swapped for any `CandidateExtractor`.
"""

import re
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from cortex.core.logging import get_logger
from cortex.memory.procedural import ProceduralType

logger = get_logger("memory.extraction")


@dataclass
class FactCandidate:
    """Proposed (subject, predicate, object) triple."""

    predicate: str
    object: str
    subject: str = "User"


@dataclass
class ProcedureCandidate:
    """Proposed behavioral rule or preference."""

    type: ProceduralType
    description: str
    condition: str
    action: str


@dataclass
class ExtractionResult:
    facts: list[FactCandidate] = field(default_factory=list)
    procedures: list[ProcedureCandidate] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.facts and not self.procedures


@runtime_checkable
class CandidateExtractor(Protocol):
    """Anything that turns text into candidate facts and procedures."""

    async def extract(self, text: str) -> ExtractionResult:
        ...


COMMON_WORDS = frozenset(
    """
    a an the and or but is are was were be been being have has had do does did
    will would could should may might must shall can need dare ought used to of
    in for on with at by from as into through during before after above below
    between under again further then once here there when where why how all each
    few more most other some such no nor not only own same so than too very just
    also going doing trying looking sure sorry fine okay ok really still always
    never currently back home new here
    """.split()
)

# Words that follow "I'm" without being a name
EMOTION_WORDS = frozenset(
    """
    stressed happy sad anxious tired overwhelmed frustrated excited angry bored
    busy good great glad worried scared nervous hungry sick feeling
    """.split()
)

EMOTIONS = (
    "stressed",
    "happy",
    "sad",
    "anxious",
    "tired",
    "overwhelmed",
    "frustrated",
    "excited",
)

_APOSTROPHES = str.maketrans({"‘": "'", "’": "'", "`": "'", "´": "'"})

NAME_PATTERNS = [
    re.compile(r"\bmy\s+name\s+is\s+([a-z]+)", re.IGNORECASE),
    re.compile(r"\bcall\s+me\s+([a-z]+)", re.IGNORECASE),
    re.compile(r"\bi'?m\s+([a-z]+)", re.IGNORECASE),
    re.compile(r"\bi\s+am\s+([a-z]+)", re.IGNORECASE),
]
WORK_PATTERNS = [
    re.compile(r"\bi\s+work\s+at\s+([a-z0-9]+)", re.IGNORECASE),
    re.compile(r"\bwork\s+for\s+([a-z0-9]+)", re.IGNORECASE),
    re.compile(r"\bworking\s+at\s+([a-z0-9]+)", re.IGNORECASE),
]
LOCATION_PATTERNS = [
    re.compile(r"\bi\s+live\s+in\s+([a-z]+)", re.IGNORECASE),
    re.compile(r"\bi'?m\s+from\s+([a-z]+)", re.IGNORECASE),
    re.compile(r"\bbased\s+in\s+([a-z]+)", re.IGNORECASE),
]
LIKE_PATTERNS = [
    re.compile(r"\bi\s+(?:really\s+)?(?:like|love|enjoy)\s+([a-z]+)", re.IGNORECASE),
]
EMOTION_PATTERN = re.compile(
    r"(?:\bi'?m|\bi\s+am|\bi\s+feel|\bfeeling)\s+(?:really\s+|quite\s+|very\s+|so\s+)?("
    + "|".join(EMOTIONS)
    + r")\b",
    re.IGNORECASE,
)

_CLAUSE_END = r"(?:\.|,|!|\?|$)"
PREFERENCE_PATTERNS = [
    re.compile(r"\bi\s+prefer\s+([a-z\s]+?)" + _CLAUSE_END),
    re.compile(r"\bi\s+(?:like|want)\s+([a-z\s]+?)\s+better"),
]
RULE_PATTERNS = [
    (re.compile(r"\bdon'?t\s+([a-z\s]+?)" + _CLAUSE_END), "avoid"),
    (re.compile(r"\bnever\s+([a-z\s]+?)" + _CLAUSE_END), "never"),
    (re.compile(r"\balways\s+([a-z\s]+?)" + _CLAUSE_END), "always"),
]
HABIT_PATTERNS = [
    re.compile(r"\bi\s+(?:usually|normally|typically)\s+([a-z\s]+?)" + _CLAUSE_END),
    re.compile(r"\bevery\s+(?:day|morning|evening|night)\s+i\s+([a-z\s]+?)" + _CLAUSE_END),
]


def user_part(content: str) -> str:
    """Strip a "User: ...\\nAssistant: ..." exchange down to the user's words."""
    if not content.startswith("User:"):
        return content
    assistant_index = content.find("Assistant:")
    if assistant_index > 0:
        return content[5:assistant_index].strip()
    return content[5:].strip()


def _first_capture(patterns: list[re.Pattern], text: str, reject: frozenset[str]) -> str | None:
    for pattern in patterns:
        for match in pattern.finditer(text):
            value = match.group(1).strip()
            if len(value) > 1 and value.lower() not in reject:
                return value
    return None


class PatternExtractor:
    """Regex heuristics for common personal facts and behavioral rules."""

    async def extract(self, text: str) -> ExtractionResult:
        normalized = user_part(text).translate(_APOSTROPHES)
        result = ExtractionResult(
            facts=self.extract_facts(normalized),
            procedures=self.extract_procedures(normalized),
        )
        logger.debug(
            f"Extracted {len(result.facts)} fact(s), {len(result.procedures)} procedure(s)"
        )
        return result

    def extract_facts(self, text: str) -> list[FactCandidate]:
        facts = []

        name = _first_capture(NAME_PATTERNS, text, COMMON_WORDS | EMOTION_WORDS)
        if name:
            facts.append(FactCandidate("name_is", name))

        company = _first_capture(WORK_PATTERNS, text, COMMON_WORDS)
        if company:
            facts.append(FactCandidate("works_at", company))

        place = _first_capture(LOCATION_PATTERNS, text, COMMON_WORDS)
        if place:
            facts.append(FactCandidate("lives_in", place))

        liked = _first_capture(LIKE_PATTERNS, text, COMMON_WORDS)
        if liked:
            facts.append(FactCandidate("likes", liked))

        for emotion in dict.fromkeys(m.lower() for m in EMOTION_PATTERN.findall(text)):
            facts.append(FactCandidate("feels", emotion))

        return facts

    def extract_procedures(self, text: str) -> list[ProcedureCandidate]:
        lowered = text.lower()
        procedures = []

        for pattern in PREFERENCE_PATTERNS:
            match = pattern.search(lowered)
            if match and len(match.group(1).strip()) > 2:
                pref = match.group(1).strip()
                procedures.append(
                    ProcedureCandidate(
                        type=ProceduralType.PREFERENCE,
                        description=f"Prefers {pref}",
                        condition="always",
                        action=f"Use {pref} when possible",
                    )
                )
                break

        for pattern, kind in RULE_PATTERNS:
            match = pattern.search(lowered)
            if match and len(match.group(1).strip()) > 2:
                rule = match.group(1).strip()
                procedures.append(
                    ProcedureCandidate(
                        type=ProceduralType.RULE,
                        description=f"{kind.upper()}: {rule}",
                        condition="always",
                        action=f"{kind} {rule}",
                    )
                )
                break

        for pattern in HABIT_PATTERNS:
            match = pattern.search(lowered)
            if match and len(match.group(1).strip()) > 2:
                habit = match.group(1).strip()
                procedures.append(
                    ProcedureCandidate(
                        type=ProceduralType.HABIT,
                        description=f"Usually {habit}",
                        condition="regularly",
                        action=f"Remember user habit: {habit}",
                    )
                )
                break

        return procedures
