"""Memory manager - single writer for all memory stores.

Ingests conversations, voice memos and photos as episodic memories,
schedules background fact/procedure extraction, and assembles per-turn
context from facts, rules and decay-weighted episode retrieval.

Collaborator failures (search, persistence, transcription, captioning)
are logged and degraded to empty or partial results here; nothing in this
class should make a conversational turn fail.
"""

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from cortex.core.config import Settings, get_settings
from cortex.core.logging import get_logger
from cortex.core.types import ChatMessage
from cortex.llm.base import Captioner, Transcriber
from cortex.memory.episodic import (
    EmotionalValence,
    EpisodicMemory,
    ImportanceLevel,
    MemorySource,
)
from cortex.memory.extraction import CandidateExtractor, PatternExtractor
from cortex.memory.persistence import MemoryPersistence
from cortex.memory.procedural import ProceduralMemory, ProcedureStore
from cortex.memory.queue import ExtractionQueue, ExtractionTask
from cortex.memory.search import SearchIndex
from cortex.memory.semantic import FactCategory, FactStore, SemanticFact
from cortex.memory.working import WorkingMemory

logger = get_logger("memory.manager")

HIGH_IMPORTANCE_CUES = ("remember", "important", "don't forget", "always", "never")
PERSONAL_CUES = ("my name", "i am", "i work", "i live")

POSITIVE_WORDS = ("love", "like", "happy", "great", "awesome", "thanks", "good", "excited")
NEGATIVE_WORDS = ("hate", "dislike", "sad", "bad", "terrible", "angry", "frustrated")

# Strength assumed for search hits that carry no metadata trailer
UNKNOWN_STRENGTH = 0.5

RELEVANCE_WEIGHT = 0.6
STRENGTH_WEIGHT = 0.4

FACT_CONTEXT_RELEVANCE = 0.7
RULE_CONTEXT_RELEVANCE = 0.6

PHOTO_PROMPT = (
    "Describe this image briefly. Note any personal details like names, locations, events."
)


@dataclass
class MemoryRetrievalResult:
    """One retrieved episode with its scoring breakdown."""

    content: str
    relevance_score: float
    memory_strength: float
    combined_score: float
    memory_id: str | None = None
    memory: EpisodicMemory | None = None


@dataclass
class MemoryStatistics:
    episodic_count: int
    semantic_fact_count: int
    procedural_count: int
    working_memory_load: float
    average_fact_confidence: float
    average_procedural_confidence: float

    @property
    def total_memories(self) -> int:
        return self.episodic_count + self.semantic_fact_count + self.procedural_count


class MemoryManager:
    """Coordinates episodic, semantic, procedural and working memory."""

    def __init__(
        self,
        search: SearchIndex,
        persistence: MemoryPersistence,
        extractor: CandidateExtractor | None = None,
        transcriber: Transcriber | None = None,
        captioner: Captioner | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self._search = search
        self._persistence = persistence
        self._extractor = extractor or PatternExtractor()
        self._transcriber = transcriber
        self._captioner = captioner

        self._facts = FactStore()
        self._procedures = ProcedureStore()
        self._episodes: deque[EpisodicMemory] = deque(
            maxlen=self.settings.recent_episode_capacity
        )
        self._history: list[ChatMessage] = []
        self._working = WorkingMemory(
            max_slots=self.settings.working_memory_slots,
            max_conversation_turns=self.settings.working_memory_turns,
        )
        self._queue = ExtractionQueue(self._process_extraction)
        # Bumped by clear_all so in-flight extractions drop their results
        self._generation = 0

    # Read-only views

    @property
    def working_memory(self) -> WorkingMemory:
        return self._working

    @property
    def facts(self) -> tuple[SemanticFact, ...]:
        return self._facts.all_facts

    @property
    def procedures(self) -> tuple[ProceduralMemory, ...]:
        return self._procedures.all_procedures

    @property
    def recent_episodes(self) -> tuple[EpisodicMemory, ...]:
        return tuple(self._episodes)

    @property
    def extraction_queue(self) -> ExtractionQueue:
        return self._queue

    async def initialize(self) -> None:
        """Load persisted stores. Unreadable snapshots start empty."""
        try:
            self._facts.replace_all(await self._persistence.load_facts())
            self._procedures.replace_all(await self._persistence.load_procedures())
            self._episodes.clear()
            self._episodes.extend(await self._persistence.load_episodes())
        except Exception as e:
            logger.warning(f"Failed to load saved memory, starting fresh: {e}")

        logger.info(
            f"MemoryManager initialized: {len(self._facts)} facts, "
            f"{len(self._procedures)} procedures, {len(self._episodes)} episodes"
        )

    # Episodic ingestion

    async def store_episodic(
        self,
        content: str,
        source: MemorySource = MemorySource.CONVERSATION,
        importance: float = 0.5,
        valence: EmotionalValence = EmotionalValence.NEUTRAL,
        emotional_tags: Iterable[str] = (),
    ) -> EpisodicMemory:
        """Record an episode, index it, and queue extraction without waiting for it."""
        memory = EpisodicMemory.create(
            content=content,
            source=source,
            importance=importance,
            valence=valence,
            emotional_tags=list(emotional_tags),
        )

        try:
            await self._search.store(memory.id, memory.to_storage_format())
            logger.debug(f"Stored episodic memory: {memory.id} (importance: {importance})")
        except Exception as e:
            logger.warning(f"Search index unavailable, episode {memory.id} not indexed: {e}")

        self._episodes.append(memory)
        await self._save_episodes()

        self._queue.enqueue(ExtractionTask(text=content, memory_id=memory.id))
        return memory

    async def store_conversation(self, user_msg: str, assistant_msg: str) -> EpisodicMemory:
        memory = await self.store_episodic(
            content=f"User: {user_msg}\nAssistant: {assistant_msg}",
            source=MemorySource.CONVERSATION,
            importance=self._assess_importance(user_msg),
            valence=self._detect_valence(user_msg),
        )

        self._history.append(ChatMessage(role="user", content=user_msg))
        self._history.append(ChatMessage(role="assistant", content=assistant_msg))
        max_messages = self.settings.max_history_turns * 2
        if len(self._history) > max_messages:
            self._history = self._history[-max_messages:]

        self._working.add_conversation_turn("user", user_msg)
        self._working.add_conversation_turn("assistant", assistant_msg)
        return memory

    @staticmethod
    def _assess_importance(text: str) -> float:
        lower = text.lower()
        if any(cue in lower for cue in HIGH_IMPORTANCE_CUES):
            return 0.8
        if any(cue in lower for cue in PERSONAL_CUES):
            return 0.7
        return 0.5

    @staticmethod
    def _detect_valence(text: str) -> EmotionalValence:
        lower = text.lower()
        if any(word in lower for word in POSITIVE_WORDS):
            return EmotionalValence.POSITIVE
        if any(word in lower for word in NEGATIVE_WORDS):
            return EmotionalValence.NEGATIVE
        return EmotionalValence.NEUTRAL

    async def ingest_voice(self, audio_path: Path | str) -> str | None:
        """Transcribe a voice memo and store it. Returns the transcript, or None on failure."""
        if self._transcriber is None:
            logger.warning("Voice memo ignored: no transcriber configured")
            return None

        try:
            transcript = await self._transcriber.transcribe(Path(audio_path))
        except Exception as e:
            logger.warning(f"Transcription failed for {audio_path}: {e}")
            return None

        if not transcript or not transcript.strip():
            logger.warning(f"Empty transcript for {audio_path}")
            return None

        await self.store_episodic(
            content=f"Voice memo: {transcript}",
            source=MemorySource.VOICE,
            importance=0.7,
        )
        return transcript

    async def ingest_photo(self, image_path: Path | str) -> str | None:
        """Caption a photo and store it. Returns the caption, or None on failure."""
        if self._captioner is None:
            logger.warning("Photo ignored: no captioner configured")
            return None

        try:
            caption = await self._captioner.caption(Path(image_path), PHOTO_PROMPT)
        except Exception as e:
            logger.warning(f"Captioning failed for {image_path}: {e}")
            return None

        if not caption or not caption.strip():
            logger.warning(f"Empty caption for {image_path}")
            return None

        await self.store_episodic(
            content=f"Photo: {caption}",
            source=MemorySource.PHOTO,
            importance=0.6,
        )
        return caption

    async def remember_explicitly(
        self, content: str, importance: ImportanceLevel = ImportanceLevel.HIGH
    ) -> EpisodicMemory:
        return await self.store_episodic(
            content=f"User explicitly asked to remember: {content}",
            source=MemorySource.EXPLICIT,
            importance=importance.value,
        )

    # Extraction

    async def _process_extraction(self, task: ExtractionTask) -> None:
        """Reconcile extracted candidates into the fact and procedure stores."""
        generation = self._generation
        result = await self._extractor.extract(task.text)
        if generation != self._generation:
            logger.debug(f"Discarding extraction for {task.memory_id}: memory was cleared")
            return
        if result.is_empty:
            return

        for candidate in result.facts:
            self._facts.reconcile(
                SemanticFact.create(
                    predicate=candidate.predicate,
                    obj=candidate.object,
                    subject=candidate.subject,
                    source_memory_ids=[task.memory_id],
                )
            )
        for candidate in result.procedures:
            self._procedures.reconcile(
                ProceduralMemory.create(
                    type=candidate.type,
                    description=candidate.description,
                    condition=candidate.condition,
                    action=candidate.action,
                    evidence_ids=[task.memory_id],
                )
            )

        if result.facts:
            await self._save_facts()
        if result.procedures:
            await self._save_procedures()

    async def wait_for_extraction(self) -> None:
        """Block until the extraction queue is idle."""
        await self._queue.join()

    # Semantic and procedural access

    def get_all_facts(self) -> list[SemanticFact]:
        """Active (non-contradicted) facts."""
        return self._facts.active()

    def get_facts_by_category(self, category: FactCategory) -> list[SemanticFact]:
        return self._facts.by_category(category)

    def get_facts_as_context(self) -> str:
        return self._facts.summary(self.settings.max_context_facts)

    def list_all_facts(self) -> str:
        return self._facts.list_grouped()

    def get_relevant_procedures(self, context: str) -> list[ProceduralMemory]:
        return self._procedures.relevant(context, self.settings.min_procedure_confidence)

    # Retrieval

    async def retrieve_relevant(
        self, query: str, limit: int | None = None
    ) -> list[MemoryRetrievalResult]:
        """Search episodes and re-rank by relevance blended with decayed strength.

        Never raises; search failures yield an empty list.
        """
        if limit is None:
            limit = self.settings.retrieval_limit
        if limit <= 0 or len(query.strip()) < self.settings.min_query_length:
            return []

        try:
            hits = await self._search.search(query, limit * 2)
        except Exception as e:
            logger.warning(f"Memory search failed: {e}")
            return []

        cached = {m.id: m for m in self._episodes}
        touched_cache = False
        results = []
        total = len(hits)
        for i, hit in enumerate(hits):
            relevance = 1.0 - (i / total) * 0.5
            memory = self._resolve_episode(hit.content, cached)
            if memory is None:
                strength = UNKNOWN_STRENGTH
            else:
                strength = self._memory_strength(memory)
                touched_cache = touched_cache or memory.id in cached

            results.append(
                MemoryRetrievalResult(
                    content=EpisodicMemory.extract_content(hit.content),
                    relevance_score=relevance,
                    memory_strength=strength,
                    combined_score=relevance * RELEVANCE_WEIGHT + strength * STRENGTH_WEIGHT,
                    memory_id=memory.id if memory else None,
                    memory=memory,
                )
            )

        if touched_cache:
            await self._save_episodes()

        results.sort(key=lambda r: r.combined_score, reverse=True)
        return results[:limit]

    @staticmethod
    def _resolve_episode(
        stored: str, cached: dict[str, EpisodicMemory]
    ) -> EpisodicMemory | None:
        """Prefer the cached instance so access counts accumulate across retrievals."""
        meta = EpisodicMemory.extract_metadata(stored)
        if meta is None:
            return None
        memory_id = meta.get("id")
        if not isinstance(memory_id, str):
            return None
        if memory_id in cached:
            return cached[memory_id]
        try:
            return EpisodicMemory.from_storage_format(stored)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Unreadable episode metadata: {e}")
            return None

    @staticmethod
    def _memory_strength(memory: EpisodicMemory) -> float:
        """Retrieval counts as an access."""
        memory.record_access()
        return memory.strength()

    async def recall_memories(self, query: str) -> str:
        memories = await self.retrieve_relevant(query)
        if not memories:
            return f'No memories found for: "{query}"'
        lines = [
            f"- {m.content} (strength: {int(m.memory_strength * 100)}%)" for m in memories
        ]
        return "Found:\n" + "\n".join(lines)

    async def build_context(self, query: str) -> str:
        """Assemble facts, matching rules and relevant episodes for one turn.

        Depends only on current store state, so it is safe to call again
        after the generator has been reset.
        """
        self._working.set_user_statement(query)
        blocks = ["## Known facts about the user:\n" + self.get_facts_as_context()]

        for fact in self._facts.top(self.settings.context_fact_slots):
            self._working.add_fact(fact, relevance=FACT_CONTEXT_RELEVANCE)

        rules = self.get_relevant_procedures(query)[: self.settings.context_rule_slots]
        if rules:
            lines = [f"- {rule.as_instruction}" for rule in rules]
            # working memory holds a single rule slot: the strongest match
            self._working.add_rule(rules[0], relevance=RULE_CONTEXT_RELEVANCE)
            blocks.append("## Behavioral guidelines:\n" + "\n".join(lines))

        try:
            memories = await self.retrieve_relevant(
                query, limit=self.settings.context_episode_limit
            )
        except Exception as e:
            logger.warning(f"Episode retrieval failed while building context: {e}")
            memories = []

        if memories:
            lines = []
            for m in memories:
                lines.append(f"- {m.content}")
                if m.memory is not None:
                    self._working.add_episode(m.memory, relevance=m.relevance_score)
            blocks.append("## Relevant past conversations:\n" + "\n".join(lines))

        return "\n\n".join(blocks) + "\n"

    # Session management

    def get_history(self) -> tuple[ChatMessage, ...]:
        return tuple(self._history)

    def clear_history(self) -> None:
        """Forget the session, keep facts and procedures."""
        self._history.clear()
        self._working.clear()

    async def clear_all(self) -> None:
        self._generation += 1
        self._queue.clear()
        self._facts.clear()
        self._procedures.clear()
        self._episodes.clear()
        self._history.clear()
        self._working.clear()

        try:
            await self._persistence.clear()
        except Exception as e:
            logger.error(f"Failed to erase persisted memory: {e}")
        try:
            await self._search.clear()
        except Exception as e:
            logger.warning(f"Failed to clear search index: {e}")
        logger.info("All memory cleared")

    def get_statistics(self) -> MemoryStatistics:
        facts = self._facts.all_facts
        procedures = self._procedures.all_procedures
        return MemoryStatistics(
            episodic_count=len(self._episodes),
            semantic_fact_count=len(self._facts.active()),
            procedural_count=len(procedures),
            working_memory_load=self._working.load(),
            average_fact_confidence=(
                sum(f.confidence() for f in facts) / len(facts) if facts else 0.0
            ),
            average_procedural_confidence=(
                sum(p.current_confidence() for p in procedures) / len(procedures)
                if procedures
                else 0.0
            ),
        )

    # Persistence helpers; snapshot failures never propagate

    async def _save_facts(self) -> None:
        try:
            await self._persistence.save_facts(self._facts.all_facts)
        except Exception as e:
            logger.warning(f"Failed to save facts: {e}")

    async def _save_procedures(self) -> None:
        try:
            await self._persistence.save_procedures(self._procedures.all_procedures)
        except Exception as e:
            logger.warning(f"Failed to save procedures: {e}")

    async def _save_episodes(self) -> None:
        try:
            await self._persistence.save_episodes(self._episodes)
        except Exception as e:
            logger.warning(f"Failed to save episodes: {e}")
