"""
Dialogue Manager: lifecycle of a Socratic tutoring dialogue.

Flow:
1. start_dialogue() plans the path and renders the opening question
2. advance_dialogue() records the learner response, re-plans the path and
   renders the next question (the only await point is the model call)
3. end_dialogue() / abandon_dialogue() close the dialogue from any state
4. summarize_dialogue() reports effectiveness and tone

Dialogue objects are never mutated; every transition returns a new one.
"""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Sequence

from loguru import logger

from tutorcore.core.errors import InvalidStateTransition
from tutorcore.integrations.llm_client import LLMClient
from tutorcore.tutoring.socratic import (
    DialogueState,
    QuestionType,
    ResponseAnalysis,
    UnderstandingLevel,
    analyze_response,
    build_question_prompt,
    build_system_prompt,
    calculate_effectiveness,
    confidence_tone,
    generate_celebration,
    generate_guiding_question,
    plan_dialogue,
    record_exchange,
)

MAX_EXCHANGES = 15

OPENING_QUESTIONS = (
    "Let's explore {skill} together. What do you already know about {concept}?",
    "Before we dive in, what's your understanding of {concept}?",
    "What comes to mind when you think about {concept}?",
)


class DialogueStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class EndReason(str, Enum):
    PATH_COMPLETE = "path_complete"
    MAX_EXCHANGES = "max_exchanges"
    ENDED_EARLY = "ended_early"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class SocraticDialogue:
    """A Socratic dialogue with its lifecycle metadata."""

    dialogue_id: str
    learner_id: str
    state: DialogueState
    current_question: str | None
    current_question_type: QuestionType | None
    status: DialogueStatus = DialogueStatus.ACTIVE
    end_reason: EndReason | None = None
    started_at: datetime = field(default_factory=datetime.now)
    last_activity_at: datetime = field(default_factory=datetime.now)
    ended_at: datetime | None = None
    misconceptions_surfaced: tuple[str, ...] = ()

    @property
    def exchange_count(self) -> int:
        return len(self.state.exchanges)

    @property
    def is_active(self) -> bool:
        return self.status == DialogueStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "dialogue_id": self.dialogue_id,
            "learner_id": self.learner_id,
            "status": self.status.value,
            "end_reason": self.end_reason.value if self.end_reason else None,
            "current_question": self.current_question,
            "current_question_type": self.current_question_type.value if self.current_question_type else None,
            "started_at": self.started_at.isoformat(),
            "last_activity_at": self.last_activity_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "misconceptions_surfaced": list(self.misconceptions_surfaced),
            "state": self.state.to_dict(),
        }


@dataclass(frozen=True)
class DialogueTurn:
    """Result of advancing a dialogue by one learner response."""

    dialogue: SocraticDialogue
    analysis: ResponseAnalysis
    next_question: str | None
    next_question_type: QuestionType | None
    celebration: str | None = None

    @property
    def is_complete(self) -> bool:
        return not self.dialogue.is_active


@dataclass(frozen=True)
class DialogueSummary:
    dialogue_id: str
    skill_id: str
    status: DialogueStatus
    end_reason: EndReason | None
    total_exchanges: int
    discovery_made: bool
    final_understanding: UnderstandingLevel
    effectiveness_score: float
    interpretation: str
    misconceptions_surfaced: tuple[str, ...]
    confidence_tone: str
    duration_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "dialogue_id": self.dialogue_id,
            "skill_id": self.skill_id,
            "status": self.status.value,
            "end_reason": self.end_reason.value if self.end_reason else None,
            "total_exchanges": self.total_exchanges,
            "discovery_made": self.discovery_made,
            "final_understanding": self.final_understanding.value,
            "effectiveness_score": round(self.effectiveness_score, 4),
            "interpretation": self.interpretation,
            "misconceptions_surfaced": list(self.misconceptions_surfaced),
            "confidence_tone": self.confidence_tone,
            "duration_seconds": round(self.duration_seconds, 1),
        }


class DialogueManager:
    """
    Drives Socratic dialogues turn by turn.

    Holds no per-dialogue state: callers keep the SocraticDialogue values
    and serialize writes per dialogue id.
    """

    def __init__(self, llm: LLMClient | None = None, rng: random.Random | None = None):
        self.llm = llm
        self.rng = rng or random.Random()

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def start_dialogue(
        self,
        learner_id: str,
        skill_id: str,
        skill_name: str,
        target_concept: str,
        known_misconceptions: Sequence[str] = (),
        starting_understanding: UnderstandingLevel = UnderstandingLevel.NONE,
        now: datetime | None = None,
    ) -> SocraticDialogue:
        """Plan a dialogue and render its opening question."""
        now = now or datetime.now()
        state = plan_dialogue(skill_id, skill_name, target_concept, known_misconceptions, starting_understanding)
        opening_type = state.next_question_type or QuestionType.CLARIFYING
        opening = self.rng.choice(OPENING_QUESTIONS).format(skill=skill_name, concept=target_concept)

        dialogue = SocraticDialogue(
            dialogue_id=f"socratic-{uuid.uuid4().hex[:12]}",
            learner_id=learner_id,
            state=state,
            current_question=opening,
            current_question_type=opening_type,
            started_at=now,
            last_activity_at=now,
        )
        logger.info(f"Started Socratic dialogue {dialogue.dialogue_id} on {skill_id} for {learner_id}")
        return dialogue

    async def advance_dialogue(
        self,
        dialogue: SocraticDialogue,
        response: str,
        now: datetime | None = None,
    ) -> DialogueTurn:
        """
        Record a learner response and move to the next question.

        Raises:
            InvalidStateTransition: If the dialogue is not active
        """
        if not dialogue.is_active:
            raise InvalidStateTransition("dialogue", dialogue.dialogue_id, dialogue.status.value, "advance")

        now = now or datetime.now()
        question = dialogue.current_question or ""
        question_type = dialogue.current_question_type or QuestionType.CLARIFYING

        analysis = await analyze_response(response, dialogue.state, question, self.llm)
        state = record_exchange(dialogue.state, question, question_type, response, analysis, timestamp=now)
        surfaced = tuple(dict.fromkeys((*dialogue.misconceptions_surfaced, *analysis.misconceptions)))

        celebration = None
        if analysis.is_discovery:
            celebration = generate_celebration(analysis.discovery_description, self.rng)

        end_reason = None
        if state.is_complete:
            end_reason = EndReason.PATH_COMPLETE
        elif len(state.exchanges) >= MAX_EXCHANGES:
            end_reason = EndReason.MAX_EXCHANGES

        if end_reason is not None:
            logger.info(f"Dialogue {dialogue.dialogue_id} completed: {end_reason.value}")
            updated = replace(
                dialogue,
                state=state,
                current_question=None,
                current_question_type=None,
                status=DialogueStatus.COMPLETED,
                end_reason=end_reason,
                last_activity_at=now,
                ended_at=now,
                misconceptions_surfaced=surfaced,
            )
            return DialogueTurn(updated, analysis, None, None, celebration)

        next_type = state.next_question_type
        next_question = await self._render_question(state, next_type, response)

        updated = replace(
            dialogue,
            state=state,
            current_question=next_question,
            current_question_type=next_type,
            last_activity_at=now,
            misconceptions_surfaced=surfaced,
        )
        return DialogueTurn(updated, analysis, next_question, next_type, celebration)

    def end_dialogue(
        self,
        dialogue: SocraticDialogue,
        now: datetime | None = None,
    ) -> tuple[SocraticDialogue, DialogueSummary]:
        """
        Close a dialogue early. Accepted from any state.

        Returns:
            (closed dialogue, summary); already-closed dialogues are returned unchanged
        """
        now = now or datetime.now()
        if dialogue.is_active:
            dialogue = replace(
                dialogue,
                status=DialogueStatus.COMPLETED,
                end_reason=EndReason.ENDED_EARLY,
                current_question=None,
                current_question_type=None,
                last_activity_at=now,
                ended_at=now,
            )
            logger.info(f"Dialogue {dialogue.dialogue_id} ended early after {dialogue.exchange_count} exchanges")
        return dialogue, self.summarize_dialogue(dialogue, now)

    def abandon_dialogue(self, dialogue: SocraticDialogue, now: datetime | None = None) -> SocraticDialogue:
        """Mark an active dialogue abandoned; closed dialogues are returned unchanged."""
        if not dialogue.is_active:
            return dialogue

        now = now or datetime.now()
        logger.info(f"Dialogue {dialogue.dialogue_id} abandoned")
        return replace(
            dialogue,
            status=DialogueStatus.ABANDONED,
            end_reason=EndReason.ABANDONED,
            current_question=None,
            current_question_type=None,
            last_activity_at=now,
            ended_at=now,
        )

    def summarize_dialogue(self, dialogue: SocraticDialogue, now: datetime | None = None) -> DialogueSummary:
        """Summarize a dialogue in any state."""
        state = dialogue.state
        effectiveness = calculate_effectiveness(state)
        end = dialogue.ended_at or now or datetime.now()

        return DialogueSummary(
            dialogue_id=dialogue.dialogue_id,
            skill_id=state.skill_id,
            status=dialogue.status,
            end_reason=dialogue.end_reason,
            total_exchanges=len(state.exchanges),
            discovery_made=state.discovery_made,
            final_understanding=state.current_understanding,
            effectiveness_score=effectiveness.score,
            interpretation=effectiveness.interpretation,
            misconceptions_surfaced=dialogue.misconceptions_surfaced,
            confidence_tone=confidence_tone([e.student_response for e in state.exchanges]),
            duration_seconds=max(0.0, (end - dialogue.started_at).total_seconds()),
        )

    # ==========================================================================
    # Rendering
    # ==========================================================================

    async def _render_question(self, state: DialogueState, question_type: QuestionType, response: str) -> str:
        if self.llm is not None and self.llm.is_available:
            text = await self.llm.generate(
                build_question_prompt(state, question_type, response),
                system=build_system_prompt(state),
            )
            if text:
                return text
        return generate_guiding_question(state, question_type, self.rng)
