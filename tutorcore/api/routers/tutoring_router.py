"""
Tutoring API Router.

Endpoints for the tutoring engine:
- Mastery updates from graded attempts
- Skill recommendations with explanations
- Per-skill BKT parameter fitting
- Micro-assessment triggering
- Socratic dialogue start / respond / end
"""

from __future__ import annotations

import random
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tutorcore.adaptive.micro_assessment import (
    AssessmentTriggerContext,
    StaleSkill,
    should_trigger_micro_assessment,
)
from tutorcore.adaptive.recommendations import (
    DEFAULT_MAX_SKILLS,
    RecentPerformance,
    RecommendationContext,
    SkillCandidate,
    recommend_skills,
)
from tutorcore.core.profile import LoadLevel
from tutorcore.db.database import get_session
from tutorcore.db.repository import TutorRepository
from tutorcore.integrations.llm_client import LLMClient
from tutorcore.learning.bkt import BKTParams, PracticeAttempt, fit_skill_bkt
from tutorcore.tutoring.dialogue_manager import DialogueManager, SocraticDialogue

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class MasteryUpdateRequest(BaseModel):
    """Request model for applying one graded attempt."""

    learner_id: str = Field(..., description="Learner identifier")
    skill_id: str = Field(..., description="Skill identifier")
    is_correct: bool = Field(..., description="Whether the attempt was correct")
    timestamp: datetime | None = Field(None, description="When the attempt happened (default: now)")
    response_time_ms: int | None = Field(None, ge=0, description="Time the learner took")
    expected_time_ms: int | None = Field(None, gt=0, description="Typical time for this item")


class BKTParamsModel(BaseModel):
    p_l0: float
    p_t: float
    p_s: float
    p_g: float


class MasteryStateResponse(BaseModel):
    """Response model for a learner's skill state."""

    learner_id: str
    skill_id: str
    p_mastery: float
    scaffold_level: int
    ease_factor: float
    interval_days: int
    repetitions: int
    consecutive_correct: int
    consecutive_incorrect: int
    attempt_count: int
    correct_count: int
    mastery_status: str
    mastery_threshold: float
    params: BKTParamsModel
    next_review_at: str | None
    last_practiced_at: str | None
    last_retrieval_at: str | None


class SkillCandidateModel(BaseModel):
    """A skill offered for recommendation."""

    skill_id: str = Field(..., description="Skill identifier")
    name: str = Field(..., description="Display name")
    difficulty: float = Field(0.5, ge=0, le=1, description="Item difficulty (0-1)")
    readiness: float = Field(1.0, ge=0, le=1, description="Share of prerequisites mastered")
    prerequisites_met: bool = Field(True, description="Whether all prerequisites are mastered")
    cognitive_load: LoadLevel = Field(LoadLevel.MEDIUM, description="Intrinsic load: low, medium, high")
    element_interactivity: LoadLevel = Field(LoadLevel.MEDIUM, description="Element interactivity")
    is_threshold_concept: bool = Field(False, description="Gatekeeper concept for later material")
    estimated_minutes: int = Field(30, ge=1, description="Baseline time estimate")


class RecentPerformanceModel(BaseModel):
    consecutive_successes: int = Field(0, ge=0)
    consecutive_failures: int = Field(0, ge=0)
    session_duration_ms: int = Field(0, ge=0)
    accuracy: float | None = Field(None, ge=0, le=1)


class RecommendationRequest(BaseModel):
    """Request model for ranking candidate skills."""

    learner_id: str = Field(..., description="Learner identifier")
    candidates: list[SkillCandidateModel] = Field(..., description="Skills to rank")
    recent_performance: RecentPerformanceModel | None = Field(None, description="Current session streaks")
    max_skills: int = Field(DEFAULT_MAX_SKILLS, ge=1, le=20, description="Number of recommendations")


class FitRequest(BaseModel):
    """Request model for fitting one skill's BKT parameters."""

    skill_id: str = Field(..., description="Skill identifier")
    store: bool = Field(True, description="Persist the fit when it is accepted")


class FitResponse(BaseModel):
    """Response model for a BKT fit."""

    skill_id: str
    n_attempts: int
    stored: bool
    params: BKTParamsModel
    log_likelihood: float | None
    iterations: int
    converged: bool
    fit_quality: str
    insufficient_data: bool
    brier_score: float | None
    rejected_reason: str | None


class StaleSkillModel(BaseModel):
    skill_id: str
    name: str
    difficulty: float = Field(0.5, ge=0, le=1)


class AssessmentTriggerRequest(BaseModel):
    """Request model for the micro-assessment trigger."""

    learner_id: str = Field(..., description="Learner identifier")
    minutes_since_last_assessment: float = Field(..., ge=0, description="Minutes since the last probe")
    interactions_since_last_assessment: int = Field(..., ge=0, description="Interactions since the last probe")
    session_minutes: float = Field(0.0, ge=0, description="Length of the current session")
    recent_accuracy: float | None = Field(None, ge=0, le=1, description="Accuracy over recent items")
    stale_skills: list[StaleSkillModel] = Field(default_factory=list, description="Skills with stale evidence")
    notebook_id: str | None = Field(None, description="Notebook the session belongs to")


class DialogueStartRequest(BaseModel):
    """Request model for opening a Socratic dialogue."""

    learner_id: str = Field(..., description="Learner identifier")
    skill_id: str = Field(..., description="Skill identifier")
    skill_name: str = Field(..., description="Skill display name")
    target_concept: str = Field(..., description="Concept the learner should discover")
    known_misconceptions: list[str] = Field(default_factory=list, description="Misconceptions to listen for")
    notebook_id: str | None = Field(None, description="Notebook the session belongs to")


class DialogueResponseRequest(BaseModel):
    response: str = Field(..., min_length=1, description="Learner's answer to the current question")


# ========================================
# Dependencies
# ========================================


class DialogueStore:
    """In-process registry of open dialogues, keyed by dialogue id."""

    def __init__(self) -> None:
        self._dialogues: dict[str, tuple[SocraticDialogue, str | None]] = {}

    def get(self, dialogue_id: str) -> tuple[SocraticDialogue, str | None]:
        if dialogue_id not in self._dialogues:
            raise HTTPException(status_code=404, detail="Dialogue not found")
        return self._dialogues[dialogue_id]

    def put(self, dialogue: SocraticDialogue, notebook_id: str | None) -> None:
        self._dialogues[dialogue.dialogue_id] = (dialogue, notebook_id)


def get_repository(session: Session = Depends(get_session)) -> TutorRepository:
    return TutorRepository(session)


def get_dialogue_store(request: Request) -> DialogueStore:
    store = getattr(request.app.state, "dialogues", None)
    if store is None:
        store = DialogueStore()
        request.app.state.dialogues = store
    return store


async def get_llm_client() -> AsyncGenerator[LLMClient, None]:
    """Per-request language-model client."""
    client = LLMClient.from_settings()
    try:
        yield client
    finally:
        await client.close()


# ========================================
# Mastery
# ========================================


@router.post(
    "/mastery/update",
    response_model=MasteryStateResponse,
    summary="Apply a graded attempt",
)
def update_mastery_endpoint(
    request: MasteryUpdateRequest,
    repo: TutorRepository = Depends(get_repository),
) -> dict[str, Any]:
    """Update P(mastery), scaffold level and review schedule for one attempt."""
    attempt = PracticeAttempt(
        is_correct=request.is_correct,
        timestamp=request.timestamp or datetime.now(),
        skill_id=request.skill_id,
        response_time_ms=request.response_time_ms,
        expected_time_ms=request.expected_time_ms,
        learner_id=request.learner_id,
    )
    state = repo.apply_attempt(request.learner_id, request.skill_id, attempt)
    logger.info(
        f"Mastery {request.learner_id}/{request.skill_id}: p={state.p_mastery:.3f} "
        f"scaffold={state.scaffold_level} ({state.mastery_status.value})"
    )
    return state.to_dict()


# ========================================
# Recommendations
# ========================================


@router.post(
    "/recommendations",
    summary="Rank candidate skills",
)
def recommendations_endpoint(
    request: RecommendationRequest,
    repo: TutorRepository = Depends(get_repository),
) -> dict[str, Any]:
    """
    Rank candidate skills for a learner.

    Each candidate is joined with the learner's stored skill state and the
    stored learner profile when they exist.
    """
    candidates = [
        SkillCandidate(
            **candidate.model_dump(),
            state=repo.get_skill_state(request.learner_id, candidate.skill_id),
        )
        for candidate in request.candidates
    ]
    recent = RecentPerformance(**request.recent_performance.model_dump()) if request.recent_performance else None

    result = recommend_skills(
        RecommendationContext(
            learner_id=request.learner_id,
            candidates=candidates,
            profile=repo.get_profile(request.learner_id),
            recent_performance=recent,
            max_skills=request.max_skills,
        )
    )
    return result.to_dict()


# ========================================
# Parameter Fitting
# ========================================


@router.post(
    "/bkt/fit",
    response_model=FitResponse,
    summary="Fit BKT parameters for a skill",
)
def fit_endpoint(
    request: FitRequest,
    repo: TutorRepository = Depends(get_repository),
) -> dict[str, Any]:
    """
    Fit a skill's parameters from all stored attempts.

    Fits with fewer than five attempts, or that land outside the
    identifiable range, keep the previous parameters and are not stored.
    """
    attempts = repo.get_skill_attempts(request.skill_id)
    previous = repo.get_latest_params(request.skill_id) or BKTParams.from_settings()
    result = fit_skill_bkt(attempts, initial=previous)

    stored = False
    if request.store:
        stored = repo.save_fitted_params(request.skill_id, result, n_attempts=len(attempts)) is not None

    return {"skill_id": request.skill_id, "n_attempts": len(attempts), "stored": stored, **result.to_dict()}


# ========================================
# Micro-Assessment
# ========================================


@router.post(
    "/assessment/trigger",
    summary="Decide whether to run a micro-assessment",
)
def assessment_trigger_endpoint(
    request: AssessmentTriggerRequest,
    repo: TutorRepository = Depends(get_repository),
) -> dict[str, Any]:
    context = AssessmentTriggerContext(
        time_since_last_assessment=timedelta(minutes=request.minutes_since_last_assessment),
        interactions_since_last_assessment=request.interactions_since_last_assessment,
        profile=repo.get_profile(request.learner_id),
        current_session_duration=timedelta(minutes=request.session_minutes),
        recent_accuracy=request.recent_accuracy,
        stale_skills=[StaleSkill(**s.model_dump()) for s in request.stale_skills],
    )
    recommendation = should_trigger_micro_assessment(context, rng=random.Random())

    if recommendation.should_trigger:
        repo.log_session_event(
            request.learner_id,
            "assessment",
            "triggered",
            payload=recommendation.to_dict(),
            notebook_id=request.notebook_id,
        )
    return recommendation.to_dict()


# ========================================
# Socratic Dialogue
# ========================================


@router.post(
    "/dialogues",
    summary="Start a Socratic dialogue",
)
def start_dialogue_endpoint(
    request: DialogueStartRequest,
    repo: TutorRepository = Depends(get_repository),
    store: DialogueStore = Depends(get_dialogue_store),
) -> dict[str, Any]:
    dialogue = DialogueManager().start_dialogue(
        learner_id=request.learner_id,
        skill_id=request.skill_id,
        skill_name=request.skill_name,
        target_concept=request.target_concept,
        known_misconceptions=request.known_misconceptions,
    )
    store.put(dialogue, request.notebook_id)
    repo.log_session_event(
        request.learner_id,
        "dialogue",
        "started",
        payload={"skill_id": request.skill_id, "target_concept": request.target_concept},
        notebook_id=request.notebook_id,
        session_ref=dialogue.dialogue_id,
    )
    return dialogue.to_dict()


@router.post(
    "/dialogues/{dialogue_id}/respond",
    summary="Answer the current dialogue question",
)
async def respond_dialogue_endpoint(
    dialogue_id: str,
    request: DialogueResponseRequest,
    repo: TutorRepository = Depends(get_repository),
    store: DialogueStore = Depends(get_dialogue_store),
    llm: LLMClient = Depends(get_llm_client),
) -> dict[str, Any]:
    """
    Record the learner's answer and return the next question.

    Answering a completed or abandoned dialogue returns 409.
    """
    dialogue, notebook_id = store.get(dialogue_id)
    turn = await DialogueManager(llm=llm).advance_dialogue(dialogue, request.response)
    store.put(turn.dialogue, notebook_id)

    repo.log_session_event(
        dialogue.learner_id,
        "dialogue",
        "exchange",
        payload={
            "understanding": turn.analysis.understanding_level.value,
            "discovery": turn.analysis.is_discovery,
            "next_question_type": turn.next_question_type.value if turn.next_question_type else None,
        },
        notebook_id=notebook_id,
        session_ref=dialogue_id,
    )
    return {
        "dialogue": turn.dialogue.to_dict(),
        "next_question": turn.next_question,
        "next_question_type": turn.next_question_type.value if turn.next_question_type else None,
        "celebration": turn.celebration,
        "is_complete": turn.is_complete,
    }


@router.post(
    "/dialogues/{dialogue_id}/end",
    summary="End a dialogue and summarize it",
)
def end_dialogue_endpoint(
    dialogue_id: str,
    repo: TutorRepository = Depends(get_repository),
    store: DialogueStore = Depends(get_dialogue_store),
) -> dict[str, Any]:
    dialogue, notebook_id = store.get(dialogue_id)
    closed, summary = DialogueManager().end_dialogue(dialogue)
    store.put(closed, notebook_id)

    repo.log_session_event(
        dialogue.learner_id,
        "dialogue",
        "ended",
        payload=summary.to_dict(),
        notebook_id=notebook_id,
        session_ref=dialogue_id,
    )
    return summary.to_dict()
