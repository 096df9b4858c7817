"""
Learner store repository.

Maps between the tutoring engine's frozen value objects and the SQLAlchemy
rows in tutorcore.db.models. The repository flushes but never commits:
transaction boundaries belong to the caller (session_scope() or the
FastAPI get_session dependency).

Keys:
- skill state and attempts: (learner_id, skill_id)
- session logs: (notebook_id, learner_id)
- fitted parameters: skill_id, newest fitted_at wins
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from tutorcore.core.profile import InverseProfile
from tutorcore.db.models import (
    BKTParamsRecord,
    LearnerProfileRecord,
    LearnerSkillStateRecord,
    PracticeAttemptRecord,
    SessionLogEntry,
)
from tutorcore.learning.bkt import BKTParams, FitResult, MasteryStatus, PracticeAttempt
from tutorcore.learning.mastery_tracker import LearnerSkillState, update_mastery
from tutorcore.tutoring.productive_failure import AttemptCategory, ExplorationAttempt

EXPLORATION_ATTEMPT_EVENT = "attempt_recorded"


class TutorRepository:
    """
    Persistence for learner skill state, attempts, fitted parameters,
    profiles and session logs.
    """

    def __init__(self, session: Session):
        self.session = session

    # ========================================
    # Skill State
    # ========================================

    def _state_record(self, learner_id: str, skill_id: str) -> Optional[LearnerSkillStateRecord]:
        stmt = select(LearnerSkillStateRecord).where(
            LearnerSkillStateRecord.learner_id == learner_id,
            LearnerSkillStateRecord.skill_id == skill_id,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def get_skill_state(self, learner_id: str, skill_id: str) -> Optional[LearnerSkillState]:
        record = self._state_record(learner_id, skill_id)
        return _state_from_record(record) if record else None

    def get_learner_states(self, learner_id: str) -> list[LearnerSkillState]:
        stmt = (
            select(LearnerSkillStateRecord)
            .where(LearnerSkillStateRecord.learner_id == learner_id)
            .order_by(LearnerSkillStateRecord.skill_id)
        )
        return [_state_from_record(r) for r in self.session.execute(stmt).scalars()]

    def save_skill_state(self, state: LearnerSkillState) -> None:
        """Insert or overwrite the row for (learner_id, skill_id)."""
        record = self._state_record(state.learner_id, state.skill_id)
        if record is None:
            record = LearnerSkillStateRecord(learner_id=state.learner_id, skill_id=state.skill_id)
            self.session.add(record)

        record.p_mastery = state.p_mastery
        record.mastery_status = state.mastery_status.value
        record.mastery_threshold = state.mastery_threshold
        record.scaffold_level = state.scaffold_level
        record.p_l0 = state.params.p_l0
        record.p_t = state.params.p_t
        record.p_s = state.params.p_s
        record.p_g = state.params.p_g
        record.ease_factor = state.ease_factor
        record.interval_days = state.interval_days
        record.repetitions = state.repetitions
        record.next_review_at = state.next_review_at
        record.consecutive_correct = state.consecutive_correct
        record.consecutive_incorrect = state.consecutive_incorrect
        record.attempt_count = state.attempt_count
        record.correct_count = state.correct_count
        record.last_practiced_at = state.last_practiced_at
        record.last_retrieval_at = state.last_retrieval_at
        self.session.flush()

    def apply_attempt(
        self,
        learner_id: str,
        skill_id: str,
        attempt: PracticeAttempt,
        mastery_threshold: float | None = None,
    ) -> LearnerSkillState:
        """
        Load (or create) the skill state, apply the attempt, and persist both.

        A new state starts from the skill's latest fitted parameters, or the
        configured defaults when the skill has never been fitted.
        """
        state = self.get_skill_state(learner_id, skill_id)
        if state is None:
            params = self.get_latest_params(skill_id) or BKTParams.from_settings()
            if mastery_threshold is None:
                state = LearnerSkillState.new(learner_id, skill_id, params)
            else:
                state = LearnerSkillState.new(learner_id, skill_id, params, mastery_threshold)
            logger.debug(f"Created skill state {learner_id}/{skill_id} (p_l0={params.p_l0:.2f})")

        updated = update_mastery(state, attempt)
        self.save_skill_state(updated)
        self.record_attempt(learner_id, skill_id, attempt, p_mastery_after=updated.p_mastery)
        return updated

    # ========================================
    # Practice Attempts
    # ========================================

    def record_attempt(
        self,
        learner_id: str,
        skill_id: str,
        attempt: PracticeAttempt,
        p_mastery_after: float | None = None,
    ) -> None:
        self.session.add(
            PracticeAttemptRecord(
                learner_id=learner_id,
                skill_id=skill_id,
                is_correct=attempt.is_correct,
                attempted_at=attempt.timestamp,
                response_time_ms=attempt.response_time_ms,
                expected_time_ms=attempt.expected_time_ms,
                p_mastery_after=p_mastery_after,
            )
        )
        self.session.flush()

    def get_attempts(self, learner_id: str, skill_id: str | None = None) -> list[PracticeAttempt]:
        """Attempt history for a learner, oldest first."""
        stmt = select(PracticeAttemptRecord).where(PracticeAttemptRecord.learner_id == learner_id)
        if skill_id is not None:
            stmt = stmt.where(PracticeAttemptRecord.skill_id == skill_id)
        stmt = stmt.order_by(PracticeAttemptRecord.attempted_at)
        return [_attempt_from_record(r) for r in self.session.execute(stmt).scalars()]

    def get_skill_attempts(self, skill_id: str) -> list[PracticeAttempt]:
        """All learners' attempts on a skill, grouped by learner then ordered by time."""
        stmt = (
            select(PracticeAttemptRecord)
            .where(PracticeAttemptRecord.skill_id == skill_id)
            .order_by(PracticeAttemptRecord.learner_id, PracticeAttemptRecord.attempted_at)
        )
        return [_attempt_from_record(r) for r in self.session.execute(stmt).scalars()]

    def get_attempts_by_skill(self) -> dict[str, list[PracticeAttempt]]:
        stmt = select(PracticeAttemptRecord).order_by(
            PracticeAttemptRecord.skill_id,
            PracticeAttemptRecord.learner_id,
            PracticeAttemptRecord.attempted_at,
        )
        grouped: dict[str, list[PracticeAttempt]] = defaultdict(list)
        for record in self.session.execute(stmt).scalars():
            grouped[record.skill_id].append(_attempt_from_record(record))
        return dict(grouped)

    # ========================================
    # Fitted Parameters
    # ========================================

    def save_fitted_params(
        self,
        skill_id: str,
        result: FitResult,
        n_attempts: int,
        fitted_at: datetime | None = None,
    ) -> Optional[BKTParamsRecord]:
        """
        Store a fit as a new row.

        Insufficient-data and rejected fits are not stored, so the previous
        parameters stay in effect.
        """
        if result.insufficient_data or result.rejected_reason:
            logger.info(
                f"Fit for {skill_id} not stored: "
                f"{'insufficient data' if result.insufficient_data else result.rejected_reason}"
            )
            return None

        record = BKTParamsRecord(
            skill_id=skill_id,
            p_l0=result.params.p_l0,
            p_t=result.params.p_t,
            p_s=result.params.p_s,
            p_g=result.params.p_g,
            log_likelihood=result.log_likelihood if math.isfinite(result.log_likelihood) else None,
            brier_score=result.brier_score,
            fit_quality=result.fit_quality.value,
            n_attempts=n_attempts,
            iterations=result.iterations,
            fitted_at=fitted_at or datetime.now(),
        )
        self.session.add(record)
        self.session.flush()
        logger.info(f"Stored BKT params for {skill_id} ({result.fit_quality.value}, n={n_attempts})")
        return record

    def get_latest_params(self, skill_id: str) -> Optional[BKTParams]:
        stmt = (
            select(BKTParamsRecord)
            .where(BKTParamsRecord.skill_id == skill_id)
            .order_by(BKTParamsRecord.fitted_at.desc())
            .limit(1)
        )
        record = self.session.execute(stmt).scalar_one_or_none()
        if record is None:
            return None
        return BKTParams(p_l0=record.p_l0, p_t=record.p_t, p_s=record.p_s, p_g=record.p_g)

    def get_params_history(self, skill_id: str) -> list[BKTParamsRecord]:
        stmt = (
            select(BKTParamsRecord)
            .where(BKTParamsRecord.skill_id == skill_id)
            .order_by(BKTParamsRecord.fitted_at)
        )
        return list(self.session.execute(stmt).scalars())

    # ========================================
    # Learner Profile
    # ========================================

    def get_profile(self, learner_id: str) -> Optional[InverseProfile]:
        record = self.session.get(LearnerProfileRecord, learner_id)
        return InverseProfile.from_dict(record.profile) if record else None

    def save_profile(self, learner_id: str, profile: InverseProfile) -> None:
        record = self.session.get(LearnerProfileRecord, learner_id)
        if record is None:
            self.session.add(LearnerProfileRecord(learner_id=learner_id, profile=profile.to_dict()))
        else:
            record.profile = profile.to_dict()
        self.session.flush()

    # ========================================
    # Session Logs
    # ========================================

    def log_session_event(
        self,
        learner_id: str,
        session_type: str,
        event: str,
        payload: dict[str, Any] | None = None,
        notebook_id: str | None = None,
        session_ref: str | None = None,
        now: datetime | None = None,
    ) -> SessionLogEntry:
        entry = SessionLogEntry(
            learner_id=learner_id,
            notebook_id=notebook_id,
            session_type=session_type,
            session_ref=session_ref,
            event=event,
            payload=payload or {},
            created_at=now or datetime.now(),
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def get_session_events(
        self,
        learner_id: str,
        notebook_id: str | None = None,
        session_ref: str | None = None,
    ) -> list[SessionLogEntry]:
        stmt = select(SessionLogEntry).where(SessionLogEntry.learner_id == learner_id)
        if notebook_id is not None:
            stmt = stmt.where(SessionLogEntry.notebook_id == notebook_id)
        if session_ref is not None:
            stmt = stmt.where(SessionLogEntry.session_ref == session_ref)
        stmt = stmt.order_by(SessionLogEntry.created_at)
        return list(self.session.execute(stmt).scalars())

    def log_exploration_attempt(
        self,
        learner_id: str,
        session_id: str,
        attempt: ExplorationAttempt,
        notebook_id: str | None = None,
    ) -> SessionLogEntry:
        return self.log_session_event(
            learner_id,
            "exploration",
            EXPLORATION_ATTEMPT_EVENT,
            payload=attempt.to_dict(),
            notebook_id=notebook_id,
            session_ref=session_id,
            now=attempt.timestamp,
        )

    def get_exploration_attempts(self, learner_id: str, session_id: str) -> list[ExplorationAttempt]:
        events = self.get_session_events(learner_id, session_ref=session_id)
        return [
            _exploration_attempt_from_payload(e.payload)
            for e in events
            if e.event == EXPLORATION_ATTEMPT_EVENT
        ]


# ========================================
# Row <-> value object mapping
# ========================================


def _state_from_record(record: LearnerSkillStateRecord) -> LearnerSkillState:
    return LearnerSkillState(
        learner_id=record.learner_id,
        skill_id=record.skill_id,
        p_mastery=record.p_mastery,
        scaffold_level=record.scaffold_level,
        ease_factor=record.ease_factor,
        interval_days=record.interval_days,
        repetitions=record.repetitions,
        consecutive_correct=record.consecutive_correct,
        consecutive_incorrect=record.consecutive_incorrect,
        attempt_count=record.attempt_count,
        correct_count=record.correct_count,
        mastery_status=MasteryStatus(record.mastery_status),
        mastery_threshold=record.mastery_threshold,
        params=BKTParams(p_l0=record.p_l0, p_t=record.p_t, p_s=record.p_s, p_g=record.p_g),
        next_review_at=record.next_review_at,
        last_practiced_at=record.last_practiced_at,
        last_retrieval_at=record.last_retrieval_at,
    )


def _attempt_from_record(record: PracticeAttemptRecord) -> PracticeAttempt:
    return PracticeAttempt(
        is_correct=record.is_correct,
        timestamp=record.attempted_at,
        skill_id=record.skill_id,
        response_time_ms=record.response_time_ms,
        expected_time_ms=record.expected_time_ms,
        learner_id=record.learner_id,
    )


def _exploration_attempt_from_payload(payload: dict[str, Any]) -> ExplorationAttempt:
    return ExplorationAttempt(
        attempt_number=payload["attempt_number"],
        content=payload["content"],
        category=AttemptCategory(payload["category"]),
        duration_ms=payload["duration_ms"],
        partial_understanding=tuple(payload.get("partial_understanding", ())),
        misconceptions=tuple(payload.get("misconceptions", ())),
        creativity_score=payload["creativity_score"],
        timestamp=datetime.fromisoformat(payload["timestamp"]),
    )

