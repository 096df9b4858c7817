"""
Per-learner, per-skill mastery tracking.

Combines:
- BKT posterior updates for P(mastery)
- SM-2 review scheduling
- Streak counters, mastery status and scaffold transitions

update_mastery() is pure: it returns a new LearnerSkillState and leaves its
input untouched. Attempts replayed from history are consumed in timestamp
order.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Sequence

from loguru import logger

from tutorcore.learning.bkt import (
    BKTParams,
    MasteryStatus,
    PracticeAttempt,
    order_attempts,
    update_bkt,
)
from tutorcore.learning.spaced_repetition import SM2Config, SM2Scheduler

MIN_SCAFFOLD_LEVEL = 1  # full worked examples
MAX_SCAFFOLD_LEVEL = 4  # independent practice
FAILURE_STREAK = 3
SUCCESS_STREAK = 3
DEFAULT_MASTERY_THRESHOLD = 0.8


@dataclass(frozen=True)
class LearnerSkillState:
    """
    Mastery state for one (learner, skill) pair.

    Created on first attempt, replaced on every attempt, never deleted.
    """

    learner_id: str
    skill_id: str
    p_mastery: float = 0.3
    scaffold_level: int = MIN_SCAFFOLD_LEVEL
    ease_factor: float = 2.5
    interval_days: int = 0
    repetitions: int = 0
    consecutive_correct: int = 0
    consecutive_incorrect: int = 0
    attempt_count: int = 0
    correct_count: int = 0
    mastery_status: MasteryStatus = MasteryStatus.NOT_STARTED
    mastery_threshold: float = DEFAULT_MASTERY_THRESHOLD
    params: BKTParams = field(default_factory=BKTParams)
    next_review_at: datetime | None = None
    last_practiced_at: datetime | None = None
    last_retrieval_at: datetime | None = None

    @classmethod
    def new(
        cls,
        learner_id: str,
        skill_id: str,
        params: BKTParams | None = None,
        mastery_threshold: float = DEFAULT_MASTERY_THRESHOLD,
    ) -> LearnerSkillState:
        params = params or BKTParams()
        return cls(
            learner_id=learner_id,
            skill_id=skill_id,
            p_mastery=params.p_l0,
            params=params,
            mastery_threshold=mastery_threshold,
        )

    @property
    def accuracy(self) -> float:
        if self.attempt_count == 0:
            return 0.0
        return self.correct_count / self.attempt_count

    def is_due(self, now: datetime | None = None) -> bool:
        if self.next_review_at is None:
            return True
        return self.next_review_at <= (now or datetime.now())

    def to_dict(self) -> dict:
        return {
            "learner_id": self.learner_id,
            "skill_id": self.skill_id,
            "p_mastery": round(self.p_mastery, 4),
            "scaffold_level": self.scaffold_level,
            "ease_factor": round(self.ease_factor, 3),
            "interval_days": self.interval_days,
            "repetitions": self.repetitions,
            "consecutive_correct": self.consecutive_correct,
            "consecutive_incorrect": self.consecutive_incorrect,
            "attempt_count": self.attempt_count,
            "correct_count": self.correct_count,
            "mastery_status": self.mastery_status.value,
            "mastery_threshold": self.mastery_threshold,
            "params": self.params.to_dict(),
            "next_review_at": self.next_review_at.isoformat() if self.next_review_at else None,
            "last_practiced_at": self.last_practiced_at.isoformat() if self.last_practiced_at else None,
            "last_retrieval_at": self.last_retrieval_at.isoformat() if self.last_retrieval_at else None,
        }


def mastery_status(
    p_mastery: float,
    attempt_count: int,
    consecutive_correct: int,
    threshold: float = DEFAULT_MASTERY_THRESHOLD,
) -> MasteryStatus:
    """
    not_started before any attempt; mastered at threshold with a success
    streak; learning otherwise.
    """
    if attempt_count == 0:
        return MasteryStatus.NOT_STARTED
    if p_mastery >= threshold and consecutive_correct >= SUCCESS_STREAK:
        return MasteryStatus.MASTERED
    return MasteryStatus.LEARNING


def scaffold_level_for_mastery(p_mastery: float) -> int:
    """Map P(mastery) to a support level (1 = most support)."""
    if p_mastery < 0.3:
        return 1
    if p_mastery < 0.5:
        return 2
    if p_mastery < 0.7:
        return 3
    return 4


def next_scaffold_level(
    current: int,
    p_mastery: float,
    consecutive_correct: int,
    consecutive_incorrect: int,
) -> int:
    """
    One-step scaffold transition.

    A failure streak moves one level toward full support. Independence only
    rises after a success streak, and only when mastery supports a higher
    level than the current one.
    """
    current = max(MIN_SCAFFOLD_LEVEL, min(MAX_SCAFFOLD_LEVEL, current))

    if consecutive_incorrect >= FAILURE_STREAK:
        return max(MIN_SCAFFOLD_LEVEL, current - 1)

    if consecutive_correct >= SUCCESS_STREAK and scaffold_level_for_mastery(p_mastery) > current:
        return min(MAX_SCAFFOLD_LEVEL, current + 1)

    return current


def update_mastery(
    state: LearnerSkillState,
    attempt: PracticeAttempt,
    scheduler: SM2Scheduler | None = None,
) -> LearnerSkillState:
    """
    Apply one practice attempt.

    Args:
        state: Current state (not modified)
        attempt: Graded attempt
        scheduler: SM-2 scheduler (defaults to standard SM-2)

    Returns:
        New LearnerSkillState with BKT, SM-2, counters, status and scaffold
        level updated
    """
    scheduler = scheduler or SM2Scheduler()

    p_mastery = update_bkt(state.p_mastery, attempt.is_correct, state.params)

    if attempt.is_correct:
        consecutive_correct = state.consecutive_correct + 1
        consecutive_incorrect = 0
    else:
        consecutive_correct = 0
        consecutive_incorrect = state.consecutive_incorrect + 1

    attempt_count = state.attempt_count + 1
    correct_count = state.correct_count + (1 if attempt.is_correct else 0)

    grade = scheduler.grade_from_response(
        attempt.is_correct, attempt.response_time_ms, attempt.expected_time_ms
    )
    schedule = scheduler.calculate_next_review(
        easiness_factor=state.ease_factor,
        interval_days=state.interval_days,
        repetitions=state.repetitions,
        grade=grade,
        now=attempt.timestamp,
    )

    status = mastery_status(p_mastery, attempt_count, consecutive_correct, state.mastery_threshold)
    scaffold = next_scaffold_level(
        state.scaffold_level, p_mastery, consecutive_correct, consecutive_incorrect
    )

    if status != state.mastery_status:
        logger.debug(
            f"{state.learner_id}/{state.skill_id}: {state.mastery_status.value} -> {status.value} "
            f"(p={p_mastery:.3f})"
        )
    if scaffold != state.scaffold_level:
        logger.debug(f"{state.learner_id}/{state.skill_id}: scaffold {state.scaffold_level} -> {scaffold}")

    return replace(
        state,
        p_mastery=p_mastery,
        scaffold_level=scaffold,
        ease_factor=schedule.easiness_factor,
        interval_days=schedule.interval_days,
        repetitions=schedule.repetitions,
        consecutive_correct=consecutive_correct,
        consecutive_incorrect=consecutive_incorrect,
        attempt_count=attempt_count,
        correct_count=correct_count,
        mastery_status=status,
        next_review_at=schedule.next_review_at,
        last_practiced_at=attempt.timestamp,
    )


def replay_attempts(
    state: LearnerSkillState,
    attempts: Sequence[PracticeAttempt],
    scheduler: SM2Scheduler | None = None,
) -> LearnerSkillState:
    """Fold an attempt history into `state` in timestamp order."""
    scheduler = scheduler or SM2Scheduler(SM2Config())
    for attempt in order_attempts(attempts):
        state = update_mastery(state, attempt, scheduler)
    return state


def record_retrieval(state: LearnerSkillState, when: datetime | None = None) -> LearnerSkillState:
    """Mark that a retrieval-practice test was given."""
    return replace(state, last_retrieval_at=when or datetime.now())
