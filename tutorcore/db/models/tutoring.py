"""
Learner Store Models.

SQLAlchemy models backing the tutoring engine:
- Per-learner, per-skill mastery state
- Practice attempt history (evidence for updates and fitting)
- Fitted BKT parameters (append-only; newest row wins)
- Learner profiles
- Dialogue, exploration and assessment session logs

Column types are portable so the same models run on SQLite and PostgreSQL.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Float, Index, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class LearnerSkillStateRecord(Base):
    """
    Current mastery state per learner per skill.

    Created on the first attempt, overwritten on every later attempt, never deleted.
    """

    __tablename__ = "learner_skill_state"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False)
    skill_id: Mapped[str] = mapped_column(Text, nullable=False)

    # Mastery (0-1 scale)
    p_mastery: Mapped[float] = mapped_column(Float, nullable=False)
    mastery_status: Mapped[str] = mapped_column(Text, default="not_started")  # 'not_started', 'learning', 'mastered'
    mastery_threshold: Mapped[float] = mapped_column(Float, default=0.8)
    scaffold_level: Mapped[int] = mapped_column(Integer, default=1)  # 1 = worked examples, 4 = independent

    # BKT parameters in effect for this learner
    p_l0: Mapped[float] = mapped_column(Float, nullable=False)
    p_t: Mapped[float] = mapped_column(Float, nullable=False)
    p_s: Mapped[float] = mapped_column(Float, nullable=False)
    p_g: Mapped[float] = mapped_column(Float, nullable=False)

    # SM-2 scheduling
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    interval_days: Mapped[int] = mapped_column(Integer, default=0)
    repetitions: Mapped[int] = mapped_column(Integer, default=0)
    next_review_at: Mapped[datetime | None] = mapped_column()

    # Counters
    consecutive_correct: Mapped[int] = mapped_column(Integer, default=0)
    consecutive_incorrect: Mapped[int] = mapped_column(Integer, default=0)
    attempt_count: Mapped[int] = mapped_column(Integer, default=0)
    correct_count: Mapped[int] = mapped_column(Integer, default=0)

    # Activity
    last_practiced_at: Mapped[datetime | None] = mapped_column()
    last_retrieval_at: Mapped[datetime | None] = mapped_column()

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("learner_id", "skill_id", name="uq_learner_skill"),
        Index("idx_skill_state_due", "learner_id", "next_review_at"),
    )

    def __repr__(self) -> str:
        return f"<LearnerSkillStateRecord learner={self.learner_id} skill={self.skill_id} p={self.p_mastery:.3f}>"


class PracticeAttemptRecord(Base):
    """One graded practice attempt."""

    __tablename__ = "practice_attempt"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False)
    skill_id: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(nullable=False)
    response_time_ms: Mapped[int | None] = mapped_column(Integer)
    expected_time_ms: Mapped[int | None] = mapped_column(Integer)
    p_mastery_after: Mapped[float | None] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        Index("idx_attempt_learner_skill", "learner_id", "skill_id", "attempted_at"),
        Index("idx_attempt_skill", "skill_id", "attempted_at"),
    )

    def __repr__(self) -> str:
        return f"<PracticeAttemptRecord learner={self.learner_id} skill={self.skill_id} correct={self.is_correct}>"


class BKTParamsRecord(Base):
    """
    Fitted BKT parameters for a skill.

    Rows are never updated: a re-fit inserts a new row and the newest
    fitted_at supersedes older ones.
    """

    __tablename__ = "bkt_params"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    skill_id: Mapped[str] = mapped_column(Text, nullable=False)
    p_l0: Mapped[float] = mapped_column(Float, nullable=False)
    p_t: Mapped[float] = mapped_column(Float, nullable=False)
    p_s: Mapped[float] = mapped_column(Float, nullable=False)
    p_g: Mapped[float] = mapped_column(Float, nullable=False)

    # Fit diagnostics
    log_likelihood: Mapped[float | None] = mapped_column(Float)
    brier_score: Mapped[float | None] = mapped_column(Float)
    fit_quality: Mapped[str] = mapped_column(Text, default="poor")  # 'good', 'fair', 'poor'
    n_attempts: Mapped[int] = mapped_column(Integer, default=0)
    iterations: Mapped[int] = mapped_column(Integer, default=0)

    fitted_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (Index("idx_bkt_params_skill", "skill_id", "fitted_at"),)

    def __repr__(self) -> str:
        return f"<BKTParamsRecord skill={self.skill_id} quality={self.fit_quality} fitted_at={self.fitted_at}>"


class LearnerProfileRecord(Base):
    """Serialized InverseProfile for a learner."""

    __tablename__ = "learner_profile"

    learner_id: Mapped[str] = mapped_column(Text, primary_key=True)
    profile: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<LearnerProfileRecord learner={self.learner_id}>"


class SessionLogEntry(Base):
    """
    Event log for dialogue, exploration and assessment sessions.

    Keyed by (notebook_id, learner_id); session_ref points at the dialogue
    or exploration id the event belongs to.
    """

    __tablename__ = "session_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False)
    notebook_id: Mapped[str | None] = mapped_column(Text)
    session_type: Mapped[str] = mapped_column(String(32), nullable=False)  # 'dialogue', 'exploration', 'assessment'
    session_ref: Mapped[str | None] = mapped_column(Text)
    event: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        Index("idx_session_log_learner", "notebook_id", "learner_id", "created_at"),
        Index("idx_session_log_ref", "session_ref"),
    )

    def __repr__(self) -> str:
        return f"<SessionLogEntry {self.session_type}:{self.event} learner={self.learner_id}>"
