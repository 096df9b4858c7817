"""
Learning: mastery estimation for the tutoring engine.

- bkt: Bayesian Knowledge Tracing update, EM fitting, validation metrics
- spaced_repetition: SM-2 review scheduling
- mastery_tracker: per-(learner, skill) state, streaks, scaffold transitions
"""

from tutorcore.learning.bkt import (
    BKTParams,
    FitQuality,
    FitResult,
    MasteryEstimate,
    MasteryStatus,
    PracticeAttempt,
    ValidationMetrics,
    ValidationQuality,
    ValidationReport,
    calculate_validation_metrics,
    fit_skill_bkt,
    get_mastery_with_confidence,
    predict_correct,
    update_bkt,
    validate_skills,
)
from tutorcore.learning.mastery_tracker import (
    LearnerSkillState,
    replay_attempts,
    update_mastery,
)
from tutorcore.learning.spaced_repetition import SM2Config, SM2Scheduler

__all__ = [
    # BKT
    "BKTParams",
    "FitQuality",
    "FitResult",
    "MasteryEstimate",
    "MasteryStatus",
    "PracticeAttempt",
    "ValidationMetrics",
    "ValidationQuality",
    "ValidationReport",
    "calculate_validation_metrics",
    "fit_skill_bkt",
    "get_mastery_with_confidence",
    "predict_correct",
    "update_bkt",
    "validate_skills",
    # Tracker
    "LearnerSkillState",
    "replay_attempts",
    "update_mastery",
    # Scheduling
    "SM2Config",
    "SM2Scheduler",
]
