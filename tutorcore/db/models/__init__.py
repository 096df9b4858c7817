# SQLAlchemy models
from .base import Base
from .tutoring import (
    BKTParamsRecord,
    LearnerProfileRecord,
    LearnerSkillStateRecord,
    PracticeAttemptRecord,
    SessionLogEntry,
)

__all__ = [
    "Base",
    "BKTParamsRecord",
    "LearnerProfileRecord",
    "LearnerSkillStateRecord",
    "PracticeAttemptRecord",
    "SessionLogEntry",
]
