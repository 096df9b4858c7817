"""Core types shared across the tutoring engine."""

from tutorcore.core.errors import (
    InvalidStateTransition,
    LLMUnavailableError,
    TutorCoreError,
)

__all__ = [
    "InvalidStateTransition",
    "LLMUnavailableError",
    "TutorCoreError",
]
