"""
Exception taxonomy for the tutoring engine.

Numeric code never raises for valid input: insufficient data and
identifiability failures are reported through result objects. Exceptions
are reserved for:
- InvalidStateTransition: advancing a dialogue or exploration session that
  is no longer active
- LLMUnavailableError: raised inside the language-model client and turned
  into a template fallback before it reaches callers
"""

from __future__ import annotations


class TutorCoreError(Exception):
    """Base class for tutoring engine errors."""


class InvalidStateTransition(TutorCoreError):
    """A terminated dialogue or session was asked to advance."""

    def __init__(self, entity: str, entity_id: str, status: str, action: str):
        self.entity = entity
        self.entity_id = entity_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} {entity} {entity_id}: status is '{status}'")


class LLMUnavailableError(TutorCoreError):
    """The language-model service failed, timed out, or returned garbage."""
