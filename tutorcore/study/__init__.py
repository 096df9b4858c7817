"""
Study: practice scheduling layered on top of recommendations.

- desirable_difficulties: interleaving, variation, retrieval practice
"""

from tutorcore.study.desirable_difficulties import (
    InterleaveConfig,
    InterleavedSession,
    InterleaveScheduler,
    PracticeSkill,
    VariationType,
    generate_interleaved_session,
    select_variation_type,
    should_use_retrieval,
)

__all__ = [
    "InterleaveConfig",
    "InterleavedSession",
    "InterleaveScheduler",
    "PracticeSkill",
    "VariationType",
    "generate_interleaved_session",
    "select_variation_type",
    "should_use_retrieval",
]
