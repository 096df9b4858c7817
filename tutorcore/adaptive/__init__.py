"""
Adaptive: per-learner policy decisions.

- recommendations: scaffold level, difficulty delta and skill ranking
- micro_assessment: when to probe the learner to refresh profile evidence
"""

from tutorcore.adaptive.micro_assessment import (
    AssessmentTriggerContext,
    AssessmentType,
    MicroAssessmentRecommendation,
    process_micro_assessment_results,
    should_trigger_micro_assessment,
)
from tutorcore.adaptive.recommendations import (
    RecentPerformance,
    RecommendationContext,
    RecommendationResult,
    SkillCandidate,
    recommend_skills,
)

__all__ = [
    "AssessmentTriggerContext",
    "AssessmentType",
    "MicroAssessmentRecommendation",
    "process_micro_assessment_results",
    "should_trigger_micro_assessment",
    "RecentPerformance",
    "RecommendationContext",
    "RecommendationResult",
    "SkillCandidate",
    "recommend_skills",
]
