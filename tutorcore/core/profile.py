"""
Inverse learner profile.

The profile is inferred from interaction logs rather than self-report. Each
dimension carries a confidence score describing how much evidence backs
it; stale or thin dimensions are what micro-assessments refill.

Dimensions:
- knowledge: gaps and misconceptions keyed by skill id
- cognitive: expertise level, optimal complexity, load threshold, working memory
- metacognitive: calibration, over/under-confidence, help-seeking pattern
- motivational: goal orientation, persistence
- behavioral: only its confidence score is tracked here
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class ExpertiseLevel(str, Enum):
    NOVICE = "novice"
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class HelpSeekingPattern(str, Enum):
    AVOIDANT = "avoidant"
    APPROPRIATE = "appropriate"
    EXCESSIVE = "excessive"
    UNKNOWN = "unknown"


class GoalOrientation(str, Enum):
    MASTERY = "mastery"
    PERFORMANCE = "performance"
    AVOIDANCE = "avoidance"
    UTILITY = "utility"
    UNKNOWN = "unknown"


class LoadLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class ProfileDimension(str, Enum):
    KNOWLEDGE = "knowledge"
    COGNITIVE = "cognitive"
    METACOGNITIVE = "metacognitive"
    MOTIVATIONAL = "motivational"
    BEHAVIORAL = "behavioral"


@dataclass
class KnowledgeState:
    knowledge_gaps: list[str] = field(default_factory=list)
    misconceptions: list[str] = field(default_factory=list)


@dataclass
class CognitiveIndicators:
    expertise_level: ExpertiseLevel = ExpertiseLevel.BEGINNER
    optimal_complexity_level: float | None = None  # 0-1
    cognitive_load_threshold: float | None = None  # 0-1
    working_memory_indicator: LoadLevel | None = None


@dataclass
class MetacognitiveIndicators:
    calibration_accuracy: float | None = None
    overconfidence_rate: float | None = None
    underconfidence_rate: float | None = None
    help_seeking_pattern: HelpSeekingPattern = HelpSeekingPattern.UNKNOWN


@dataclass
class MotivationalIndicators:
    goal_orientation: GoalOrientation = GoalOrientation.UNKNOWN
    persistence_score: float | None = None


@dataclass
class ConfidenceScores:
    """Evidence strength per dimension, each in [0, 1]."""
    knowledge: float = 0.0
    cognitive: float = 0.0
    metacognitive: float = 0.0
    motivational: float = 0.0
    behavioral: float = 0.0

    def __post_init__(self) -> None:
        for name in ("knowledge", "cognitive", "metacognitive", "motivational", "behavioral"):
            setattr(self, name, clamp01(getattr(self, name)))


@dataclass
class InverseProfile:
    """Learner profile inferred from behaviour."""
    learner_id: str
    knowledge_state: KnowledgeState = field(default_factory=KnowledgeState)
    cognitive_indicators: CognitiveIndicators = field(default_factory=CognitiveIndicators)
    metacognitive_indicators: MetacognitiveIndicators = field(default_factory=MetacognitiveIndicators)
    motivational_indicators: MotivationalIndicators = field(default_factory=MotivationalIndicators)
    confidence_scores: ConfidenceScores = field(default_factory=ConfidenceScores)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["cognitive_indicators"]["expertise_level"] = self.cognitive_indicators.expertise_level.value
        wm = self.cognitive_indicators.working_memory_indicator
        data["cognitive_indicators"]["working_memory_indicator"] = wm.value if wm else None
        data["metacognitive_indicators"]["help_seeking_pattern"] = (
            self.metacognitive_indicators.help_seeking_pattern.value
        )
        data["motivational_indicators"]["goal_orientation"] = (
            self.motivational_indicators.goal_orientation.value
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InverseProfile:
        cognitive = dict(data.get("cognitive_indicators") or {})
        if "expertise_level" in cognitive:
            cognitive["expertise_level"] = ExpertiseLevel(cognitive["expertise_level"])
        if cognitive.get("working_memory_indicator"):
            cognitive["working_memory_indicator"] = LoadLevel(cognitive["working_memory_indicator"])

        metacognitive = dict(data.get("metacognitive_indicators") or {})
        if "help_seeking_pattern" in metacognitive:
            metacognitive["help_seeking_pattern"] = HelpSeekingPattern(metacognitive["help_seeking_pattern"])

        motivational = dict(data.get("motivational_indicators") or {})
        if "goal_orientation" in motivational:
            motivational["goal_orientation"] = GoalOrientation(motivational["goal_orientation"])

        return cls(
            learner_id=data["learner_id"],
            knowledge_state=KnowledgeState(**(data.get("knowledge_state") or {})),
            cognitive_indicators=CognitiveIndicators(**cognitive),
            metacognitive_indicators=MetacognitiveIndicators(**metacognitive),
            motivational_indicators=MotivationalIndicators(**motivational),
            confidence_scores=ConfidenceScores(**(data.get("confidence_scores") or {})),
        )


def clamp01(value: float) -> float:
    """Clamp a score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))
