"""
Scaffold & Recommendation Engine.

Ranks candidate skills for the next session and decides, per skill:
- scaffold level (1 = full worked examples, 4 = independent practice)
- signed difficulty adjustment, bounded to +/-0.2
- cognitive load limit and an optional metacognitive help prompt
- "why this skill" reasons and a plain-language explanation

Ranking blends mastery gap, due/recency, prerequisite readiness (ZPD) and
profile fit. Ties go to the weaker skill.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from loguru import logger

from tutorcore.core.profile import (
    CognitiveIndicators,
    ExpertiseLevel,
    GoalOrientation,
    HelpSeekingPattern,
    InverseProfile,
    KnowledgeState,
    LoadLevel,
    MetacognitiveIndicators,
    MotivationalIndicators,
    Priority,
    ProfileDimension,
)
from tutorcore.learning.mastery_tracker import (
    DEFAULT_MASTERY_THRESHOLD,
    MAX_SCAFFOLD_LEVEL,
    MIN_SCAFFOLD_LEVEL,
    LearnerSkillState,
)

# =============================================================================
# Weights and constants
# =============================================================================

RANKING_WEIGHTS = {
    "mastery_gap": 0.30,
    "due": 0.20,
    "readiness": 0.25,
    "profile_fit": 0.25,
}

PROFILE_FIT_WEIGHTS = {
    "cognitive_match": 0.4,
    "motivational_fit": 0.3,
    "urgency": 0.3,
}

TIME_MULTIPLIERS = {
    ExpertiseLevel.NOVICE: 1.5,
    ExpertiseLevel.BEGINNER: 1.3,
    ExpertiseLevel.INTERMEDIATE: 1.0,
    ExpertiseLevel.ADVANCED: 0.85,
    ExpertiseLevel.EXPERT: 0.7,
}

LOAD_SCORES = {
    LoadLevel.LOW: 0.3,
    LoadLevel.MEDIUM: 0.5,
    LoadLevel.HIGH: 0.8,
}

MAX_DIFFICULTY_DELTA = 0.2
TARGET_ACCURACY_LOW = 0.6
TARGET_ACCURACY_HIGH = 0.85
FAILURE_STREAK = 3
SUCCESS_STREAK = 5
DEFAULT_SCAFFOLD_LEVEL = 2
DEFAULT_LOAD_THRESHOLD = 0.7
MIN_SKILLS = 2
MAX_SKILLS = 4
DEFAULT_MAX_SKILLS = 3
BREAK_AFTER_MINUTES = 45
CHALLENGE_STREAK = 8
REASON_THRESHOLD = 0.7
URGENCY_REASON_THRESHOLD = 0.3


class PromptType(str, Enum):
    OVERCONFIDENCE = "overconfidence"
    UNDERCONFIDENCE = "underconfidence"
    HELP_AVOIDANT = "help_avoidant"
    HELP_EXCESSIVE = "help_excessive"


class InterventionType(str, Enum):
    PERSISTENCE = "persistence"
    CELEBRATION = "celebration"
    BREAK_SUGGESTION = "break_suggestion"
    CHALLENGE_PROMPT = "challenge_prompt"


# =============================================================================
# Types
# =============================================================================


@dataclass
class SkillCandidate:
    """A skill the learner could practice next."""

    skill_id: str
    name: str
    difficulty: float = 0.5  # 0-1
    readiness: float = 1.0  # 0-1, share of prerequisites mastered
    prerequisites_met: bool = True
    cognitive_load: LoadLevel = LoadLevel.MEDIUM
    element_interactivity: LoadLevel = LoadLevel.MEDIUM
    is_threshold_concept: bool = False
    estimated_minutes: int = 30
    state: LearnerSkillState | None = None

    @property
    def p_mastery(self) -> float:
        return self.state.p_mastery if self.state else 0.0


@dataclass
class RecentPerformance:
    consecutive_successes: int = 0
    consecutive_failures: int = 0
    session_duration_ms: int = 0
    accuracy: float | None = None


@dataclass
class RecommendationReason:
    factor: str
    weight: float
    description: str
    dimension: ProfileDimension

    def to_dict(self) -> dict:
        return {
            "factor": self.factor,
            "weight": round(self.weight, 3),
            "description": self.description,
            "dimension": self.dimension.value,
        }


@dataclass
class MetacognitivePrompt:
    type: PromptType
    message: str
    priority: Priority
    action_label: str | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "message": self.message,
            "priority": self.priority.value,
            "action_label": self.action_label,
        }


@dataclass
class MotivationalIntervention:
    type: InterventionType
    message: str
    priority: Priority

    def to_dict(self) -> dict:
        return {"type": self.type.value, "message": self.message, "priority": self.priority.value}


@dataclass
class LearningAdjustments:
    scaffold_level: int = DEFAULT_SCAFFOLD_LEVEL
    difficulty_adjustment: float = 0.0
    cognitive_load_limit: LoadLevel = LoadLevel.MEDIUM
    help_prompt: MetacognitivePrompt | None = None

    def to_dict(self) -> dict:
        return {
            "scaffold_level": self.scaffold_level,
            "difficulty_adjustment": round(self.difficulty_adjustment, 3),
            "cognitive_load_limit": self.cognitive_load_limit.value,
            "help_prompt": self.help_prompt.to_dict() if self.help_prompt else None,
        }


@dataclass
class SkillRecommendation:
    skill_id: str
    name: str
    score: float
    p_mastery: float
    reasons: list[RecommendationReason]
    adjustments: LearningAdjustments
    why_explanation: str
    scores: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "skill_id": self.skill_id,
            "name": self.name,
            "score": round(self.score, 4),
            "p_mastery": round(self.p_mastery, 4),
            "reasons": [r.to_dict() for r in self.reasons],
            "adjustments": self.adjustments.to_dict(),
            "why_explanation": self.why_explanation,
            "scores": {k: round(v, 4) for k, v in self.scores.items()},
        }


@dataclass
class RecommendationContext:
    learner_id: str
    candidates: list[SkillCandidate]
    profile: InverseProfile | None = None
    recent_performance: RecentPerformance | None = None
    max_skills: int = DEFAULT_MAX_SKILLS
    now: datetime | None = None


@dataclass
class RecommendationResult:
    recommendations: list[SkillRecommendation]
    metacognitive_intervention: MetacognitivePrompt | None = None
    motivational_intervention: MotivationalIntervention | None = None
    profile_summary: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "active_interventions": {
                "metacognitive": (
                    self.metacognitive_intervention.to_dict() if self.metacognitive_intervention else None
                ),
                "motivational": (
                    self.motivational_intervention.to_dict() if self.motivational_intervention else None
                ),
            },
            "profile_summary": self.profile_summary,
        }


# =============================================================================
# Scoring
# =============================================================================


def load_score(load: LoadLevel | None) -> float:
    return LOAD_SCORES.get(load, 0.5) if load else 0.5


def mastery_gap_score(candidate: SkillCandidate) -> float:
    """Distance to the mastery target as a share of the target."""
    if candidate.state is None:
        return 1.0
    target = candidate.state.mastery_threshold or DEFAULT_MASTERY_THRESHOLD
    return max(0.0, min(1.0, (target - candidate.state.p_mastery) / target))


def due_score(candidate: SkillCandidate, now: datetime) -> float:
    """1.0 for due, overdue or never-practiced skills; lower the further out the review is."""
    state = candidate.state
    if state is None or state.is_due(now):
        return 1.0
    days_until = (state.next_review_at - now).total_seconds() / 86400
    interval = max(state.interval_days, 1)
    return max(0.0, min(0.5, 0.5 * (1 - days_until / interval)))


def readiness_score(candidate: SkillCandidate) -> float:
    if not candidate.prerequisites_met:
        return 0.0
    return max(0.0, min(1.0, candidate.readiness))


def cognitive_match(candidate: SkillCandidate, cognitive: CognitiveIndicators) -> float:
    optimal = cognitive.optimal_complexity_level if cognitive.optimal_complexity_level is not None else 0.5
    distance = abs(candidate.difficulty - optimal)
    match = 1 - min(distance * 2, 1)

    threshold = (
        cognitive.cognitive_load_threshold
        if cognitive.cognitive_load_threshold is not None
        else DEFAULT_LOAD_THRESHOLD
    )
    load_match = 1.0 if load_score(candidate.cognitive_load) <= threshold else 0.5

    return match * 0.7 + load_match * 0.3


def motivational_fit(candidate: SkillCandidate, motivational: MotivationalIndicators) -> float:
    difficulty = candidate.difficulty
    goal = motivational.goal_orientation

    if goal == GoalOrientation.MASTERY:
        return 1.0 if 0.5 <= difficulty <= 0.8 else 0.6
    if goal == GoalOrientation.PERFORMANCE:
        return 1.0 if difficulty <= 0.5 else 0.5
    if goal == GoalOrientation.AVOIDANCE:
        return 1.0 if difficulty <= 0.3 else 0.3

    persistence = motivational.persistence_score if motivational.persistence_score is not None else 0.5
    if persistence > 0.6:
        return 1.0 if 0.4 <= difficulty <= 0.7 else 0.7
    return 1.0 if difficulty <= 0.5 else 0.6


def urgency_score(candidate: SkillCandidate, knowledge: KnowledgeState) -> float:
    urgency = 0.0
    if candidate.is_threshold_concept:
        urgency += 0.4
    if candidate.skill_id in knowledge.knowledge_gaps:
        urgency += 0.3
    if candidate.skill_id in knowledge.misconceptions:
        urgency += 0.3
    return min(urgency, 1.0)


def score_candidate(
    candidate: SkillCandidate,
    profile: InverseProfile | None,
    now: datetime,
) -> dict[str, float]:
    """Per-factor scores plus the weighted total under 'total'."""
    scores = {
        "mastery_gap": mastery_gap_score(candidate),
        "due": due_score(candidate, now),
        "readiness": readiness_score(candidate),
    }

    if profile is None:
        scores["profile_fit"] = 0.5
    else:
        scores["cognitive_match"] = cognitive_match(candidate, profile.cognitive_indicators)
        scores["motivational_fit"] = motivational_fit(candidate, profile.motivational_indicators)
        scores["urgency"] = urgency_score(candidate, profile.knowledge_state)
        scores["profile_fit"] = sum(scores[k] * w for k, w in PROFILE_FIT_WEIGHTS.items())

    scores["total"] = sum(scores[k] * w for k, w in RANKING_WEIGHTS.items())
    return scores


def filter_by_profile(
    candidates: list[SkillCandidate], cognitive: CognitiveIndicators
) -> list[SkillCandidate]:
    """Drop skills over the learner's load threshold; keep the input if fewer than two survive."""
    threshold = (
        cognitive.cognitive_load_threshold
        if cognitive.cognitive_load_threshold is not None
        else DEFAULT_LOAD_THRESHOLD
    )

    kept = []
    for candidate in candidates:
        if load_score(candidate.cognitive_load) > threshold + 0.1:
            continue
        if (
            cognitive.working_memory_indicator == LoadLevel.LOW
            and candidate.element_interactivity == LoadLevel.HIGH
        ):
            continue
        kept.append(candidate)

    if len(kept) < MIN_SKILLS:
        return candidates
    return kept


# =============================================================================
# Adjustments
# =============================================================================


def expertise_to_scaffold(expertise: ExpertiseLevel) -> int:
    return {
        ExpertiseLevel.NOVICE: 1,
        ExpertiseLevel.BEGINNER: 2,
        ExpertiseLevel.INTERMEDIATE: 3,
        ExpertiseLevel.ADVANCED: 4,
        ExpertiseLevel.EXPERT: 4,
    }[expertise]


def recommend_scaffold_level(
    state: LearnerSkillState | None,
    profile: InverseProfile | None,
    consecutive_failures: int,
) -> int:
    """
    Scaffold level for the next session on a skill.

    Only ever adds support relative to the starting level; independence is
    raised by the mastery tracker after sustained success.
    """
    if state is not None:
        level = state.scaffold_level
    elif profile is not None:
        level = expertise_to_scaffold(profile.cognitive_indicators.expertise_level)
    else:
        level = DEFAULT_SCAFFOLD_LEVEL

    if profile is not None and profile.metacognitive_indicators.help_seeking_pattern == HelpSeekingPattern.AVOIDANT:
        level -= 1
    if consecutive_failures >= FAILURE_STREAK:
        level -= 1

    return max(MIN_SCAFFOLD_LEVEL, min(MAX_SCAFFOLD_LEVEL, level))


def difficulty_adjustment(
    expertise: ExpertiseLevel | None,
    consecutive_failures: int,
    consecutive_successes: int,
    accuracy: float | None,
) -> float:
    """Signed difficulty delta in [-0.2, 0.2], nudging accuracy toward 0.6-0.85."""
    delta = 0.0

    if expertise in (ExpertiseLevel.NOVICE, ExpertiseLevel.BEGINNER):
        delta = -0.15
    elif expertise in (ExpertiseLevel.ADVANCED, ExpertiseLevel.EXPERT):
        delta = 0.1

    if consecutive_failures >= FAILURE_STREAK:
        delta -= 0.1
    elif consecutive_successes >= SUCCESS_STREAK:
        delta += 0.05

    if accuracy is not None:
        if accuracy < TARGET_ACCURACY_LOW:
            delta -= TARGET_ACCURACY_LOW - accuracy
        elif accuracy > TARGET_ACCURACY_HIGH:
            delta += accuracy - TARGET_ACCURACY_HIGH

    return max(-MAX_DIFFICULTY_DELTA, min(MAX_DIFFICULTY_DELTA, delta))


def cognitive_load_limit(cognitive: CognitiveIndicators | None) -> LoadLevel:
    if cognitive is not None and cognitive.working_memory_indicator in (LoadLevel.LOW, LoadLevel.HIGH):
        return cognitive.working_memory_indicator
    return LoadLevel.MEDIUM


def help_prompt(metacognitive: MetacognitiveIndicators) -> MetacognitivePrompt | None:
    if metacognitive.overconfidence_rate is not None and metacognitive.overconfidence_rate > 0.4:
        return MetacognitivePrompt(
            type=PromptType.OVERCONFIDENCE,
            message="Take a moment to double-check your answers before submitting.",
            priority=Priority.MEDIUM,
            action_label="Review my work",
        )
    if metacognitive.underconfidence_rate is not None and metacognitive.underconfidence_rate > 0.5:
        return MetacognitivePrompt(
            type=PromptType.UNDERCONFIDENCE,
            message="Trust your preparation. You know more than you think!",
            priority=Priority.LOW,
        )
    if metacognitive.help_seeking_pattern == HelpSeekingPattern.AVOIDANT:
        return MetacognitivePrompt(
            type=PromptType.HELP_AVOIDANT,
            message="Hints are designed to help you learn, not just give answers. Use them when stuck!",
            priority=Priority.MEDIUM,
            action_label="Show hint",
        )
    if metacognitive.help_seeking_pattern == HelpSeekingPattern.EXCESSIVE:
        return MetacognitivePrompt(
            type=PromptType.HELP_EXCESSIVE,
            message="Try working through this one on your own first. You can do it!",
            priority=Priority.LOW,
        )
    return None


def _streaks(candidate: SkillCandidate, recent: RecentPerformance | None) -> tuple[int, int, float | None]:
    """(failures, successes, accuracy) from the session window, falling back to the skill state."""
    if recent is not None:
        accuracy = recent.accuracy
        if accuracy is None and candidate.state and candidate.state.attempt_count:
            accuracy = candidate.state.accuracy
        return recent.consecutive_failures, recent.consecutive_successes, accuracy

    state = candidate.state
    if state is None:
        return 0, 0, None
    accuracy = state.accuracy if state.attempt_count else None
    return state.consecutive_incorrect, state.consecutive_correct, accuracy


def calculate_adjustments(
    candidate: SkillCandidate,
    profile: InverseProfile | None,
    recent: RecentPerformance | None,
) -> LearningAdjustments:
    failures, successes, accuracy = _streaks(candidate, recent)
    expertise = profile.cognitive_indicators.expertise_level if profile else None

    return LearningAdjustments(
        scaffold_level=recommend_scaffold_level(candidate.state, profile, failures),
        difficulty_adjustment=difficulty_adjustment(expertise, failures, successes, accuracy),
        cognitive_load_limit=cognitive_load_limit(profile.cognitive_indicators if profile else None),
        help_prompt=help_prompt(profile.metacognitive_indicators) if profile else None,
    )


# =============================================================================
# Explanations
# =============================================================================


def _motivational_reason(goal: GoalOrientation) -> str:
    return {
        GoalOrientation.MASTERY: "Provides the right level of challenge for deep learning",
        GoalOrientation.PERFORMANCE: "Good opportunity for demonstrating competence",
        GoalOrientation.AVOIDANCE: "Manageable task to build confidence",
    }.get(goal, "Well-suited for your learning style")


def build_reasons(
    candidate: SkillCandidate,
    scores: dict[str, float],
    profile: InverseProfile | None,
) -> list[RecommendationReason]:
    reasons = []

    if scores["due"] >= 1.0 and candidate.state is not None:
        reasons.append(
            RecommendationReason("Due for review", scores["due"], "Is due for spaced review", ProfileDimension.KNOWLEDGE)
        )
    if scores["readiness"] >= REASON_THRESHOLD:
        reasons.append(
            RecommendationReason(
                "High readiness", scores["readiness"], "Has its prerequisites mastered", ProfileDimension.KNOWLEDGE
            )
        )
    if scores["mastery_gap"] >= REASON_THRESHOLD:
        reasons.append(
            RecommendationReason(
                "Room to grow", scores["mastery_gap"], "Is far from mastery", ProfileDimension.KNOWLEDGE
            )
        )

    if profile is not None:
        if scores["cognitive_match"] >= REASON_THRESHOLD:
            reasons.append(
                RecommendationReason(
                    "Optimal difficulty",
                    scores["cognitive_match"],
                    "Matches your current skill level",
                    ProfileDimension.COGNITIVE,
                )
            )
        if scores["motivational_fit"] >= REASON_THRESHOLD:
            reasons.append(
                RecommendationReason(
                    "Learning style fit",
                    scores["motivational_fit"],
                    _motivational_reason(profile.motivational_indicators.goal_orientation),
                    ProfileDimension.MOTIVATIONAL,
                )
            )
        if scores["urgency"] >= URGENCY_REASON_THRESHOLD:
            reasons.append(
                RecommendationReason(
                    "Priority skill",
                    scores["urgency"],
                    "Unlocks new understanding as a threshold concept"
                    if candidate.is_threshold_concept
                    else "Addresses a knowledge gap",
                    ProfileDimension.KNOWLEDGE,
                )
            )

    return sorted(reasons, key=lambda r: -r.weight)


def adjust_time_estimate(base_minutes: int, expertise: ExpertiseLevel) -> int:
    return round(base_minutes * TIME_MULTIPLIERS[expertise])


def generate_explanation(
    candidate: SkillCandidate,
    reasons: list[RecommendationReason],
    profile: InverseProfile | None,
) -> str:
    parts = []

    if candidate.is_threshold_concept:
        parts.append(f'"{candidate.name}" is a threshold concept that will transform your understanding of this topic.')
    elif profile is not None:
        parts.append(f'"{candidate.name}" is recommended based on your learning profile.')
    else:
        parts.append(f'"{candidate.name}" is recommended based on your practice history.')

    top = reasons[:2]
    if top:
        parts.append(f"This skill {' and '.join(r.description[0].lower() + r.description[1:] for r in top)}.")

    if profile is not None:
        expertise = profile.cognitive_indicators.expertise_level
        if expertise in (ExpertiseLevel.NOVICE, ExpertiseLevel.BEGINNER):
            parts.append("We'll provide extra guidance as you work through this.")
        elif expertise in (ExpertiseLevel.ADVANCED, ExpertiseLevel.EXPERT):
            parts.append("Given your expertise, you may move through this quickly.")

        adjusted = adjust_time_estimate(candidate.estimated_minutes, expertise)
        if adjusted != candidate.estimated_minutes:
            parts.append(f"Estimated time: ~{adjusted} minutes.")

    return " ".join(parts)


# =============================================================================
# Interventions
# =============================================================================


def generate_interventions(
    profile: InverseProfile | None,
    recent: RecentPerformance | None,
) -> tuple[MetacognitivePrompt | None, MotivationalIntervention | None]:
    """Session-level metacognitive and motivational interventions."""
    profile = profile or InverseProfile(learner_id="anonymous")
    recent = recent or RecentPerformance()
    metacognitive = profile.metacognitive_indicators
    motivational = profile.motivational_indicators

    meta: MetacognitivePrompt | None = None
    if metacognitive.overconfidence_rate is not None and metacognitive.overconfidence_rate > 0.4:
        meta = MetacognitivePrompt(
            type=PromptType.OVERCONFIDENCE,
            message="Your confidence sometimes exceeds your accuracy. Consider double-checking answers.",
            priority=Priority.HIGH,
            action_label="Learn more",
        )
    elif (
        metacognitive.help_seeking_pattern == HelpSeekingPattern.AVOIDANT
        and recent.consecutive_failures >= FAILURE_STREAK
    ):
        meta = MetacognitivePrompt(
            type=PromptType.HELP_AVOIDANT,
            message="Struggling a bit? Hints are here to help you learn, not just give answers.",
            priority=Priority.HIGH,
            action_label="Use a hint",
        )

    motivation: MotivationalIntervention | None = None
    if (
        motivational.persistence_score is not None
        and motivational.persistence_score < 0.3
        and recent.consecutive_failures >= 2
    ):
        motivation = MotivationalIntervention(
            type=InterventionType.PERSISTENCE,
            message="Don't give up! Mistakes are part of learning. Try breaking this down into smaller steps.",
            priority=Priority.HIGH,
        )
    elif recent.consecutive_successes >= SUCCESS_STREAK:
        motivation = MotivationalIntervention(
            type=InterventionType.CELEBRATION,
            message=f"You're on fire! {recent.consecutive_successes} correct answers in a row!",
            priority=Priority.LOW,
        )

    if recent.session_duration_ms / 60000 >= BREAK_AFTER_MINUTES:
        motivation = MotivationalIntervention(
            type=InterventionType.BREAK_SUGGESTION,
            message="You've been studying for a while. A short break can help consolidate learning!",
            priority=Priority.MEDIUM,
        )

    if motivational.goal_orientation == GoalOrientation.MASTERY and recent.consecutive_successes >= CHALLENGE_STREAK:
        motivation = MotivationalIntervention(
            type=InterventionType.CHALLENGE_PROMPT,
            message="Ready for a bigger challenge? Try something more difficult!",
            priority=Priority.LOW,
        )

    return meta, motivation


# =============================================================================
# Entry point
# =============================================================================


def recommend_skills(context: RecommendationContext) -> RecommendationResult:
    """
    Rank candidate skills and attach per-skill adjustments.

    Args:
        context: Learner id, candidates (with optional mastery state),
            optional profile and recent-performance window, and max_skills
            (clamped to 2-4)

    Returns:
        RecommendationResult with at most max_skills recommendations
    """
    now = context.now or datetime.now()
    profile = context.profile
    max_skills = max(MIN_SKILLS, min(MAX_SKILLS, context.max_skills))

    candidates = list(context.candidates)
    if profile is not None:
        candidates = filter_by_profile(candidates, profile.cognitive_indicators)

    scored = [(candidate, score_candidate(candidate, profile, now)) for candidate in candidates]
    scored.sort(key=lambda pair: (-pair[1]["total"], pair[0].p_mastery))

    recommendations = []
    for candidate, scores in scored[:max_skills]:
        reasons = build_reasons(candidate, scores, profile)
        recommendations.append(
            SkillRecommendation(
                skill_id=candidate.skill_id,
                name=candidate.name,
                score=scores["total"],
                p_mastery=candidate.p_mastery,
                reasons=reasons,
                adjustments=calculate_adjustments(candidate, profile, context.recent_performance),
                why_explanation=generate_explanation(candidate, reasons, profile),
                scores={k: v for k, v in scores.items() if k != "total"},
            )
        )

    meta, motivation = generate_interventions(profile, context.recent_performance)

    if profile is not None:
        summary = {
            "expertise_level": profile.cognitive_indicators.expertise_level.value,
            "optimal_complexity": profile.cognitive_indicators.optimal_complexity_level,
            "help_seeking_pattern": profile.metacognitive_indicators.help_seeking_pattern.value,
            "goal_orientation": profile.motivational_indicators.goal_orientation.value,
        }
    else:
        summary = {
            "expertise_level": ExpertiseLevel.BEGINNER.value,
            "optimal_complexity": None,
            "help_seeking_pattern": HelpSeekingPattern.UNKNOWN.value,
            "goal_orientation": GoalOrientation.UNKNOWN.value,
        }

    logger.debug(
        f"Recommended {len(recommendations)}/{len(context.candidates)} skills for {context.learner_id}: "
        f"{[r.skill_id for r in recommendations]}"
    )

    return RecommendationResult(
        recommendations=recommendations,
        metacognitive_intervention=meta,
        motivational_intervention=motivation,
        profile_summary=summary,
    )
