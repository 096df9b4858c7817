"""
Micro-Assessment Trigger.

Decides when to interrupt practice with a 1-3 question probe that refills
stale learner-profile confidence, and maps the answers back onto profile
fields.

Trigger gates (all must pass):
- at least 10 minutes since the last assessment
- at least 5 interactions since the last assessment
- at least one profile dimension needs more evidence
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from typing import Union

from loguru import logger

from tutorcore.core.profile import HelpSeekingPattern, InverseProfile, Priority

MIN_TIME_BETWEEN_ASSESSMENTS = timedelta(minutes=10)
MIN_INTERACTIONS_BETWEEN_ASSESSMENTS = 5
MAX_QUESTIONS_PER_ASSESSMENT = 3


class AssessmentType(str, Enum):
    CONFIDENCE_CALIBRATION = "confidence_calibration"
    METACOGNITIVE_AWARENESS = "metacognitive_awareness"
    KNOWLEDGE_PROBE = "knowledge_probe"
    HELP_SEEKING = "help_seeking_prompt"
    COGNITIVE_LOAD = "cognitive_load_check"
    ENGAGEMENT = "engagement_check"


class QuestionFormat(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    SCALE = "scale"
    YES_NO = "yes_no"
    OPEN_ENDED = "open_ended"


@dataclass(frozen=True)
class AssessmentQuestion:
    type: AssessmentType
    question: str
    question_format: QuestionFormat
    framework_target: str
    options: tuple[str, ...] = ()
    scale_min: int | None = None
    scale_max: int | None = None
    scale_labels: tuple[str, str] | None = None
    skill_id: str | None = None
    id: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "question": self.question,
            "question_format": self.question_format.value,
            "framework_target": self.framework_target,
            "options": list(self.options),
            "scale_min": self.scale_min,
            "scale_max": self.scale_max,
            "scale_labels": list(self.scale_labels) if self.scale_labels else None,
            "skill_id": self.skill_id,
        }


@dataclass
class StaleSkill:
    """A skill whose knowledge evidence has gone stale."""

    skill_id: str
    name: str
    difficulty: float = 0.5


@dataclass
class AssessmentTriggerContext:
    time_since_last_assessment: timedelta
    interactions_since_last_assessment: int
    profile: InverseProfile | None = None
    current_session_duration: timedelta = timedelta(0)
    recent_accuracy: float | None = None
    stale_skills: list[StaleSkill] = field(default_factory=list)


@dataclass
class AssessmentNeed:
    type: AssessmentType
    priority: Priority
    reason: str


@dataclass
class MicroAssessmentRecommendation:
    should_trigger: bool
    reason: str
    assessment_type: AssessmentType
    priority: Priority
    questions: list[AssessmentQuestion] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "should_trigger": self.should_trigger,
            "reason": self.reason,
            "assessment_type": self.assessment_type.value,
            "priority": self.priority.value,
            "questions": [q.to_dict() for q in self.questions],
        }


Response = Union[str, int, float]


@dataclass
class AssessmentResult:
    question_id: str
    type: AssessmentType
    response: Response
    response_time_ms: int = 0
    framework_target: str = ""
    skill_id: str | None = None


@dataclass
class AssessmentOutcome:
    updates: dict[str, object] = field(default_factory=dict)
    insights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"updates": self.updates, "insights": self.insights}


# =============================================================================
# Question templates
# =============================================================================

_SCALE = QuestionFormat.SCALE
_CHOICE = QuestionFormat.MULTIPLE_CHOICE

QUESTION_TEMPLATES: dict[AssessmentType, list[AssessmentQuestion]] = {
    AssessmentType.CONFIDENCE_CALIBRATION: [
        AssessmentQuestion(
            type=AssessmentType.CONFIDENCE_CALIBRATION,
            question="Before answering the next practice question, how confident are you that you will get it correct?",
            question_format=_SCALE,
            scale_min=1,
            scale_max=5,
            scale_labels=("Not confident", "Very confident"),
            framework_target="metacognitive.calibration_accuracy",
        ),
        AssessmentQuestion(
            type=AssessmentType.CONFIDENCE_CALIBRATION,
            question="Looking back at the topic you just studied, how well do you think you understand it?",
            question_format=_SCALE,
            scale_min=1,
            scale_max=5,
            scale_labels=("Poorly", "Completely"),
            framework_target="metacognitive.calibration_accuracy",
        ),
    ],
    AssessmentType.METACOGNITIVE_AWARENESS: [
        AssessmentQuestion(
            type=AssessmentType.METACOGNITIVE_AWARENESS,
            question="When you get a practice question wrong, what do you usually do?",
            question_format=_CHOICE,
            options=(
                "Move on to the next question",
                "Re-read the explanation carefully",
                "Try to figure out why I was wrong",
                "Go back and review the related material",
            ),
            framework_target="metacognitive.error_analysis",
        ),
        AssessmentQuestion(
            type=AssessmentType.METACOGNITIVE_AWARENESS,
            question="Are you aware of which parts of this topic you find most challenging?",
            question_format=_SCALE,
            scale_min=1,
            scale_max=5,
            scale_labels=("Not at all", "Very aware"),
            framework_target="metacognitive.self_awareness",
        ),
        AssessmentQuestion(
            type=AssessmentType.METACOGNITIVE_AWARENESS,
            question="When you read something confusing, what do you typically do?",
            question_format=_CHOICE,
            options=(
                "Skip it and keep going",
                "Re-read it more slowly",
                "Look for an explanation elsewhere",
                "Ask for help",
            ),
            framework_target="metacognitive.comprehension_monitoring",
        ),
    ],
    AssessmentType.HELP_SEEKING: [
        AssessmentQuestion(
            type=AssessmentType.HELP_SEEKING,
            question="When you get stuck on a problem, how long do you typically try before seeking help?",
            question_format=_CHOICE,
            options=(
                "I ask for help right away",
                "A few minutes",
                "5-10 minutes",
                "15+ minutes",
                "I rarely ask for help",
            ),
            framework_target="metacognitive.help_seeking_pattern",
        ),
        AssessmentQuestion(
            type=AssessmentType.HELP_SEEKING,
            question="How comfortable are you asking for help when you need it?",
            question_format=_SCALE,
            scale_min=1,
            scale_max=5,
            scale_labels=("Very uncomfortable", "Very comfortable"),
            framework_target="metacognitive.help_seeking_pattern",
        ),
    ],
    AssessmentType.COGNITIVE_LOAD: [
        AssessmentQuestion(
            type=AssessmentType.COGNITIVE_LOAD,
            question="How mentally demanding do you find the current material?",
            question_format=_SCALE,
            scale_min=1,
            scale_max=5,
            scale_labels=("Too easy", "Overwhelming"),
            framework_target="cognitive.working_memory_indicator",
        ),
        AssessmentQuestion(
            type=AssessmentType.COGNITIVE_LOAD,
            question="How would you describe your current mental state?",
            question_format=_CHOICE,
            options=(
                "I feel bored, this is too easy",
                "I feel comfortable, this is at my level",
                "I feel challenged but engaged",
                "I feel overwhelmed, this is too hard",
            ),
            framework_target="cognitive.optimal_complexity_level",
        ),
    ],
    AssessmentType.ENGAGEMENT: [
        AssessmentQuestion(
            type=AssessmentType.ENGAGEMENT,
            question="How interested are you in this topic right now?",
            question_format=_SCALE,
            scale_min=1,
            scale_max=5,
            scale_labels=("Not interested", "Very interested"),
            framework_target="motivational.intrinsic_motivation",
        ),
        AssessmentQuestion(
            type=AssessmentType.ENGAGEMENT,
            question="What is your main motivation for learning this material?",
            question_format=_CHOICE,
            options=(
                "I find it genuinely interesting",
                "I need it for a class or test",
                "It will help with my career",
                "Someone else wants me to learn it",
            ),
            framework_target="motivational.goal_orientation",
        ),
        AssessmentQuestion(
            type=AssessmentType.ENGAGEMENT,
            question="How likely are you to continue learning about this topic on your own?",
            question_format=_SCALE,
            scale_min=1,
            scale_max=5,
            scale_labels=("Very unlikely", "Very likely"),
            framework_target="motivational.autonomous_motivation",
        ),
    ],
    AssessmentType.KNOWLEDGE_PROBE: [],
}

ASSESSMENT_NAMES = {
    AssessmentType.CONFIDENCE_CALIBRATION: "Confidence Check",
    AssessmentType.METACOGNITIVE_AWARENESS: "Learning Strategies",
    AssessmentType.KNOWLEDGE_PROBE: "Quick Knowledge Check",
    AssessmentType.HELP_SEEKING: "Study Habits",
    AssessmentType.COGNITIVE_LOAD: "Difficulty Check",
    AssessmentType.ENGAGEMENT: "Interest Check",
}

ASSESSMENT_DESCRIPTIONS = {
    AssessmentType.CONFIDENCE_CALIBRATION: "Help us understand how you judge your own understanding",
    AssessmentType.METACOGNITIVE_AWARENESS: "Tell us about how you approach learning",
    AssessmentType.KNOWLEDGE_PROBE: "A quick check on your understanding",
    AssessmentType.HELP_SEEKING: "Help us learn about your study habits",
    AssessmentType.COGNITIVE_LOAD: "Let us know how the difficulty level feels",
    AssessmentType.ENGAGEMENT: "Share your interest level with this topic",
}


def get_assessment_type_name(assessment_type: AssessmentType) -> str:
    return ASSESSMENT_NAMES.get(assessment_type, "Quick Assessment")


def get_assessment_type_description(assessment_type: AssessmentType) -> str:
    return ASSESSMENT_DESCRIPTIONS.get(
        assessment_type, "A quick question to personalize your learning experience"
    )


def _question_id(rng: random.Random) -> str:
    return f"maq_{rng.getrandbits(48):012x}"


def generate_knowledge_probe(
    skill: StaleSkill, rng: random.Random | None = None
) -> AssessmentQuestion:
    """Open-ended 'explain it back' probe for one stale skill."""
    rng = rng or random.Random()
    return AssessmentQuestion(
        id=_question_id(rng),
        type=AssessmentType.KNOWLEDGE_PROBE,
        question=f'Quick check: Can you explain the key concept of "{skill.name}" in your own words?',
        question_format=QuestionFormat.OPEN_ENDED,
        skill_id=skill.skill_id,
        framework_target="knowledge_state.skill_mastery",
    )


# =============================================================================
# Triggering
# =============================================================================


def determine_assessment_needs(
    profile: InverseProfile | None,
    stale_skills: list[StaleSkill] | None = None,
) -> list[AssessmentNeed]:
    """Profile dimensions that need fresh evidence, in discovery order."""
    if profile is None:
        return [
            AssessmentNeed(
                AssessmentType.METACOGNITIVE_AWARENESS,
                Priority.HIGH,
                "No learner profile data; need baseline metacognitive indicators",
            ),
            AssessmentNeed(AssessmentType.ENGAGEMENT, Priority.MEDIUM, "No motivational data available"),
        ]

    needs = []
    confidence = profile.confidence_scores
    metacognitive = profile.metacognitive_indicators

    if confidence.metacognitive < 0.5:
        needs.append(
            AssessmentNeed(
                AssessmentType.METACOGNITIVE_AWARENESS,
                Priority.HIGH,
                "Low confidence in metacognitive indicators",
            )
        )

    if metacognitive.calibration_accuracy is None:
        needs.append(
            AssessmentNeed(AssessmentType.CONFIDENCE_CALIBRATION, Priority.HIGH, "No calibration data available")
        )
    elif metacognitive.overconfidence_rate is not None and metacognitive.overconfidence_rate > 0.3:
        needs.append(
            AssessmentNeed(
                AssessmentType.CONFIDENCE_CALIBRATION,
                Priority.MEDIUM,
                "Learner appears overconfident; need verification",
            )
        )

    if metacognitive.help_seeking_pattern == HelpSeekingPattern.UNKNOWN:
        needs.append(AssessmentNeed(AssessmentType.HELP_SEEKING, Priority.MEDIUM, "Help-seeking pattern unknown"))

    if confidence.knowledge < 0.5 and stale_skills:
        needs.append(
            AssessmentNeed(
                AssessmentType.KNOWLEDGE_PROBE,
                Priority.MEDIUM,
                f"Knowledge evidence is stale for {len(stale_skills)} skill(s)",
            )
        )

    if confidence.cognitive < 0.5:
        needs.append(
            AssessmentNeed(
                AssessmentType.COGNITIVE_LOAD,
                Priority.MEDIUM,
                "Low confidence in cognitive load estimates",
            )
        )

    if confidence.motivational < 0.4:
        needs.append(
            AssessmentNeed(AssessmentType.ENGAGEMENT, Priority.LOW, "Low confidence in motivational indicators")
        )

    return needs


def _not_triggered(reason: str) -> MicroAssessmentRecommendation:
    return MicroAssessmentRecommendation(
        should_trigger=False,
        reason=reason,
        assessment_type=AssessmentType.METACOGNITIVE_AWARENESS,
        priority=Priority.LOW,
    )


def should_trigger_micro_assessment(
    context: AssessmentTriggerContext,
    rng: random.Random | None = None,
) -> MicroAssessmentRecommendation:
    """
    Decide whether to run a micro-assessment now.

    Args:
        context: Time and interaction counts since the last assessment,
            the learner profile, and any skills with stale evidence
        rng: Random source for question order and ids

    Returns:
        MicroAssessmentRecommendation with up to 3 questions when triggered
    """
    rng = rng or random.Random()

    if context.time_since_last_assessment < MIN_TIME_BETWEEN_ASSESSMENTS:
        return _not_triggered("Too soon since last assessment")

    if context.interactions_since_last_assessment < MIN_INTERACTIONS_BETWEEN_ASSESSMENTS:
        return _not_triggered("Not enough interactions since last assessment")

    needs = determine_assessment_needs(context.profile, context.stale_skills)
    if not needs:
        return _not_triggered("Profile data is sufficient")

    needs.sort(key=lambda need: need.priority.rank)
    selected = needs[0]

    if selected.type == AssessmentType.KNOWLEDGE_PROBE:
        candidates = [generate_knowledge_probe(skill, rng) for skill in context.stale_skills]
    else:
        candidates = [
            replace(template, id=_question_id(rng))
            for template in QUESTION_TEMPLATES[selected.type]
        ]

    rng.shuffle(candidates)
    questions = candidates[:MAX_QUESTIONS_PER_ASSESSMENT]

    logger.debug(
        f"Micro-assessment {selected.type.value} ({selected.priority.value}): "
        f"{len(questions)} question(s), reason: {selected.reason}"
    )

    return MicroAssessmentRecommendation(
        should_trigger=bool(questions),
        reason=selected.reason,
        assessment_type=selected.type,
        priority=selected.priority,
        questions=questions,
    )


# =============================================================================
# Results processing
# =============================================================================


def _as_number(response: Response) -> int | None:
    if isinstance(response, (int, float)) and not isinstance(response, bool):
        return int(response)
    if isinstance(response, str):
        try:
            return int(response.strip())
        except ValueError:
            return None
    return None


def _process_calibration(result: AssessmentResult, outcome: AssessmentOutcome) -> None:
    value = _as_number(result.response)
    if value is None:
        return
    outcome.updates["metacognitive_indicators.self_reported_confidence"] = value
    outcome.updates["confidence_scores.metacognitive"] = 0.6
    if value >= 4:
        outcome.insights.append("Learner reports high confidence; monitor for overconfidence")
    elif value <= 2:
        outcome.insights.append("Learner reports low confidence; may need more encouragement")


def _process_metacognitive(result: AssessmentResult, outcome: AssessmentOutcome) -> None:
    response = result.response
    if isinstance(response, str):
        if "figure out why" in response or "review the related material" in response:
            outcome.updates["metacognitive_indicators.error_analysis_strategy"] = "reflective"
            outcome.insights.append("Learner shows good error analysis habits")
        elif "Move on" in response:
            outcome.updates["metacognitive_indicators.error_analysis_strategy"] = "avoidant"
            outcome.insights.append("Learner may benefit from prompts to analyze errors")
        return

    outcome.updates["metacognitive_indicators.self_awareness_rating"] = response
    if response >= 4:
        outcome.insights.append("Learner shows strong metacognitive awareness")


def _process_help_seeking(result: AssessmentResult, outcome: AssessmentOutcome) -> None:
    response = result.response
    key = "metacognitive_indicators.help_seeking_pattern"
    if isinstance(response, str):
        if "right away" in response:
            outcome.updates[key] = HelpSeekingPattern.EXCESSIVE.value
            outcome.insights.append("Learner may seek help too quickly; encourage productive struggle")
        elif "rarely" in response:
            outcome.updates[key] = HelpSeekingPattern.AVOIDANT.value
            outcome.insights.append("Learner may avoid help; proactively offer assistance")
        else:
            outcome.updates[key] = HelpSeekingPattern.APPROPRIATE.value
            outcome.insights.append("Learner shows appropriate help-seeking behavior")
        return

    outcome.updates["metacognitive_indicators.help_seeking_comfort"] = response
    if response <= 2:
        outcome.insights.append("Learner uncomfortable seeking help; normalize asking questions")


def _process_cognitive_load(result: AssessmentResult, outcome: AssessmentOutcome) -> None:
    response = result.response
    if isinstance(response, str):
        key = "cognitive_indicators.working_memory_indicator"
        if "bored" in response:
            outcome.updates[key] = "high"
            outcome.insights.append("Learner may benefit from more challenging material")
        elif "overwhelmed" in response:
            outcome.updates[key] = "low"
            outcome.insights.append("Consider reducing cognitive load")
        else:
            outcome.updates[key] = "medium"
        return

    # 1 = too easy, 3 = just right, 5 = overwhelming
    key = "cognitive_indicators.perceived_difficulty"
    if response <= 2:
        outcome.updates[key] = "low"
        outcome.insights.append("Content may be too easy; consider increasing challenge")
    elif response == 3:
        outcome.updates[key] = "optimal"
        outcome.insights.append("Content difficulty is at optimal level")
    else:
        outcome.updates[key] = "high"
        outcome.insights.append("Content may be overwhelming; consider more scaffolding")


def _process_engagement(result: AssessmentResult, outcome: AssessmentOutcome) -> None:
    response = result.response
    if isinstance(response, str):
        key = "motivational_indicators.goal_orientation"
        if "genuinely interesting" in response:
            outcome.updates[key] = "mastery"
            outcome.insights.append("Learner is mastery-oriented")
        elif "class or test" in response:
            outcome.updates[key] = "performance"
            outcome.insights.append("Learner is performance-oriented")
        elif "career" in response:
            outcome.updates[key] = "utility"
            outcome.insights.append("Learner has utility-focused motivation")
        return

    outcome.updates["motivational_indicators.interest_level"] = response
    if response >= 4:
        outcome.updates["motivational_indicators.intrinsic_motivation"] = True
        outcome.insights.append("Learner shows high intrinsic motivation")
    elif response <= 2:
        outcome.insights.append("Learner interest is low; consider connecting to interests")


def _process_knowledge_probe(result: AssessmentResult, outcome: AssessmentOutcome) -> None:
    skill = result.skill_id or result.question_id
    outcome.updates[f"knowledge_state.probe_responses.{skill}"] = result.response


_PROCESSORS = {
    AssessmentType.CONFIDENCE_CALIBRATION: _process_calibration,
    AssessmentType.METACOGNITIVE_AWARENESS: _process_metacognitive,
    AssessmentType.HELP_SEEKING: _process_help_seeking,
    AssessmentType.COGNITIVE_LOAD: _process_cognitive_load,
    AssessmentType.ENGAGEMENT: _process_engagement,
    AssessmentType.KNOWLEDGE_PROBE: _process_knowledge_probe,
}


def process_micro_assessment_results(results: list[AssessmentResult]) -> AssessmentOutcome:
    """
    Map answers onto dotted profile-field updates plus free-text insights.

    Later answers for the same field overwrite earlier ones.
    """
    outcome = AssessmentOutcome()
    for result in results:
        _PROCESSORS[result.type](result, outcome)
    return outcome
