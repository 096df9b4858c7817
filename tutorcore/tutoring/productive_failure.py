"""
Productive Failure: exploration before instruction.

Learners attempt a problem they have not been taught yet, then consolidate
against a worked solution:
- Attempt categorization (language model with regex fallback)
- Frustration detection from attempt patterns
- Productive-struggle scoring
- Scaffolding escalation (continue -> hint -> guided question -> consolidate)
- Consolidation, comparison views, learning moments and conceptual gain

Sessions are immutable values; record_attempt() and generate_consolidation()
return new sessions. Time is supplied by the caller through ``now``.
"""

from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Sequence

from loguru import logger

from tutorcore.core.errors import InvalidStateTransition
from tutorcore.integrations.llm_client import LLMClient


class AttemptCategory(str, Enum):
    CORRECT = "correct"
    PARTIAL_CORRECT = "partial_correct"
    CREATIVE_WRONG = "creative_wrong"  # Wrong but shows good thinking
    COMMON_MISCONCEPTION = "common_misconception"
    OFF_TRACK = "off_track"
    INCOMPLETE = "incomplete"


class ScaffoldAction(str, Enum):
    CONTINUE = "continue"
    HINT = "hint"
    GUIDED_QUESTION = "guided_question"
    CONSOLIDATE = "consolidate"


class ExplorationStatus(str, Enum):
    EXPLORING = "exploring"
    CONSOLIDATED = "consolidated"
    ENDED = "ended"


class LearningMomentType(str, Enum):
    DISCOVERY = "discovery"
    MISCONCEPTION_SURFACED = "misconception_surfaced"
    CREATIVE_APPROACH = "creative_approach"
    PERSISTENCE = "persistence"


UNPRODUCTIVE = frozenset({AttemptCategory.OFF_TRACK, AttemptCategory.INCOMPLETE})
PRODUCTIVE_WRONG = frozenset({AttemptCategory.PARTIAL_CORRECT, AttemptCategory.CREATIVE_WRONG})

# Frustration signals
RAPID_ATTEMPT_MS = 30_000
RAPID_WEIGHT = 0.3
NO_PROGRESS_WEIGHT = 0.3
CREATIVITY_DROP = -0.2
CREATIVITY_DROP_WEIGHT = 0.2
IDLE_MINUTES = 8
IDLE_WEIGHT = 0.2

# Scaffolding thresholds
FORCE_CONSOLIDATION_FRUSTRATION = 0.8
HINT_FRUSTRATION = 0.4
GUIDED_QUESTION_MINUTES = 5

# Struggle sweet spot
OPTIMAL_FRUSTRATION = (0.2, 0.5)

SCAFFOLD_MESSAGES = {
    "hint": "Remember, there's no \"wrong\" answer in exploration. What patterns do you notice?",
    "guided_question": "What's one thing you're certain about in this problem?",
    "consolidate_frustration": "You've explored thoroughly! Let's consolidate what you've discovered.",
    "consolidate_attempts": "Great exploration! You've tried multiple approaches. Time to see how it all connects.",
}


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class ExplorationProblem:
    """A problem posed before formal instruction."""

    problem_id: str
    skill_id: str
    skill_name: str
    target_concept: str
    problem: str = ""
    context: str = ""
    difficulty: float = 0.5
    common_misconceptions: tuple[str, ...] = ()
    max_attempts: int = 3
    frustration_threshold_minutes: float = 10.0


@dataclass(frozen=True)
class AttemptAnalysis:
    category: AttemptCategory
    partial_understanding: tuple[str, ...] = ()
    misconceptions: tuple[str, ...] = ()
    creativity_score: float = 0.3
    source: str = "heuristic"


@dataclass(frozen=True)
class ExplorationAttempt:
    attempt_number: int
    content: str
    category: AttemptCategory
    duration_ms: int
    partial_understanding: tuple[str, ...] = ()
    misconceptions: tuple[str, ...] = ()
    creativity_score: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_number": self.attempt_number,
            "content": self.content,
            "category": self.category.value,
            "duration_ms": self.duration_ms,
            "partial_understanding": list(self.partial_understanding),
            "misconceptions": list(self.misconceptions),
            "creativity_score": self.creativity_score,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ExplorationSession:
    """
    One learner's exploration of one problem.

    Becomes read-only once consolidated or ended.
    """

    session_id: str
    problem: ExplorationProblem
    started_at: datetime
    attempts: tuple[ExplorationAttempt, ...] = ()
    frustration_level: float = 0.0
    productive_struggle_score: float = 0.0
    ready_for_consolidation: bool = False
    status: ExplorationStatus = ExplorationStatus.EXPLORING
    ended_at: datetime | None = None

    @property
    def is_exploring(self) -> bool:
        return self.status == ExplorationStatus.EXPLORING

    def elapsed_minutes(self, now: datetime | None = None) -> float:
        end = self.ended_at or now or datetime.now()
        return max(0.0, (end - self.started_at).total_seconds() / 60)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "problem_id": self.problem.problem_id,
            "skill_id": self.problem.skill_id,
            "status": self.status.value,
            "attempts": [a.to_dict() for a in self.attempts],
            "frustration_level": round(self.frustration_level, 4),
            "productive_struggle_score": round(self.productive_struggle_score, 4),
            "ready_for_consolidation": self.ready_for_consolidation,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }


@dataclass(frozen=True)
class ScaffoldingDecision:
    level: int  # 0 to 3
    action: ScaffoldAction
    message: str | None = None


@dataclass(frozen=True)
class SolutionStep:
    step_number: int
    description: str
    reasoning: str
    common_mistake: str | None = None


@dataclass(frozen=True)
class WorkedSolution:
    steps: tuple[SolutionStep, ...]
    final_answer: str
    key_principles: tuple[str, ...] = ()


@dataclass(frozen=True)
class AttemptSummary:
    attempt_number: int
    approach: str
    what_was_right: tuple[str, ...]
    what_was_missing: tuple[str, ...]
    led_to_insight: bool


@dataclass(frozen=True)
class ConsolidationData:
    session_id: str
    what_you_tried: tuple[AttemptSummary, ...]
    key_insight: str
    correct_approach: WorkedSolution
    why_it_works: tuple[str, ...]
    connection_to_exploration: tuple[str, ...]
    conceptual_gain: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "what_you_tried": [
                {
                    "attempt_number": s.attempt_number,
                    "approach": s.approach,
                    "what_was_right": list(s.what_was_right),
                    "what_was_missing": list(s.what_was_missing),
                    "led_to_insight": s.led_to_insight,
                }
                for s in self.what_you_tried
            ],
            "key_insight": self.key_insight,
            "correct_approach": {
                "steps": [
                    {
                        "step_number": step.step_number,
                        "description": step.description,
                        "reasoning": step.reasoning,
                        "common_mistake": step.common_mistake,
                    }
                    for step in self.correct_approach.steps
                ],
                "final_answer": self.correct_approach.final_answer,
                "key_principles": list(self.correct_approach.key_principles),
            },
            "why_it_works": list(self.why_it_works),
            "connection_to_exploration": list(self.connection_to_exploration),
            "conceptual_gain": round(self.conceptual_gain, 4),
        }


@dataclass(frozen=True)
class ComparisonView:
    similarities: tuple[str, ...]
    differences: tuple[str, ...]
    almost_there_aspects: tuple[str, ...]
    path_to_correct: str


@dataclass(frozen=True)
class LearningMoment:
    moment: str
    type: LearningMomentType
    learning_value: float


@dataclass(frozen=True)
class ConceptualGain:
    gain: float
    normalized_gain: float
    attribution_to_struggle: float
    interpretation: str


@dataclass(frozen=True)
class ExplorationSummary:
    session_id: str
    status: ExplorationStatus
    attempt_count: int
    categories: tuple[AttemptCategory, ...]
    frustration_level: float
    productive_struggle_score: float
    learning_moments: tuple[LearningMoment, ...]
    duration_minutes: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "attempt_count": self.attempt_count,
            "categories": [c.value for c in self.categories],
            "frustration_level": round(self.frustration_level, 4),
            "productive_struggle_score": round(self.productive_struggle_score, 4),
            "learning_moments": [
                {"moment": m.moment, "type": m.type.value, "learning_value": m.learning_value}
                for m in self.learning_moments
            ],
            "duration_minutes": round(self.duration_minutes, 2),
        }


# =============================================================================
# Session Lifecycle
# =============================================================================


def create_exploration_problem(
    skill_id: str,
    skill_name: str,
    target_concept: str,
    problem: str = "",
    difficulty: float = 0.5,
    misconceptions: Sequence[str] = (),
    max_attempts: int = 3,
    frustration_threshold_minutes: float = 10.0,
) -> ExplorationProblem:
    return ExplorationProblem(
        problem_id=f"explore-{skill_id}-{uuid.uuid4().hex[:8]}",
        skill_id=skill_id,
        skill_name=skill_name,
        target_concept=target_concept,
        problem=problem,
        difficulty=difficulty,
        common_misconceptions=tuple(misconceptions),
        max_attempts=max(1, max_attempts),
        frustration_threshold_minutes=frustration_threshold_minutes,
    )


def start_exploration(problem: ExplorationProblem, now: datetime | None = None) -> ExplorationSession:
    """Open an exploration session for a problem."""
    session = ExplorationSession(
        session_id=f"session-{uuid.uuid4().hex[:12]}",
        problem=problem,
        started_at=now or datetime.now(),
    )
    logger.info(f"Started exploration {session.session_id} on {problem.skill_id}")
    return session


def _clamp_creativity(score: float) -> float:
    """Clamp to [0, 1]; non-finite scores fall back to the neutral 0.3."""
    if not math.isfinite(score):
        return 0.3
    return min(max(score, 0.0), 1.0)


def record_attempt(
    session: ExplorationSession,
    content: str,
    analysis: AttemptAnalysis,
    duration_ms: int,
    now: datetime | None = None,
) -> ExplorationSession:
    """
    Append an attempt and recompute frustration, struggle and readiness.

    Raises:
        InvalidStateTransition: If the session is no longer exploring or
            has already reached its attempt limit
    """
    if not session.is_exploring:
        raise InvalidStateTransition("exploration", session.session_id, session.status.value, "record attempt")
    if len(session.attempts) >= session.problem.max_attempts:
        raise InvalidStateTransition("exploration", session.session_id, "attempt_limit_reached", "record attempt")

    now = now or datetime.now()
    attempt = ExplorationAttempt(
        attempt_number=len(session.attempts) + 1,
        content=content,
        category=analysis.category,
        duration_ms=max(0, int(duration_ms)),
        partial_understanding=tuple(analysis.partial_understanding),
        misconceptions=tuple(analysis.misconceptions),
        creativity_score=_clamp_creativity(analysis.creativity_score),
        timestamp=now,
    )

    attempts = (*session.attempts, attempt)
    session_ms = max(0.0, (now - session.started_at).total_seconds() * 1000)
    frustration = detect_frustration_level(attempts, session_ms)
    struggle = calculate_productive_struggle_score(attempts, frustration)

    ready = (
        len(attempts) >= session.problem.max_attempts
        or frustration > FORCE_CONSOLIDATION_FRUSTRATION
        or attempt.category == AttemptCategory.CORRECT
    )

    logger.debug(
        f"Exploration {session.session_id} attempt {attempt.attempt_number}: "
        f"{attempt.category.value}, frustration={frustration:.2f}, struggle={struggle:.2f}"
    )

    return replace(
        session,
        attempts=attempts,
        frustration_level=frustration,
        productive_struggle_score=struggle,
        ready_for_consolidation=ready,
    )


def get_scaffolding_level(session: ExplorationSession, now: datetime | None = None) -> ScaffoldingDecision:
    """
    Decide how much help the explorer needs right now.

    Level 3 forces consolidation, level 2 asks a guided question, level 1
    offers a light hint and level 0 lets exploration continue.
    """
    attempts = session.attempts
    minutes = session.elapsed_minutes(now)

    if (
        session.frustration_level > FORCE_CONSOLIDATION_FRUSTRATION
        or minutes > session.problem.frustration_threshold_minutes
    ):
        return ScaffoldingDecision(3, ScaffoldAction.CONSOLIDATE, SCAFFOLD_MESSAGES["consolidate_frustration"])

    if len(attempts) >= session.problem.max_attempts:
        return ScaffoldingDecision(3, ScaffoldAction.CONSOLIDATE, SCAFFOLD_MESSAGES["consolidate_attempts"])

    if len(attempts) >= 2:
        no_progress = all(a.category in UNPRODUCTIVE for a in attempts[-2:])
        if no_progress and minutes >= GUIDED_QUESTION_MINUTES:
            return ScaffoldingDecision(2, ScaffoldAction.GUIDED_QUESTION, SCAFFOLD_MESSAGES["guided_question"])

    if session.frustration_level > HINT_FRUSTRATION and attempts:
        return ScaffoldingDecision(1, ScaffoldAction.HINT, SCAFFOLD_MESSAGES["hint"])

    return ScaffoldingDecision(0, ScaffoldAction.CONTINUE)


# =============================================================================
# Frustration & Struggle
# =============================================================================


def detect_frustration_level(attempts: Sequence[ExplorationAttempt], session_duration_ms: float) -> float:
    """
    Sum four independent frustration signals, capped at 1.

    Rapid attempts, no category progress, falling creativity and a long
    stretch without a real attempt each add their own weight.
    """
    if not attempts:
        return 0.0

    frustration = 0.0
    recent = list(attempts[-3:])

    mean_duration = sum(a.duration_ms for a in recent) / len(recent)
    if mean_duration < RAPID_ATTEMPT_MS:
        frustration += RAPID_WEIGHT

    if all(a.category in UNPRODUCTIVE for a in recent):
        frustration += NO_PROGRESS_WEIGHT

    if len(recent) >= 2:
        creativity_change = recent[-1].creativity_score - recent[0].creativity_score
        if creativity_change < CREATIVITY_DROP:
            frustration += CREATIVITY_DROP_WEIGHT

    if session_duration_ms / 60_000 > IDLE_MINUTES and len(attempts) < 2:
        frustration += IDLE_WEIGHT

    return min(frustration, 1.0)


def calculate_productive_struggle_score(
    attempts: Sequence[ExplorationAttempt],
    frustration_level: float,
) -> float:
    """
    Score learning potential of the struggle so far; each factor adds up to 0.25.

    Factors: category diversity, rising creativity, share of productive wrong
    attempts and frustration inside the 0.2 to 0.5 band.
    """
    if not attempts:
        return 0.0

    score = min(len({a.category for a in attempts}) / 4, 0.25)

    if len(attempts) >= 2:
        mean_delta = (attempts[-1].creativity_score - attempts[0].creativity_score) / (len(attempts) - 1)
        score += max(mean_delta, 0.0) * 0.25

    productive = sum(1 for a in attempts if a.category in PRODUCTIVE_WRONG)
    score += min(productive / len(attempts), 0.25)

    low, high = OPTIMAL_FRUSTRATION
    if low <= frustration_level <= high:
        score += 0.25
    elif frustration_level < low:
        score += 0.1
    else:
        score += 0.05

    return min(score, 1.0)


# =============================================================================
# Attempt Categorization
# =============================================================================

ATTEMPT_CATEGORIZATION_PROMPT = """Analyze this learner attempt at a problem they haven't been formally taught yet.

Problem: {problem}

Learner's attempt: {attempt}

Target concept: {target_concept}

Known misconceptions:
{misconceptions}

Return a JSON object:
{{"category": "correct" | "partial_correct" | "creative_wrong" | "common_misconception" | "off_track" | "incomplete",
  "partialUnderstanding": ["what the learner got right or close to right"],
  "misconceptions": ["misconceptions revealed"],
  "creativityScore": 0.0-1.0}}
"""

GIVE_UP_PATTERN = re.compile(
    r"""
    ^ \s* (?: i \s+ don'?t \s+ know | no \s+ idea | idk | pass | skip | \?+ ) [\s.!?]* $
    """,
    re.VERBOSE | re.IGNORECASE,
)

REASONING_PATTERN = re.compile(
    r"\b(?: because | so | therefore | which \s+ means | if | then )\b",
    re.VERBOSE | re.IGNORECASE,
)

HEDGING_PATTERN = re.compile(
    r"\b(?: maybe | perhaps | i \s+ guess | no \s+ clue | random )\b",
    re.VERBOSE | re.IGNORECASE,
)

_WORD_PATTERN = re.compile(r"[a-z0-9']+")

MIN_SUBSTANTIVE_WORDS = 4
CREATIVE_MIN_WORDS = 15


def categorize_attempt(content: str, problem: ExplorationProblem) -> AttemptAnalysis:
    """
    Deterministic attempt categorizer used when no model is available.

    Never returns CORRECT: correctness needs a real judge.
    """
    text = content.lower()
    words = _WORD_PATTERN.findall(text)

    if GIVE_UP_PATTERN.match(content) or len(words) < MIN_SUBSTANTIVE_WORDS:
        return AttemptAnalysis(AttemptCategory.INCOMPLETE, creativity_score=0.1)

    misconceptions = tuple(m for m in problem.common_misconceptions if m and m.lower() in text)
    if misconceptions:
        return AttemptAnalysis(
            AttemptCategory.COMMON_MISCONCEPTION,
            misconceptions=misconceptions,
            creativity_score=0.3,
        )

    keywords = {w for w in _WORD_PATTERN.findall(problem.target_concept.lower()) if len(w) >= 4}
    mentions = problem.target_concept.lower() in text or bool(keywords & set(words))
    reasons = bool(REASONING_PATTERN.search(text))

    if mentions:
        return AttemptAnalysis(
            AttemptCategory.PARTIAL_CORRECT,
            partial_understanding=(f"Connected the problem to {problem.target_concept}",),
            creativity_score=0.6 if reasons else 0.5,
        )

    if reasons and len(words) >= CREATIVE_MIN_WORDS and not HEDGING_PATTERN.search(text):
        return AttemptAnalysis(
            AttemptCategory.CREATIVE_WRONG,
            partial_understanding=("Built a reasoned approach of their own",),
            creativity_score=0.7,
        )

    return AttemptAnalysis(AttemptCategory.OFF_TRACK, creativity_score=0.2 if HEDGING_PATTERN.search(text) else 0.3)


def _analysis_from_llm(data: dict[str, Any]) -> AttemptAnalysis | None:
    try:
        category = AttemptCategory(str(data.get("category", "")).lower())
        creativity = float(data.get("creativityScore", 0.3))
    except (TypeError, ValueError):
        return None
    if not math.isfinite(creativity):
        return None

    def strings(key: str) -> tuple[str, ...]:
        value = data.get(key) or []
        return tuple(str(v) for v in value if v) if isinstance(value, list) else ()

    return AttemptAnalysis(
        category=category,
        partial_understanding=strings("partialUnderstanding"),
        misconceptions=strings("misconceptions"),
        creativity_score=min(max(creativity, 0.0), 1.0),
        source="llm",
    )


async def analyze_attempt(
    content: str,
    problem: ExplorationProblem,
    llm: LLMClient | None = None,
) -> AttemptAnalysis:
    """Categorize an attempt with the language model, falling back to the heuristic."""
    if llm is None or not llm.is_available:
        return categorize_attempt(content, problem)

    prompt = ATTEMPT_CATEGORIZATION_PROMPT.format(
        problem=problem.problem or problem.target_concept,
        attempt=content,
        target_concept=problem.target_concept,
        misconceptions="\n".join(f"{i}. {m}" for i, m in enumerate(problem.common_misconceptions, 1))
        or "(none recorded)",
    )
    data = await llm.generate_json(prompt)
    analysis = _analysis_from_llm(data) if data is not None else None
    if analysis is None:
        if data is not None:
            logger.warning(f"LLM returned unusable attempt category: {data.get('category')!r}")
        return categorize_attempt(content, problem)
    return analysis


# =============================================================================
# Consolidation
# =============================================================================


def generate_consolidation(
    session: ExplorationSession,
    solution: WorkedSolution,
    key_insight: str,
    now: datetime | None = None,
) -> tuple[ExplorationSession, ConsolidationData]:
    """
    Pair every attempt with what was right and missing, then close the session.

    Raises:
        InvalidStateTransition: If the session was already consolidated or ended
    """
    if not session.is_exploring:
        raise InvalidStateTransition("exploration", session.session_id, session.status.value, "consolidate")

    what_you_tried = tuple(
        AttemptSummary(
            attempt_number=a.attempt_number,
            approach=a.content,
            what_was_right=a.partial_understanding,
            what_was_missing=a.misconceptions or ("The key concept hadn't been discovered yet",),
            led_to_insight=a.category in PRODUCTIVE_WRONG,
        )
        for a in session.attempts
    )
    connections = tuple(
        f'Your thinking about "{a.partial_understanding[0]}" was on the right track!'
        for a in session.attempts
        if a.partial_understanding
    )

    data = ConsolidationData(
        session_id=session.session_id,
        what_you_tried=what_you_tried,
        key_insight=key_insight,
        correct_approach=solution,
        why_it_works=solution.key_principles,
        connection_to_exploration=connections,
        conceptual_gain=session.productive_struggle_score * 0.8 + 0.2,
    )

    closed = replace(session, status=ExplorationStatus.CONSOLIDATED, ended_at=now or datetime.now())
    logger.info(f"Exploration {session.session_id} consolidated after {len(session.attempts)} attempts")
    return closed, data


def end_exploration(
    session: ExplorationSession,
    now: datetime | None = None,
) -> tuple[ExplorationSession, ExplorationSummary]:
    """
    End an exploration early. Accepted from any state.

    Returns:
        (closed session, summary); closed sessions are returned unchanged
    """
    if session.is_exploring:
        session = replace(session, status=ExplorationStatus.ENDED, ended_at=now or datetime.now())
        logger.info(f"Exploration {session.session_id} ended early")

    summary = ExplorationSummary(
        session_id=session.session_id,
        status=session.status,
        attempt_count=len(session.attempts),
        categories=tuple(a.category for a in session.attempts),
        frustration_level=session.frustration_level,
        productive_struggle_score=session.productive_struggle_score,
        learning_moments=tuple(extract_learning_moments(session)),
        duration_minutes=session.elapsed_minutes(now),
    )
    return session, summary


def generate_comparison_view(attempt: ExplorationAttempt, solution: WorkedSolution) -> ComparisonView:
    """Contrast one attempt with the worked solution."""
    almost_there: tuple[str, ...] = ()
    if attempt.category in PRODUCTIVE_WRONG:
        focus = attempt.partial_understanding[0] if attempt.partial_understanding else "the problem structure"
        almost_there = (f"Your approach showed good intuition about {focus}",)

    first_step = solution.steps[0].description if solution.steps else "the fundamental concept"
    return ComparisonView(
        similarities=attempt.partial_understanding,
        differences=attempt.misconceptions,
        almost_there_aspects=almost_there,
        path_to_correct=f"The key step you needed was: {first_step}",
    )


def extract_learning_moments(session: ExplorationSession) -> list[LearningMoment]:
    """Collect the valuable moments of an exploration, most valuable first."""
    moments: list[LearningMoment] = []

    for attempt in session.attempts:
        if attempt.category == AttemptCategory.CREATIVE_WRONG and attempt.creativity_score > 0.6:
            moments.append(
                LearningMoment(
                    f'Attempt {attempt.attempt_number}: Novel approach with "{attempt.content[:50]}"',
                    LearningMomentType.CREATIVE_APPROACH,
                    0.8,
                )
            )
        if attempt.misconceptions:
            moments.append(
                LearningMoment(
                    f"Discovered misconception: {attempt.misconceptions[0]}",
                    LearningMomentType.MISCONCEPTION_SURFACED,
                    0.7,
                )
            )
        if attempt.category == AttemptCategory.PARTIAL_CORRECT:
            insight = attempt.partial_understanding[0] if attempt.partial_understanding else "Partial insight gained"
            moments.append(LearningMoment(f"Getting closer: {insight}", LearningMomentType.DISCOVERY, 0.6))

    if len(session.attempts) >= 3:
        moments.append(LearningMoment("Persisted through multiple attempts", LearningMomentType.PERSISTENCE, 0.5))

    return sorted(moments, key=lambda m: m.learning_value, reverse=True)


def measure_conceptual_gain(
    pre_understanding: float,
    post_understanding: float,
    productive_struggle_score: float,
) -> ConceptualGain:
    """
    Hake normalised gain between a pre-exploration diagnostic and a
    post-consolidation check, with the share attributable to struggle.
    """
    pre = min(max(pre_understanding, 0.0), 1.0)
    post = min(max(post_understanding, 0.0), 1.0)

    raw_gain = post - pre
    possible = 1 - pre
    normalized = raw_gain / possible if possible > 0 else 0.0
    attribution = min(max(productive_struggle_score * normalized, 0.0), 1.0)

    if normalized >= 0.7:
        interpretation = "Excellent conceptual gain! The productive struggle phase significantly enhanced learning."
    elif normalized >= 0.4:
        interpretation = "Good conceptual gain. The exploration phase activated relevant prior knowledge."
    elif normalized >= 0.2:
        interpretation = "Moderate gain. Consider longer exploration or more scaffolded consolidation."
    else:
        interpretation = "Limited gain detected. The problem may need adjustment for better productive failure."

    return ConceptualGain(
        gain=raw_gain,
        normalized_gain=normalized,
        attribution_to_struggle=attribution,
        interpretation=interpretation,
    )
