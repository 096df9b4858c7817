"""
Socratic Dialogue State Machine: question-type sequencing for guided questioning.

Guides learners toward a target concept by asking instead of telling:
- Plans a path of question types from the starting understanding
- Classifies each response into an understanding level
- Detects self-discovery moments from linguistic markers
- Re-plans the remaining path after every exchange
- Scores dialogue effectiveness once it ends

All functions here are synchronous and pure. The language model is only
consulted through analyze_response() and the dialogue manager, and every
such call has a deterministic fallback in this module.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Sequence

from loguru import logger

from tutorcore.integrations.llm_client import LLMClient


class QuestionType(str, Enum):
    """Kinds of Socratic question, in rough order of a dialogue."""

    CLARIFYING = "clarifying"  # Understand their thinking
    PROBING = "probing"  # Dig deeper into reasoning
    SCAFFOLDING = "scaffolding"  # Build toward the answer
    CHALLENGING = "challenging"  # Test their understanding
    REFLECTION = "reflection"  # Help them see what they learned
    METACOGNITIVE = "metacognitive"  # Think about their thinking


class UnderstandingLevel(str, Enum):
    """Understanding demonstrated by a single response."""

    NONE = "none"
    PARTIAL = "partial"
    CORRECT = "correct"
    MISCONCEPTION = "misconception"
    ADVANCED = "advanced"


SOLID_UNDERSTANDING = frozenset({UnderstandingLevel.CORRECT, UnderstandingLevel.ADVANCED})

DISCOVERY_THRESHOLD = 0.3
INSIGHT_WEIGHT = 0.2
CAUSAL_WEIGHT = 0.15
SELF_CORRECTION_WEIGHT = 0.2
ANALOGY_WEIGHT = 0.15

MAX_EXPECTED_EXCHANGES = 8


@dataclass(frozen=True)
class SocraticExchange:
    """One question/response pair. Immutable once recorded."""

    exchange_id: str
    question_type: QuestionType
    tutor_question: str
    student_response: str
    detected_understanding: UnderstandingLevel
    led_to_discovery: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "exchange_id": self.exchange_id,
            "question_type": self.question_type.value,
            "tutor_question": self.tutor_question,
            "student_response": self.student_response,
            "detected_understanding": self.detected_understanding.value,
            "led_to_discovery": self.led_to_discovery,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class DialogueState:
    """
    Position of a Socratic dialogue within its planned question path.

    The dialogue is complete when current_path_index reaches the end of
    dialogue_path. record_exchange() returns a new state.
    """

    skill_id: str
    skill_name: str
    target_concept: str
    known_misconceptions: tuple[str, ...] = ()
    exchanges: tuple[SocraticExchange, ...] = ()
    current_understanding: UnderstandingLevel = UnderstandingLevel.NONE
    discovery_made: bool = False
    discovery_description: str | None = None
    dialogue_path: tuple[QuestionType, ...] = ()
    current_path_index: int = 0

    @property
    def next_question_type(self) -> QuestionType | None:
        """Question type to ask next, or None once the path is exhausted."""
        if self.current_path_index >= len(self.dialogue_path):
            return None
        return self.dialogue_path[self.current_path_index]

    @property
    def is_complete(self) -> bool:
        return self.next_question_type is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "skill_id": self.skill_id,
            "skill_name": self.skill_name,
            "target_concept": self.target_concept,
            "known_misconceptions": list(self.known_misconceptions),
            "exchanges": [e.to_dict() for e in self.exchanges],
            "current_understanding": self.current_understanding.value,
            "discovery_made": self.discovery_made,
            "discovery_description": self.discovery_description,
            "dialogue_path": [q.value for q in self.dialogue_path],
            "current_path_index": self.current_path_index,
        }


@dataclass(frozen=True)
class DiscoveryResult:
    """Outcome of the discovery-moment heuristic."""

    is_discovery: bool
    confidence: float
    indicators: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResponseAnalysis:
    """Classification of one learner response."""

    understanding_level: UnderstandingLevel
    is_discovery: bool = False
    discovery_description: str | None = None
    misconceptions: tuple[str, ...] = ()
    source: str = "heuristic"  # "heuristic" or "llm"


@dataclass(frozen=True)
class DialogueEffectiveness:
    score: float
    self_discovery_rate: float
    exchange_efficiency: float
    misconception_addressed: bool
    interpretation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": round(self.score, 4),
            "self_discovery_rate": round(self.self_discovery_rate, 4),
            "exchange_efficiency": round(self.exchange_efficiency, 4),
            "misconception_addressed": self.misconception_addressed,
            "interpretation": self.interpretation,
        }


# =============================================================================
# Question Templates
# =============================================================================

QUESTION_TEMPLATES: dict[QuestionType, tuple[str, ...]] = {
    QuestionType.CLARIFYING: (
        "What do you think is happening here?",
        "Can you tell me more about your reasoning?",
        "What made you think of that approach?",
        "What do you already know about {concept}?",
        "How would you explain this to a friend?",
        "What parts of this are you certain about?",
        "What seems confusing or unclear?",
    ),
    QuestionType.PROBING: (
        "Why do you think that's the case?",
        "What would change if {concept} worked differently?",
        "How does this connect to what you know about {skill}?",
        "What evidence supports your thinking?",
        "Is there another way to look at this?",
        "What assumptions are you making?",
        "How confident are you in that reasoning?",
    ),
    QuestionType.SCAFFOLDING: (
        "Let's break this down. What's the first step?",
        "What would you need to know to solve this?",
        "Can you think of a simpler case?",
        "What patterns do you notice?",
        "Let's start with what we know for certain about {concept}.",
        "Which part of {skill} does this depend on?",
    ),
    QuestionType.CHALLENGING: (
        "Can you prove that's always true?",
        "What would someone who disagrees say?",
        "Is there a case where {concept} wouldn't behave that way?",
        "How is {concept} different from something that looks similar?",
        "Would your answer still hold at the extremes?",
    ),
    QuestionType.REFLECTION: (
        "What do you understand now that you didn't before?",
        "How did your thinking change?",
        "What was the key insight that helped?",
        "Could you teach {concept} to someone else?",
        "What would you do differently next time?",
        "How does this connect to other things you've learned?",
    ),
    QuestionType.METACOGNITIVE: (
        "What's your thinking process here?",
        "How do you know when you've understood something?",
        "What strategies are you using?",
        "What made this challenging?",
        "How did you monitor your own understanding?",
        "What questions are you asking yourself?",
    ),
}

CELEBRATION_LINES = (
    "Yes! You've discovered a key insight!",
    "Excellent reasoning - you figured it out yourself!",
    "That's exactly it! Your thinking led you there.",
    "Brilliant! That's the breakthrough moment.",
    "You've got it! That understanding came from your own thinking.",
    "Perfect! Notice how you worked through that yourself?",
)

QUESTION_GUIDELINES: dict[QuestionType, str] = {
    QuestionType.CLARIFYING: "- Helps you understand their current thinking\n- Is open-ended and non-judgmental",
    QuestionType.PROBING: "- Digs deeper into their reasoning\n- Asks for evidence or justification",
    QuestionType.SCAFFOLDING: "- Breaks the problem into smaller steps\n- Points toward the missing piece without revealing it",
    QuestionType.CHALLENGING: "- Tests the robustness of their understanding\n- Presents an edge case or counterexample",
    QuestionType.REFLECTION: "- Helps them see what they learned\n- Reinforces the discovery",
    QuestionType.METACOGNITIVE: "- Helps them think about their thinking\n- Builds self-awareness",
}


# =============================================================================
# Prompts
# =============================================================================

SOCRATIC_SYSTEM_PROMPT = """You are a Socratic tutor helping a learner understand {skill_name}.

## Rules
1. NEVER give the answer or explain the concept directly
2. Ask ONE focused question at a time
3. Point out contradictions gently, using questions
4. Build on what the learner already knows
5. When they get it, celebrate their discovery

Target concept: {target_concept}
Known misconceptions: {misconceptions}
"""

QUESTION_GENERATION_PROMPT = """Generate a Socratic {question_type} question.

Skill: {skill_name}
Target concept: {target_concept}
Current understanding level: {understanding}

Recent exchanges:
{history}

Latest learner response: "{response}"

The question should:
{guidelines}

Reply with the question only, in 1-2 sentences."""

RESPONSE_ANALYSIS_PROMPT = """Analyze this learner response in a Socratic tutoring dialogue.

Skill: {skill_name}
Target concept: {target_concept}

Tutor's question: "{question}"
Learner's response: "{response}"

Known misconceptions:
{misconceptions}

Return a JSON object:
{{"understandingLevel": "none" | "partial" | "correct" | "misconception" | "advanced",
  "misconceptions": ["misconceptions revealed"],
  "isDiscoveryMoment": true | false,
  "discoveryDescription": "what they discovered, if anything"}}
"""


# =============================================================================
# Linguistic Markers (matched against lowercased text)
# =============================================================================

INSIGHT_PATTERNS = [
    re.compile(r"\boh!"),
    re.compile(r"\baha\b"),
    re.compile(r"\bi \s+ see\b", re.VERBOSE),
    re.compile(r"\bi \s+ get \s+ it\b", re.VERBOSE),
    re.compile(r"\bthat \s+ makes \s+ sense\b", re.VERBOSE),
    re.compile(r"\bnow \s+ i \s+ understand\b", re.VERBOSE),
    re.compile(r"\bso \s+ that'?s \s+ why\b", re.VERBOSE),
    re.compile(r"\bi \s+ didn'?t \s+ reali[sz]e\b", re.VERBOSE),
    re.compile(r"\bwait, \s* so\b", re.VERBOSE),
    re.compile(r"\boh, \s* because\b", re.VERBOSE),
    re.compile(r"\bthat \s+ means\b", re.VERBOSE),
    re.compile(r"\bi \s+ think \s+ i \s+ see\b", re.VERBOSE),
]

CAUSAL_PATTERN = re.compile(r"\b(?: because | so \s+ that | which \s+ means | therefore )\b", re.VERBOSE)

SELF_CORRECTION_PATTERN = re.compile(r"\b(?: wait | actually | i \s+ was \s+ wrong )\b", re.VERBOSE)

ANALOGY_PATTERN = re.compile(r"\b(?: like | similar \s+ to | connects \s+ to )\b", re.VERBOSE)

CONFUSION_PATTERN = re.compile(
    r"""
    \b(?: i \s+ don'?t \s+ (?: know | understand | get \s+ it )
        | no \s+ idea
        | i'?m \s+ (?: confused | lost )
        | not \s+ sure
    )\b
    """,
    re.VERBOSE,
)

HEDGE_PATTERN = re.compile(
    r"\b(?: maybe | perhaps | probably | i \s+ think | i \s+ guess | might | not \s+ sure )\b",
    re.VERBOSE,
)

CERTAINTY_PATTERN = re.compile(
    r"\b(?: definitely | certainly | clearly | obviously | always | i'?m \s+ sure | i \s+ know )\b",
    re.VERBOSE,
)

TRANSFER_PATTERN = re.compile(
    r"\b(?: similar \s+ to | also \s+ (?: works | applies ) | in \s+ general | for \s+ example | same \s+ as | like \s+ when )\b",
    re.VERBOSE,
)

_WORD_PATTERN = re.compile(r"[a-z0-9']+")


# =============================================================================
# Path Planning
# =============================================================================


def plan_dialogue_path(
    starting_understanding: UnderstandingLevel,
    has_misconception: bool,
) -> list[QuestionType]:
    """
    Plan the question-type path for a new dialogue.

    Every path opens with clarification and closes with reflection and a
    metacognitive question.
    """
    path = [QuestionType.CLARIFYING]

    if has_misconception:
        path += [QuestionType.PROBING, QuestionType.CHALLENGING, QuestionType.SCAFFOLDING]
    elif starting_understanding == UnderstandingLevel.PARTIAL:
        path += [QuestionType.SCAFFOLDING, QuestionType.PROBING, QuestionType.CHALLENGING]
    else:
        path += [QuestionType.SCAFFOLDING, QuestionType.PROBING, QuestionType.SCAFFOLDING]

    path += [QuestionType.REFLECTION, QuestionType.METACOGNITIVE]
    return path


def plan_dialogue(
    skill_id: str,
    skill_name: str,
    target_concept: str,
    known_misconceptions: Sequence[str] = (),
    starting_understanding: UnderstandingLevel = UnderstandingLevel.NONE,
) -> DialogueState:
    """Create the initial state of a Socratic dialogue."""
    misconceptions = tuple(known_misconceptions)
    path = plan_dialogue_path(starting_understanding, bool(misconceptions))

    logger.debug(f"Planned dialogue for {skill_id}: {[q.value for q in path]}")

    return DialogueState(
        skill_id=skill_id,
        skill_name=skill_name,
        target_concept=target_concept,
        known_misconceptions=misconceptions,
        current_understanding=starting_understanding,
        dialogue_path=tuple(path),
    )


def adapt_dialogue_path(
    current_path: Sequence[QuestionType],
    current_index: int,
    understanding: UnderstandingLevel,
    is_discovery: bool,
) -> tuple[list[QuestionType], int]:
    """
    Re-plan the remaining path after a response.

    Returns:
        (path, index) to continue from
    """
    if is_discovery:
        return [QuestionType.REFLECTION, QuestionType.METACOGNITIVE], 0

    remaining = list(current_path[current_index + 1 :])

    if understanding in SOLID_UNDERSTANDING:
        path = [q for q in remaining if q != QuestionType.SCAFFOLDING]
        if QuestionType.REFLECTION not in path:
            path.append(QuestionType.REFLECTION)
        return path, 0

    if understanding == UnderstandingLevel.MISCONCEPTION:
        return [QuestionType.PROBING, QuestionType.CHALLENGING, *remaining], 0

    return list(current_path), min(current_index + 1, len(current_path))


# =============================================================================
# Response Analysis
# =============================================================================


def detect_discovery_moment(response: str) -> DiscoveryResult:
    """
    Score a response for signs of self-discovery.

    Each insight phrase adds 0.2; causal language, self-correction and
    analogy add once each. The confidence is capped at 1.
    """
    text = response.lower()
    indicators: list[str] = []
    confidence = 0.0

    for pattern in INSIGHT_PATTERNS:
        match = pattern.search(text)
        if match:
            indicators.append(f'Used insight language: "{match.group()}"')
            confidence += INSIGHT_WEIGHT

    if CAUSAL_PATTERN.search(text):
        indicators.append("Attempted to explain reasoning")
        confidence += CAUSAL_WEIGHT

    if SELF_CORRECTION_PATTERN.search(text):
        indicators.append("Showed self-correction")
        confidence += SELF_CORRECTION_WEIGHT

    if ANALOGY_PATTERN.search(text):
        indicators.append("Made connections to other knowledge")
        confidence += ANALOGY_WEIGHT

    confidence = min(confidence, 1.0)
    return DiscoveryResult(
        is_discovery=confidence >= DISCOVERY_THRESHOLD,
        confidence=confidence,
        indicators=tuple(indicators),
    )


def _concept_keywords(concept: str) -> set[str]:
    return {w for w in _WORD_PATTERN.findall(concept.lower()) if len(w) >= 4}


def mentions_concept(response: str, target_concept: str) -> bool:
    """True if the response names the concept or one of its key words."""
    text = response.lower()
    if target_concept and target_concept.lower() in text:
        return True
    words = set(_WORD_PATTERN.findall(text))
    return bool(_concept_keywords(target_concept) & words)


def matched_misconceptions(response: str, misconceptions: Sequence[str]) -> list[str]:
    """Known misconceptions whose text appears in the response."""
    text = response.lower()
    return [m for m in misconceptions if m and m.lower() in text]


def classify_understanding(
    response: str,
    target_concept: str,
    misconceptions: Sequence[str] = (),
) -> UnderstandingLevel:
    """
    Deterministic understanding classifier used when no model is available.

    Order of checks: known misconception, outright confusion, causal
    explanation of the concept (advanced with transfer language, partial
    when hedged), then any partial signal.
    """
    if matched_misconceptions(response, misconceptions):
        return UnderstandingLevel.MISCONCEPTION

    text = response.lower()
    causal = bool(CAUSAL_PATTERN.search(text))

    if CONFUSION_PATTERN.search(text) and not causal:
        return UnderstandingLevel.NONE

    mentioned = mentions_concept(response, target_concept)

    if causal and mentioned:
        if TRANSFER_PATTERN.search(text):
            return UnderstandingLevel.ADVANCED
        if HEDGE_PATTERN.search(text):
            return UnderstandingLevel.PARTIAL
        return UnderstandingLevel.CORRECT

    if causal or mentioned:
        return UnderstandingLevel.PARTIAL

    return UnderstandingLevel.NONE


def analyze_response_heuristic(response: str, state: DialogueState) -> ResponseAnalysis:
    """Classify a response with the regex classifier and discovery heuristic."""
    discovery = detect_discovery_moment(response)
    level = classify_understanding(response, state.target_concept, state.known_misconceptions)

    return ResponseAnalysis(
        understanding_level=level,
        is_discovery=discovery.is_discovery and level != UnderstandingLevel.MISCONCEPTION,
        discovery_description=discovery.indicators[0] if discovery.is_discovery else None,
        misconceptions=tuple(matched_misconceptions(response, state.known_misconceptions)),
    )


def _format_numbered(items: Sequence[str]) -> str:
    if not items:
        return "(none recorded)"
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def _analysis_from_llm(data: dict[str, Any], fallback: ResponseAnalysis) -> ResponseAnalysis | None:
    try:
        level = UnderstandingLevel(str(data.get("understandingLevel", "")).lower())
    except ValueError:
        return None

    misconceptions = data.get("misconceptions") or []
    if not isinstance(misconceptions, list):
        misconceptions = []

    is_discovery = bool(data.get("isDiscoveryMoment")) or fallback.is_discovery
    description = data.get("discoveryDescription") or fallback.discovery_description

    return ResponseAnalysis(
        understanding_level=level,
        is_discovery=is_discovery and level != UnderstandingLevel.MISCONCEPTION,
        discovery_description=str(description) if is_discovery and description else None,
        misconceptions=tuple(str(m) for m in misconceptions if m),
        source="llm",
    )


async def analyze_response(
    response: str,
    state: DialogueState,
    question: str,
    llm: LLMClient | None = None,
) -> ResponseAnalysis:
    """
    Classify a learner response, asking the language model when available.

    Falls back to the heuristic analysis when the model is missing, fails,
    or returns an unknown understanding level.
    """
    fallback = analyze_response_heuristic(response, state)
    if llm is None or not llm.is_available:
        return fallback

    prompt = RESPONSE_ANALYSIS_PROMPT.format(
        skill_name=state.skill_name,
        target_concept=state.target_concept,
        question=question,
        response=response,
        misconceptions=_format_numbered(state.known_misconceptions),
    )
    data = await llm.generate_json(prompt)
    if data is None:
        return fallback

    analysis = _analysis_from_llm(data, fallback)
    if analysis is None:
        logger.warning(f"LLM returned unknown understanding level: {data.get('understandingLevel')!r}")
        return fallback
    return analysis


# =============================================================================
# State Transitions
# =============================================================================


def record_exchange(
    state: DialogueState,
    tutor_question: str,
    question_type: QuestionType,
    student_response: str,
    analysis: ResponseAnalysis,
    timestamp: datetime | None = None,
) -> DialogueState:
    """Append an exchange and re-plan the remaining path."""
    exchange = SocraticExchange(
        exchange_id=f"exchange-{len(state.exchanges) + 1}",
        question_type=question_type,
        tutor_question=tutor_question,
        student_response=student_response,
        detected_understanding=analysis.understanding_level,
        led_to_discovery=analysis.is_discovery,
        timestamp=timestamp or datetime.now(),
    )

    path, index = adapt_dialogue_path(
        state.dialogue_path,
        state.current_path_index,
        analysis.understanding_level,
        analysis.is_discovery,
    )

    if analysis.is_discovery and not state.discovery_made:
        logger.info(f"Discovery moment on {state.skill_id} at exchange {len(state.exchanges) + 1}")

    return replace(
        state,
        exchanges=(*state.exchanges, exchange),
        current_understanding=analysis.understanding_level,
        discovery_made=state.discovery_made or analysis.is_discovery,
        discovery_description=analysis.discovery_description or state.discovery_description,
        dialogue_path=tuple(path),
        current_path_index=index,
    )


# =============================================================================
# Question Rendering
# =============================================================================


def generate_guiding_question(
    state: DialogueState,
    question_type: QuestionType,
    rng: random.Random | None = None,
) -> str:
    """Pick a template question of the given type and fill its slots."""
    rng = rng or random.Random()
    template = rng.choice(QUESTION_TEMPLATES[question_type])
    return template.format(concept=state.target_concept, skill=state.skill_name)


def generate_celebration(description: str | None = None, rng: random.Random | None = None) -> str:
    rng = rng or random.Random()
    line = rng.choice(CELEBRATION_LINES)
    return f"{line} {description}" if description else line


def build_system_prompt(state: DialogueState) -> str:
    return SOCRATIC_SYSTEM_PROMPT.format(
        skill_name=state.skill_name,
        target_concept=state.target_concept,
        misconceptions=", ".join(state.known_misconceptions) or "none recorded",
    )


def build_question_prompt(state: DialogueState, question_type: QuestionType, latest_response: str) -> str:
    """Prompt asking the model to phrase the next question of a given type."""
    history = "\n".join(
        f"Tutor: {e.tutor_question}\nLearner: {e.student_response}" for e in state.exchanges[-3:]
    )
    return QUESTION_GENERATION_PROMPT.format(
        question_type=question_type.value,
        skill_name=state.skill_name,
        target_concept=state.target_concept,
        understanding=state.current_understanding.value,
        history=history or "(none yet)",
        response=latest_response,
        guidelines=QUESTION_GUIDELINES[question_type],
    )


# =============================================================================
# Effectiveness
# =============================================================================


def interpret_effectiveness(score: float) -> str:
    if score >= 0.7:
        return "Excellent Socratic dialogue - the learner discovered the insight themselves!"
    if score >= 0.5:
        return "Good dialogue with meaningful progress toward understanding."
    if score >= 0.3:
        return "Some progress made, but may need more scaffolding."
    return "Consider adjusting the question types or adding more scaffolding."


def calculate_effectiveness(state: DialogueState) -> DialogueEffectiveness:
    """
    Blend self-discovery rate (40%), exchange efficiency (30%), a discovery
    bonus (20%) and a misconception-resolved bonus (10%).
    """
    if not state.exchanges:
        return DialogueEffectiveness(
            score=0.0,
            self_discovery_rate=0.0,
            exchange_efficiency=0.0,
            misconception_addressed=False,
            interpretation="No exchanges yet",
        )

    total = len(state.exchanges)
    self_discovery_rate = sum(1 for e in state.exchanges if e.led_to_discovery) / total
    exchange_efficiency = max(0.0, 1 - total / MAX_EXPECTED_EXCHANGES)
    misconception_addressed = bool(state.known_misconceptions) and (
        state.current_understanding in SOLID_UNDERSTANDING
    )

    score = (
        self_discovery_rate * 0.4
        + exchange_efficiency * 0.3
        + (0.2 if state.discovery_made else 0.0)
        + (0.1 if misconception_addressed else 0.0)
    )

    return DialogueEffectiveness(
        score=score,
        self_discovery_rate=self_discovery_rate,
        exchange_efficiency=exchange_efficiency,
        misconception_addressed=misconception_addressed,
        interpretation=interpret_effectiveness(score),
    )


def confidence_tone(responses: Sequence[str]) -> str:
    """Overall tone of a learner's responses: confident, uncertain or balanced."""
    hedges = sum(len(HEDGE_PATTERN.findall(r.lower())) for r in responses)
    certainty = sum(len(CERTAINTY_PATTERN.findall(r.lower())) for r in responses)

    if hedges > certainty:
        return "uncertain"
    if certainty > hedges:
        return "confident"
    return "balanced"
