"""
Desirable Difficulties Scheduler.

Layered on top of the recommended skill set:
- Interleaving: mix questions across skills instead of blocking them
- Variation: rotate the surface form of practice items
- Retrieval practice: decide when to test recall instead of re-study
- Effectiveness tracking: pre/post accuracy adjusted for delay

Every random choice goes through an injected random.Random.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence

from loguru import logger


class VariationType(str, Enum):
    CONTEXT = "context"
    FORMAT = "format"
    NUMERICAL = "numerical"
    PHRASING = "phrasing"


@dataclass
class PracticeSkill:
    """A skill as seen by the scheduler."""

    skill_id: str
    name: str
    p_mastery: float | None = None
    bloom_level: int = 2
    difficulty: float = 0.5


@dataclass
class InterleaveConfig:
    """Configuration for the interleaving algorithm."""

    base_switch_ratio: float = 0.5
    skills_for_full_mix: int = 4
    max_retention_boost: float = 0.3
    mastery_weight_floor: float = 0.3


@dataclass
class InterleavedQuestion:
    question_id: str
    skill_id: str
    skill_name: str
    position: int
    previous_skill_id: str | None
    is_switch_point: bool


@dataclass
class InterleavedSession:
    questions: list[InterleavedQuestion] = field(default_factory=list)
    skill_mix_ratio: dict[str, float] = field(default_factory=dict)
    switch_ratio: float = 0.0
    max_run_length: int = 1
    blocking_prevented: int = 0
    estimated_retention_boost: float = 0.0

    @property
    def switches(self) -> int:
        return sum(1 for q in self.questions if q.is_switch_point)

    def to_dict(self) -> dict:
        return {
            "questions": [q.__dict__ for q in self.questions],
            "skill_mix_ratio": {k: round(v, 4) for k, v in self.skill_mix_ratio.items()},
            "switch_ratio": round(self.switch_ratio, 4),
            "max_run_length": self.max_run_length,
            "blocking_prevented": self.blocking_prevented,
            "estimated_retention_boost": round(self.estimated_retention_boost, 4),
        }


@dataclass
class RetrievalDecision:
    use_retrieval: bool
    reason: str


@dataclass
class EffectivenessReport:
    effect_size: float
    is_effective: bool
    recommendation: str


# =============================================================================
# Interleaving
# =============================================================================


class InterleaveScheduler:
    """
    Builds interleaved sessions (ABCBAC instead of AAABBBCCC).

    The algorithm:
    1. Allocate the question budget across skills, weaker skills first
    2. Derive a switch ratio from skill count and challenge preference
    3. Emit questions, repeating a skill only when the run is short and the
       RNG draw clears the switch ratio, or when nothing else is left
    """

    def __init__(self, config: Optional[InterleaveConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or InterleaveConfig()
        self.rng = rng or random.Random()

    def calculate_optimal_mix_ratio(self, skills: Sequence[PracticeSkill]) -> dict[str, float]:
        """Share of the session per skill: weight = 1 - mastery + 0.3, normalised."""
        weights = {
            s.skill_id: 1 - (s.p_mastery if s.p_mastery is not None else 0.5) + self.config.mastery_weight_floor
            for s in skills
        }
        total = sum(weights.values())
        return {skill_id: w / total for skill_id, w in weights.items()}

    def allocate_questions(self, skills: Sequence[PracticeSkill], total_questions: int) -> dict[str, int]:
        """
        Split the budget by mix ratio with at least one question per skill.

        Leftover questions go to the largest remainders; ties keep input order.
        """
        if not skills:
            return {}

        total = max(total_questions, len(skills))
        ratios = self.calculate_optimal_mix_ratio(skills)
        spare = total - len(skills)

        quotas = {s.skill_id: ratios[s.skill_id] * spare for s in skills}
        allocation = {skill_id: 1 + int(q) for skill_id, q in quotas.items()}

        leftover = total - sum(allocation.values())
        by_remainder = sorted(
            enumerate(skills),
            key=lambda pair: (-(quotas[pair[1].skill_id] - int(quotas[pair[1].skill_id])), pair[0]),
        )
        for _, skill in by_remainder[:leftover]:
            allocation[skill.skill_id] += 1

        return allocation

    def calculate_switch_ratio(self, skill_count: int, challenge_preference: float) -> float:
        """Probability of switching skill at each position, in [0.5, 1]."""
        preference = max(0.0, min(1.0, challenge_preference))
        spread = min(1.0, (skill_count - 1) / max(1, self.config.skills_for_full_mix - 1))
        base = self.config.base_switch_ratio
        return min(1.0, base + (1 - base) * preference * max(0.0, spread))

    def generate_session(
        self,
        skills: Sequence[PracticeSkill],
        total_questions: int,
        challenge_preference: float = 0.5,
    ) -> InterleavedSession:
        """
        Build an interleaved practice session.

        Args:
            skills: Skills to mix (at least two for any interleaving)
            total_questions: Question budget (raised to one per skill)
            challenge_preference: Learner preference for difficulty, 0-1

        Returns:
            InterleavedSession with ordering, mix ratio and retention boost
        """
        if len(skills) < 2:
            logger.warning(f"Interleaving needs at least 2 skills, got {len(skills)}; session will be blocked")

        allocation = self.allocate_questions(skills, total_questions)
        names = {s.skill_id: s.name for s in skills}
        order_index = {s.skill_id: i for i, s in enumerate(skills)}

        switch_ratio = self.calculate_switch_ratio(len(skills), challenge_preference)
        max_run = 1 if switch_ratio >= 0.75 else 2

        remaining = dict(allocation)
        served = {skill_id: 0 for skill_id in allocation}
        sequence: list[str] = []
        run = 0

        for _ in range(sum(allocation.values())):
            last = sequence[-1] if sequence else None
            others = [s for s, left in remaining.items() if left > 0 and s != last]

            if not others:
                choice = last
            elif last is not None and remaining[last] > 0 and run < max_run and self.rng.random() > switch_ratio:
                choice = last
            else:
                most = max(remaining[s] for s in others)
                tied = sorted((s for s in others if remaining[s] == most), key=order_index.get)
                choice = self.rng.choice(tied)

            run = run + 1 if choice == last else 1
            sequence.append(choice)
            remaining[choice] -= 1

        questions = []
        for position, skill_id in enumerate(sequence):
            previous = sequence[position - 1] if position > 0 else None
            questions.append(
                InterleavedQuestion(
                    question_id=f"{skill_id}-{served[skill_id]}",
                    skill_id=skill_id,
                    skill_name=names[skill_id],
                    position=position,
                    previous_skill_id=previous,
                    is_switch_point=previous is not None and previous != skill_id,
                )
            )
            served[skill_id] += 1

        total = len(sequence)
        repeats = sum(1 for q in questions if q.previous_skill_id == q.skill_id)
        blocked_repeats = total - len(allocation)

        session = InterleavedSession(
            questions=questions,
            skill_mix_ratio={s: n / total for s, n in allocation.items()} if total else {},
            switch_ratio=switch_ratio,
            max_run_length=max_run,
            blocking_prevented=max(0, blocked_repeats - repeats),
            estimated_retention_boost=self.calculate_retention_boost(questions),
        )
        logger.debug(
            f"Interleaved {total} questions over {len(allocation)} skills "
            f"(switch ratio {switch_ratio:.2f}, {session.switches} switches)"
        )
        return session

    def calculate_retention_boost(self, questions: Sequence[InterleavedQuestion]) -> float:
        """Switch share times the research ceiling (30%)."""
        if len(questions) < 2:
            return 0.0
        switches = sum(1 for q in questions if q.is_switch_point)
        return switches / (len(questions) - 1) * self.config.max_retention_boost


def generate_interleaved_session(
    skills: Sequence[PracticeSkill],
    total_questions: int,
    challenge_preference: float = 0.5,
    rng: random.Random | None = None,
) -> InterleavedSession:
    return InterleaveScheduler(rng=rng).generate_session(skills, total_questions, challenge_preference)


def track_interleaving_effectiveness(
    pre_accuracy: float,
    post_accuracy: float,
    delay_days: float,
) -> EffectivenessReport:
    """
    Compare accuracy before and after interleaving.

    Longer delays weigh more: effect = (post - pre) * (1 + 0.05 * days).
    """
    effect = (post_accuracy - pre_accuracy) * (1 + max(0.0, delay_days) * 0.05)

    if effect >= 0.2:
        recommendation = "Interleaving is working well. Continue with this approach."
    elif effect > 0:
        recommendation = "Slight improvement detected. Consider increasing interleave intensity."
    else:
        recommendation = "Interleaving may need adjustment. Try smaller topic mixes first."

    return EffectivenessReport(effect_size=effect, is_effective=effect >= 0.2, recommendation=recommendation)


# =============================================================================
# Variation
# =============================================================================

CONTEXT_VARIATIONS = [
    "real-world application",
    "historical example",
    "everyday situation",
    "professional scenario",
    "scientific context",
    "creative/artistic context",
]

FORMAT_VARIATIONS = [
    "multiple choice",
    "fill in the blank",
    "true/false",
    "short answer",
    "matching",
    "ordering/sequencing",
]

VARIATION_PROMPTS = {
    VariationType.CONTEXT: (
        "Rewrite this question to use a {context} context while testing the same concept:\n\n"
        "Original: {question}\n"
        "Skill: {skill}\n\n"
        "Requirements:\n"
        "- Keep the same difficulty level\n"
        "- Test the same underlying concept\n"
        "- Use the new context naturally\n"
        "- Maintain clear, unambiguous phrasing"
    ),
    VariationType.FORMAT: (
        "Convert this question to {format} format while testing the same concept:\n\n"
        "Original: {question}\n"
        "Skill: {skill}\n\n"
        "Requirements:\n"
        "- Keep the same difficulty level\n"
        "- Test the same underlying concept\n"
        "- Make the new format work naturally\n"
        "- Provide clear instructions for the new format"
    ),
    VariationType.NUMERICAL: (
        "Create a numerical variation of this question with different numbers but the same structure:\n\n"
        "Original: {question}\n"
        "Skill: {skill}\n\n"
        "Requirements:\n"
        "- Change all numerical values\n"
        "- Keep the same difficulty level\n"
        "- Ensure the new numbers are realistic\n"
        "- The solution process should be identical"
    ),
    VariationType.PHRASING: (
        "Rephrase this question using different wording while maintaining the same meaning:\n\n"
        "Original: {question}\n"
        "Skill: {skill}\n\n"
        "Requirements:\n"
        "- Keep exact same meaning\n"
        "- Use different vocabulary and syntax\n"
        "- Maintain same difficulty\n"
        "- Ensure clarity is preserved or improved"
    ),
}

RECENT_VARIATION_WINDOW = 3


def variation_weights(skill: PracticeSkill) -> dict[VariationType, float]:
    return {
        VariationType.CONTEXT: 2.0 if skill.bloom_level >= 3 else 1.0,
        VariationType.FORMAT: 1.0,
        VariationType.NUMERICAL: 1.5 if skill.difficulty > 0.5 else 1.0,
        VariationType.PHRASING: 1.5 if (skill.p_mastery or 0.0) > 0.7 else 1.0,
    }


def select_variation_type(skill: PracticeSkill, history: Sequence[VariationType]) -> VariationType:
    """
    Least-recently-used variation type, skipping the last three used.

    Ties go to the type with the higher skill weight, then enum order.
    """
    all_types = list(VariationType)
    recent = set(history[-RECENT_VARIATION_WINDOW:])
    pool = [t for t in all_types if t not in recent] or all_types

    last_used = {t: -1 for t in all_types}
    for i, used in enumerate(history):
        last_used[used] = i

    weights = variation_weights(skill)
    return min(pool, key=lambda t: (last_used[t], -weights[t], all_types.index(t)))


def generate_variation_prompt(
    question: str,
    variation_type: VariationType,
    skill_context: str,
    rng: random.Random | None = None,
) -> str:
    rng = rng or random.Random()
    return VARIATION_PROMPTS[variation_type].format(
        question=question,
        skill=skill_context,
        context=rng.choice(CONTEXT_VARIATIONS),
        format=rng.choice(FORMAT_VARIATIONS),
    )


# =============================================================================
# Retrieval practice
# =============================================================================

RETRIEVAL_MIN_ATTEMPTS = 2
RETRIEVAL_MIN_MASTERY = 0.6
HIGH_MASTERY = 0.8


def generate_retrieval_prompts(
    skill_name: str,
    key_concepts: Sequence[str],
    previous_attempts: int,
) -> list[str]:
    """Recall, then application, then elaboration, plus one prompt per key concept."""
    if previous_attempts < 3:
        prompts = [
            f"Without looking at your notes, what are the key points about {skill_name}?",
            f"Explain {skill_name} in your own words.",
        ]
    elif previous_attempts < 6:
        prompts = [
            f"Give an example of {skill_name} in practice.",
            f"How would you use {skill_name} to solve a real problem?",
        ]
    else:
        prompts = [
            f"How does {skill_name} connect to other concepts you've learned?",
            f"What would happen if {skill_name} didn't exist or worked differently?",
            f"Teach {skill_name} to someone who has never heard of it.",
        ]

    prompts.extend(f'What is the role of "{concept}" in {skill_name}?' for concept in key_concepts)
    return prompts


def measure_retrieval_strength(
    response_time_ms: int,
    is_correct: bool,
    confidence_rating: int,
    hints_used: int,
) -> float:
    """Faster, confident, unaided correct answers score highest. Clamped to [0, 1]."""
    strength = 0.6 if is_correct else 0.2

    if is_correct:
        if response_time_ms < 10_000:
            strength += 0.15
        elif response_time_ms < 30_000:
            strength += 0.1

        if confidence_rating >= 4:
            strength += 0.15
        elif confidence_rating >= 3:
            strength += 0.05

    strength -= max(0, hints_used) * 0.1
    return max(0.0, min(1.0, strength))


def should_use_retrieval(
    current_mastery: float,
    last_retrieval_at: datetime | None,
    attempt_count: int,
    now: datetime | None = None,
) -> RetrievalDecision:
    """
    Retrieval practice beats re-study once a skill is established.

    Requires at least 2 attempts and mastery of at least 0.6; then fires when
    there has been no retrieval test yet, or the last one is older than the
    spacing threshold (1 day, or 3 days above 0.8 mastery).
    """
    if attempt_count < RETRIEVAL_MIN_ATTEMPTS:
        return RetrievalDecision(False, "Initial learning phase, building foundational knowledge")

    if current_mastery < RETRIEVAL_MIN_MASTERY:
        return RetrievalDecision(False, "Mastery too low for retrieval practice, keep studying")

    if last_retrieval_at is None:
        return RetrievalDecision(True, "Retrieval practice not yet attempted, high potential benefit")

    days_since = ((now or datetime.now()) - last_retrieval_at).total_seconds() / 86400
    spacing_days = 3 if current_mastery > HIGH_MASTERY else 1

    if days_since > spacing_days:
        return RetrievalDecision(True, "Regular retrieval practice maintains long-term retention")

    if current_mastery > HIGH_MASTERY:
        return RetrievalDecision(False, "High mastery, spacing before next retrieval test")
    return RetrievalDecision(False, "Retrieval tested recently, spacing before the next test")
