"""
Unit tests for the scaffold & recommendation engine.

Tests:
- Ranking order, tie-breaking and max_skills clamping
- Difficulty adjustment bounds and accuracy band
- Scaffold level (support only added, never removed)
- Profile filtering, help prompts and interventions
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from tutorcore.adaptive.recommendations import (
    InterventionType,
    PromptType,
    RecentPerformance,
    RecommendationContext,
    SkillCandidate,
    difficulty_adjustment,
    filter_by_profile,
    generate_interventions,
    help_prompt,
    recommend_scaffold_level,
    recommend_skills,
)
from tutorcore.core.profile import (
    CognitiveIndicators,
    ExpertiseLevel,
    GoalOrientation,
    HelpSeekingPattern,
    InverseProfile,
    LoadLevel,
    MetacognitiveIndicators,
    MotivationalIndicators,
)
from tutorcore.learning.mastery_tracker import LearnerSkillState


def _state(skill_id, p_mastery, **kwargs):
    return replace(LearnerSkillState.new("learner-1", skill_id), p_mastery=p_mastery, **kwargs)


def _candidates(n):
    return [SkillCandidate(skill_id=f"s{i}", name=f"Skill {i}") for i in range(n)]


class TestRanking:
    """Tests for skill ranking."""

    @pytest.mark.parametrize("requested, expected", [(1, 2), (3, 3), (10, 4)])
    def test_max_skills_clamped(self, now, requested, expected):
        context = RecommendationContext("learner-1", _candidates(6), max_skills=requested, now=now)
        assert len(recommend_skills(context).recommendations) == expected

    def test_weaker_skill_ranks_first(self, now):
        strong = SkillCandidate("strong", "Strong", state=_state("strong", 0.7))
        weak = SkillCandidate("weak", "Weak", state=_state("weak", 0.2))

        result = recommend_skills(RecommendationContext("learner-1", [strong, weak], now=now))

        assert [r.skill_id for r in result.recommendations] == ["weak", "strong"]

    def test_ties_broken_by_lower_mastery(self, now):
        higher = SkillCandidate("higher", "Higher", state=_state("higher", 0.95))
        lower = SkillCandidate("lower", "Lower", state=_state("lower", 0.85))

        result = recommend_skills(RecommendationContext("learner-1", [higher, lower], now=now))

        assert result.recommendations[0].score == pytest.approx(result.recommendations[1].score)
        assert result.recommendations[0].skill_id == "lower"

    def test_unmet_prerequisites_rank_last(self, now):
        blocked = SkillCandidate("blocked", "Blocked", prerequisites_met=False)
        ready = SkillCandidate("ready", "Ready")

        result = recommend_skills(RecommendationContext("learner-1", [blocked, ready], now=now))

        assert result.recommendations[0].skill_id == "ready"
        assert result.recommendations[1].scores["readiness"] == 0.0

    def test_due_skill_beats_scheduled_skill(self, now):
        due = SkillCandidate("due", "Due", state=_state("due", 0.5, next_review_at=now - timedelta(days=1)))
        later = SkillCandidate(
            "later", "Later", state=_state("later", 0.5, next_review_at=now + timedelta(days=5), interval_days=6)
        )

        result = recommend_skills(RecommendationContext("learner-1", [later, due], now=now))

        assert result.recommendations[0].skill_id == "due"
        assert any(r.factor == "Due for review" for r in result.recommendations[0].reasons)

    def test_no_profile_uses_neutral_fit(self, now):
        result = recommend_skills(RecommendationContext("learner-1", _candidates(2), now=now))

        rec = result.recommendations[0]
        assert rec.scores["profile_fit"] == 0.5
        assert rec.adjustments.scaffold_level == 2
        assert result.profile_summary["expertise_level"] == "beginner"

    def test_explanation_mentions_skill_and_time(self, now):
        profile = InverseProfile(
            learner_id="learner-1",
            cognitive_indicators=CognitiveIndicators(expertise_level=ExpertiseLevel.NOVICE),
        )
        candidates = [SkillCandidate("s1", "Subnetting", estimated_minutes=30), *_candidates(1)]

        result = recommend_skills(RecommendationContext("learner-1", candidates, profile=profile, now=now))
        rec = next(r for r in result.recommendations if r.skill_id == "s1")

        assert '"Subnetting"' in rec.why_explanation
        assert "~45 minutes" in rec.why_explanation
        assert "extra guidance" in rec.why_explanation

    def test_to_dict(self, now):
        data = recommend_skills(RecommendationContext("learner-1", _candidates(2), now=now)).to_dict()

        assert len(data["recommendations"]) == 2
        assert data["active_interventions"]["metacognitive"] is None


class TestDifficultyAdjustment:
    def test_clamped_low(self):
        assert difficulty_adjustment(ExpertiseLevel.NOVICE, 5, 0, 0.1) == pytest.approx(-0.2)

    def test_clamped_high(self):
        assert difficulty_adjustment(ExpertiseLevel.EXPERT, 0, 6, 1.0) == pytest.approx(0.2)

    def test_in_band_is_neutral(self):
        assert difficulty_adjustment(None, 0, 0, 0.7) == 0.0

    def test_below_band_nudges_down(self):
        assert difficulty_adjustment(None, 0, 0, 0.5) == pytest.approx(-0.1)

    def test_above_band_nudges_up(self):
        assert difficulty_adjustment(None, 0, 0, 0.95) == pytest.approx(0.1)


class TestScaffold:
    def test_existing_state_level_kept(self):
        state = _state("s", 0.5, scaffold_level=3)
        assert recommend_scaffold_level(state, None, 0) == 3

    def test_excessive_help_seeking_does_not_raise_independence(self):
        profile = InverseProfile(
            learner_id="l",
            metacognitive_indicators=MetacognitiveIndicators(help_seeking_pattern=HelpSeekingPattern.EXCESSIVE),
        )
        state = _state("s", 0.5, scaffold_level=2)
        assert recommend_scaffold_level(state, profile, 0) == 2

    def test_avoidant_and_failures_add_support(self):
        profile = InverseProfile(
            learner_id="l",
            metacognitive_indicators=MetacognitiveIndicators(help_seeking_pattern=HelpSeekingPattern.AVOIDANT),
        )
        state = _state("s", 0.5, scaffold_level=3)
        assert recommend_scaffold_level(state, profile, 3) == 1

    def test_new_skill_uses_expertise(self):
        profile = InverseProfile(
            learner_id="l",
            cognitive_indicators=CognitiveIndicators(expertise_level=ExpertiseLevel.NOVICE),
        )
        assert recommend_scaffold_level(None, profile, 0) == 1
        assert recommend_scaffold_level(None, None, 0) == 2

    def test_floor_at_one(self):
        assert recommend_scaffold_level(_state("s", 0.1, scaffold_level=1), None, 9) == 1


class TestProfileSignals:
    def test_low_working_memory_filters_high_interactivity(self):
        cognitive = CognitiveIndicators(working_memory_indicator=LoadLevel.LOW)
        candidates = [
            SkillCandidate("a", "A"),
            SkillCandidate("b", "B"),
            SkillCandidate("c", "C", element_interactivity=LoadLevel.HIGH),
        ]

        assert [c.skill_id for c in filter_by_profile(candidates, cognitive)] == ["a", "b"]

    def test_filter_keeps_input_when_too_few_survive(self):
        cognitive = CognitiveIndicators(cognitive_load_threshold=0.2)
        candidates = _candidates(3)

        assert filter_by_profile(candidates, cognitive) == candidates

    def test_excessive_help_seeking_prompt(self):
        prompt = help_prompt(MetacognitiveIndicators(help_seeking_pattern=HelpSeekingPattern.EXCESSIVE))
        assert prompt.type == PromptType.HELP_EXCESSIVE

    def test_overconfidence_prompt_wins(self):
        prompt = help_prompt(
            MetacognitiveIndicators(overconfidence_rate=0.5, help_seeking_pattern=HelpSeekingPattern.AVOIDANT)
        )
        assert prompt.type == PromptType.OVERCONFIDENCE


class TestInterventions:
    def test_break_after_long_session(self):
        _, motivation = generate_interventions(None, RecentPerformance(session_duration_ms=46 * 60 * 1000))
        assert motivation.type == InterventionType.BREAK_SUGGESTION

    def test_celebration_on_streak(self):
        _, motivation = generate_interventions(None, RecentPerformance(consecutive_successes=5))
        assert motivation.type == InterventionType.CELEBRATION

    def test_challenge_for_mastery_orientation(self):
        profile = InverseProfile(
            learner_id="l",
            motivational_indicators=MotivationalIndicators(goal_orientation=GoalOrientation.MASTERY),
        )
        _, motivation = generate_interventions(profile, RecentPerformance(consecutive_successes=8))
        assert motivation.type == InterventionType.CHALLENGE_PROMPT

    def test_persistence_for_low_persistence_learner(self):
        profile = InverseProfile(
            learner_id="l",
            motivational_indicators=MotivationalIndicators(persistence_score=0.2),
        )
        _, motivation = generate_interventions(profile, RecentPerformance(consecutive_failures=2))
        assert motivation.type == InterventionType.PERSISTENCE

    def test_avoidant_failures_get_metacognitive_prompt(self):
        profile = InverseProfile(
            learner_id="l",
            metacognitive_indicators=MetacognitiveIndicators(help_seeking_pattern=HelpSeekingPattern.AVOIDANT),
        )
        meta, _ = generate_interventions(profile, RecentPerformance(consecutive_failures=3))
        assert meta.type == PromptType.HELP_AVOIDANT

    def test_no_signals_no_interventions(self):
        assert generate_interventions(None, None) == (None, None)
