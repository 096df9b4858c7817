"""
Unit tests for the mastery tracker.

Tests:
- update_mastery purity and counters
- Mastery status transitions
- Scaffold transitions (failure streaks, sustained success)
- SM-2 scheduling integration
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from tutorcore.learning.bkt import BKTParams, MasteryStatus, PracticeAttempt
from tutorcore.learning.mastery_tracker import (
    LearnerSkillState,
    mastery_status,
    next_scaffold_level,
    record_retrieval,
    replay_attempts,
    scaffold_level_for_mastery,
    update_mastery,
)


@pytest.fixture
def fresh_state():
    return LearnerSkillState.new("learner-1", "skill-1", BKTParams())


class TestUpdateMastery:
    """Tests for the single-attempt update."""

    def test_new_state_defaults(self, fresh_state):
        assert fresh_state.p_mastery == pytest.approx(0.3)
        assert fresh_state.scaffold_level == 1
        assert fresh_state.mastery_status == MasteryStatus.NOT_STARTED
        assert fresh_state.is_due()

    def test_input_state_not_mutated(self, fresh_state, now):
        updated = update_mastery(fresh_state, PracticeAttempt(is_correct=True, timestamp=now))

        assert fresh_state.attempt_count == 0
        assert fresh_state.p_mastery == pytest.approx(0.3)
        assert updated is not fresh_state
        assert updated.attempt_count == 1

    def test_counters_track_streaks(self, fresh_state, make_attempts):
        state = replay_attempts(fresh_state, make_attempts([True, True, False, False]))

        assert state.attempt_count == 4
        assert state.correct_count == 2
        assert state.consecutive_correct == 0
        assert state.consecutive_incorrect == 2
        assert state.accuracy == 0.5

    def test_three_correct_reaches_mastered(self, fresh_state, make_attempts):
        state = replay_attempts(fresh_state, make_attempts([True, True]))
        assert state.mastery_status == MasteryStatus.LEARNING

        state = replay_attempts(state, make_attempts([True]))
        assert state.p_mastery >= 0.8
        assert state.mastery_status == MasteryStatus.MASTERED

    def test_next_review_follows_sm2(self, fresh_state, now):
        state = update_mastery(fresh_state, PracticeAttempt(is_correct=True, timestamp=now))

        assert state.interval_days == 1
        assert state.repetitions == 1
        assert state.next_review_at == now + timedelta(days=1)
        assert state.last_practiced_at == now

    def test_incorrect_resets_repetitions(self, fresh_state, make_attempts):
        state = replay_attempts(fresh_state, make_attempts([True, True, False]))

        assert state.repetitions == 0
        assert state.interval_days == 1
        assert state.ease_factor < 2.5


class TestScaffold:
    """Tests for scaffold transitions (1 = full support, 4 = independent)."""

    @pytest.mark.parametrize(
        "p, level",
        [(0.1, 1), (0.29, 1), (0.3, 2), (0.49, 2), (0.5, 3), (0.69, 3), (0.7, 4), (0.99, 4)],
    )
    def test_level_for_mastery(self, p, level):
        assert scaffold_level_for_mastery(p) == level

    def test_failure_streak_adds_support(self):
        assert next_scaffold_level(3, 0.5, 0, 3) == 2
        assert next_scaffold_level(1, 0.1, 0, 5) == 1

    def test_short_failure_streak_keeps_level(self):
        assert next_scaffold_level(3, 0.5, 0, 2) == 3

    def test_sustained_success_raises_independence_one_step(self):
        assert next_scaffold_level(1, 0.95, 3, 0) == 2

    def test_success_without_mastery_keeps_level(self):
        assert next_scaffold_level(3, 0.55, 5, 0) == 3

    def test_level_stays_in_range(self):
        assert next_scaffold_level(4, 0.99, 10, 0) == 4
        assert next_scaffold_level(0, 0.5, 0, 0) == 1

    def test_replay_moves_scaffold(self, fresh_state, make_attempts):
        state = replay_attempts(fresh_state, make_attempts([True, True, True]))
        assert state.scaffold_level == 2

        struggling = replace(LearnerSkillState.new("learner-1", "skill-2"), scaffold_level=3)
        struggling = replay_attempts(struggling, make_attempts([False, False, False]))
        assert struggling.scaffold_level == 2


class TestStatus:
    def test_not_started_without_attempts(self):
        assert mastery_status(0.95, 0, 0) == MasteryStatus.NOT_STARTED

    def test_mastered_requires_streak(self):
        assert mastery_status(0.95, 5, 2) == MasteryStatus.LEARNING
        assert mastery_status(0.95, 5, 3) == MasteryStatus.MASTERED

    def test_custom_threshold(self):
        assert mastery_status(0.85, 5, 3, threshold=0.9) == MasteryStatus.LEARNING


def test_record_retrieval_sets_timestamp(fresh_state, now):
    state = record_retrieval(fresh_state, now)
    assert state.last_retrieval_at == now
    assert fresh_state.last_retrieval_at is None


def test_to_dict_serializes_enums(fresh_state):
    data = fresh_state.to_dict()
    assert data["mastery_status"] == "not_started"
    assert data["params"]["p_s"] == pytest.approx(0.1)
