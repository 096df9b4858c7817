"""
Unit tests for Bayesian Knowledge Tracing.

Tests:
- Posterior update and learning transition
- Bounds and monotonicity
- EM fitting (insufficient data, non-convergence, identifiability)
- Validation metrics
- Confidence interval
"""

import math
from datetime import datetime, timedelta

import pytest

from tutorcore.learning.bkt import (
    P_MAX,
    P_MIN,
    BKTParams,
    FitQuality,
    PracticeAttempt,
    ValidationQuality,
    calculate_auc,
    calculate_calibration_error,
    calculate_validation_metrics,
    effective_sample_size,
    fit_skill_bkt,
    get_mastery_with_confidence,
    predict_correct,
    split_sequences,
    trace_mastery,
    update_bkt,
    validate_skills,
    wilson_interval,
)

DEFAULTS = BKTParams(p_l0=0.3, p_t=0.1, p_s=0.1, p_g=0.2)
GRID = [i / 20 for i in range(21)]


def _two_learners():
    """Learner a answers 6 correct, learner b 6 wrong, on interleaved minutes; grouped a then b."""
    start = datetime(2025, 3, 1, 9, 0, 0)
    first = [PracticeAttempt(True, start + timedelta(minutes=2 * i), "vlan", learner_id="a") for i in range(6)]
    second = [PracticeAttempt(False, start + timedelta(minutes=2 * i + 1), "vlan", learner_id="b") for i in range(6)]
    return first + second


class TestUpdate:
    """Tests for the per-attempt update."""

    def test_correct_answer_matches_formula(self):
        """One correct answer from 0.3 with default parameters."""
        result = update_bkt(0.3, True, DEFAULTS)

        posterior = 0.27 / (0.27 + 0.7 * 0.2)
        expected = posterior + (1 - posterior) * 0.1
        assert result == pytest.approx(expected)

    def test_incorrect_answer_matches_formula(self):
        result = update_bkt(0.7, False, DEFAULTS)

        posterior = 0.07 / (0.07 + 0.3 * 0.8)
        expected = posterior + (1 - posterior) * 0.1
        assert result == pytest.approx(expected)
        assert result < 0.7

    def test_three_correct_increase_monotonically(self, make_attempts):
        """[correct, correct, correct] from 0.3 rises every step."""
        trajectory = trace_mastery(make_attempts([True, True, True]), DEFAULTS)

        assert len(trajectory) == 3
        assert trajectory[0] > 0.3
        assert trajectory[0] < trajectory[1] < trajectory[2]

    @pytest.mark.parametrize("p", GRID)
    def test_output_stays_in_bounds(self, p):
        for is_correct in (True, False):
            result = update_bkt(p, is_correct, DEFAULTS)
            assert P_MIN <= result <= P_MAX

    @pytest.mark.parametrize("p", GRID)
    def test_correct_never_decreases(self, p):
        clamped = min(max(p, P_MIN), P_MAX)
        assert update_bkt(p, True, DEFAULTS) >= clamped

    @pytest.mark.parametrize("p", GRID)
    def test_incorrect_never_increases(self, p):
        clamped = min(max(p, P_MIN), P_MAX)
        assert update_bkt(p, False, DEFAULTS) <= clamped

    def test_long_sequence_stays_bounded(self, make_attempts):
        outcomes = [True] * 50 + [False] * 50
        for p in trace_mastery(make_attempts(outcomes), DEFAULTS):
            assert P_MIN <= p <= P_MAX

    def test_replay_uses_timestamp_order(self, make_attempts):
        attempts = make_attempts([False, True, True])
        assert trace_mastery(list(reversed(attempts)), DEFAULTS) == trace_mastery(attempts, DEFAULTS)

    def test_predict_correct(self):
        assert predict_correct(0.5, DEFAULTS) == pytest.approx(0.9 * 0.5 + 0.2 * 0.5)


class TestParams:
    def test_values_clamped_to_unit_interval(self):
        params = BKTParams(p_l0=1.4, p_t=-0.2, p_s=0.1, p_g=0.2)
        assert params.p_l0 == 1.0
        assert params.p_t == 0.0

    def test_identifiability(self):
        assert DEFAULTS.is_identifiable
        assert not BKTParams(p_s=0.5).is_identifiable
        assert not BKTParams(p_g=0.6).is_identifiable


class TestFitting:
    """Tests for EM parameter fitting."""

    @pytest.mark.parametrize("n", [0, 1, 4])
    def test_fewer_than_five_attempts_is_insufficient(self, make_attempts, n):
        result = fit_skill_bkt(make_attempts([True] * n))

        assert result.insufficient_data is True
        assert result.converged is False
        assert result.iterations == 0
        assert result.params == BKTParams()

    def test_non_convergence_keeps_previous_params(self, make_attempts):
        previous = BKTParams(p_l0=0.25, p_t=0.15, p_s=0.12, p_g=0.18)
        attempts = make_attempts([False, False, True, False, True, True, True, True])

        result = fit_skill_bkt(attempts, initial=previous, max_iterations=1)

        assert result.converged is False
        assert result.params == previous
        assert result.fit_quality == FitQuality.POOR

    def test_fit_returns_identifiable_params(self, make_attempts):
        attempts = make_attempts([False, False, True, False, True, True, True, True, True, True] * 3)

        result = fit_skill_bkt(attempts, initial=DEFAULTS)

        assert result.insufficient_data is False
        assert 1 <= result.iterations <= 100
        assert result.params.p_s < 0.5
        assert result.params.p_g < 0.5
        if result.converged and result.rejected_reason is None:
            assert result.fit_quality in (FitQuality.GOOD, FitQuality.FAIR, FitQuality.POOR)
            assert result.brier_score is not None

    def test_learners_fitted_as_separate_sequences(self):
        attempts = _two_learners()

        result = fit_skill_bkt(attempts, initial=DEFAULTS)

        assert result.insufficient_data is False
        assert result.params.p_s < 0.4
        assert result.params.p_g < 0.4
        reordered = fit_skill_bkt(list(reversed(attempts)), initial=DEFAULTS)
        assert reordered.params.to_dict() == pytest.approx(result.params.to_dict())

    def test_split_sequences_orders_each_learner(self):
        attempts = _two_learners()

        sequences = split_sequences(list(reversed(attempts)))

        assert [seq[0].learner_id for seq in sequences] == ["b", "a"]
        assert [a.is_correct for a in sequences[0]] == [False] * 6
        assert [a.is_correct for a in sequences[1]] == [True] * 6
        assert all(x.timestamp < y.timestamp for seq in sequences for x, y in zip(seq, seq[1:]))

    def test_attempts_without_learner_share_one_sequence(self, make_attempts):
        assert len(split_sequences(make_attempts([True, False, True]))) == 1

    def test_fit_result_to_dict(self, make_attempts):
        result = fit_skill_bkt(make_attempts([True, False]))
        data = result.to_dict()

        assert data["insufficient_data"] is True
        assert data["log_likelihood"] is None
        assert data["params"]["p_l0"] == pytest.approx(0.3)


class TestValidation:
    """Tests for validation metrics."""

    def test_auc_perfect_ranking(self):
        assert calculate_auc([0.9, 0.8, 0.2, 0.1], [True, True, False, False]) == 1.0

    def test_auc_ties_count_half(self):
        assert calculate_auc([0.5, 0.5], [True, False]) == 0.5

    def test_auc_single_class(self):
        assert calculate_auc([0.3, 0.7], [True, True]) == 0.5

    def test_calibration_error_single_bin(self):
        assert calculate_calibration_error([0.55, 0.55], [True, False]) == pytest.approx(0.05)

    def test_short_sequence_returns_defaults(self, make_attempts):
        metrics = calculate_validation_metrics(make_attempts([True]), DEFAULTS)

        assert metrics.sample_size == 0
        assert metrics.auc == 0.5
        assert metrics.brier_score == 0.25
        assert metrics.log_loss == pytest.approx(math.log(2))

    def test_metrics_in_range(self, make_attempts):
        attempts = make_attempts([False, False, True, True, False, True, True, True])
        metrics = calculate_validation_metrics(attempts, DEFAULTS)

        assert metrics.sample_size == 8
        assert 0.0 <= metrics.auc <= 1.0
        assert 0.0 <= metrics.brier_score <= 1.0
        assert 0.0 <= metrics.accuracy <= 1.0

    def test_predictions_restart_for_each_learner(self):
        metrics = calculate_validation_metrics(_two_learners(), DEFAULTS)

        # Only the two first-attempt predictions tie
        assert metrics.sample_size == 12
        assert metrics.auc == pytest.approx(35.5 / 36)
        assert metrics.accuracy == pytest.approx(11 / 12)

    def test_validate_skills_without_data_needs_improvement(self, make_attempts):
        report = validate_skills({"a": make_attempts([True]), "b": []})

        assert set(report.per_skill) == {"a", "b"}
        assert report.avg_auc == 0.5
        assert report.overall_quality == ValidationQuality.NEEDS_IMPROVEMENT

    def test_validate_skills_uses_per_skill_params(self, make_attempts):
        attempts = make_attempts([False, True, True, True])
        report = validate_skills(
            {"a": attempts},
            params_by_skill={"a": BKTParams(p_l0=0.9)},
        )

        assert report.per_skill["a"].sample_size == 4


class TestConfidence:
    """Tests for mastery confidence intervals."""

    def test_no_attempts_gives_full_interval(self):
        estimate = get_mastery_with_confidence([], DEFAULTS)

        assert estimate.lower == 0.0
        assert estimate.upper == 1.0
        assert estimate.p_mastery == pytest.approx(0.3)

    def test_interval_narrows_with_more_evidence(self):
        low_lower, low_upper = wilson_interval(0.5, 5, 0.95)
        high_lower, high_upper = wilson_interval(0.5, 50, 0.95)

        assert (high_upper - high_lower) < (low_upper - low_lower)

    def test_interval_contains_estimate(self, make_attempts):
        estimate = get_mastery_with_confidence(make_attempts([True, False, True, True]), DEFAULTS)

        assert 0.0 <= estimate.lower <= estimate.p_mastery <= estimate.upper <= 1.0

    def test_effective_sample_size_discounts_learning(self):
        assert effective_sample_size(0, 0.1) == 0.0
        assert effective_sample_size(10, 0.0) == 10
        assert 1.0 <= effective_sample_size(10, 0.3) < 10
