"""
Bayesian Knowledge Tracing.

Two-state hidden Markov model (unknown -> known) estimating P(mastery) from
binary correctness evidence:
- Per-attempt posterior update followed by the learning transition
- Per-skill parameter fitting with Baum-Welch EM
- Validation metrics (AUC, Brier, calibration error, accuracy, log loss)
- Mastery estimate with a Wilson-score confidence interval

All functions are pure; nothing here touches storage.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from statistics import NormalDist
from typing import Iterable, Sequence

from loguru import logger

# Probability floor/ceiling for P(mastery); keeps the chain out of absorbing states
P_MIN = 0.001
P_MAX = 0.999

# Slip and guess above this make "known" and "unknown" interchangeable
IDENTIFIABILITY_CEILING = 0.5

MIN_FIT_ATTEMPTS = 5
MIN_VALIDATION_ATTEMPTS = 2
EM_MAX_ITERATIONS = 100
EM_TOLERANCE = 1e-6

_EPS = 1e-10


class MasteryStatus(str, Enum):
    NOT_STARTED = "not_started"
    LEARNING = "learning"
    MASTERED = "mastered"


class FitQuality(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"


class ValidationQuality(str, Enum):
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    NEEDS_IMPROVEMENT = "needs_improvement"


@dataclass(frozen=True)
class BKTParams:
    """
    BKT parameters for one skill.

    Attributes:
        p_l0: Initial probability the skill is known
        p_t: Probability of learning per opportunity
        p_s: Probability of a slip when known
        p_g: Probability of a guess when unknown
    """

    p_l0: float = 0.3
    p_t: float = 0.1
    p_s: float = 0.1
    p_g: float = 0.2

    def __post_init__(self) -> None:
        for name in ("p_l0", "p_t", "p_s", "p_g"):
            object.__setattr__(self, name, max(0.0, min(1.0, float(getattr(self, name)))))

    @property
    def is_identifiable(self) -> bool:
        return self.p_s < IDENTIFIABILITY_CEILING and self.p_g < IDENTIFIABILITY_CEILING

    @classmethod
    def from_settings(cls, settings=None) -> BKTParams:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_bkt_defaults())

    def to_dict(self) -> dict[str, float]:
        return {"p_l0": self.p_l0, "p_t": self.p_t, "p_s": self.p_s, "p_g": self.p_g}


@dataclass(frozen=True)
class PracticeAttempt:
    """One graded practice opportunity."""

    is_correct: bool
    timestamp: datetime = field(default_factory=datetime.now)
    skill_id: str | None = None
    response_time_ms: int | None = None
    expected_time_ms: int | None = None
    learner_id: str | None = None


# =============================================================================
# Core update
# =============================================================================


def clamp_probability(p: float) -> float:
    """Clamp P(mastery) into [P_MIN, P_MAX]."""
    return max(P_MIN, min(P_MAX, float(p)))


def update_bkt(p_mastery: float, is_correct: bool, params: BKTParams) -> float:
    """
    One BKT step: condition on the observation, then apply learning.

    P(L|correct)   = p(1-pS) / (p(1-pS) + (1-p)pG)
    P(L|incorrect) = p*pS / (p*pS + (1-p)(1-pG))
    P(L_next)      = P(L|obs) + (1 - P(L|obs)) * pT

    An incorrect answer never raises the estimate, even at very low priors
    where the learning transition would outweigh the evidence.

    Returns:
        Updated P(mastery) in [P_MIN, P_MAX]
    """
    p = clamp_probability(p_mastery)

    if is_correct:
        evidence = p * (1 - params.p_s)
        total = evidence + (1 - p) * params.p_g
    else:
        evidence = p * params.p_s
        total = evidence + (1 - p) * (1 - params.p_g)

    posterior = evidence / total if total > 0 else p
    learned = clamp_probability(posterior + (1 - posterior) * params.p_t)

    if not is_correct:
        return min(learned, p)
    return max(learned, p)


def predict_correct(p_mastery: float, params: BKTParams) -> float:
    """P(correct) = (1 - pS) * p + pG * (1 - p)."""
    p = clamp_probability(p_mastery)
    return (1 - params.p_s) * p + params.p_g * (1 - p)


def order_attempts(attempts: Iterable[PracticeAttempt]) -> list[PracticeAttempt]:
    """Sort attempts by timestamp; ties keep their arrival order."""
    return sorted(attempts, key=lambda a: a.timestamp)


def split_sequences(attempts: Iterable[PracticeAttempt]) -> list[list[PracticeAttempt]]:
    """
    One timestamp-ordered sequence per learner, in first-seen learner order.

    Attempts without a learner_id share a single sequence.
    """
    by_learner: dict[str | None, list[PracticeAttempt]] = {}
    for attempt in attempts:
        by_learner.setdefault(attempt.learner_id, []).append(attempt)
    return [order_attempts(sequence) for sequence in by_learner.values()]


def trace_mastery(
    attempts: Sequence[PracticeAttempt],
    params: BKTParams,
    initial: float | None = None,
) -> list[float]:
    """
    Replay an attempt history.

    Returns:
        P(mastery) after each attempt, in timestamp order
    """
    p = params.p_l0 if initial is None else initial
    trajectory = []
    for attempt in order_attempts(attempts):
        p = update_bkt(p, attempt.is_correct, params)
        trajectory.append(p)
    return trajectory


def _one_step_predictions(
    sequences: Sequence[Sequence[PracticeAttempt]], params: BKTParams
) -> tuple[list[float], list[bool]]:
    """Predicted P(correct) before each attempt, paired with the outcome.

    Each sequence starts again from p_l0.
    """
    predictions: list[float] = []
    actuals: list[bool] = []
    for sequence in sequences:
        p = params.p_l0
        for attempt in sequence:
            predictions.append(predict_correct(p, params))
            actuals.append(attempt.is_correct)
            p = update_bkt(p, attempt.is_correct, params)
    return predictions, actuals


# =============================================================================
# Parameter fitting (Baum-Welch EM)
# =============================================================================


@dataclass
class FitResult:
    """Outcome of fitting BKT parameters for one skill."""

    params: BKTParams
    log_likelihood: float
    iterations: int
    converged: bool
    fit_quality: FitQuality
    insufficient_data: bool = False
    brier_score: float | None = None
    rejected_reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "params": self.params.to_dict(),
            "log_likelihood": self.log_likelihood if math.isfinite(self.log_likelihood) else None,
            "iterations": self.iterations,
            "converged": self.converged,
            "fit_quality": self.fit_quality.value,
            "insufficient_data": self.insufficient_data,
            "brier_score": self.brier_score,
            "rejected_reason": self.rejected_reason,
        }


def _emission(is_correct: bool, known: bool, params: BKTParams) -> float:
    if known:
        return (1 - params.p_s) if is_correct else params.p_s
    return params.p_g if is_correct else (1 - params.p_g)


def _forward_backward(
    observations: Sequence[bool], params: BKTParams
) -> tuple[list[tuple[float, float]], tuple[float, float, float], float]:
    """
    Scaled forward-backward pass.

    Returns:
        (gamma, (xi_00, xi_01, xi_11), log_likelihood) where gamma[t] is the
        posterior over (unknown, known) at step t and xi sums are expected
        transition counts.
    """
    n = len(observations)
    p_t = params.p_t

    alpha: list[tuple[float, float]] = []
    scale: list[float] = []

    a0 = (1 - params.p_l0) * _emission(observations[0], False, params)
    a1 = params.p_l0 * _emission(observations[0], True, params)
    c = a0 + a1
    scale.append(c)
    alpha.append((a0 / c, a1 / c))

    for t in range(1, n):
        prev0, prev1 = alpha[t - 1]
        obs = observations[t]
        a0 = prev0 * (1 - p_t) * _emission(obs, False, params)
        a1 = (prev0 * p_t + prev1) * _emission(obs, True, params)
        c = a0 + a1
        scale.append(c)
        alpha.append((a0 / c, a1 / c))

    beta: list[tuple[float, float]] = [(1.0, 1.0)] * n
    for t in range(n - 2, -1, -1):
        next0, next1 = beta[t + 1]
        obs = observations[t + 1]
        e0 = _emission(obs, False, params)
        e1 = _emission(obs, True, params)
        b0 = ((1 - p_t) * e0 * next0 + p_t * e1 * next1) / scale[t + 1]
        b1 = (e1 * next1) / scale[t + 1]
        beta[t] = (b0, b1)

    gamma: list[tuple[float, float]] = []
    for (a0, a1), (b0, b1) in zip(alpha, beta):
        g0, g1 = a0 * b0, a1 * b1
        norm = g0 + g1 or _EPS
        gamma.append((g0 / norm, g1 / norm))

    xi00 = xi01 = xi11 = 0.0
    for t in range(n - 1):
        obs = observations[t + 1]
        e0 = _emission(obs, False, params)
        e1 = _emission(obs, True, params)
        a0, a1 = alpha[t]
        next0, next1 = beta[t + 1]
        x00 = a0 * (1 - p_t) * e0 * next0
        x01 = a0 * p_t * e1 * next1
        x11 = a1 * e1 * next1
        norm = x00 + x01 + x11 or _EPS
        xi00 += x00 / norm
        xi01 += x01 / norm
        xi11 += x11 / norm

    log_likelihood = sum(math.log(c + 1e-300) for c in scale)
    return gamma, (xi00, xi01, xi11), log_likelihood


def _m_step(
    observations: Sequence[Sequence[bool]],
    gammas: Sequence[Sequence[tuple[float, float]]],
    xi: tuple[float, float, float],
) -> BKTParams:
    """Re-estimate parameters from expected counts summed over every sequence."""
    xi00, xi01, _ = xi

    known_total = known_correct = unknown_total = unknown_correct = 0.0
    for sequence, gamma in zip(observations, gammas):
        for (g0, g1), obs in zip(gamma, sequence):
            known_total += g1
            unknown_total += g0
            if obs:
                known_correct += g1
                unknown_correct += g0

    return BKTParams(
        p_l0=sum(gamma[0][1] for gamma in gammas) / len(gammas),
        p_t=xi01 / (xi00 + xi01 + _EPS),
        p_s=1 - known_correct / (known_total + _EPS),
        p_g=unknown_correct / (unknown_total + _EPS),
    )


def _constrain(params: BKTParams) -> BKTParams:
    p_s = max(P_MIN, min(IDENTIFIABILITY_CEILING, params.p_s))
    p_g = max(P_MIN, min(IDENTIFIABILITY_CEILING, params.p_g))
    if p_s + p_g >= 1:
        scale = 0.9 / (p_s + p_g)
        p_s *= scale
        p_g *= scale
    return BKTParams(
        p_l0=max(P_MIN, min(P_MAX, params.p_l0)),
        p_t=max(P_MIN, min(P_MAX, params.p_t)),
        p_s=p_s,
        p_g=p_g,
    )


def brier_score(predictions: Sequence[float], actuals: Sequence[bool]) -> float:
    """Mean squared error of probability vs binary outcome."""
    return sum((p - (1.0 if a else 0.0)) ** 2 for p, a in zip(predictions, actuals)) / len(predictions)


def assess_fit_quality(attempts: Sequence[PracticeAttempt], params: BKTParams) -> tuple[FitQuality, float]:
    """
    Grade a parameter set by its one-step-ahead Brier score.

    Returns:
        (quality, brier): good below 0.2, fair below 0.3, otherwise poor
    """
    predictions, actuals = _one_step_predictions(split_sequences(attempts), params)
    score = brier_score(predictions, actuals)
    if score < 0.2:
        return FitQuality.GOOD, score
    if score < 0.3:
        return FitQuality.FAIR, score
    return FitQuality.POOR, score


def fit_skill_bkt(
    attempts: Sequence[PracticeAttempt],
    initial: BKTParams | None = None,
    max_iterations: int = EM_MAX_ITERATIONS,
    tolerance: float = EM_TOLERANCE,
) -> FitResult:
    """
    Fit BKT parameters for one skill with Expectation-Maximization.

    Args:
        attempts: Attempt history for a single skill (any order). Each
            learner's attempts form their own sequence; attempts without
            a learner_id are treated as one learner's history
        initial: Starting/previous parameters, kept when the fit is rejected
        max_iterations: EM iteration cap
        tolerance: Log-likelihood change that counts as converged

    Returns:
        FitResult. Fewer than MIN_FIT_ATTEMPTS attempts returns
        insufficient_data with converged=False. Non-convergence or a
        non-identifiable optimum keeps `initial` and reports poor quality.
    """
    previous = initial or BKTParams()

    if len(attempts) < MIN_FIT_ATTEMPTS:
        logger.debug(f"BKT fit skipped: {len(attempts)} attempts (< {MIN_FIT_ATTEMPTS})")
        return FitResult(
            params=previous,
            log_likelihood=float("-inf"),
            iterations=0,
            converged=False,
            fit_quality=FitQuality.POOR,
            insufficient_data=True,
            rejected_reason="insufficient_data",
        )

    observations = [[a.is_correct for a in sequence] for sequence in split_sequences(attempts)]

    params = _constrain(previous)
    prev_ll = float("-inf")
    iterations = 0
    converged = False

    for iteration in range(max_iterations):
        iterations = iteration + 1
        gammas = []
        xi00 = xi01 = xi11 = log_likelihood = 0.0
        for sequence in observations:
            gamma, (x00, x01, x11), sequence_ll = _forward_backward(sequence, params)
            gammas.append(gamma)
            xi00, xi01, xi11 = xi00 + x00, xi01 + x01, xi11 + x11
            log_likelihood += sequence_ll

        if abs(log_likelihood - prev_ll) < tolerance:
            converged = True
            break
        prev_ll = log_likelihood

        params = _constrain(_m_step(observations, gammas, (xi00, xi01, xi11)))

    if not converged:
        logger.warning(f"BKT EM did not converge after {iterations} iterations; keeping previous parameters")
        return FitResult(
            params=previous,
            log_likelihood=prev_ll,
            iterations=iterations,
            converged=False,
            fit_quality=FitQuality.POOR,
            rejected_reason="not_converged",
        )

    if not params.is_identifiable:
        logger.warning(
            f"BKT fit rejected: slip={params.p_s:.3f} guess={params.p_g:.3f} not identifiable"
        )
        return FitResult(
            params=previous,
            log_likelihood=prev_ll,
            iterations=iterations,
            converged=True,
            fit_quality=FitQuality.POOR,
            rejected_reason="not_identifiable",
        )

    quality, score = assess_fit_quality(attempts, params)
    logger.info(
        f"BKT fit converged in {iterations} iterations: "
        f"L0={params.p_l0:.3f} T={params.p_t:.3f} S={params.p_s:.3f} G={params.p_g:.3f} "
        f"({quality.value}, brier={score:.3f})"
    )
    return FitResult(
        params=params,
        log_likelihood=prev_ll,
        iterations=iterations,
        converged=True,
        fit_quality=quality,
        brier_score=score,
    )


# =============================================================================
# Validation metrics
# =============================================================================


@dataclass
class ValidationMetrics:
    auc: float = 0.5
    brier_score: float = 0.25
    calibration_error: float = 0.0
    accuracy: float = 0.5
    log_loss: float = math.log(2)
    sample_size: int = 0

    def to_dict(self) -> dict:
        return {
            "auc": round(self.auc, 4),
            "brier_score": round(self.brier_score, 4),
            "calibration_error": round(self.calibration_error, 4),
            "accuracy": round(self.accuracy, 4),
            "log_loss": round(self.log_loss, 4),
            "sample_size": self.sample_size,
        }


@dataclass
class ValidationReport:
    per_skill: dict[str, ValidationMetrics]
    avg_auc: float
    avg_brier: float
    overall_quality: ValidationQuality

    def to_dict(self) -> dict:
        return {
            "per_skill": {k: v.to_dict() for k, v in self.per_skill.items()},
            "avg_auc": round(self.avg_auc, 4),
            "avg_brier": round(self.avg_brier, 4),
            "overall_quality": self.overall_quality.value,
        }


def calculate_auc(predictions: Sequence[float], actuals: Sequence[bool]) -> float:
    """Mann-Whitney AUC; ties count half, 0.5 when one class is missing."""
    positives = [p for p, a in zip(predictions, actuals) if a]
    negatives = [p for p, a in zip(predictions, actuals) if not a]
    if not positives or not negatives:
        return 0.5

    concordant = 0.0
    for pos in positives:
        for neg in negatives:
            if pos > neg:
                concordant += 1
            elif pos == neg:
                concordant += 0.5
    return concordant / (len(positives) * len(negatives))


def calculate_calibration_error(
    predictions: Sequence[float], actuals: Sequence[bool], n_bins: int = 10
) -> float:
    """Expected calibration error over equal-width bins."""
    counts = [0] * n_bins
    pred_sums = [0.0] * n_bins
    actual_sums = [0.0] * n_bins

    for pred, actual in zip(predictions, actuals):
        idx = min(int(pred * n_bins), n_bins - 1)
        counts[idx] += 1
        pred_sums[idx] += pred
        actual_sums[idx] += 1.0 if actual else 0.0

    total = len(predictions)
    ece = 0.0
    for count, pred_sum, actual_sum in zip(counts, pred_sums, actual_sums):
        if count:
            ece += (count / total) * abs(pred_sum / count - actual_sum / count)
    return ece


def calculate_log_loss(predictions: Sequence[float], actuals: Sequence[bool]) -> float:
    eps = 1e-15
    total = 0.0
    for pred, actual in zip(predictions, actuals):
        p = max(eps, min(1 - eps, pred))
        total += math.log(p) if actual else math.log(1 - p)
    return -total / len(predictions)


def calculate_validation_metrics(
    attempts: Sequence[PracticeAttempt], params: BKTParams
) -> ValidationMetrics:
    """
    Score one-step-ahead predictions against observed outcomes.

    Predictions restart from p_l0 for each learner's sequence.

    Fewer than MIN_VALIDATION_ATTEMPTS attempts returns neutral defaults.
    """
    if len(attempts) < MIN_VALIDATION_ATTEMPTS:
        return ValidationMetrics()

    predictions, actuals = _one_step_predictions(split_sequences(attempts), params)
    accuracy = sum(1 for p, a in zip(predictions, actuals) if (p >= 0.5) == a) / len(predictions)

    return ValidationMetrics(
        auc=calculate_auc(predictions, actuals),
        brier_score=brier_score(predictions, actuals),
        calibration_error=calculate_calibration_error(predictions, actuals),
        accuracy=accuracy,
        log_loss=calculate_log_loss(predictions, actuals),
        sample_size=len(attempts),
    )


def classify_validation_quality(avg_auc: float) -> ValidationQuality:
    if avg_auc >= 0.7:
        return ValidationQuality.GOOD
    if avg_auc >= 0.6:
        return ValidationQuality.ACCEPTABLE
    return ValidationQuality.NEEDS_IMPROVEMENT


def validate_skills(
    attempts_by_skill: dict[str, Sequence[PracticeAttempt]],
    params_by_skill: dict[str, BKTParams] | None = None,
    default_params: BKTParams | None = None,
) -> ValidationReport:
    """
    Validate BKT predictions across skills.

    Skills without enough attempts appear in per_skill with neutral metrics
    but do not count toward the averages.
    """
    params_by_skill = params_by_skill or {}
    default_params = default_params or BKTParams()

    per_skill: dict[str, ValidationMetrics] = {}
    for skill_id, attempts in attempts_by_skill.items():
        params = params_by_skill.get(skill_id, default_params)
        per_skill[skill_id] = calculate_validation_metrics(attempts, params)

    scored = [m for m in per_skill.values() if m.sample_size > 0]
    if scored:
        avg_auc = sum(m.auc for m in scored) / len(scored)
        avg_brier = sum(m.brier_score for m in scored) / len(scored)
    else:
        avg_auc, avg_brier = 0.5, 0.25

    return ValidationReport(
        per_skill=per_skill,
        avg_auc=avg_auc,
        avg_brier=avg_brier,
        overall_quality=classify_validation_quality(avg_auc),
    )


# =============================================================================
# Confidence interval
# =============================================================================


@dataclass
class MasteryEstimate:
    p_mastery: float
    lower: float
    upper: float
    level: float
    n_effective: float

    def to_dict(self) -> dict:
        return {
            "p_mastery": round(self.p_mastery, 4),
            "confidence_interval": {
                "lower": round(self.lower, 4),
                "upper": round(self.upper, 4),
                "level": self.level,
            },
            "n_effective": round(self.n_effective, 2),
        }


def effective_sample_size(n_attempts: int, p_t: float) -> float:
    """Attempts discounted for the serial correlation learning introduces."""
    if n_attempts <= 0:
        return 0.0
    correlation = 1 + 2 * p_t * (n_attempts - 1) / n_attempts
    return max(1.0, n_attempts / correlation)


def wilson_interval(p: float, n: float, confidence_level: float) -> tuple[float, float]:
    """Wilson score interval for a proportion, clipped to [0, 1]."""
    if n <= 0:
        return 0.0, 1.0
    z = NormalDist().inv_cdf((1 + confidence_level) / 2)
    z2 = z * z
    denom = 1 + z2 / n
    center = (p + z2 / (2 * n)) / denom
    margin = (z / denom) * math.sqrt(p * (1 - p) / n + z2 / (4 * n * n))
    return max(0.0, center - margin), min(1.0, center + margin)


def get_mastery_with_confidence(
    attempts: Sequence[PracticeAttempt],
    params: BKTParams,
    confidence_level: float = 0.95,
) -> MasteryEstimate:
    """
    P(mastery) after replaying `attempts`, with an interval that narrows as
    evidence accumulates.
    """
    level = max(0.5, min(0.999, confidence_level))
    trajectory = trace_mastery(attempts, params)
    p_mastery = trajectory[-1] if trajectory else clamp_probability(params.p_l0)

    n_eff = effective_sample_size(len(attempts), params.p_t)
    lower, upper = wilson_interval(p_mastery, n_eff, level)

    return MasteryEstimate(
        p_mastery=p_mastery,
        lower=lower,
        upper=upper,
        level=level,
        n_effective=n_eff,
    )
