"""
SM-2 spaced repetition for skill review scheduling.

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_easiness: float = 2.5
    minimum_easiness: float = 1.3
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review


@dataclass(frozen=True)
class SM2Result:
    easiness_factor: float
    interval_days: int
    repetitions: int
    next_review_at: datetime


class SM2Scheduler:
    """
    The SuperMemo 2 algorithm.

    Each skill carries:
    - Easiness Factor (EF): How easy the item is (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive successful recalls
    """

    def __init__(self, config: SM2Config | None = None):
        self.config = config or SM2Config()

    def calculate_next_review(
        self,
        easiness_factor: float,
        interval_days: int,
        repetitions: int,
        grade: int,
        now: datetime | None = None,
    ) -> SM2Result:
        """
        Calculate the next review from the current schedule and a grade.

        Args:
            easiness_factor: Current EF
            interval_days: Current interval
            repetitions: Current run of passing grades
            grade: Response grade, clamped to 0-5
            now: Reference time (defaults to datetime.now())

        Returns:
            SM2Result with the new schedule
        """
        grade = max(0, min(5, int(grade)))
        now = now or datetime.now()

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        ef_delta = 0.1 - (5 - grade) * (0.08 + (5 - grade) * 0.02)
        new_ef = max(self.config.minimum_easiness, easiness_factor + ef_delta)

        if grade < 3:
            new_repetitions = 0
            new_interval = self.config.first_interval
        else:
            new_repetitions = repetitions + 1
            if new_repetitions == 1:
                new_interval = self.config.first_interval
            elif new_repetitions == 2:
                new_interval = self.config.second_interval
            else:
                new_interval = max(1, round(interval_days * new_ef))

        return SM2Result(
            easiness_factor=new_ef,
            interval_days=new_interval,
            repetitions=new_repetitions,
            next_review_at=now + timedelta(days=new_interval),
        )

    def grade_from_response(
        self,
        is_correct: bool,
        response_ms: int | None = None,
        expected_ms: int | None = None,
    ) -> int:
        """
        Convert a response to an SM-2 grade.

        Incorrect answers grade 1. Correct answers grade by speed relative
        to the expected time: 5 under half, 4 under the full time, else 3.
        Without timing a correct answer grades 4.
        """
        if not is_correct:
            return 1

        if not response_ms or not expected_ms:
            return 4

        ratio = response_ms / expected_ms
        if ratio < 0.5:
            return 5
        if ratio < 1.0:
            return 4
        return 3
