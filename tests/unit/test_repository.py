"""
Unit tests for the learner store repository.

Runs against an in-memory SQLite engine.
"""

from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tutorcore.db import database
from tutorcore.db.models import Base, BKTParamsRecord
from tutorcore.db.repository import TutorRepository
from tutorcore.learning.bkt import BKTParams, FitQuality, FitResult, MasteryStatus, PracticeAttempt
from tutorcore.learning.mastery_tracker import LearnerSkillState, update_mastery
from tutorcore.tutoring.productive_failure import (
    AttemptAnalysis,
    AttemptCategory,
    create_exploration_problem,
    record_attempt,
    start_exploration,
)


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def repo(db_session):
    return TutorRepository(db_session)


def _fit(params, quality=FitQuality.GOOD, **overrides):
    values = dict(
        params=params,
        log_likelihood=-12.5,
        iterations=14,
        converged=True,
        fit_quality=quality,
        brier_score=0.18,
    )
    values.update(overrides)
    return FitResult(**values)


class TestSkillState:
    """Tests for skill state persistence."""

    def test_missing_state_is_none(self, repo):
        assert repo.get_skill_state("learner-1", "subnetting") is None

    def test_save_and_load(self, repo, now):
        state = update_mastery(
            LearnerSkillState.new("learner-1", "subnetting"),
            PracticeAttempt(is_correct=True, timestamp=now),
        )

        repo.save_skill_state(state)
        loaded = repo.get_skill_state("learner-1", "subnetting")

        assert loaded == state

    def test_save_overwrites_single_row(self, repo, now):
        state = LearnerSkillState.new("learner-1", "subnetting")
        repo.save_skill_state(state)
        state = update_mastery(state, PracticeAttempt(is_correct=True, timestamp=now))
        repo.save_skill_state(state)

        states = repo.get_learner_states("learner-1")

        assert len(states) == 1
        assert states[0].attempt_count == 1

    def test_apply_attempt_creates_and_records(self, repo, now):
        updated = repo.apply_attempt("learner-1", "subnetting", PracticeAttempt(is_correct=True, timestamp=now))

        assert updated.attempt_count == 1
        assert updated.p_mastery > 0.3
        assert updated.mastery_status == MasteryStatus.LEARNING
        assert repo.get_skill_state("learner-1", "subnetting") == updated
        assert len(repo.get_attempts("learner-1", "subnetting")) == 1

    def test_apply_attempt_uses_fitted_params(self, repo, now):
        fitted = BKTParams(p_l0=0.5, p_t=0.2, p_s=0.05, p_g=0.15)
        repo.save_fitted_params("subnetting", _fit(fitted), n_attempts=40, fitted_at=now)

        updated = repo.apply_attempt("learner-1", "subnetting", PracticeAttempt(is_correct=False, timestamp=now))

        assert updated.params == fitted


class TestAttempts:
    def test_attempts_come_back_in_time_order(self, repo, now):
        repo.record_attempt("learner-1", "vlan", PracticeAttempt(is_correct=False, timestamp=now + timedelta(minutes=5)))
        repo.record_attempt("learner-1", "vlan", PracticeAttempt(is_correct=True, timestamp=now))

        attempts = repo.get_attempts("learner-1", "vlan")

        assert [a.is_correct for a in attempts] == [True, False]
        assert attempts[0].skill_id == "vlan"

    def test_attempts_by_skill(self, repo, make_attempts):
        for attempt in make_attempts([1, 0, 1], skill_id="vlan"):
            repo.record_attempt("learner-1", "vlan", attempt)
        for attempt in make_attempts([1], skill_id="ospf"):
            repo.record_attempt("learner-2", "ospf", attempt)

        grouped = repo.get_attempts_by_skill()

        assert set(grouped) == {"vlan", "ospf"}
        assert len(grouped["vlan"]) == 3
        assert len(repo.get_skill_attempts("ospf")) == 1

    def test_skill_attempts_carry_learner(self, repo, now):
        repo.record_attempt("learner-2", "vlan", PracticeAttempt(is_correct=True, timestamp=now))
        repo.record_attempt("learner-1", "vlan", PracticeAttempt(is_correct=False, timestamp=now + timedelta(minutes=1)))

        attempts = repo.get_skill_attempts("vlan")

        assert [a.learner_id for a in attempts] == ["learner-1", "learner-2"]
        assert {a.learner_id for a in repo.get_attempts_by_skill()["vlan"]} == {"learner-1", "learner-2"}


class TestFittedParams:
    """Tests for append-only parameter storage."""

    def test_latest_fit_wins(self, repo, now):
        first = BKTParams(p_l0=0.2, p_t=0.1, p_s=0.1, p_g=0.2)
        second = BKTParams(p_l0=0.4, p_t=0.15, p_s=0.08, p_g=0.18)

        repo.save_fitted_params("vlan", _fit(first), 20, fitted_at=now)
        repo.save_fitted_params("vlan", _fit(second), 30, fitted_at=now + timedelta(days=1))

        assert repo.get_latest_params("vlan") == second
        history = repo.get_params_history("vlan")
        assert len(history) == 2
        assert history[0].p_l0 == pytest.approx(0.2)

    def test_insufficient_data_not_stored(self, repo, db_session):
        result = _fit(BKTParams(), quality=FitQuality.POOR, converged=False, insufficient_data=True)

        assert repo.save_fitted_params("vlan", result, 3) is None
        assert db_session.query(BKTParamsRecord).count() == 0
        assert repo.get_latest_params("vlan") is None

    def test_rejected_fit_not_stored(self, repo):
        result = _fit(BKTParams(), quality=FitQuality.POOR, rejected_reason="slip >= 0.5")

        assert repo.save_fitted_params("vlan", result, 50) is None


class TestProfiles:
    def test_profile_round_trip(self, repo, sample_profile):
        repo.save_profile("learner-1", sample_profile)

        assert repo.get_profile("learner-1") == sample_profile

    def test_profile_update(self, repo, sample_profile):
        repo.save_profile("learner-1", sample_profile)
        sample_profile.confidence_scores.knowledge = 0.9
        repo.save_profile("learner-1", sample_profile)

        assert repo.get_profile("learner-1").confidence_scores.knowledge == pytest.approx(0.9)

    def test_unknown_profile(self, repo):
        assert repo.get_profile("nobody") is None


class TestSessionLog:
    def test_events_filtered_by_notebook(self, repo, now):
        repo.log_session_event("learner-1", "dialogue", "started", notebook_id="nb-1", now=now)
        repo.log_session_event("learner-1", "dialogue", "started", notebook_id="nb-2", now=now)

        events = repo.get_session_events("learner-1", notebook_id="nb-1")

        assert len(events) == 1
        assert events[0].payload == {}

    def test_exploration_attempt_round_trip(self, repo, now):
        problem = create_exploration_problem("subnetting", "Subnetting", "subnet mask")
        session = start_exploration(problem, now=now)
        session = record_attempt(
            session,
            "Use a /26 because four networks need two more bits",
            AttemptAnalysis(
                category=AttemptCategory.PARTIAL_CORRECT,
                partial_understanding=("borrowing bits",),
                creativity_score=0.6,
            ),
            duration_ms=45000,
            now=now + timedelta(minutes=1),
        )
        attempt = session.attempts[0]

        repo.log_exploration_attempt("learner-1", session.session_id, attempt)
        loaded = repo.get_exploration_attempts("learner-1", session.session_id)

        assert len(loaded) == 1
        assert loaded[0].category == attempt.category
        assert loaded[0].creativity_score == attempt.creativity_score
        assert loaded[0] == attempt


class TestSessionDependency:
    """Tests for the request-scoped session dependency."""

    @pytest.fixture
    def factory(self, monkeypatch):
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
        monkeypatch.setattr(database, "SessionLocal", factory)
        yield factory
        engine.dispose()

    def test_commits_when_request_succeeds(self, factory, now):
        dependency = database.get_session()
        session = next(dependency)
        TutorRepository(session).record_attempt("learner-1", "vlan", PracticeAttempt(is_correct=True, timestamp=now))

        with pytest.raises(StopIteration):
            next(dependency)

        with factory() as check:
            assert len(TutorRepository(check).get_attempts("learner-1")) == 1

    def test_rolls_back_when_request_fails(self, factory, now):
        dependency = database.get_session()
        session = next(dependency)
        TutorRepository(session).record_attempt("learner-1", "vlan", PracticeAttempt(is_correct=True, timestamp=now))

        with pytest.raises(RuntimeError):
            dependency.throw(RuntimeError("request failed"))

        with factory() as check:
            assert TutorRepository(check).get_attempts("learner-1") == []
