"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tutorcore.core.profile import (  # noqa: E402
    ConfidenceScores,
    InverseProfile,
    KnowledgeState,
)
from tutorcore.learning.bkt import PracticeAttempt  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath) or "learning" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """Fixed reference time."""
    return datetime(2025, 3, 1, 9, 0, 0)


@pytest.fixture
def rng():
    """Seeded random source."""
    return random.Random(42)


@pytest.fixture
def make_attempts(now):
    """Build a PracticeAttempt sequence from a list of booleans, one minute apart."""

    def _make(outcomes, skill_id="skill-1"):
        return [
            PracticeAttempt(
                is_correct=bool(outcome),
                timestamp=now + timedelta(minutes=i),
                skill_id=skill_id,
            )
            for i, outcome in enumerate(outcomes)
        ]

    return _make


@pytest.fixture
def sample_profile():
    """Provide a learner profile with moderate evidence."""
    return InverseProfile(
        learner_id="learner-1",
        knowledge_state=KnowledgeState(
            knowledge_gaps=["subnetting"],
            misconceptions=["routing"],
        ),
        confidence_scores=ConfidenceScores(
            knowledge=0.6,
            cognitive=0.6,
            metacognitive=0.6,
            motivational=0.6,
            behavioral=0.5,
        ),
    )
