"""
Shared pytest configuration and fixtures for meek-stv-tabulator.

This module provides common test fixtures and utilities used across
all test modules.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tabulation.ballots import Candidate  # noqa: E402


def make_candidates(*names):
    """Candidates with ids 1..n in the order given."""
    return [Candidate(candidate_id=i, name=name) for i, name in enumerate(names, 1)]


def expand(*groups):
    """Expand (count, ranking) pairs into a flat ballot list."""
    ballots = []
    for count, ranking in groups:
        ballots.extend([list(ranking)] * count)
    return ballots


@pytest.fixture
def abc_candidates():
    """Candidates A=1, B=2, C=3."""
    return make_candidates("A", "B", "C")


@pytest.fixture
def single_seat_ballots():
    """Four ballots: [A,B], [A,B], [B,A], [C,A]."""
    return [[1, 2], [1, 2], [2, 1], [3, 1]]


@pytest.fixture
def five_candidates():
    return make_candidates("Alice", "Bob", "Charlie", "Diana", "Eve")


@pytest.fixture
def majority_ballots():
    """100 ballots with Alice holding 40 first preferences, all passing to Bob."""
    return expand(
        (40, [1, 2]),
        (15, [2, 3]),
        (20, [3, 4]),
        (15, [4, 5]),
        (10, [5, 2]),
    )


@pytest.fixture
def temp_db_file():
    """Provide a temporary database file path for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    os.unlink(db_path)  # Remove the empty file, let DuckDB create it

    try:
        yield db_path
    finally:
        if os.path.exists(db_path):
            os.unlink(db_path)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (medium speed, database required)",
    )
    config.addinivalue_line(
        "markers",
        "golden: marks tests as golden dataset validation (slow, full verification)",
    )
    config.addinivalue_line(
        "markers", "invariant: marks tests as mathematical invariant validation"
    )
    config.addinivalue_line(
        "markers", "smoke: marks tests as smoke tests (basic functionality check)"
    )
