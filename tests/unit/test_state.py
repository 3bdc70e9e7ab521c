"""
Unit tests for per-run counting state.
"""

import pytest

from tabulation.ballots import BallotSet
from tabulation.errors import InvalidStatusChange, TabulationError
from tabulation.state import CandidateStatus, CountState


@pytest.fixture
def state(abc_candidates, single_seat_ballots):
    return CountState(BallotSet(abc_candidates, single_seat_ballots), quota=3)


@pytest.mark.unit
def test_elect_and_eliminate(state):
    state.elect(0)
    state.eliminate(1)

    assert state.status == [
        CandidateStatus.ELECTED,
        CandidateStatus.ELIMINATED,
        CandidateStatus.STANDING,
    ]
    assert state.keep_factors[1] == 0.0
    assert state.standing == [2]
    assert state.remaining_seats(2) == 1


@pytest.mark.unit
def test_elected_candidate_cannot_be_eliminated(state):
    state.elect(0)
    with pytest.raises(InvalidStatusChange):
        state.eliminate(0)
    assert state.status[0] is CandidateStatus.ELECTED


@pytest.mark.unit
def test_eliminated_candidate_cannot_be_elected(state):
    state.eliminate(2)
    with pytest.raises(TabulationError):
        state.elect(2)
    assert state.elected == []
