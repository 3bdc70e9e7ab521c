"""
End-to-end tests of the tabulate() entry point.

These cover the documented scenarios, the run-level invariants, and the
error kinds surfaced before counting starts.
"""

import json

import numpy as np
import pytest

from conftest import expand, make_candidates
from tabulation import (
    Ballot,
    BallotSet,
    ConvergenceFailure,
    InvalidBallot,
    InvalidConfiguration,
    STVTabulator,
    TabulationRules,
    tabulate,
)
from tabulation.ballots import Contest


def final_round(result):
    last = result.stats.number_of_rounds
    return {r.candidate_name: r for r in result.rounds if r.round == last}


def assert_run_invariants(result, seats, total_ballots):
    """Conservation, contiguous rounds, and a fully decided final round."""
    n = result.stats.number_of_rounds
    assert [m.round for m in result.meta] == list(range(1, n + 1))
    assert sorted({r.round for r in result.rounds}) == list(range(1, n + 1))

    for meta in result.meta:
        held = sum(r.votes for r in result.rounds if r.round == meta.round)
        assert held + meta.exhausted == pytest.approx(total_ballots, abs=1e-6)

    statuses = [r.status for r in final_round(result).values()]
    assert statuses.count("elected") == seats
    assert "standing" not in statuses
    assert len(result.winners) == seats


@pytest.mark.unit
class TestSingleSeatScenario:
    def test_winner_and_rounds(self, abc_candidates, single_seat_ballots):
        result = tabulate(single_seat_ballots, abc_candidates, seats=1)

        assert result.stats.first_round_quota == 3
        assert result.winners == ["A"]
        assert result.stats.number_of_rounds == 2
        assert result.meta[0].eliminated_this_round == ["B"]
        assert result.meta[1].elected_this_round == ["A"]

    def test_elimination_tie_direction_descending(self, abc_candidates, single_seat_ballots):
        result = tabulate(
            single_seat_ballots,
            abc_candidates,
            seats=1,
            elimination_tie_order="descending",
        )
        assert result.meta[0].eliminated_this_round == ["C"]
        assert result.winners == ["A"]

    def test_invariants(self, abc_candidates, single_seat_ballots):
        result = tabulate(single_seat_ballots, abc_candidates, seats=1)
        assert_run_invariants(result, seats=1, total_ballots=4)


@pytest.mark.unit
class TestTwoSeatMajorityScenario:
    def test_majority_candidate_elected_first_round(self, five_candidates, majority_ballots):
        result = tabulate(majority_ballots, five_candidates, seats=2)

        assert result.stats.first_round_quota == 34
        assert result.meta[0].elected_this_round == ["Alice"]
        round_one = {r.candidate_name: r.votes for r in result.rounds if r.round == 1}
        # Alice keeps 34/40 of each ballot; the rest reaches Bob
        assert round_one["Alice"] == pytest.approx(34.0, abs=1e-6)
        assert round_one["Bob"] == pytest.approx(15 + 40 * (1 - 34 / 40), abs=1e-6)

    def test_second_seat_resolved(self, five_candidates, majority_ballots):
        result = tabulate(majority_ballots, five_candidates, seats=2)

        assert result.winners == ["Alice", "Bob"]
        assert result.stats.number_of_rounds == 5
        assert [m.eliminated_this_round for m in result.meta[1:4]] == [
            ["Eve"],
            ["Diana"],
            ["Charlie"],
        ]
        assert result.meta[-1].exhausted == pytest.approx(35.0)
        assert_run_invariants(result, seats=2, total_ballots=100)

    def test_continuing_quota(self, five_candidates, majority_ballots):
        result = tabulate(majority_ballots, five_candidates, seats=2, continuing_quota=True)

        assert result.winners == ["Alice", "Bob"]
        assert [m.quota for m in result.meta[:3]] == [34, 34, 29]
        assert result.stats.number_of_rounds == 4
        assert result.meta[-1].quota == 27
        assert_run_invariants(result, seats=2, total_ballots=100)


@pytest.mark.unit
class TestBoundaries:
    def test_seats_equal_candidates(self, abc_candidates):
        result = tabulate([[1, 2], [2], [3, 1], [1]], abc_candidates, seats=3)

        assert result.stats.number_of_rounds == 1
        assert result.winners == ["A", "B", "C"]
        assert all(m.eliminated_this_round is None for m in result.meta)
        assert_run_invariants(result, seats=3, total_ballots=4)

    def test_last_standing_fill_remaining_seats(self):
        candidates = make_candidates("A", "B", "C", "D")
        ballots = expand((10, [1]), (8, [2]), (6, [3]), (3, [4, 3]))
        result = tabulate(ballots, candidates, seats=2)

        assert result.winners == ["A", "C"]
        assert result.meta[-1].elected_this_round == ["C"]
        assert result.meta[-1].eliminated_this_round is None

    def test_election_tie_order(self):
        candidates = make_candidates("A", "B", "C")
        ballots = expand((40, [1, 2]), (40, [2, 1]), (20, [3]))

        ascending = tabulate(ballots, candidates, seats=2)
        descending = tabulate(ballots, candidates, seats=2, election_tie_order="descending")

        assert ascending.winners == ["A", "B"]
        assert descending.winners == ["B", "A"]
        assert ascending.stats.number_of_rounds == 1
        assert ascending.meta[0].eliminated_this_round == ["C"]


@pytest.mark.unit
class TestErrors:
    def test_duplicate_candidate_in_ballot(self, abc_candidates):
        with pytest.raises(InvalidBallot):
            tabulate([[1, 2], [1, 1]], abc_candidates, seats=1)

    def test_unknown_candidate(self, abc_candidates):
        with pytest.raises(InvalidBallot):
            tabulate([[1, 4]], abc_candidates, seats=1)

    def test_configuration_checked_before_ballots(self, abc_candidates):
        with pytest.raises(InvalidConfiguration):
            tabulate([[1, 1]], abc_candidates, seats=0)

    def test_bad_precision(self, abc_candidates, single_seat_ballots):
        with pytest.raises(InvalidConfiguration):
            tabulate(single_seat_ballots, abc_candidates, seats=1, precision=0)

    def test_more_seats_than_ballots(self, abc_candidates):
        with pytest.raises(InvalidConfiguration):
            tabulate([[1], [2]], abc_candidates, seats=3)

    def test_more_seats_than_candidates(self, abc_candidates, single_seat_ballots):
        with pytest.raises(InvalidConfiguration):
            tabulate(single_seat_ballots * 2, abc_candidates, seats=4)

    def test_contest_seat_mismatch(self, abc_candidates, single_seat_ballots):
        contest = Contest("e1", "c1", "d1", seats=2)
        ballot_set = BallotSet(abc_candidates, single_seat_ballots, contest=contest)
        with pytest.raises(InvalidConfiguration):
            tabulate(ballot_set, seats=1)

    def test_convergence_failure_not_approximated(self):
        candidates = make_candidates("A", "B", "C")
        ballots = expand((40, [1, 2]), (40, [2, 1]), (20, [3]))
        with pytest.raises(ConvergenceFailure):
            tabulate(ballots, candidates, seats=2, precision=1e-9, max_iterations=1)


@pytest.mark.unit
class TestInterface:
    def test_accepts_ballot_objects_and_prepared_rules(self, abc_candidates):
        ballots = [
            Ballot("X1", (1, None, 2)),
            Ballot("X2", (1, 2)),
            Ballot("X3", (2, 1)),
            Ballot("X4", (3, 1)),
        ]
        rules = TabulationRules(seats=1)
        result = tabulate(ballots, abc_candidates, rules=rules)
        assert result.winners == ["A"]

    def test_tabulator_is_single_use(self, abc_candidates, single_seat_ballots):
        tabulator = STVTabulator(
            BallotSet(abc_candidates, single_seat_ballots), TabulationRules(seats=1)
        )
        first = tabulator.run_stv_tabulation()
        assert tabulator.run_stv_tabulation() is first

    def test_frames(self, five_candidates, majority_ballots):
        result = tabulate(majority_ballots, five_candidates, seats=2)

        summary = result.get_round_summary()
        assert list(summary.columns) == [
            "round",
            "candidate_name",
            "votes",
            "status",
            "quota",
            "exhausted_votes",
        ]
        assert len(summary) == 5 * result.stats.number_of_rounds

        final = result.get_final_results()
        elected = final[final["status"] == "elected"]
        assert set(elected["candidate_name"]) == {"Alice", "Bob"}
        assert dict(zip(elected["candidate_name"], elected["election_round"])) == {
            "Alice": 1,
            "Bob": 5,
        }


@pytest.mark.invariant
class TestDeterminismAndInvariants:
    def test_rerun_is_byte_identical(self, five_candidates, majority_ballots):
        first = tabulate(majority_ballots, five_candidates, seats=2)
        second = tabulate(list(reversed(majority_ballots)), five_candidates, seats=2)
        assert json.dumps(first.to_records()) == json.dumps(second.to_records())

    @pytest.mark.parametrize("seed", range(8))
    @pytest.mark.parametrize("seats", [1, 2, 3])
    def test_random_contests(self, seed, seats):
        rng = np.random.default_rng(seed)
        candidates = make_candidates("Ada", "Ben", "Cai", "Dee", "Eli", "Fay")
        ballots = []
        for _ in range(200):
            length = int(rng.integers(1, 7))
            ballots.append([int(c) + 1 for c in rng.permutation(6)[:length]])

        result = tabulate(ballots, candidates, seats=seats)
        assert_run_invariants(result, seats=seats, total_ballots=200)

        again = tabulate(ballots, candidates, seats=seats)
        assert json.dumps(again.to_records()) == json.dumps(result.to_records())


@pytest.mark.invariant
class TestSeededRandomTieBreak:
    @pytest.mark.parametrize("seed", [0, 7, 42])
    def test_election_tie_reproducible(self, seed):
        candidates = make_candidates("A", "B", "C")
        ballots = expand((40, [1, 2]), (40, [2, 1]), (20, [3]))

        first = tabulate(ballots, candidates, seats=2, tie_break="random", random_seed=seed)
        second = tabulate(ballots, candidates, seats=2, tie_break="random", random_seed=seed)

        assert json.dumps(first.to_records()) == json.dumps(second.to_records())
        assert sorted(first.winners) == ["A", "B"]
        assert_run_invariants(first, seats=2, total_ballots=100)

    @pytest.mark.parametrize("seed", [0, 7, 42])
    def test_elimination_tie_reproducible(self, seed, abc_candidates, single_seat_ballots):
        first = tabulate(
            single_seat_ballots, abc_candidates, seats=1, tie_break="random", random_seed=seed
        )
        second = tabulate(
            single_seat_ballots, abc_candidates, seats=1, tie_break="random", random_seed=seed
        )

        assert json.dumps(first.to_records()) == json.dumps(second.to_records())
        assert first.meta[0].eliminated_this_round in (["B"], ["C"])
        assert first.winners == ["A"]
        assert_run_invariants(first, seats=1, total_ballots=4)
