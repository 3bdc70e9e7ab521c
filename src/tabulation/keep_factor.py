"""
Meek keep factor computation.

Every candidate holds a keep factor: 1.0 while standing, 0.0 once
eliminated, and for an elected candidate the fraction of each arriving vote
it retains. A ballot's weight is shared out down its ranking in a single
pass: each candidate keeps ``keep_factor`` of whatever reaches it and passes
the remainder on. Whatever is left after the last rank is exhausted.

The solver adjusts elected candidates' keep factors until each of them holds
the quota, to within the configured precision.
"""

import logging
from typing import NamedTuple, Sequence

import numpy as np

from .ballots import NO_CANDIDATE, BallotSet
from .errors import ConvergenceFailure
from .quota import QuotaFormula, continuing_quota

logger = logging.getLogger(__name__)


class TallyResult(NamedTuple):
    votes: np.ndarray  # per candidate, id ascending
    exhausted: float
    pointers: np.ndarray  # rank index where each ballot group rests; max_rank if exhausted
    weights: np.ndarray  # weight reaching that rank


class SolveResult(NamedTuple):
    keep_factors: np.ndarray
    tally: TallyResult
    quota: float
    iterations: int


def tally_votes(ballot_set: BallotSet, keep_factors: np.ndarray) -> TallyResult:
    """
    Distribute every ballot group's weight under the given keep factors.

    Summation runs over ballot groups in their fixed order and lands in
    per-candidate bins, so identical inputs give bit-identical totals.

    Args:
        ballot_set: Ballots to count
        keep_factors: Keep factor per candidate index

    Returns:
        TallyResult with votes, exhausted weight, pointers and weights
    """
    candidate_count = len(keep_factors)
    preferences = ballot_set.preferences
    group_count, max_rank = preferences.shape

    # Padding maps to an extra bin whose keep factor is 0, so weight passes through
    keep = np.append(keep_factors, 0.0)
    columns = np.where(preferences == NO_CANDIDATE, candidate_count, preferences)

    remaining = ballot_set.counts.copy()
    votes = np.zeros(candidate_count + 1, dtype=np.float64)
    pointers = np.full(group_count, max_rank, dtype=np.int64)
    weights = np.zeros(group_count, dtype=np.float64)

    for rank in range(max_rank):
        column = columns[:, rank]
        kept = keep[column]

        resting = (kept == 1.0) & (pointers == max_rank)
        pointers[resting] = rank
        weights[resting] = remaining[resting]

        votes += np.bincount(column, weights=remaining * kept, minlength=candidate_count + 1)
        remaining = remaining * (1.0 - kept)

    exhausted_groups = pointers == max_rank
    weights[exhausted_groups] = remaining[exhausted_groups]

    return TallyResult(
        votes=votes[:candidate_count],
        exhausted=float(remaining.sum()),
        pointers=pointers,
        weights=weights,
    )


class KeepFactorSolver:
    """
    Iterates elected candidates' keep factors to a fixed point.

    Each iteration re-tallies, then scales every elected keep factor by
    ``quota / votes``. Iteration stops when no elected total is further than
    ``precision`` from the quota. A candidate whose keep factor is already
    1.0 and who sits below the quota cannot be raised further and counts as
    settled. Running out of iterations is an error, never an approximation.
    """

    def __init__(
        self,
        precision: float,
        max_iterations: int,
        quota_formula: QuotaFormula = QuotaFormula.DROOP,
        use_continuing_quota: bool = False,
    ):
        self.precision = precision
        self.max_iterations = max_iterations
        self.quota_formula = quota_formula
        self.use_continuing_quota = use_continuing_quota

    def _deviation(
        self, votes: np.ndarray, keep: np.ndarray, elected: Sequence[int], quota: float
    ) -> float:
        worst = 0.0
        for index in elected:
            difference = votes[index] - quota
            if difference < 0 and keep[index] >= 1.0:
                continue
            worst = max(worst, abs(difference))
        return worst

    def solve(
        self,
        ballot_set: BallotSet,
        keep_factors: np.ndarray,
        elected: Sequence[int],
        quota: float,
        seats: int,
    ) -> SolveResult:
        """
        Settle keep factors for the elected candidates.

        Args:
            ballot_set: Ballots being counted
            keep_factors: Current keep factor per candidate (not modified)
            elected: Indices of elected candidates
            quota: Quota to settle on (recomputed if continuing quota is on)
            seats: Seats in the contest, for quota recomputation

        Returns:
            SolveResult with the settled keep factors and their tally

        Raises:
            ConvergenceFailure: if the iteration budget runs out
        """
        keep = keep_factors.copy()
        elected = sorted(elected)
        total = float(ballot_set.counts.sum())
        iterations = 0

        while True:
            tally = tally_votes(ballot_set, keep)
            if self.use_continuing_quota:
                quota = continuing_quota(
                    total - tally.exhausted, seats, self.quota_formula
                )

            deviation = self._deviation(tally.votes, keep, elected, quota)
            if deviation < self.precision:
                if elected:
                    logger.debug(
                        f"Keep factors settled after {iterations} iterations "
                        f"(deviation {deviation:.3g})"
                    )
                return SolveResult(keep, tally, float(quota), iterations)

            if iterations >= self.max_iterations:
                raise ConvergenceFailure(
                    f"Keep factors did not converge within {self.max_iterations} "
                    f"iterations (deviation {deviation:.3g}, precision {self.precision:.3g})",
                    iterations=iterations,
                    deviation=deviation,
                )

            for index in elected:
                if tally.votes[index] > 0:
                    keep[index] = min(1.0, keep[index] * quota / tally.votes[index])
            iterations += 1
            logger.debug(f"Iteration {iterations}: deviation {deviation:.6g}")
