import logging
from dataclasses import dataclass
from typing import List

from .keep_factor import KeepFactorSolver, SolveResult
from .results import Round, RoundMeta
from .rules import TabulationRules
from .state import CountState
from .tie_break import TieBreaker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundOutcome:
    rounds: List[Round]
    meta: RoundMeta
    elected: List[str]
    eliminated: List[str]


class RoundEngine:
    """
    Executes one counting round against a run's CountState.

    A round settles keep factors and tallies, then takes exactly one kind of
    action: elect every standing candidate when they can only just fill the
    remaining seats, elect the candidates at quota, or eliminate the lowest
    standing candidate. Transfers caused by that action are tallied into the
    same round before it is recorded.
    """

    def __init__(
        self, rules: TabulationRules, solver: KeepFactorSolver, tie_breaker: TieBreaker
    ):
        self.rules = rules
        self.solver = solver
        self.tie_breaker = tie_breaker

    def _settle(self, state: CountState) -> SolveResult:
        result = self.solver.solve(
            state.ballot_set,
            state.keep_factors,
            state.elected,
            state.quota,
            self.rules.seats,
        )
        state.keep_factors = result.keep_factors
        state.votes = result.tally.votes
        state.exhausted = result.tally.exhausted
        state.pointers = result.tally.pointers
        state.weights = result.tally.weights
        state.quota = result.quota
        return result

    def _groups_by_votes(self, state: CountState, indices: List[int]) -> List[List[int]]:
        """Group candidates into runs of equal votes (within precision), highest first."""
        ordered = sorted(indices, key=lambda i: (-state.votes[i], i))
        groups: List[List[int]] = []
        for index in ordered:
            if groups and abs(state.votes[groups[-1][0]] - state.votes[index]) <= self.rules.precision:
                groups[-1].append(index)
            else:
                groups.append([index])
        return groups

    def _election_order(self, state: CountState, indices: List[int]) -> List[int]:
        """Descending votes; equal totals ordered by the tie breaker."""
        ordered = []
        for group in self._groups_by_votes(state, indices):
            if len(group) == 1:
                ordered.extend(group)
                continue
            by_name = {state.name_of(i): i for i in group}
            for name in self.tie_breaker.order_for_election(by_name):
                ordered.append(by_name[name])
        return ordered

    def _lowest_standing(self, state: CountState) -> int:
        standing = state.standing
        lowest = min(state.votes[i] for i in standing)
        tied = [i for i in standing if state.votes[i] - lowest <= self.rules.precision]
        if len(tied) == 1:
            return tied[0]
        by_name = {state.name_of(i): i for i in tied}
        return by_name[self.tie_breaker.choose_for_elimination(by_name)]

    def run_round(self, state: CountState, round_number: int) -> RoundOutcome:
        """
        Execute one round.

        Args:
            state: Run state, updated in place
            round_number: 1-based index of this round

        Returns:
            RoundOutcome with one Round row per candidate and the round's meta
        """
        logger.info(f"=== Round {round_number} ===")
        self._settle(state)

        elected_now: List[int] = []
        eliminated_now: List[int] = []
        standing = state.standing
        remaining_seats = state.remaining_seats(self.rules.seats)

        if len(standing) <= remaining_seats:
            logger.warning(
                f"{len(standing)} standing candidates for {remaining_seats} seats, "
                f"electing all remaining"
            )
            elected_now = self._election_order(state, standing)
        else:
            threshold = state.quota - self.rules.precision
            reached = [i for i in standing if state.votes[i] >= threshold]
            elected_now = self._election_order(state, reached)[:remaining_seats]

        if elected_now:
            for index in elected_now:
                state.elect(index)
                logger.info(
                    f"{state.name_of(index)} elected with {state.votes[index]:.6f} votes "
                    f"(quota {state.quota})"
                )
            self._settle(state)

            if state.remaining_seats(self.rules.seats) == 0:
                # Count is over; whoever is still standing is defeated where they stand
                for index in sorted(state.standing, key=lambda i: (state.votes[i], state.name_of(i))):
                    state.eliminate(index)
                    eliminated_now.append(index)
                    logger.info(
                        f"{state.name_of(index)} defeated with {state.votes[index]:.6f} votes"
                    )
        else:
            loser = self._lowest_standing(state)
            logger.info(f"Eliminating {state.name_of(loser)} with {state.votes[loser]:.6f} votes")
            if state.votes[loser] == 0:
                logger.warning(f"{state.name_of(loser)} eliminated without any votes")
            state.eliminate(loser)
            eliminated_now.append(loser)
            self._settle(state)

        logger.info(f"Exhausted: {state.exhausted:.6f}")

        rounds = [
            Round(
                round=round_number,
                candidate_name=state.name_of(i),
                votes=float(state.votes[i]),
                status=state.status[i].value,
            )
            for i in range(len(state.status))
        ]
        elected_names = [state.name_of(i) for i in elected_now]
        eliminated_names = [state.name_of(i) for i in eliminated_now]
        meta = RoundMeta(
            round=round_number,
            quota=float(state.quota),
            exhausted=float(state.exhausted),
            elected_this_round=elected_names or None,
            eliminated_this_round=eliminated_names or None,
        )
        return RoundOutcome(rounds, meta, elected_names, eliminated_names)
