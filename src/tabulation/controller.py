import logging
from typing import Iterable, List, Optional, Union

from .ballots import BallotLike, BallotSet, Candidate
from .errors import InvalidConfiguration
from .keep_factor import KeepFactorSolver
from .quota import calculate_quota
from .results import Round, RoundMeta, TabulationResult, TabulationStats
from .round_engine import RoundEngine
from .rules import DEFAULT_PRECISION, TabulationRules
from .state import CountState

logger = logging.getLogger(__name__)


class STVTabulator:
    """
    Meek Single Transferable Vote tabulation engine.

    Owns the counting state of one run and drives RoundEngine from round 1
    until every seat is filled. A tabulator instance is single-use; the same
    ballot set and rules always produce the same result.
    """

    def __init__(self, ballot_set: BallotSet, rules: TabulationRules):
        """
        Initialize STV tabulator.

        Args:
            ballot_set: Validated ballots and candidates for one contest
            rules: Contest rules (seats, quota formula, precision, tie-break)
        """
        if len(ballot_set.candidates) < rules.seats:
            raise InvalidConfiguration(
                f"Only {len(ballot_set.candidates)} candidates for {rules.seats} seats"
            )
        if ballot_set.contest is not None and ballot_set.contest.seats != rules.seats:
            raise InvalidConfiguration(
                f"Contest {ballot_set.contest.contest_id} has {ballot_set.contest.seats} "
                f"seats but rules specify {rules.seats}"
            )

        self.ballot_set = ballot_set
        self.rules = rules
        self.quota = calculate_quota(ballot_set.total_ballots, rules.seats, rules.quota)
        self.rounds: List[Round] = []
        self.meta: List[RoundMeta] = []
        self.winners: List[str] = []
        self.result: Optional[TabulationResult] = None

    def run_stv_tabulation(self) -> TabulationResult:
        """
        Run complete STV tabulation.

        Returns:
            TabulationResult with round rows, meta rows and summary stats
        """
        if self.result is not None:
            return self.result

        rules = self.rules
        logger.info("Starting STV tabulation")
        logger.info(f"Total valid ballots: {self.ballot_set.total_ballots}")
        logger.info(f"{rules.quota.value.title()} quota: {self.quota}")
        logger.info(f"Seats to fill: {rules.seats}")

        state = CountState(self.ballot_set, self.quota)
        solver = KeepFactorSolver(
            precision=rules.precision,
            max_iterations=rules.max_iterations,
            quota_formula=rules.quota,
            use_continuing_quota=rules.continuing_quota,
        )
        engine = RoundEngine(rules, solver, rules.make_tie_breaker())

        round_number = 1
        while len(state.elected) < rules.seats:
            outcome = engine.run_round(state, round_number)
            self.rounds.extend(outcome.rounds)
            self.meta.append(outcome.meta)
            self.winners.extend(outcome.elected)
            round_number += 1

        stats = TabulationStats(
            number_of_rounds=len(self.meta),
            winners=list(self.winners),
            seats=rules.seats,
            first_round_quota=self.meta[0].quota,
            precision=rules.precision,
        )
        self.result = TabulationResult(
            rounds=list(self.rounds),
            meta=list(self.meta),
            stats=stats,
            total_ballots=self.ballot_set.total_ballots,
        )

        logger.info("STV tabulation complete:")
        logger.info(f"Winners: {self.winners}")
        logger.info(f"Total rounds: {stats.number_of_rounds}")
        return self.result


def tabulate(
    ballots: Union[BallotSet, Iterable[BallotLike]],
    candidates: Optional[Iterable[Candidate]] = None,
    seats: Optional[int] = None,
    quota_formula: str = "droop",
    precision: float = DEFAULT_PRECISION,
    tie_break: str = "lexicographic",
    rules: Optional[TabulationRules] = None,
    **rule_overrides,
) -> TabulationResult:
    """
    Tabulate one contest.

    Args:
        ballots: A BallotSet, or ballots (Ballot objects or rank sequences of
            candidate ids) to validate against ``candidates``
        candidates: Candidates standing; required unless ``ballots`` is a BallotSet
        seats: Number of seats to fill
        quota_formula: Quota formula name
        precision: Convergence and comparison tolerance
        tie_break: Tie-break policy name
        rules: Prepared rules; when given, the individual rule arguments are ignored
        rule_overrides: Further TabulationRules fields (e.g. continuing_quota)

    Returns:
        Validated TabulationResult
    """
    if rules is None:
        if seats is None:
            raise InvalidConfiguration("seats is required")
        rules = TabulationRules.from_dict(
            dict(
                seats=seats,
                quota=quota_formula,
                precision=precision,
                tie_break=tie_break,
                **rule_overrides,
            )
        )

    if isinstance(ballots, BallotSet):
        ballot_set = ballots
    else:
        if candidates is None:
            raise InvalidConfiguration("candidates are required to validate ballots")
        ballot_set = BallotSet(candidates, ballots)

    return STVTabulator(ballot_set, rules).run_stv_tabulation().validate()
