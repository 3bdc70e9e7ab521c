import logging
from typing import Dict

from pyrankvote import Ballot, Candidate, single_transferable_vote

from .ballots import BallotSet
from .results import TabulationResult

logger = logging.getLogger(__name__)


def run_pyrankvote(ballot_set: BallotSet, seats: int):
    """
    Count the same ballots with PyRankVote's STV implementation.

    Args:
        ballot_set: Ballots to count
        seats: Number of seats to fill

    Returns:
        PyRankVote ElectionResults
    """
    candidates_map = {c.candidate_id: Candidate(c.name) for c in ballot_set.candidates}
    ballots = [
        Ballot(ranked_candidates=[candidates_map[c] for c in ballot.preferences])
        for ballot in ballot_set
    ]
    logger.info(
        f"Running PyRankVote STV with {len(candidates_map)} candidates, "
        f"{len(ballots)} ballots, {seats} seats"
    )
    return single_transferable_vote(
        candidates=list(candidates_map.values()),
        ballots=ballots,
        number_of_seats=seats,
    )


def cross_check_winners(
    ballot_set: BallotSet, seats: int, result: TabulationResult
) -> Dict:
    """
    Compare our winners with an independent STV count.

    PyRankVote transfers surpluses differently from Meek counting, so a
    mismatch is a signal to inspect the contest rather than proof of a bug.

    Returns:
        Report dictionary with both winner lists and the differences
    """
    if seats >= len(ballot_set.candidates):
        reference_winners = list(ballot_set.candidate_names)
    else:
        election = run_pyrankvote(ballot_set, seats)
        reference_winners = [winner.name for winner in election.get_winners()]

    ours = set(result.winners)
    reference = set(reference_winners)
    report = {
        "winners_match": ours == reference,
        "our_winners": result.winners,
        "reference_winners": reference_winners,
        "missing_winners": sorted(reference - ours),
        "extra_winners": sorted(ours - reference),
    }

    if report["winners_match"]:
        logger.info("Winners agree with PyRankVote")
    else:
        logger.warning(
            f"Winners differ from PyRankVote: missing {report['missing_winners']}, "
            f"extra {report['extra_winners']}"
        )
    return report
