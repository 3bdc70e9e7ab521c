import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import InvalidBallot, InvalidConfiguration

logger = logging.getLogger(__name__)

# Padding value in the preference matrix for ranks past a ballot's last mark
NO_CANDIDATE = -1


@dataclass(frozen=True)
class Contest:
    """Identity of the contest a ballot set belongs to."""

    election_id: str
    contest_id: str
    district_id: str
    seats: int


@dataclass(frozen=True)
class Candidate:
    """A candidate standing in one contest."""

    candidate_id: int
    name: str
    contest: Optional[Contest] = None


@dataclass(frozen=True)
class Ballot:
    """
    One voter's ranking.

    ``ranking`` lists candidate ids from rank 1 downwards. ``None`` marks a
    skipped or overvoted rank and is dropped by ``preferences``.
    """

    ballot_id: str
    ranking: Tuple[Optional[int], ...]

    @property
    def preferences(self) -> Tuple[int, ...]:
        return tuple(c for c in self.ranking if c is not None)


BallotLike = Union[Ballot, Sequence[Optional[int]]]


class BallotSet:
    """
    Validated, normalized ballots for one contest.

    Ballots with identical rankings are grouped, and the groups are packed
    into a dense preference matrix of candidate indices. Candidate index
    order is candidate id ascending; every per-candidate array used during
    counting follows it.
    """

    def __init__(
        self,
        candidates: Iterable[Candidate],
        ballots: Iterable[BallotLike],
        contest: Optional[Contest] = None,
    ):
        self.candidates: List[Candidate] = sorted(
            candidates, key=lambda c: c.candidate_id
        )
        self.contest = contest
        self._validate_candidates()
        self._index: Dict[int, int] = {
            c.candidate_id: i for i, c in enumerate(self.candidates)
        }

        self.ballots: List[Ballot] = []
        for position, ballot in enumerate(ballots, 1):
            if not isinstance(ballot, Ballot):
                ballot = Ballot(ballot_id=f"B{position}", ranking=tuple(ballot))
            self._validate_ballot(ballot)
            self.ballots.append(ballot)

        self.preferences, self.counts = self._pack()
        logger.info(
            f"Prepared {len(self.ballots)} ballots for {len(self.candidates)} "
            f"candidates ({len(self.counts)} distinct rankings)"
        )

    def _validate_candidates(self):
        ids = [c.candidate_id for c in self.candidates]
        if len(set(ids)) != len(ids):
            raise InvalidConfiguration("Candidate ids must be unique")
        names = [c.name for c in self.candidates]
        if any(not isinstance(name, str) or not name.strip() for name in names):
            raise InvalidConfiguration("Candidate names must be non-empty strings")
        if len(set(names)) != len(names):
            raise InvalidConfiguration("Candidate names must be unique")

    def _validate_ballot(self, ballot: Ballot):
        preferences = ballot.preferences
        if not preferences:
            raise InvalidBallot(
                f"Ballot {ballot.ballot_id} has no marked preferences",
                ballot.ballot_id,
            )
        seen = set()
        for candidate_id in preferences:
            if candidate_id not in self._index:
                raise InvalidBallot(
                    f"Ballot {ballot.ballot_id} ranks unknown candidate {candidate_id}",
                    ballot.ballot_id,
                )
            if candidate_id in seen:
                raise InvalidBallot(
                    f"Ballot {ballot.ballot_id} ranks candidate {candidate_id} twice",
                    ballot.ballot_id,
                )
            seen.add(candidate_id)

    def _pack(self) -> Tuple[np.ndarray, np.ndarray]:
        groups = Counter(
            tuple(self._index[c] for c in ballot.preferences) for ballot in self.ballots
        )
        rankings = sorted(groups)
        max_rank = max((len(r) for r in rankings), default=0)

        preferences = np.full((len(rankings), max_rank), NO_CANDIDATE, dtype=np.int64)
        counts = np.zeros(len(rankings), dtype=np.float64)
        for row, ranking in enumerate(rankings):
            preferences[row, : len(ranking)] = ranking
            counts[row] = groups[ranking]
        return preferences, counts

    @classmethod
    def from_long_frame(
        cls,
        frame: pd.DataFrame,
        candidates: Iterable[Candidate],
        contest: Optional[Contest] = None,
    ) -> "BallotSet":
        """
        Build a ballot set from ``ballots_long`` rows.

        Args:
            frame: DataFrame with BallotID, candidate_id, rank_position
            candidates: Candidates standing in the contest
            contest: Contest identity, if known

        Returns:
            BallotSet with one ballot per BallotID
        """
        ballots = []
        if not frame.empty:
            ordered = frame.sort_values(["BallotID", "rank_position"], kind="mergesort")
            for ballot_id, group in ordered.groupby("BallotID", sort=True):
                ranking = tuple(
                    None if pd.isna(c) else int(c) for c in group["candidate_id"]
                )
                ballots.append(Ballot(ballot_id=str(ballot_id), ranking=ranking))
        return cls(candidates, ballots, contest=contest)

    @property
    def total_ballots(self) -> int:
        return len(self.ballots)

    @property
    def candidate_names(self) -> List[str]:
        return [c.name for c in self.candidates]

    @property
    def max_rank(self) -> int:
        return self.preferences.shape[1]

    def index_of(self, candidate_id: int) -> int:
        return self._index[candidate_id]

    def __len__(self) -> int:
        return len(self.ballots)

    def __iter__(self) -> Iterator[Ballot]:
        return iter(self.ballots)
