from enum import Enum
from typing import List

import numpy as np

from .ballots import BallotSet
from .errors import InvalidStatusChange


class CandidateStatus(str, Enum):
    STANDING = "standing"
    ELECTED = "elected"
    ELIMINATED = "eliminated"


class CountState:
    """
    Mutable counting state for a single tabulation run.

    Created once per run by the controller and passed to each round; never
    shared between runs. Per-candidate arrays are indexed in the ballot set's
    candidate order (id ascending). Per-group arrays follow the rows of the
    ballot set's preference matrix.
    """

    def __init__(self, ballot_set: BallotSet, quota: float):
        candidate_count = len(ballot_set.candidates)
        group_count = len(ballot_set.counts)

        self.ballot_set = ballot_set
        self.quota = float(quota)
        self.status: List[CandidateStatus] = [CandidateStatus.STANDING] * candidate_count
        self.keep_factors = np.ones(candidate_count, dtype=np.float64)
        self.votes = np.zeros(candidate_count, dtype=np.float64)
        self.exhausted = 0.0

        # Where each ballot group currently rests and the weight that reaches it
        self.pointers = np.zeros(group_count, dtype=np.int64)
        self.weights = ballot_set.counts.copy()

        self.elected: List[int] = []
        self.eliminated: List[int] = []

    def indices_with(self, status: CandidateStatus) -> List[int]:
        return [i for i, s in enumerate(self.status) if s is status]

    @property
    def standing(self) -> List[int]:
        return self.indices_with(CandidateStatus.STANDING)

    def remaining_seats(self, seats: int) -> int:
        return seats - len(self.elected)

    def name_of(self, index: int) -> str:
        return self.ballot_set.candidates[index].name

    def elect(self, index: int):
        if self.status[index] is not CandidateStatus.STANDING:
            raise InvalidStatusChange(
                f"Cannot elect {self.name_of(index)}: {self.status[index].value}"
            )
        self.status[index] = CandidateStatus.ELECTED
        self.elected.append(index)

    def eliminate(self, index: int):
        if self.status[index] is not CandidateStatus.STANDING:
            raise InvalidStatusChange(
                f"Cannot eliminate {self.name_of(index)}: {self.status[index].value}"
            )
        self.status[index] = CandidateStatus.ELIMINATED
        self.keep_factors[index] = 0.0
        self.eliminated.append(index)
