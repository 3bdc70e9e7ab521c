import logging
from enum import Enum
from typing import Iterable, List, Optional

import numpy as np

from .errors import InvalidConfiguration, TieUnresolved

logger = logging.getLogger(__name__)


class TieBreak(str, Enum):
    """Tie-break policies selectable through the ``tie_break`` rule."""

    LEXICOGRAPHIC = "lexicographic"
    RANDOM = "random"


class TieOrder(str, Enum):
    """Which end of the ordering is picked first."""

    ASCENDING = "ascending"
    DESCENDING = "descending"


class TieBreaker:
    """
    Resolves choices that the vote totals cannot decide.

    Lexicographic ordering compares display names. The direction is set
    separately for elections and eliminations, so with the defaults the
    alphabetically-first name is both eliminated first and elected first.
    The random policy shuffles the sorted names with a seeded generator
    owned by this instance, so one tabulation run draws in a fixed sequence.
    """

    def __init__(
        self,
        policy: TieBreak = TieBreak.LEXICOGRAPHIC,
        election_order: TieOrder = TieOrder.ASCENDING,
        elimination_order: TieOrder = TieOrder.ASCENDING,
        random_seed: Optional[int] = None,
    ):
        self.policy = TieBreak(policy)
        self.election_order = TieOrder(election_order)
        self.elimination_order = TieOrder(elimination_order)
        self._rng = None
        if self.policy is TieBreak.RANDOM:
            if random_seed is None:
                raise InvalidConfiguration("Random tie-break requires a random_seed")
            self._rng = np.random.default_rng(random_seed)

    def _order(self, names: Iterable[str], direction: TieOrder) -> List[str]:
        tied = list(names)
        if not tied:
            raise TieUnresolved("Tie-break called with no candidates")
        if len(set(tied)) != len(tied):
            raise TieUnresolved(f"Tied candidates share a name: {sorted(tied)}")

        ordered = sorted(tied)
        if self.policy is TieBreak.RANDOM:
            ordered = [ordered[i] for i in self._rng.permutation(len(ordered))]
        elif direction is TieOrder.DESCENDING:
            ordered.reverse()
        return ordered

    def order_for_election(self, names: Iterable[str]) -> List[str]:
        """Order tied candidates so the first one is elected first."""
        return self._order(names, self.election_order)

    def choose_for_election(self, names: Iterable[str]) -> str:
        choice = self.order_for_election(names)[0]
        logger.info(f"Election tie broken ({self.policy.value}): {choice}")
        return choice

    def choose_for_elimination(self, names: Iterable[str]) -> str:
        choice = self._order(names, self.elimination_order)[0]
        logger.info(f"Elimination tie broken ({self.policy.value}): {choice}")
        return choice
