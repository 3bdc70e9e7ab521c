"""
Tabulation module for ranked-choice multi-seat contests.

This module provides a Meek Single Transferable Vote engine:
- tabulate / STVTabulator: round-by-round count with winners and stats
- BallotSet: validated ballots for one contest
- TabulationRules: contest rules (seats, quota, precision, tie-break)

The engine performs no I/O; identical inputs always give identical output.
"""

from .ballots import Ballot, BallotSet, Candidate, Contest
from .controller import STVTabulator, tabulate
from .errors import (
    ContractViolation,
    ConvergenceFailure,
    InvalidBallot,
    InvalidConfiguration,
    InvalidStatusChange,
    TabulationError,
    TieUnresolved,
)
from .quota import QuotaFormula, calculate_quota, droop_quota
from .results import Round, RoundMeta, TabulationResult, TabulationStats
from .rules import TabulationRules
from .tie_break import TieBreak, TieBreaker, TieOrder

__all__ = [
    "tabulate",
    "STVTabulator",
    "Ballot",
    "BallotSet",
    "Candidate",
    "Contest",
    "TabulationRules",
    "QuotaFormula",
    "calculate_quota",
    "droop_quota",
    "TieBreak",
    "TieBreaker",
    "TieOrder",
    "Round",
    "RoundMeta",
    "TabulationStats",
    "TabulationResult",
    "TabulationError",
    "InvalidConfiguration",
    "InvalidBallot",
    "InvalidStatusChange",
    "ConvergenceFailure",
    "TieUnresolved",
    "ContractViolation",
]
