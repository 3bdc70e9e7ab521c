import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import pandas as pd

from .errors import ContractViolation

logger = logging.getLogger(__name__)

ROUND_FIELDS = ("round", "candidate_name", "votes", "status")
META_FIELDS = ("round", "quota", "exhausted", "elected_this_round", "eliminated_this_round")
STATS_FIELDS = ("number_of_rounds", "winners", "seats", "first_round_quota", "precision")
STATUSES = ("standing", "elected", "eliminated")


@dataclass(frozen=True)
class Round:
    """One candidate's standing at the end of one round."""

    round: int
    candidate_name: str
    votes: float
    status: str


@dataclass(frozen=True)
class RoundMeta:
    """Round-level bookkeeping: quota, exhausted weight, decisions taken."""

    round: int
    quota: float
    exhausted: float
    elected_this_round: Optional[List[str]]
    eliminated_this_round: Optional[List[str]]


@dataclass(frozen=True)
class TabulationStats:
    number_of_rounds: int
    winners: List[str]
    seats: int
    first_round_quota: float
    precision: float


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _check_fields(row: Dict[str, Any], expected, kind: str):
    if set(row) != set(expected):
        raise ContractViolation(
            f"{kind} row has fields {sorted(row)}, expected {list(expected)}"
        )


def _check_name_list(value, field: str):
    if value is None:
        return
    if not isinstance(value, list) or not all(
        isinstance(name, str) and name for name in value
    ):
        raise ContractViolation(f"{field} must be null or a list of names, got {value!r}")


def validate_round_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check one round row against the published shape.

    Raises:
        ContractViolation: if a field is missing, extra, or out of range
    """
    _check_fields(row, ROUND_FIELDS, "Round")
    if not _is_positive_int(row["round"]):
        raise ContractViolation(f"round must be a positive integer, got {row['round']!r}")
    if not isinstance(row["candidate_name"], str) or not row["candidate_name"]:
        raise ContractViolation("candidate_name must be a non-empty string")
    if not _is_number(row["votes"]) or row["votes"] < 0:
        raise ContractViolation(f"votes must be non-negative, got {row['votes']!r}")
    if row["status"] not in STATUSES:
        raise ContractViolation(f"status must be one of {STATUSES}, got {row['status']!r}")
    return row


def validate_meta_row(row: Dict[str, Any]) -> Dict[str, Any]:
    _check_fields(row, META_FIELDS, "Meta")
    if not _is_positive_int(row["round"]):
        raise ContractViolation(f"round must be a positive integer, got {row['round']!r}")
    if not _is_number(row["quota"]) or row["quota"] <= 0:
        raise ContractViolation(f"quota must be positive, got {row['quota']!r}")
    if not _is_number(row["exhausted"]) or row["exhausted"] < 0:
        raise ContractViolation(f"exhausted must be non-negative, got {row['exhausted']!r}")
    _check_name_list(row["elected_this_round"], "elected_this_round")
    _check_name_list(row["eliminated_this_round"], "eliminated_this_round")
    return row


def validate_stats(stats: Dict[str, Any]) -> Dict[str, Any]:
    _check_fields(stats, STATS_FIELDS, "Stats")
    if not _is_positive_int(stats["number_of_rounds"]):
        raise ContractViolation("number_of_rounds must be a positive integer")
    if not _is_positive_int(stats["seats"]):
        raise ContractViolation("seats must be a positive integer")
    _check_name_list(stats["winners"], "winners")
    if stats["winners"] is None:
        raise ContractViolation("winners must be a list")
    for field in ("first_round_quota", "precision"):
        if not _is_number(stats[field]) or stats[field] <= 0:
            raise ContractViolation(f"{field} must be positive, got {stats[field]!r}")
    return stats


@dataclass(frozen=True)
class TabulationResult:
    """Everything a tabulation run produces."""

    rounds: List[Round]
    meta: List[RoundMeta]
    stats: TabulationStats
    total_ballots: int

    def to_records(self) -> Dict[str, Any]:
        return {
            "rounds": [asdict(r) for r in self.rounds],
            "meta": [asdict(m) for m in self.meta],
            "stats": asdict(self.stats),
        }

    def validate(self) -> "TabulationResult":
        """
        Validate every row plus the cross-row invariants.

        Round indices must run 1..n without gaps, and in every round the
        candidates' votes plus exhausted weight must equal the number of
        valid ballots to within precision.
        """
        records = self.to_records()
        for row in records["rounds"]:
            validate_round_row(row)
        for row in records["meta"]:
            validate_meta_row(row)
        validate_stats(records["stats"])

        expected = list(range(1, self.stats.number_of_rounds + 1))
        if [m.round for m in self.meta] != expected:
            raise ContractViolation("Meta round indices are not contiguous from 1")
        if sorted({r.round for r in self.rounds}) != expected:
            raise ContractViolation("Round indices are not contiguous from 1")

        tolerance = max(self.stats.precision, 1e-9) * max(1, len(self.stats.winners))
        for meta in self.meta:
            held = math.fsum(r.votes for r in self.rounds if r.round == meta.round)
            if abs(held + meta.exhausted - self.total_ballots) > tolerance:
                raise ContractViolation(
                    f"Round {meta.round} does not conserve votes: "
                    f"{held} + {meta.exhausted} != {self.total_ballots}"
                )
        return self

    @property
    def winners(self) -> List[str]:
        return list(self.stats.winners)

    def get_round_summary(self) -> pd.DataFrame:
        """
        Get summary of all rounds as a DataFrame.

        Returns:
            DataFrame with round-by-round results joined to round quota and
            exhausted weight
        """
        if not self.rounds:
            return pd.DataFrame()
        rounds = pd.DataFrame([asdict(r) for r in self.rounds])
        meta = self.get_meta_frame()[["round", "quota", "exhausted"]]
        return rounds.merge(meta, on="round", how="left").rename(
            columns={"exhausted": "exhausted_votes"}
        )

    def get_meta_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(m) for m in self.meta], columns=list(META_FIELDS))

    def get_final_results(self) -> pd.DataFrame:
        """
        Get final election results.

        Returns:
            DataFrame with each candidate's final votes, status and, for
            winners, the round they were elected in
        """
        if not self.rounds:
            return pd.DataFrame()

        election_round = {}
        for meta in self.meta:
            for name in meta.elected_this_round or []:
                election_round[name] = meta.round

        final_round = self.stats.number_of_rounds
        results_data = [
            {
                "candidate_name": r.candidate_name,
                "final_votes": r.votes,
                "status": r.status,
                "election_round": election_round.get(r.candidate_name),
            }
            for r in self.rounds
            if r.round == final_round
        ]
        return pd.DataFrame(results_data).sort_values(
            ["final_votes", "candidate_name"], ascending=[False, True], kind="mergesort"
        )
