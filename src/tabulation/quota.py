import logging
import math
from enum import Enum

from .errors import InvalidConfiguration

logger = logging.getLogger(__name__)


class QuotaFormula(str, Enum):
    """Quota formulas selectable through the ``quota`` rule."""

    DROOP = "droop"


def droop_quota(total_votes: float, seats: int) -> int:
    """
    Calculate Droop quota: floor(total_votes / (seats + 1)) + 1

    >>> droop_quota(100, 2)
    34
    >>> droop_quota(4, 1)
    3
    """
    return int(math.floor(total_votes / (seats + 1))) + 1


_FORMULAS = {
    QuotaFormula.DROOP: droop_quota,
}


def calculate_quota(
    total_votes: int, seats: int, formula: QuotaFormula = QuotaFormula.DROOP
) -> int:
    """
    Calculate the election quota for the first round.

    Args:
        total_votes: Number of valid ballots
        seats: Number of seats to fill
        formula: Quota formula to apply

    Returns:
        Quota value

    Raises:
        InvalidConfiguration: if seats is not positive or there are fewer
            valid ballots than seats
    """
    if seats <= 0:
        raise InvalidConfiguration(f"Seats must be positive, got {seats}")
    if total_votes < 0:
        raise InvalidConfiguration(f"Total votes cannot be negative: {total_votes}")
    if total_votes < seats:
        raise InvalidConfiguration(
            f"Cannot fill {seats} seats with only {total_votes} valid ballots"
        )
    return _FORMULAS[QuotaFormula(formula)](total_votes, seats)


def continuing_quota(
    active_votes: float, seats: int, formula: QuotaFormula = QuotaFormula.DROOP
) -> int:
    """Quota recomputed from the weight still held by candidates."""
    return max(_FORMULAS[QuotaFormula(formula)](max(active_votes, 0.0), seats), 1)
