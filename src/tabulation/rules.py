import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import InvalidConfiguration
from .quota import QuotaFormula
from .tie_break import TieBreak, TieBreaker, TieOrder

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 1e-6
DEFAULT_MAX_ITERATIONS = 1000
SUPPORTED_METHODS = ("meek",)
SUPPORTED_SURPLUS_METHODS = ("fractional",)
RULES_FILE_SUFFIXES = (".json",)


def _parse_enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidConfiguration(
            f"Unknown {field_name} '{value}' (expected one of: {allowed})"
        ) from None


@dataclass(frozen=True)
class TabulationRules:
    """Contest rules handed to the engine alongside the ballots."""

    seats: int
    method: str = "meek"
    surplus_method: str = "fractional"
    quota: QuotaFormula = QuotaFormula.DROOP
    precision: float = DEFAULT_PRECISION
    tie_break: TieBreak = TieBreak.LEXICOGRAPHIC
    election_tie_order: TieOrder = TieOrder.ASCENDING
    elimination_tie_order: TieOrder = TieOrder.ASCENDING
    continuing_quota: bool = False
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    random_seed: Optional[int] = None

    def __post_init__(self):
        # bool is an int subclass; reject it explicitly
        if isinstance(self.seats, bool) or not isinstance(self.seats, int):
            raise InvalidConfiguration(f"seats must be an integer, got {self.seats!r}")
        if self.seats <= 0:
            raise InvalidConfiguration(f"seats must be positive, got {self.seats}")

        if self.method not in SUPPORTED_METHODS:
            raise InvalidConfiguration(f"Unsupported counting method '{self.method}'")
        # Meek counting always transfers fractional weight
        if self.surplus_method not in SUPPORTED_SURPLUS_METHODS:
            raise InvalidConfiguration(
                f"Unsupported surplus method '{self.surplus_method}'"
            )

        object.__setattr__(self, "quota", _parse_enum(QuotaFormula, self.quota, "quota"))
        object.__setattr__(
            self, "tie_break", _parse_enum(TieBreak, self.tie_break, "tie_break")
        )
        object.__setattr__(
            self,
            "election_tie_order",
            _parse_enum(TieOrder, self.election_tie_order, "election_tie_order"),
        )
        object.__setattr__(
            self,
            "elimination_tie_order",
            _parse_enum(TieOrder, self.elimination_tie_order, "elimination_tie_order"),
        )

        if isinstance(self.precision, bool) or not isinstance(
            self.precision, (int, float)
        ):
            raise InvalidConfiguration(
                f"precision must be a number, got {self.precision!r}"
            )
        if not self.precision > 0:
            raise InvalidConfiguration(
                f"precision must be positive, got {self.precision}"
            )
        object.__setattr__(self, "precision", float(self.precision))

        if not isinstance(self.continuing_quota, bool):
            raise InvalidConfiguration("continuing_quota must be true or false")

        if (
            isinstance(self.max_iterations, bool)
            or not isinstance(self.max_iterations, int)
            or self.max_iterations <= 0
        ):
            raise InvalidConfiguration(
                f"max_iterations must be a positive integer, got {self.max_iterations!r}"
            )

        if self.random_seed is not None and (
            isinstance(self.random_seed, bool) or not isinstance(self.random_seed, int)
        ):
            raise InvalidConfiguration("random_seed must be an integer")
        if self.tie_break is TieBreak.RANDOM and self.random_seed is None:
            raise InvalidConfiguration("tie_break 'random' requires random_seed")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TabulationRules":
        """Build rules from a plain rules object, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfiguration(f"Unknown rule keys: {', '.join(unknown)}")
        if "seats" not in data:
            raise InvalidConfiguration("Rules must specify seats")
        return cls(**data)

    @classmethod
    def from_json(cls, path, **overrides) -> "TabulationRules":
        """
        Load rules from a JSON file.

        Args:
            path: Path to JSON rules file
            overrides: Values that replace the file's entries (e.g. from CLI flags)

        Raises:
            InvalidConfiguration: if the file is not a ``.json`` rules object
        """
        rules_path = Path(path)
        if rules_path.suffix.lower() not in RULES_FILE_SUFFIXES:
            raise InvalidConfiguration(
                f"Rules file {rules_path} must be JSON; convert YAML rules to a "
                f"JSON object with the same keys"
            )
        logger.info(f"Loading rules from: {rules_path}")
        try:
            with open(rules_path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfiguration(f"Rules file {rules_path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"Rules file {rules_path} must hold an object")
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(data)

    def make_tie_breaker(self) -> TieBreaker:
        """Create a fresh tie breaker for one tabulation run."""
        return TieBreaker(
            policy=self.tie_break,
            election_order=self.election_tie_order,
            elimination_order=self.elimination_tie_order,
            random_seed=self.random_seed,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("quota", "tie_break", "election_tie_order", "elimination_tie_order"):
            data[key] = data[key].value
        return data
