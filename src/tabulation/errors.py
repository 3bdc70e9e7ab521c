"""Error kinds raised by the tabulation engine.

All of them are fatal for the current run. The engine is a pure function of
its inputs, so nothing here is ever retried.
"""


class TabulationError(Exception):
    """Base class for every error the engine raises."""


class InvalidConfiguration(TabulationError):
    """Bad seats, precision, quota formula or other rule value."""


class InvalidBallot(TabulationError):
    """A ballot references an unknown candidate or ranks one twice."""

    def __init__(self, message: str, ballot_id=None):
        super().__init__(message)
        self.ballot_id = ballot_id


class ConvergenceFailure(TabulationError):
    """The keep factor iteration did not settle within its budget."""

    def __init__(self, message: str, iterations: int, deviation: float):
        super().__init__(message)
        self.iterations = iterations
        self.deviation = deviation


class TieUnresolved(TabulationError):
    """A tie could not be ordered. Indicates a bug, not a data problem."""


class ContractViolation(TabulationError):
    """An output row does not match the published row shape."""


class InvalidStatusChange(TabulationError):
    """A candidate left a final status. Indicates a bug, not a data problem."""
