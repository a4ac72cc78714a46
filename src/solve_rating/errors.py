"""Exception hierarchy for rating computation and calibration flows."""


class RatingError(Exception):
    """Base class for errors raised by the rating core."""


class RatingComputationError(RatingError):
    """A rating update could not be computed from its inputs."""


class VolatilityConvergenceError(RatingComputationError):
    """The volatility root-finder did not converge within its iteration cap."""

    def __init__(self, iterations: int, stage: str = "illinois"):
        self.iterations = iterations
        self.stage = stage
        super().__init__(
            f"Volatility solver did not converge after {iterations} iterations ({stage})"
        )


class CalibrationStateError(RatingError):
    """A calibration transition was requested on a missing or completed session."""
