"""Exceptions raised by the isolation forest engine."""


class PulseForestError(Exception):
    """Base class for all errors raised by pulse_iforest."""


class InvalidParameterError(PulseForestError, ValueError):
    """Raised when the engine is configured or called with unusable arguments."""


class ForestBuildCancelled(PulseForestError):
    """Raised when a forest build is cancelled between two trees."""

    def __init__(self, trees_built: int) -> None:
        super().__init__(f"forest build cancelled after {trees_built} trees")
        self.trees_built = trees_built
