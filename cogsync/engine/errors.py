"""Exceptions raised by the aggregation engine."""


class CogsyncError(Exception):
    """Base class for engine errors."""


class ProfileComputationError(CogsyncError):
    """Recomputing one person's profile failed; nothing was written."""

    def __init__(self, person_id: str, reason: str):
        self.person_id = person_id
        self.reason = reason
        super().__init__(f"Profile computation failed for {person_id}: {reason}")


class PopulationUnavailableError(CogsyncError):
    """The set of people could not be enumerated."""
