"""
Exception taxonomy for the tournament engine.

Every error raised by the engine derives from TourneyError and is surfaced
to the caller unmodified; the surrounding service layer decides whether to
retry or report.
"""


class TourneyError(Exception):
    """Base exception for the tournament engine."""

    def __init__(self, message: str = "Tournament engine error"):
        self.message = message
        super().__init__(self.message)


class InvalidArgumentError(TourneyError):
    """Malformed or out-of-range input (e.g. too few participants)."""


class InvalidStateError(TourneyError):
    """Operation attempted in the wrong lifecycle state."""


class NotFoundError(TourneyError):
    """Referenced tournament, match, dispute or arbiter does not exist."""


class ConflictError(TourneyError):
    """Concurrent mutation detected or a one-shot operation repeated."""


class CapacityError(ConflictError):
    """Tournament already holds max_participants entries."""


class UnsupportedFormatError(TourneyError, NotImplementedError):
    """Tournament format or pairing policy the engine does not implement."""
