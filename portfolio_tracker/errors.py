"""Tracker error taxonomy."""


class TrackerError(Exception):
    """Base class for all tracker failures."""


class Unauthorized(TrackerError):
    """A non-owner called a privileged operation."""


class InvalidInput(TrackerError):
    """Empty name, missing feed, zero amount or price."""


class NotFound(TrackerError):
    """Reference to a class id that was never created."""


class InvalidState(TrackerError):
    """Operation not allowed in the current state (inactive class, re-init)."""


class InsufficientHoldings(InvalidState):
    """Sell amount exceeds principal plus staking rewards."""


class ExternalSourceUnavailable(TrackerError):
    """A price feed could not produce a trusted reading."""
