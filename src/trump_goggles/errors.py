"""Failure taxonomy for the conversion pipeline.

These exceptions never cross a public component boundary.  Each is raised
inside the component that detects the failure and caught by the same
component's public operation, which logs it and degrades to a no-op
(``False``, ``0``, the unmodified text).
"""

from __future__ import annotations


class GogglesError(Exception):
    """Base class for pipeline failures."""


class InvalidNodeError(GogglesError):
    """An operation was attempted on a non-text or detached node."""


class PatternApplicationError(GogglesError):
    """A single pattern raised or misbehaved while matching."""

    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"pattern {key!r} failed: {cause}")
        self.key = key
        self.cause = cause


class ObserverCallbackError(GogglesError):
    """The mutation callback raised while handling a batch."""


class OperationBudgetExceeded(GogglesError):
    """The per-page operation ceiling was reached."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"operation budget of {limit} exhausted")
        self.limit = limit
