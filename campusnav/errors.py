"""Error kinds raised inside campusnav.

All of them are contained by the component that detects them; nothing here is
expected to reach a global handler.
"""

from __future__ import annotations


class CampusNavError(Exception):
    """Base class for campusnav errors."""


class ValidationError(CampusNavError, ValueError):
    """A config document or entity breaks a data-model invariant."""


class InvalidInputError(CampusNavError, ValueError):
    """User-entered coordinates are missing, non-numeric or out of range."""


class RoutingRequestFailure(CampusNavError):
    """The outdoor routing service failed or timed out."""


class NotFoundError(CampusNavError, LookupError):
    """A building, floor, room or location id has no match."""
