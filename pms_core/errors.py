"""
Error Taxonomy
==============

Exceptions raised by the booking engine and the channel manager. The HTTP
layer maps each class to a status code in ``pms_core.app``.
"""

from typing import Any, List, Optional


class PMSError(Exception):
    """Base exception for PMS-Core operations."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class Unauthenticated(PMSError):
    """No caller identity was supplied."""

    def __init__(self, message: str = "Must be logged in"):
        super().__init__(message)


class NotFound(PMSError):
    """A property, booking or block does not exist."""


class Unauthorized(PMSError):
    """The caller is not the host of the resource."""


class Unavailable(PMSError):
    """The requested date range overlaps an existing block."""

    def __init__(self, message: str, conflicts: Optional[List[Any]] = None):
        super().__init__(message)
        self.conflicts = conflicts or []


class InvalidTransition(PMSError):
    """The requested state change is not allowed."""


class ExternalSyncFailure(PMSError):
    """A push to an external platform failed.

    Raised and caught inside the sync engine only; recorded in the sync log.
    """

    def __init__(self, platform: str, message: str):
        super().__init__(message)
        self.platform = platform


class InvalidRequest(PMSError):
    """The request is malformed (e.g. check-out not after check-in)."""
