"""Attendance error types.

Every error here is a permanent outcome for the current state of the ledger.
None of them are retried by the service.
"""
from typing import ClassVar


class AttendanceError(Exception):
    """Base class for caller-visible attendance errors."""

    code: ClassVar[str] = "error"
    """Stable error category."""

    status: ClassVar[int] = 400
    """The HTTP status this error maps to."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(AttendanceError):
    """The entity does not exist."""

    code = "not_found"
    status = 404


class InvalidStateError(AttendanceError):
    """The operation is not valid in the entity's current lifecycle state."""

    code = "invalid_state"
    status = 409


class ConflictError(AttendanceError):
    """The action was already performed."""

    code = "conflict"
    status = 409


class GoneError(AttendanceError):
    """The resource is permanently unavailable."""

    code = "gone"
    status = 410
