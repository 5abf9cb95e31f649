"""RSVP models."""
from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from attrs import frozen
from oes.attendance.models.checkin import CheckinMethod


class RsvpStatus(str, Enum):
    """RSVP status."""

    confirmed = "confirmed"
    """Holds a seat."""

    waitlisted = "waitlisted"
    """Queued for a seat."""

    cancelled = "cancelled"
    """Cancelled by the user. Terminal."""


@frozen
class RsvpSummary:
    """Aggregate RSVP counts for an event."""

    confirmed: int
    waitlisted: int
    capacity: Optional[int]
    status: Optional[RsvpStatus] = None
    """The requesting user's status, if requested."""


@frozen
class CancelResult:
    """The outcome of a cancellation."""

    promoted_user_id: Optional[str] = None
    """The user promoted from the waitlist, if any."""


@frozen
class Attendee:
    """A non-cancelled RSVP with its check-in state."""

    rsvp_id: UUID
    user_id: str
    status: RsvpStatus
    date_created: datetime
    waitlist_position: Optional[int] = None
    checked_in: bool = False
    date_checked_in: Optional[datetime] = None
    checkin_method: Optional[CheckinMethod] = None


@frozen
class AttendeeList:
    """Attendee list with totals."""

    attendees: Sequence[Attendee]
    total_confirmed: int
    total_waitlisted: int
    total_checked_in: int


@frozen
class ReconcileResult:
    """The outcome of a reconciliation pass."""

    confirmed: int
    waitlisted: int
    capacity: Optional[int]
    over_capacity: int = 0
    """Confirmed RSVPs beyond the capacity."""

    promoted_user_ids: Sequence[str] = ()
    """Users promoted to fill free seats."""
