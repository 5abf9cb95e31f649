"""RSVP entities."""
from datetime import datetime
from typing import Optional

from oes.attendance.entities.base import PKUUID, Base, EnumStr, EventRef
from oes.attendance.models.rsvp import RsvpStatus
from oes.attendance.util import get_now
from sqlalchemy import Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column


class RsvpEntity(Base):
    """RSVP entity.

    There is at most one row per event and user. Cancelled rows are kept until
    the user RSVPs again.
    """

    __tablename__ = "rsvp"

    __table_args__ = (
        UniqueConstraint("event_id", "user_id"),
        Index("ix_rsvp_event_id_status", "event_id", "status"),
    )

    id: Mapped[PKUUID]
    """The RSVP ID."""

    event_id: Mapped[EventRef]
    """The event ID."""

    user_id: Mapped[str]
    """The user ID."""

    status: Mapped[EnumStr]
    """The :class:`RsvpStatus`."""

    waitlist_position: Mapped[Optional[int]]
    """Promotion order, only set while waitlisted."""

    date_created: Mapped[datetime] = mapped_column(default=lambda: get_now())
    """When the RSVP was made."""

    date_cancelled: Mapped[Optional[datetime]]
    """When the RSVP was cancelled."""

    def __repr__(self):
        return (
            f"<RSVP id={self.id} event_id={self.event_id} user_id={self.user_id} "
            f"status={self.get_status().value}"
            + (
                f" waitlist_position={self.waitlist_position}"
                if self.waitlist_position is not None
                else ""
            )
            + ">"
        )

    @property
    def is_active(self) -> bool:
        """Whether the RSVP is confirmed or waitlisted."""
        return self.status != RsvpStatus.cancelled

    def get_status(self) -> RsvpStatus:
        """Get the status as a :class:`RsvpStatus`."""
        return RsvpStatus(self.status)
