"""Event entities."""
from typing import Optional

from oes.attendance.entities.base import Base, EnumStr
from oes.attendance.models.event import EventStatus
from sqlalchemy import CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column


class EventEntity(Base):
    """Event entity.

    Event records are owned by the events service. Only ``confirmed_count`` is
    written here.
    """

    __tablename__ = "event"

    __table_args__ = (
        CheckConstraint(
            "max_attendees IS NULL OR max_attendees > 0",
            name="max_attendees_positive",
        ),
    )

    id: Mapped[str] = mapped_column(primary_key=True)
    """The event ID."""

    status: Mapped[EnumStr] = mapped_column(default=EventStatus.active)
    """The :class:`EventStatus`."""

    max_attendees: Mapped[Optional[int]]
    """The maximum number of confirmed RSVPs, or ``None`` for no limit."""

    confirmed_count: Mapped[int] = mapped_column(default=0)
    """Cached number of confirmed RSVPs."""

    def __repr__(self):
        status = getattr(self.status, "value", self.status)
        return (
            f"<Event id={self.id} status={status} "
            f"max_attendees={self.max_attendees} "
            f"confirmed_count={self.confirmed_count}>"
        )

    @property
    def is_cancelled(self) -> bool:
        """Whether the event is cancelled."""
        return self.status == EventStatus.cancelled

    def has_capacity_for(self, confirmed: int) -> bool:
        """Whether another RSVP may be confirmed given the confirmed count."""
        return self.max_attendees is None or confirmed < self.max_attendees


class EventStatsEntity(Base):
    """Event stats."""

    __tablename__ = "event_stats"

    id: Mapped[str] = mapped_column(primary_key=True)
    """The event ID."""

    last_waitlist_position: Mapped[int] = mapped_column(default=0)
    """The most recently assigned waitlist position."""
