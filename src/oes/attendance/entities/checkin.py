"""Check-in entities."""
import secrets
from datetime import datetime
from typing import Optional
from uuid import UUID

from oes.attendance.entities.base import PKUUID, Base, EnumStr, EventRef
from oes.attendance.models.checkin import CODE_CHARS, CODE_LENGTH, CheckinMethod
from oes.attendance.util import get_now
from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

CHECKIN_CODE_MAX_LEN = 16
"""Max length of a check-in code."""


class CheckinCodeEntity(Base):
    """Check-in code entity."""

    __tablename__ = "checkin_code"

    id: Mapped[PKUUID]
    """The code ID."""

    event_id: Mapped[EventRef]
    """The event ID."""

    code: Mapped[str] = mapped_column(String(CHECKIN_CODE_MAX_LEN), unique=True)
    """The code."""

    created_by: Mapped[str]
    """The user who created the code."""

    date_created: Mapped[datetime] = mapped_column(default=lambda: get_now())
    """The date the code was created."""

    max_uses: Mapped[Optional[int]]
    """How many times the code may be redeemed, or ``None`` for no limit."""

    current_uses: Mapped[int] = mapped_column(default=0)
    """How many times the code has been redeemed."""

    date_expires: Mapped[Optional[datetime]]
    """The expiration date."""

    def __repr__(self):
        return (
            f"<CheckinCode id={self.id} event_id={self.event_id} code={self.code} "
            f"current_uses={self.current_uses} max_uses={self.max_uses}>"
        )

    def is_expired(self, *, now: Optional[datetime] = None) -> bool:
        """Whether the code's expiration date has passed."""
        now = now if now is not None else get_now()
        return self.date_expires is not None and self.date_expires < now

    def is_exhausted(self) -> bool:
        """Whether the code's usage limit is reached."""
        return self.max_uses is not None and self.current_uses >= self.max_uses


class CheckinEntity(Base):
    """Check-in entity.

    There is at most one check-in per event and user.
    """

    __tablename__ = "checkin"

    __table_args__ = (UniqueConstraint("event_id", "user_id"),)

    id: Mapped[PKUUID]
    """The check-in ID."""

    event_id: Mapped[EventRef]
    """The event ID."""

    user_id: Mapped[str]
    """The user ID."""

    checkin_code_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("checkin_code.id", ondelete="SET NULL")
    )
    """The code that was redeemed."""

    method: Mapped[EnumStr] = mapped_column(default=CheckinMethod.link)
    """The :class:`CheckinMethod` used to reach the code."""

    date_checked_in: Mapped[datetime] = mapped_column(default=lambda: get_now())
    """When the user checked in."""

    def __repr__(self):
        method = getattr(self.method, "value", self.method)
        return (
            f"<Checkin id={self.id} event_id={self.event_id} user_id={self.user_id} "
            f"method={method}>"
        )


def generate_code() -> str:
    """Generate a check-in code."""
    return "".join(secrets.choice(CODE_CHARS) for _ in range(CODE_LENGTH))
