"""RSVP ledger service."""
from collections.abc import Sequence
from datetime import datetime
from typing import Optional
from uuid import UUID

from oes.attendance.entities.rsvp import RsvpEntity
from oes.attendance.errors import ConflictError
from oes.attendance.models.rsvp import RsvpStatus
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession


class RsvpService:
    """RSVP ledger service.

    Every method is a single statement. Conditional updates return whether they
    matched so callers can detect concurrent changes.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_rsvp(self, event_id: str, user_id: str) -> Optional[RsvpEntity]:
        """Get the RSVP for an event and user, including cancelled RSVPs."""
        q = (
            select(RsvpEntity)
            .where(RsvpEntity.event_id == event_id, RsvpEntity.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def create_rsvp(self, rsvp: RsvpEntity):
        """Insert a new RSVP.

        Raises:
            ConflictError: If the user already has an RSVP for the event.
        """
        self.db.add(rsvp)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise ConflictError("Already RSVP'd for this event") from e

    async def delete_rsvp(self, rsvp: RsvpEntity):
        """Delete an RSVP."""
        await self.db.delete(rsvp)
        await self.db.flush()

    async def count_rsvps(self, event_id: str, status: RsvpStatus) -> int:
        """Count the RSVPs for an event with the given status."""
        q = (
            select(func.count())
            .select_from(RsvpEntity)
            .where(RsvpEntity.event_id == event_id, RsvpEntity.status == status)
        )
        res = await self.db.execute(q)
        return res.scalar_one()

    async def get_next_waitlisted(self, event_id: str) -> Optional[RsvpEntity]:
        """Get the waitlisted RSVP with the lowest position."""
        q = (
            select(RsvpEntity)
            .where(
                RsvpEntity.event_id == event_id,
                RsvpEntity.status == RsvpStatus.waitlisted,
            )
            .order_by(RsvpEntity.waitlist_position, RsvpEntity.date_created)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def list_waitlist(self, event_id: str) -> Sequence[RsvpEntity]:
        """List waitlisted RSVPs in promotion order."""
        q = (
            select(RsvpEntity)
            .where(
                RsvpEntity.event_id == event_id,
                RsvpEntity.status == RsvpStatus.waitlisted,
            )
            .order_by(RsvpEntity.waitlist_position, RsvpEntity.date_created)
        )
        res = await self.db.execute(q)
        return res.scalars().all()

    async def list_active_rsvps(self, event_id: str) -> Sequence[RsvpEntity]:
        """List confirmed and waitlisted RSVPs."""
        q = (
            select(RsvpEntity)
            .where(
                RsvpEntity.event_id == event_id,
                RsvpEntity.status != RsvpStatus.cancelled,
            )
            .order_by(RsvpEntity.date_created)
        )
        res = await self.db.execute(q)
        return res.scalars().all()

    async def mark_cancelled(
        self, id: UUID, expected_status: RsvpStatus, now: datetime
    ) -> bool:
        """Cancel an RSVP if its status is still ``expected_status``.

        Returns:
            Whether the RSVP was cancelled.
        """
        q = (
            update(RsvpEntity)
            .where(RsvpEntity.id == id, RsvpEntity.status == expected_status)
            .values(
                status=RsvpStatus.cancelled,
                waitlist_position=None,
                date_cancelled=now,
            )
            .returning(RsvpEntity.id)
            .execution_options(synchronize_session="fetch")
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none() is not None

    async def promote(self, id: UUID) -> Optional[str]:
        """Confirm a waitlisted RSVP if it is still waitlisted.

        Returns:
            The promoted user ID, or ``None`` if the RSVP was no longer waitlisted.
        """
        q = (
            update(RsvpEntity)
            .where(RsvpEntity.id == id, RsvpEntity.status == RsvpStatus.waitlisted)
            .values(status=RsvpStatus.confirmed, waitlist_position=None)
            .returning(RsvpEntity.user_id)
            .execution_options(synchronize_session="fetch")
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none()
