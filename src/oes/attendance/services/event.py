"""Event service."""
from typing import Optional

from oes.attendance.entities.event import EventEntity, EventStatsEntity
from sqlalchemy import or_, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession


class EventService:
    """Event service."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_event(self, id: str, *, lock: bool = False) -> Optional[EventEntity]:
        """Get an :class:`EventEntity` by ID.

        Args:
            id: The event ID.
            lock: Whether to lock the row. A locked read always reloads the row.
        """
        return await self.db.get(
            EventEntity, id, with_for_update=lock, populate_existing=lock
        )

    async def claim_seat(self, id: str) -> Optional[int]:
        """Increment the confirmed count if the event is under capacity.

        The capacity check and the increment are a single statement.

        Returns:
            The new confirmed count, or ``None`` if the event is full.
        """
        q = (
            update(EventEntity)
            .where(
                EventEntity.id == id,
                or_(
                    EventEntity.max_attendees.is_(None),
                    EventEntity.confirmed_count < EventEntity.max_attendees,
                ),
            )
            .values(confirmed_count=EventEntity.confirmed_count + 1)
            .returning(EventEntity.confirmed_count)
            .execution_options(synchronize_session="fetch")
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def set_confirmed_count(self, id: str, count: int):
        """Overwrite the cached confirmed count."""
        q = (
            update(EventEntity)
            .where(EventEntity.id == id)
            .values(confirmed_count=count)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.execute(q)

    async def next_waitlist_position(self, id: str) -> int:
        """Assign the next waitlist position for an event.

        Positions start at 1 and strictly increase. Creating the sequence and
        advancing it are a single statement.
        """
        q = insert(EventStatsEntity).values(id=id, last_waitlist_position=1)
        q = q.on_conflict_do_update(
            index_elements=[EventStatsEntity.id],
            set_={
                "last_waitlist_position": EventStatsEntity.last_waitlist_position + 1
            },
        ).returning(EventStatsEntity.last_waitlist_position)
        res = await self.db.execute(q)
        return res.scalar_one()
