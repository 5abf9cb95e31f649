"""Check-in code registry and check-in ledger service."""
from collections.abc import Sequence
from datetime import datetime
from typing import Optional
from uuid import UUID

from oes.attendance.entities.checkin import (
    CheckinCodeEntity,
    CheckinEntity,
    generate_code,
)
from oes.attendance.errors import ConflictError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

MAX_CODE_ATTEMPTS = 10
"""How many codes to try before giving up on finding an unused one."""


class CheckinService:
    """Check-in service."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_code(self, code: str) -> Optional[CheckinCodeEntity]:
        """Get a :class:`CheckinCodeEntity` by its code."""
        q = (
            select(CheckinCodeEntity)
            .where(CheckinCodeEntity.code == code)
            .execution_options(populate_existing=True)
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def get_code_by_id(self, id: UUID) -> Optional[CheckinCodeEntity]:
        """Get a :class:`CheckinCodeEntity` by ID."""
        return await self.db.get(CheckinCodeEntity, id)

    async def create_code(
        self,
        event_id: str,
        created_by: str,
        *,
        max_uses: Optional[int] = None,
        date_expires: Optional[datetime] = None,
    ) -> CheckinCodeEntity:
        """Create a check-in code with a newly generated, unused code."""
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_code()
            if await self.get_code(code) is None:
                break
        else:
            raise RuntimeError("Could not generate an unused check-in code")

        entity = CheckinCodeEntity(
            event_id=event_id,
            code=code,
            created_by=created_by,
            max_uses=max_uses,
            current_uses=0,
            date_expires=date_expires,
        )
        self.db.add(entity)
        await self.db.flush()
        return entity

    async def list_codes(self, event_id: str) -> Sequence[CheckinCodeEntity]:
        """List the check-in codes for an event."""
        q = (
            select(CheckinCodeEntity)
            .where(CheckinCodeEntity.event_id == event_id)
            .order_by(CheckinCodeEntity.date_created.desc())
        )
        res = await self.db.execute(q)
        return res.scalars().all()

    async def delete_code(self, code: CheckinCodeEntity):
        """Delete a check-in code. Existing check-ins are kept."""
        await self.db.delete(code)
        await self.db.flush()

    async def increment_uses(self, id: UUID) -> Optional[int]:
        """Add one use to a check-in code.

        The increment is relative so concurrent redemptions are all counted.

        Returns:
            The new use count, or ``None`` if the code no longer exists.
        """
        q = (
            update(CheckinCodeEntity)
            .where(CheckinCodeEntity.id == id)
            .values(current_uses=CheckinCodeEntity.current_uses + 1)
            .returning(CheckinCodeEntity.current_uses)
            .execution_options(synchronize_session="fetch")
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def get_checkin(self, event_id: str, user_id: str) -> Optional[CheckinEntity]:
        """Get the check-in for an event and user."""
        q = select(CheckinEntity).where(
            CheckinEntity.event_id == event_id, CheckinEntity.user_id == user_id
        )
        res = await self.db.execute(q)
        return res.scalar_one_or_none()

    async def create_checkin(self, checkin: CheckinEntity):
        """Insert a check-in.

        Raises:
            ConflictError: If the user already checked in to the event.
        """
        self.db.add(checkin)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise ConflictError("Already checked in to this event") from e

    async def list_checkins(self, event_id: str) -> Sequence[CheckinEntity]:
        """List the check-ins for an event."""
        q = (
            select(CheckinEntity)
            .where(CheckinEntity.event_id == event_id)
            .order_by(CheckinEntity.date_checked_in)
        )
        res = await self.db.execute(q)
        return res.scalars().all()
