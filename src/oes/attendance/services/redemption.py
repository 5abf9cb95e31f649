"""Redemption service."""
from collections.abc import Sequence
from datetime import datetime
from typing import Optional
from uuid import UUID

from loguru import logger
from oes.attendance.entities.checkin import CheckinCodeEntity, CheckinEntity
from oes.attendance.errors import ConflictError, GoneError
from oes.attendance.log import AuditLogType, audit_log
from oes.attendance.models.checkin import normalize_method
from oes.attendance.notification.models import (
    Notification,
    NotificationMetadata,
    NotificationType,
)
from oes.attendance.notification.service import NotificationSender
from oes.attendance.services.checkin import CheckinService
from oes.attendance.services.event import EventService
from oes.attendance.util import check_not_found, get_now


class RedemptionService:
    """Redeems check-in codes and manages the codes of an event."""

    def __init__(
        self,
        events: EventService,
        checkins: CheckinService,
        notifications: NotificationSender,
    ):
        self.events = events
        self.checkins = checkins
        self.notifications = notifications

    async def redeem(
        self, code: str, user_id: str, method: Optional[str] = None
    ) -> CheckinEntity:
        """Check a user in to the code's event.

        Args:
            code: The check-in code.
            user_id: The user ID.
            method: How the code was reached. Unrecognized values are recorded as
                ``link``.

        Raises:
            NotFoundError: If the code does not exist.
            GoneError: If the code is expired or has no uses left.
            ConflictError: If the user is already checked in to the event.
        """
        now = get_now()
        code_entity = await self.check_code(code, now=now)

        existing = await self.checkins.get_checkin(code_entity.event_id, user_id)
        if existing is not None:
            raise ConflictError("Already checked in to this event")

        checkin = CheckinEntity(
            event_id=code_entity.event_id,
            user_id=user_id,
            checkin_code_id=code_entity.id,
            method=normalize_method(method),
            date_checked_in=now,
        )
        await self.checkins.create_checkin(checkin)

        uses = await self.checkins.increment_uses(code_entity.id)
        if (
            uses is not None
            and code_entity.max_uses is not None
            and uses > code_entity.max_uses
        ):
            logger.warning(
                f"Check-in code {code_entity.id} was redeemed {uses} times, "
                f"over its limit of {code_entity.max_uses}"
            )

        audit_log.bind(
            type=AuditLogType.checkin_create,
            event_id=code_entity.event_id,
            user_id=user_id,
        ).success(
            "Checked in with code {code} ({method})",
            code=code_entity.code,
            method=checkin.method.value,
        )

        self.notifications.schedule(
            Notification(
                type=NotificationType.checkin_created,
                payload={
                    "event_id": code_entity.event_id,
                    "user_id": user_id,
                    "code": code_entity.code,
                    "method": checkin.method.value,
                },
                metadata=NotificationMetadata(user_id=user_id, source="redeem"),
            )
        )
        return checkin

    async def check_code(
        self, code: str, *, now: Optional[datetime] = None
    ) -> CheckinCodeEntity:
        """Get a check-in code if it can still be redeemed.

        Raises:
            NotFoundError: If the code does not exist.
            GoneError: If the code is expired or has no uses left.
        """
        code_entity = check_not_found(
            await self.checkins.get_code(code), "Check-in code not found"
        )
        if code_entity.is_expired(now=now):
            raise GoneError("This check-in code has expired")
        if code_entity.is_exhausted():
            raise GoneError("This check-in code has reached its maximum uses")
        return code_entity

    async def create_code(
        self,
        event_id: str,
        created_by: str,
        *,
        max_uses: Optional[int] = None,
        date_expires: Optional[datetime] = None,
    ) -> CheckinCodeEntity:
        """Create a check-in code for an event.

        Raises:
            NotFoundError: If the event does not exist.
        """
        check_not_found(await self.events.get_event(event_id), "Event not found")
        code_entity = await self.checkins.create_code(
            event_id, created_by, max_uses=max_uses, date_expires=date_expires
        )
        audit_log.bind(
            type=AuditLogType.checkin_code_create,
            event_id=event_id,
            user_id=created_by,
        ).success("Created check-in code {code}", code=code_entity)
        return code_entity

    async def list_codes(self, event_id: str) -> Sequence[CheckinCodeEntity]:
        """List an event's check-in codes, newest first."""
        check_not_found(await self.events.get_event(event_id), "Event not found")
        return await self.checkins.list_codes(event_id)

    async def delete_code(self, code_id: UUID, user_id: Optional[str] = None):
        """Delete a check-in code.

        Raises:
            NotFoundError: If the code does not exist.
        """
        code_entity = check_not_found(
            await self.checkins.get_code_by_id(code_id), "Check-in code not found"
        )
        await self.checkins.delete_code(code_entity)
        audit_log.bind(
            type=AuditLogType.checkin_code_delete,
            event_id=code_entity.event_id,
            user_id=user_id,
        ).success("Deleted check-in code {code}", code=code_entity)
