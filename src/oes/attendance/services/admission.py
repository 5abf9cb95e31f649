"""Admission service.

Decides whether an RSVP is confirmed or waitlisted, and promotes waitlisted RSVPs
when confirmed seats are released.

Every decision is made from a read immediately preceding the write. How
concurrent admissions to one event are kept under capacity depends on the
configured :class:`AdmissionPolicy`:

- ``conditional``: a seat is claimed with one conditional increment of the
  event's ``confirmed_count``.
- ``locked``: the event row is locked for the rest of the transaction and the
  confirmed RSVPs are counted from the ledger.

Cancellation and reconciliation lock the event row under either policy before
recounting, so the count they write back includes every committed admission.

Waitlist positions always come from the per-event sequence, so concurrent
waitlist joins never share a position.
"""
from collections.abc import Mapping
from typing import Any, Optional

from loguru import logger
from oes.attendance.entities.event import EventEntity
from oes.attendance.entities.rsvp import RsvpEntity
from oes.attendance.errors import ConflictError, InvalidStateError, NotFoundError
from oes.attendance.log import AuditLogType, audit_log
from oes.attendance.models.checkin import CheckinMethod
from oes.attendance.models.config import AdmissionPolicy, Config
from oes.attendance.models.rsvp import (
    Attendee,
    AttendeeList,
    CancelResult,
    ReconcileResult,
    RsvpStatus,
    RsvpSummary,
)
from oes.attendance.notification.models import (
    Notification,
    NotificationMetadata,
    NotificationType,
)
from oes.attendance.notification.service import NotificationSender
from oes.attendance.services.checkin import CheckinService
from oes.attendance.services.event import EventService
from oes.attendance.services.rsvp import RsvpService
from oes.attendance.util import check_not_found, get_now


class AdmissionService:
    """Admission service."""

    def __init__(
        self,
        events: EventService,
        rsvps: RsvpService,
        checkins: CheckinService,
        notifications: NotificationSender,
        config: Config,
    ):
        self.events = events
        self.rsvps = rsvps
        self.checkins = checkins
        self.notifications = notifications
        self.policy = config.admission.policy

    async def create_rsvp(self, event_id: str, user_id: str) -> RsvpEntity:
        """RSVP to an event.

        The RSVP is confirmed if the event has a free seat and waitlisted at the
        end of the queue otherwise. A previously cancelled RSVP is replaced.

        Raises:
            NotFoundError: If the event does not exist.
            InvalidStateError: If the event is cancelled.
            ConflictError: If the user already has a confirmed or waitlisted RSVP.
        """
        event = await self._get_event(event_id)
        if event.is_cancelled:
            raise InvalidStateError("Event has been cancelled")

        existing = await self.rsvps.get_rsvp(event_id, user_id)
        if existing is not None:
            if existing.is_active:
                raise ConflictError(
                    f"Already {existing.get_status().value} for this event"
                )
            await self.rsvps.delete_rsvp(existing)

        if await self._admit(event):
            status = RsvpStatus.confirmed
            position = None
        else:
            status = RsvpStatus.waitlisted
            position = await self.events.next_waitlist_position(event_id)

        rsvp = RsvpEntity(
            event_id=event_id,
            user_id=user_id,
            status=status,
            waitlist_position=position,
            date_created=get_now(),
        )
        await self.rsvps.create_rsvp(rsvp)

        audit_log.bind(
            type=AuditLogType.rsvp_create, event_id=event_id, user_id=user_id
        ).success("RSVP {rsvp} created", rsvp=rsvp)

        payload: dict[str, Any] = {
            "event_id": event_id,
            "user_id": user_id,
            "status": status.value,
        }
        if position is not None:
            payload["waitlist_position"] = position

        self._notify(
            NotificationType.rsvp_created,
            payload,
            user_id=user_id,
            source="create_rsvp",
        )
        return rsvp

    async def cancel_rsvp(self, event_id: str, user_id: str) -> CancelResult:
        """Cancel an RSVP.

        If the RSVP held a confirmed seat, the waitlisted RSVP with the lowest
        position is promoted into it. The event's confirmed count is then
        recomputed from the ledger.

        Raises:
            NotFoundError: If the event or the RSVP does not exist.
            InvalidStateError: If the RSVP is already cancelled.
        """
        # the recount below must see admissions committed while waiting on the lock
        await self._get_event(event_id, lock=True)

        now = get_now()
        while True:
            rsvp = check_not_found(
                await self.rsvps.get_rsvp(event_id, user_id),
                "No RSVP found for this event",
            )
            status = rsvp.get_status()
            if status == RsvpStatus.cancelled:
                raise InvalidStateError("RSVP is already cancelled")

            # retry if the RSVP changed (e.g. was promoted) since it was read
            if await self.rsvps.mark_cancelled(rsvp.id, status, now):
                break

        was_confirmed = status == RsvpStatus.confirmed

        audit_log.bind(
            type=AuditLogType.rsvp_cancel, event_id=event_id, user_id=user_id
        ).success("RSVP {rsvp} cancelled", rsvp=rsvp)

        self._notify(
            NotificationType.rsvp_cancelled,
            {
                "event_id": event_id,
                "user_id": user_id,
                "status": RsvpStatus.cancelled.value,
                "was_confirmed": was_confirmed,
            },
            user_id=user_id,
            source="cancel_rsvp",
        )

        promoted_user_id = None
        if was_confirmed:
            promoted_user_id = await self._promote_next(
                event_id, acting_user_id=user_id, source="cancel_rsvp"
            )

        confirmed = await self.rsvps.count_rsvps(event_id, RsvpStatus.confirmed)
        await self.events.set_confirmed_count(event_id, confirmed)

        return CancelResult(promoted_user_id)

    async def get_rsvp_status(
        self, event_id: str, user_id: str
    ) -> Optional[RsvpEntity]:
        """Get a user's RSVP for an event.

        Cancelled RSVPs are reported as ``None``.

        Raises:
            NotFoundError: If the event does not exist.
        """
        check_not_found(await self.events.get_event(event_id), "Event not found")
        rsvp = await self.rsvps.get_rsvp(event_id, user_id)
        return rsvp if rsvp is not None and rsvp.is_active else None

    async def get_rsvp_summary(
        self, event_id: str, user_id: Optional[str] = None
    ) -> RsvpSummary:
        """Get the RSVP counts for an event.

        Args:
            event_id: The event ID.
            user_id: Include this user's RSVP status.

        Raises:
            NotFoundError: If the event does not exist.
        """
        event = check_not_found(
            await self.events.get_event(event_id), "Event not found"
        )
        confirmed = await self.rsvps.count_rsvps(event_id, RsvpStatus.confirmed)
        waitlisted = await self.rsvps.count_rsvps(event_id, RsvpStatus.waitlisted)

        status = None
        if user_id is not None:
            rsvp = await self.rsvps.get_rsvp(event_id, user_id)
            status = rsvp.get_status() if rsvp is not None and rsvp.is_active else None

        return RsvpSummary(
            confirmed=confirmed,
            waitlisted=waitlisted,
            capacity=event.max_attendees,
            status=status,
        )

    async def list_waitlist(self, event_id: str) -> list[RsvpEntity]:
        """List an event's waitlisted RSVPs in promotion order."""
        check_not_found(await self.events.get_event(event_id), "Event not found")
        return list(await self.rsvps.list_waitlist(event_id))

    async def list_attendees(self, event_id: str) -> AttendeeList:
        """List an event's confirmed and waitlisted RSVPs with check-in status."""
        check_not_found(await self.events.get_event(event_id), "Event not found")
        rsvps = await self.rsvps.list_active_rsvps(event_id)
        checkins = await self.checkins.list_checkins(event_id)
        by_user = {c.user_id: c for c in checkins}

        attendees = []
        for rsvp in rsvps:
            checkin = by_user.get(rsvp.user_id)
            attendees.append(
                Attendee(
                    rsvp_id=rsvp.id,
                    user_id=rsvp.user_id,
                    status=rsvp.get_status(),
                    date_created=rsvp.date_created,
                    waitlist_position=rsvp.waitlist_position,
                    checked_in=checkin is not None,
                    date_checked_in=checkin.date_checked_in if checkin else None,
                    checkin_method=(
                        CheckinMethod(checkin.method) if checkin else None
                    ),
                )
            )

        return AttendeeList(
            attendees=attendees,
            total_confirmed=sum(
                1 for a in attendees if a.status == RsvpStatus.confirmed
            ),
            total_waitlisted=sum(
                1 for a in attendees if a.status == RsvpStatus.waitlisted
            ),
            total_checked_in=len(checkins),
        )

    async def reconcile(
        self, event_id: str, acting_user_id: Optional[str] = None
    ) -> ReconcileResult:
        """Recompute an event's confirmed count from the ledger.

        Free seats are filled from the waitlist in order. Confirmed RSVPs beyond
        the capacity are reported but not demoted.

        Raises:
            NotFoundError: If the event does not exist.
        """
        event = await self._get_event(event_id, lock=True)
        confirmed = await self.rsvps.count_rsvps(event_id, RsvpStatus.confirmed)

        promoted = []
        while event.has_capacity_for(confirmed):
            promoted_user_id = await self._promote_next(
                event_id, acting_user_id=acting_user_id, source="reconcile"
            )
            if promoted_user_id is None:
                break
            promoted.append(promoted_user_id)
            confirmed += 1

        await self.events.set_confirmed_count(event_id, confirmed)
        waitlisted = await self.rsvps.count_rsvps(event_id, RsvpStatus.waitlisted)

        if event.max_attendees is not None and confirmed > event.max_attendees:
            over_capacity = confirmed - event.max_attendees
            logger.warning(
                f"Event {event_id} has {confirmed} confirmed RSVPs, "
                f"{over_capacity} over its capacity of {event.max_attendees}"
            )
        else:
            over_capacity = 0

        audit_log.bind(
            type=AuditLogType.rsvp_reconcile, event_id=event_id, user_id=acting_user_id
        ).info(
            "Reconciled event {event_id}: {confirmed} confirmed, {promoted} promoted",
            event_id=event_id,
            confirmed=confirmed,
            promoted=len(promoted),
        )

        return ReconcileResult(
            confirmed=confirmed,
            waitlisted=waitlisted,
            capacity=event.max_attendees,
            over_capacity=over_capacity,
            promoted_user_ids=tuple(promoted),
        )

    async def _get_event(self, event_id: str, *, lock: bool = False) -> EventEntity:
        lock = lock or self.policy == AdmissionPolicy.locked
        event = await self.events.get_event(event_id, lock=lock)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    async def _admit(self, event: EventEntity) -> bool:
        """Claim a confirmed seat if one is free."""
        if self.policy == AdmissionPolicy.locked:
            confirmed = await self.rsvps.count_rsvps(event.id, RsvpStatus.confirmed)
            if event.has_capacity_for(confirmed):
                await self.events.set_confirmed_count(event.id, confirmed + 1)
                return True
            else:
                return False
        else:
            return await self.events.claim_seat(event.id) is not None

    async def _promote_next(
        self, event_id: str, *, acting_user_id: Optional[str], source: str
    ) -> Optional[str]:
        """Promote the waitlisted RSVP with the lowest position.

        Returns:
            The promoted user ID, or ``None`` if the waitlist is empty.
        """
        while True:
            candidate = await self.rsvps.get_next_waitlisted(event_id)
            if candidate is None:
                return None

            # skip candidates promoted or cancelled by a concurrent request
            user_id = await self.rsvps.promote(candidate.id)
            if user_id is None:
                continue

            audit_log.bind(
                type=AuditLogType.rsvp_promote, event_id=event_id, user_id=user_id
            ).success(
                "RSVP {rsvp} promoted from waitlist position {position}",
                rsvp=candidate,
                position=candidate.waitlist_position,
            )

            self._notify(
                NotificationType.rsvp_promoted,
                {
                    "event_id": event_id,
                    "user_id": user_id,
                    "status": RsvpStatus.confirmed.value,
                    "promoted_from_waitlist": True,
                },
                user_id=acting_user_id,
                source=source,
            )
            return user_id

    def _notify(
        self,
        type_: NotificationType,
        payload: Mapping[str, Any],
        *,
        user_id: Optional[str],
        source: str,
    ):
        self.notifications.schedule(
            Notification(
                type=type_,
                payload=payload,
                metadata=NotificationMetadata(user_id=user_id, source=source),
            )
        )
