import asyncio
from unittest.mock import create_autospec

import pytest
from oes.attendance.database import DBConfig
from oes.attendance.entities.checkin import CheckinCodeEntity, CheckinEntity
from oes.attendance.entities.event import EventEntity
from oes.attendance.errors import ConflictError
from oes.attendance.models.config import Config
from oes.attendance.models.rsvp import RsvpStatus
from oes.attendance.notification.service import NotificationSender
from oes.attendance.services.admission import AdmissionService
from oes.attendance.services.checkin import CheckinService
from oes.attendance.services.event import EventService
from oes.attendance.services.redemption import RedemptionService
from oes.attendance.services.rsvp import RsvpService
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

EVENT_ID = "example-event"


def make_admission_service(session: AsyncSession, config: Config) -> AdmissionService:
    return AdmissionService(
        EventService(session),
        RsvpService(session),
        CheckinService(session),
        create_autospec(NotificationSender, instance=True),
        config,
    )


def make_redemption_service(session: AsyncSession) -> RedemptionService:
    return RedemptionService(
        EventService(session),
        CheckinService(session),
        create_autospec(NotificationSender, instance=True),
    )


async def create_rsvp(db_config: DBConfig, config: Config, user_id: str):
    async with db_config.session_factory() as session:
        service = make_admission_service(session, config)
        rsvp = await service.create_rsvp(EVENT_ID, user_id)
        await session.commit()
        return rsvp.get_status(), rsvp.waitlist_position


async def cancel_rsvp(db_config: DBConfig, config: Config, user_id: str):
    async with db_config.session_factory() as session:
        service = make_admission_service(session, config)
        result = await service.cancel_rsvp(EVENT_ID, user_id)
        await session.commit()
        return result


async def redeem(db_config: DBConfig, code: str, user_id: str):
    async with db_config.session_factory() as session:
        service = make_redemption_service(session)
        checkin = await service.redeem(code, user_id)
        await session.commit()
        return checkin


@pytest.mark.asyncio
async def test_concurrent_rsvps_respect_capacity(
    db_config: DBConfig, config: Config, make_event
):
    await make_event(EVENT_ID, max_attendees=3)

    results = await asyncio.gather(
        *(create_rsvp(db_config, config, f"user{i}") for i in range(10))
    )

    confirmed = [r for r in results if r[0] == RsvpStatus.confirmed]
    waitlisted = [r for r in results if r[0] == RsvpStatus.waitlisted]
    assert len(confirmed) == 3
    assert len(waitlisted) == 7
    assert sorted(p for _, p in waitlisted) == list(range(1, 8))

    async with db_config.session_factory() as session:
        count = await session.scalar(
            select(EventEntity.confirmed_count).where(EventEntity.id == EVENT_ID)
        )
    assert count == 3


@pytest.mark.asyncio
async def test_concurrent_duplicate_rsvps(
    db_config: DBConfig, config: Config, make_event
):
    await make_event(EVENT_ID)

    results = await asyncio.gather(
        *(create_rsvp(db_config, config, "user1") for _ in range(3)),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 2
    assert all(isinstance(e, ConflictError) for e in errors)


@pytest.mark.asyncio
async def test_concurrent_cancellations_promote_once_each(
    db_config: DBConfig, config: Config, make_event
):
    await make_event(EVENT_ID, max_attendees=2)
    for i in range(5):
        await create_rsvp(db_config, config, f"user{i}")

    results = await asyncio.gather(
        cancel_rsvp(db_config, config, "user0"),
        cancel_rsvp(db_config, config, "user1"),
    )

    promoted = {r.promoted_user_id for r in results}
    assert promoted == {"user2", "user3"}


@pytest.mark.asyncio
async def test_cancel_during_admission_keeps_count(
    db_config: DBConfig, config: Config, make_event
):
    await make_event(EVENT_ID, max_attendees=2)
    await create_rsvp(db_config, config, "user1")

    async with db_config.session_factory() as session:
        service = make_admission_service(session, config)
        rsvp = await service.create_rsvp(EVENT_ID, "user2")
        assert rsvp.get_status() == RsvpStatus.confirmed

        # the cancellation waits on the admission's row lock
        task = asyncio.create_task(cancel_rsvp(db_config, config, "user1"))
        await asyncio.sleep(0.2)
        await session.commit()

    result = await task
    assert result.promoted_user_id is None

    assert await create_rsvp(db_config, config, "user3") == (RsvpStatus.confirmed, None)
    assert await create_rsvp(db_config, config, "user4") == (RsvpStatus.waitlisted, 1)

    async with db_config.session_factory() as session:
        count = await session.scalar(
            select(EventEntity.confirmed_count).where(EventEntity.id == EVENT_ID)
        )
        confirmed = await RsvpService(session).count_rsvps(
            EVENT_ID, RsvpStatus.confirmed
        )
    assert confirmed == 2
    assert count == 2


@pytest.mark.asyncio
async def test_concurrent_redemptions_count_every_use(
    db_config: DBConfig, make_event, db: AsyncSession
):
    await make_event(EVENT_ID)
    code = CheckinCodeEntity(event_id=EVENT_ID, code="ABCD2345", created_by="admin")
    db.add(code)
    await db.commit()

    await asyncio.gather(*(redeem(db_config, "ABCD2345", f"user{i}") for i in range(5)))

    async with db_config.session_factory() as session:
        uses = await session.scalar(
            select(CheckinCodeEntity.current_uses).where(
                CheckinCodeEntity.code == "ABCD2345"
            )
        )
    assert uses == 5


@pytest.mark.asyncio
async def test_concurrent_redemptions_same_user(
    db_config: DBConfig, make_event, db: AsyncSession
):
    await make_event(EVENT_ID)
    code = CheckinCodeEntity(event_id=EVENT_ID, code="ABCD2345", created_by="admin")
    db.add(code)
    await db.commit()

    results = await asyncio.gather(
        *(redeem(db_config, "ABCD2345", "user1") for _ in range(3)),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 2
    assert all(isinstance(e, ConflictError) for e in errors)

    async with db_config.session_factory() as session:
        count = await session.scalar(
            select(func.count())
            .select_from(CheckinEntity)
            .where(CheckinEntity.event_id == EVENT_ID)
        )
    assert count == 1
