import uuid
from datetime import timedelta

import pytest
import pytest_asyncio
from oes.attendance.entities.checkin import CheckinCodeEntity, CheckinEntity
from oes.attendance.entities.event import EventEntity
from oes.attendance.errors import ConflictError, GoneError, NotFoundError
from oes.attendance.models.checkin import CODE_CHARS, CODE_LENGTH, CheckinMethod
from oes.attendance.notification.models import NotificationType
from oes.attendance.notification.service import NotificationSender
from oes.attendance.services.checkin import CheckinService
from oes.attendance.services.event import EventService
from oes.attendance.services.redemption import RedemptionService
from oes.attendance.util import get_now
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

EVENT_ID = "example-event"


@pytest.fixture
def service(db: AsyncSession, notifications: NotificationSender):
    return RedemptionService(EventService(db), CheckinService(db), notifications)


@pytest_asyncio.fixture
async def event(make_event) -> EventEntity:
    return await make_event(EVENT_ID)


async def create_code(db: AsyncSession, **kwargs) -> CheckinCodeEntity:
    code = CheckinCodeEntity(
        event_id=EVENT_ID, code="ABCD2345", created_by="admin", **kwargs
    )
    db.add(code)
    await db.commit()
    return code


async def get_uses(db: AsyncSession) -> int:
    return await db.scalar(
        select(CheckinCodeEntity.current_uses).where(
            CheckinCodeEntity.code == "ABCD2345"
        )
    )


async def count_checkins(db: AsyncSession, user_id: str) -> int:
    return await db.scalar(
        select(func.count())
        .select_from(CheckinEntity)
        .where(CheckinEntity.event_id == EVENT_ID, CheckinEntity.user_id == user_id)
    )


@pytest.mark.asyncio
async def test_redeem(
    service: RedemptionService,
    db: AsyncSession,
    event: EventEntity,
    notifications: NotificationSender,
):
    code = await create_code(db)
    checkin = await service.redeem("ABCD2345", "user1", "qr")
    await db.commit()

    assert checkin.event_id == EVENT_ID
    assert checkin.user_id == "user1"
    assert checkin.checkin_code_id == code.id
    assert checkin.method == CheckinMethod.qr
    assert await get_uses(db) == 1

    notification = notifications.schedule.call_args.args[0]
    assert notification.type == NotificationType.checkin_created
    assert notification.payload == {
        "event_id": EVENT_ID,
        "user_id": "user1",
        "code": "ABCD2345",
        "method": "qr",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("method", [None, "", "carrier-pigeon", "QR"])
async def test_redeem_normalizes_method(
    service: RedemptionService, db: AsyncSession, event: EventEntity, method
):
    await create_code(db)
    checkin = await service.redeem("ABCD2345", "user1", method)
    await db.commit()
    assert checkin.method == CheckinMethod.link


@pytest.mark.asyncio
async def test_redeem_not_found(service: RedemptionService, event: EventEntity):
    with pytest.raises(NotFoundError):
        await service.redeem("MISSING2", "user1")


@pytest.mark.asyncio
async def test_redeem_max_uses(
    service: RedemptionService, db: AsyncSession, event: EventEntity
):
    await create_code(db, max_uses=1)
    await service.redeem("ABCD2345", "userA")
    await db.commit()
    assert await get_uses(db) == 1

    with pytest.raises(GoneError, match="maximum uses"):
        await service.redeem("ABCD2345", "userB")
    await db.rollback()

    assert await get_uses(db) == 1
    assert await count_checkins(db, "userB") == 0


@pytest.mark.asyncio
async def test_redeem_expired(
    service: RedemptionService,
    db: AsyncSession,
    event: EventEntity,
    notifications: NotificationSender,
):
    await create_code(db, date_expires=get_now() - timedelta(minutes=1))

    with pytest.raises(GoneError, match="expired"):
        await service.redeem("ABCD2345", "user1")
    await db.rollback()

    assert await get_uses(db) == 0
    assert await count_checkins(db, "user1") == 0
    notifications.schedule.assert_not_called()


@pytest.mark.asyncio
async def test_redeem_expired_checked_before_uses(
    service: RedemptionService, db: AsyncSession, event: EventEntity
):
    await create_code(
        db, max_uses=1, current_uses=1, date_expires=get_now() - timedelta(minutes=1)
    )

    with pytest.raises(GoneError, match="expired"):
        await service.redeem("ABCD2345", "user1")


@pytest.mark.asyncio
async def test_redeem_twice(
    service: RedemptionService, db: AsyncSession, event: EventEntity
):
    await create_code(db)
    await service.redeem("ABCD2345", "user1")
    await db.commit()

    with pytest.raises(ConflictError):
        await service.redeem("ABCD2345", "user1")
    await db.rollback()

    assert await count_checkins(db, "user1") == 1
    assert await get_uses(db) == 1


@pytest.mark.asyncio
async def test_redeem_other_code_same_event(
    service: RedemptionService, db: AsyncSession, event: EventEntity
):
    await create_code(db)
    other = await service.create_code(EVENT_ID, "admin")
    await db.commit()

    await service.redeem("ABCD2345", "user1")
    await db.commit()

    with pytest.raises(ConflictError):
        await service.redeem(other.code, "user1")


@pytest.mark.asyncio
async def test_check_code(
    service: RedemptionService, db: AsyncSession, event: EventEntity
):
    await create_code(db, max_uses=2)
    result = await service.check_code("ABCD2345")
    assert result.event_id == EVENT_ID
    assert await get_uses(db) == 0


@pytest.mark.asyncio
async def test_create_code(
    service: RedemptionService, db: AsyncSession, event: EventEntity
):
    expires = get_now() + timedelta(days=1)
    result = await service.create_code(
        EVENT_ID, "admin", max_uses=10, date_expires=expires
    )
    await db.commit()

    assert len(result.code) == CODE_LENGTH
    assert all(c in CODE_CHARS for c in result.code)
    assert result.max_uses == 10
    assert result.current_uses == 0
    assert result.date_expires == expires

    codes = await service.list_codes(EVENT_ID)
    assert [c.id for c in codes] == [result.id]


@pytest.mark.asyncio
async def test_create_code_event_not_found(service: RedemptionService):
    with pytest.raises(NotFoundError):
        await service.create_code("missing", "admin")


@pytest.mark.asyncio
async def test_delete_code_keeps_checkins(
    service: RedemptionService, db: AsyncSession, event: EventEntity
):
    code = await create_code(db)
    await service.redeem("ABCD2345", "user1")
    await db.commit()

    await service.delete_code(code.id, "admin")
    await db.commit()

    assert await service.list_codes(EVENT_ID) == []
    checkin = await db.scalar(
        select(CheckinEntity)
        .where(CheckinEntity.user_id == "user1")
        .execution_options(populate_existing=True)
    )
    assert checkin is not None
    assert checkin.checkin_code_id is None


@pytest.mark.asyncio
async def test_delete_code_not_found(service: RedemptionService, event: EventEntity):
    with pytest.raises(NotFoundError):
        await service.delete_code(uuid.uuid4())
