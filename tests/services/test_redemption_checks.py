import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import create_autospec

import pytest
from oes.attendance.entities.checkin import CheckinCodeEntity, CheckinEntity
from oes.attendance.errors import ConflictError, GoneError, NotFoundError
from oes.attendance.models.checkin import CheckinMethod
from oes.attendance.notification.service import NotificationSender
from oes.attendance.services.checkin import CheckinService
from oes.attendance.services.event import EventService
from oes.attendance.services.redemption import RedemptionService
from oes.attendance.util import get_now


@pytest.fixture
def service() -> RedemptionService:
    service = RedemptionService(
        create_autospec(EventService, instance=True),
        create_autospec(CheckinService, instance=True),
        create_autospec(NotificationSender, instance=True),
    )
    service.checkins.get_checkin.return_value = None
    return service


def make_code(current_uses: int = 0, **kwargs) -> CheckinCodeEntity:
    return CheckinCodeEntity(
        id=uuid.uuid4(),
        event_id="example-event",
        code="ABCD2345",
        created_by="admin",
        current_uses=current_uses,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_redeem(service: RedemptionService):
    code = make_code(max_uses=2, current_uses=1)
    service.checkins.get_code.return_value = code
    service.checkins.increment_uses.return_value = 2

    result = await service.redeem("ABCD2345", "user1", "nfc")

    assert result.method == CheckinMethod.nfc
    assert result.checkin_code_id == code.id
    service.checkins.create_checkin.assert_called_once_with(result)
    service.checkins.increment_uses.assert_called_once_with(code.id)
    service.notifications.schedule.assert_called_once()


@pytest.mark.asyncio
async def test_redeem_not_found(service: RedemptionService):
    service.checkins.get_code.return_value = None

    with pytest.raises(NotFoundError):
        await service.redeem("ABCD2345", "user1")


@pytest.mark.asyncio
async def test_redeem_expired_leaves_uses(service: RedemptionService):
    service.checkins.get_code.return_value = make_code(
        date_expires=get_now() - timedelta(seconds=1)
    )

    with pytest.raises(GoneError, match="expired"):
        await service.redeem("ABCD2345", "user1")

    service.checkins.get_checkin.assert_not_called()
    service.checkins.create_checkin.assert_not_called()
    service.checkins.increment_uses.assert_not_called()
    service.notifications.schedule.assert_not_called()


@pytest.mark.asyncio
async def test_redeem_exhausted(service: RedemptionService):
    service.checkins.get_code.return_value = make_code(max_uses=3, current_uses=3)

    with pytest.raises(GoneError, match="maximum uses"):
        await service.redeem("ABCD2345", "user1")

    service.checkins.increment_uses.assert_not_called()


@pytest.mark.asyncio
async def test_redeem_expiry_checked_first(service: RedemptionService):
    service.checkins.get_code.return_value = make_code(
        max_uses=1,
        current_uses=1,
        date_expires=datetime(2020, 1, 1, tzinfo=timezone.utc),
    )

    with pytest.raises(GoneError, match="expired"):
        await service.redeem("ABCD2345", "user1")


@pytest.mark.asyncio
async def test_redeem_already_checked_in(service: RedemptionService):
    service.checkins.get_code.return_value = make_code()
    service.checkins.get_checkin.return_value = CheckinEntity(
        event_id="example-event", user_id="user1"
    )

    with pytest.raises(ConflictError):
        await service.redeem("ABCD2345", "user1")

    service.checkins.create_checkin.assert_not_called()
    service.checkins.increment_uses.assert_not_called()


@pytest.mark.asyncio
async def test_redeem_insert_conflict(service: RedemptionService):
    service.checkins.get_code.return_value = make_code()
    service.checkins.create_checkin.side_effect = ConflictError(
        "Already checked in to this event"
    )

    with pytest.raises(ConflictError):
        await service.redeem("ABCD2345", "user1")

    service.checkins.increment_uses.assert_not_called()


@pytest.mark.asyncio
async def test_check_code_does_not_redeem(service: RedemptionService):
    code = make_code(max_uses=1)
    service.checkins.get_code.return_value = code

    assert await service.check_code("ABCD2345") is code
    service.checkins.increment_uses.assert_not_called()
    service.checkins.create_checkin.assert_not_called()


@pytest.mark.asyncio
async def test_create_code_event_not_found(service: RedemptionService):
    service.events.get_event.return_value = None

    with pytest.raises(NotFoundError):
        await service.create_code("example-event", "admin")

    service.checkins.create_code.assert_not_called()
