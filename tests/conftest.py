import os
from typing import Optional
from unittest.mock import create_autospec

import pytest
import pytest_asyncio
from oes.attendance.database import DBConfig
from oes.attendance.entities.event import EventEntity
from oes.attendance.models.config import (
    AdmissionConfig,
    AdmissionPolicy,
    AuthConfig,
    Config,
    DatabaseConfig,
)
from oes.attendance.models.event import EventStatus
from oes.attendance.notification.service import NotificationSender
from sqlalchemy.ext.asyncio import AsyncSession


@pytest_asyncio.fixture
async def db_config():
    url = os.getenv("TEST_DB_URL", None)
    if url is None:
        pytest.skip("Set the TEST_DB_URL env var to test with a database")

    config = DBConfig.create(url)
    await config.create_tables()
    yield config
    await config.drop_tables()
    await config.close()


@pytest_asyncio.fixture
async def db(db_config: DBConfig):
    session = db_config.session_factory()
    yield session
    await session.close()


@pytest.fixture(params=[AdmissionPolicy.conditional, AdmissionPolicy.locked])
def config(request) -> Config:
    return make_config(request.param)


@pytest.fixture
def notifications() -> NotificationSender:
    return create_autospec(NotificationSender, instance=True)


def make_config(policy: AdmissionPolicy = AdmissionPolicy.conditional) -> Config:
    return Config(
        database=DatabaseConfig("postgresql+asyncpg://localhost/test"),
        auth=AuthConfig("test"),
        admission=AdmissionConfig(policy),
    )


@pytest.fixture
def make_event(db: AsyncSession):
    async def factory(
        id: str = "example-event",
        max_attendees: Optional[int] = None,
        status: EventStatus = EventStatus.active,
    ) -> EventEntity:
        event = EventEntity(
            id=id, max_attendees=max_attendees, status=status, confirmed_count=0
        )
        db.add(event)
        await db.commit()
        return event

    return factory
