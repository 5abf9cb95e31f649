"""Database module.

Each request uses one :class:`AsyncSession`, created on first use and closed by
:func:`db_session_middleware`. Handlers decorated with :func:`transaction`
commit it when they return.
"""
from __future__ import annotations

import functools
from contextvars import ContextVar
from typing import Any, Optional

from attrs import frozen
from oes.attendance.entities.base import import_entities, metadata
from rodi import GetServiceContext
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

session_context: ContextVar[Optional[AsyncSession]] = ContextVar(
    "session_context", default=None
)


@frozen
class DBConfig:
    """The engine and session factory."""

    engine: AsyncEngine
    session_factory: async_sessionmaker

    @classmethod
    def create(cls, url: str, **kwargs: Any) -> DBConfig:
        """Create a :class:`DBConfig`.

        Args:
            url: The database URL.
            **kwargs: Additional arguments for the engine.
        """
        engine = create_async_engine(url, **kwargs)
        return cls(engine, async_sessionmaker(bind=engine, expire_on_commit=False))

    async def close(self):
        await self.engine.dispose()

    async def create_tables(self):
        """Create all tables. Used for testing, migrations are run with alembic."""
        import_entities()
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def drop_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.drop_all)


def db_session_factory(services: GetServiceContext) -> AsyncSession:
    """Get the current request's session, creating it if needed."""
    session = session_context.get()
    if session is None:
        db_config: DBConfig = services.provider[DBConfig]
        session = db_config.session_factory()
        session_context.set(session)
    return session


async def db_session_middleware(request, handler):
    """Close the request's session after the response."""
    try:
        return await handler(request)
    finally:
        session = session_context.get()
        session_context.set(None)
        if session is not None:
            await session.close()


def transaction(fn):
    """Commit the request's session when ``fn`` returns, roll back if it raises."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            result = await fn(*args, **kwargs)
        except BaseException:
            session = session_context.get()
            if session is not None:
                await session.rollback()
            raise

        session = session_context.get()
        if session is not None:
            await session.commit()
        return result

    return wrapper
