"""Notification service module."""
import asyncio
import contextlib
from asyncio import AbstractEventLoop, CancelledError, Queue, QueueFull, Task
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from functools import partial
from typing import Optional

import sqlalchemy.event
from loguru import logger
from oes.attendance.notification.models import (
    HookConfigEntry,
    Notification,
    NotificationConfig,
)
from oes.attendance.serialization import get_converter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session
from typing_extensions import ParamSpec

P = ParamSpec("P")


CALLBACKS_KEY = "oes.attendance.commit_callbacks"
"""``Session.info`` key of the callbacks pending for a session."""


class CommitCallbackService:
    """Runs async callbacks after a DB session commits.

    Pending callbacks are stored in the session's ``info`` dict and dropped if the
    session rolls back.
    """

    def __init__(self, loop: AbstractEventLoop):
        self._loop = loop

    def add_listeners(self, session_factory: async_sessionmaker):
        session_class = session_factory.class_.sync_session_class
        sqlalchemy.event.listen(session_class, "after_commit", self._on_commit)
        sqlalchemy.event.listen(session_class, "after_rollback", self._on_rollback)

    def remove_listeners(self, session_factory: async_sessionmaker):
        session_class = session_factory.class_.sync_session_class
        sqlalchemy.event.remove(session_class, "after_commit", self._on_commit)
        sqlalchemy.event.remove(session_class, "after_rollback", self._on_rollback)

    def add_callback(
        self,
        session: AsyncSession,
        func: Callable[P, Awaitable[None]],
        *args: P.args,
        **kwargs: P.kwargs,
    ):
        """Call ``func`` once ``session`` commits.

        Must be called from the event loop.
        """
        pending = session.sync_session.info.setdefault(CALLBACKS_KEY, [])
        pending.append(partial(func, *args, **kwargs))

    def _on_commit(self, session: Session) -> Future:
        callbacks = session.info.pop(CALLBACKS_KEY, [])
        return asyncio.run_coroutine_threadsafe(
            _run_callbacks(callbacks), self._loop
        )

    def _on_rollback(self, session: Session):
        session.info.pop(CALLBACKS_KEY, None)


async def _run_callbacks(callbacks: list[Callable[[], Awaitable[None]]]):
    results = await asyncio.gather(
        *(callback() for callback in callbacks), return_exceptions=True
    )
    for result in results:
        if isinstance(result, Exception):
            logger.opt(exception=result).error(
                "Unhandled exception in post-commit callback"
            )


class NotificationQueue:
    """In-memory queue of notifications drained by a background worker.

    Producers never wait on the queue. When it is full, new notifications are
    dropped with a warning.
    """

    _task: Optional[Task]

    def __init__(self, loop: AbstractEventLoop, config: NotificationConfig):
        self._loop = loop
        self.config = config
        self._queue: Queue[Notification] = Queue(maxsize=config.queue_size)
        self._task = None

    def start(self) -> Task:
        """Start the worker task."""
        if self._task is None:
            self._task = self._loop.create_task(self._run())
        return self._task

    def put(self, notification: Notification) -> bool:
        """Enqueue a notification.

        Returns:
            Whether the notification was accepted.
        """
        try:
            self._queue.put_nowait(notification)
        except QueueFull:
            logger.warning(
                f"Notification queue full, dropping {notification.type.value}"
            )
            return False
        else:
            return True

    async def join(self):
        """Wait until every queued notification has been processed."""
        await self._queue.join()

    async def close(self):
        """Cancel the worker task."""
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(CancelledError):
                await task

    async def _run(self):
        while True:
            notification = await self._queue.get()
            try:
                await deliver_notification(notification, self.config)
            except Exception:
                logger.opt(exception=True).error(
                    f"Error delivering notification {notification.type.value}"
                )
            finally:
                self._queue.task_done()


async def deliver_notification(notification: Notification, config: NotificationConfig):
    """Invoke every hook configured for the notification's type.

    Hook failures are logged and never raised.
    """
    body = get_converter().unstructure(notification)
    entries = list(config.get_by_type(notification.type))
    if not entries:
        return

    await asyncio.gather(
        *(_invoke_hook(entry, notification, body) for entry in entries)
    )


async def _invoke_hook(entry: HookConfigEntry, notification: Notification, body: dict):
    try:
        await entry.get_hook()(body)
    except Exception:
        logger.opt(exception=True).error(
            f"Hook {entry.hook} failed for notification {notification.type.value}"
        )
    else:
        logger.debug(
            f"Called hook {entry.hook} for notification {notification.type.value}"
        )


class NotificationSender:
    """Hands notifications to the queue once the current transaction commits."""

    def __init__(
        self,
        db: AsyncSession,
        queue: NotificationQueue,
        callback_service: CommitCallbackService,
    ):
        self.db = db
        self.queue = queue
        self.callback_service = callback_service

    def schedule(self, notification: Notification):
        """Send the notification after the transaction commits.

        Nothing is sent if the transaction rolls back.
        """
        self.callback_service.add_callback(self.db, self._enqueue, notification)

    async def _enqueue(self, notification: Notification):
        self.queue.put(notification)
