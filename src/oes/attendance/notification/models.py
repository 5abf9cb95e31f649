"""Notification models."""
from __future__ import annotations

import importlib
from collections.abc import Awaitable, Callable, Generator, Mapping, Sequence
from datetime import datetime
from enum import Enum
from inspect import iscoroutinefunction
from typing import Any, Optional, Union

from attrs import Factory, field, frozen, validators
from oes.attendance.http_client import get_http_client
from oes.attendance.serialization.json import json_dumps
from oes.attendance.util import get_now
from typing_extensions import assert_never

Hook = Callable[[dict[str, Any]], Awaitable[Any]]
"""An async callable that receives a notification body."""

ALL = "*"
"""Hook trigger matching every notification type."""


class NotificationType(str, Enum):
    """Notification types."""

    rsvp_created = "rsvp.created"
    """An RSVP is created, confirmed or waitlisted."""

    rsvp_cancelled = "rsvp.cancelled"
    """An RSVP is cancelled."""

    rsvp_promoted = "rsvp.promoted"
    """A waitlisted RSVP is promoted to confirmed."""

    checkin_created = "checkin.created"
    """A user checks in with a code."""


@frozen
class NotificationMetadata:
    """Who caused a notification and where."""

    user_id: Optional[str] = None
    """The acting user."""

    source: Optional[str] = None
    """The originating operation."""


@frozen(kw_only=True)
class Notification:
    """A domain notification."""

    type: NotificationType
    payload: Mapping[str, Any] = Factory(dict)
    metadata: NotificationMetadata = NotificationMetadata()
    date_created: datetime = Factory(lambda: get_now())


@frozen
class URLHookConfig:
    """Deliver notifications to a URL with a JSON POST."""

    url: str = field(repr=False)
    """The URL."""


@frozen
class PythonHookConfig:
    """Deliver notifications to a Python callable."""

    python: str
    """The ``module:function`` path of the callable."""


HookConfigObject = Union[URLHookConfig, PythonHookConfig]
"""Hook configuration types."""


async def _post_json(url: str, body: dict[str, Any]) -> Any:
    client = get_http_client()
    response = await client.post(
        url,
        content=json_dumps(body),
        headers={"Content-Type": "application/json"},
    )
    response.raise_for_status()
    if response.status_code == 204 or not response.content:
        return None
    else:
        return response.json()


def _load_python_hook(path: str) -> Callable[[dict[str, Any]], Any]:
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Invalid hook path: {path}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def _make_python_hook(path: str) -> Hook:
    async def hook(body: dict[str, Any]) -> Any:
        func = _load_python_hook(path)
        if iscoroutinefunction(func):
            return await func(body)
        else:
            return func(body)

    return hook


@frozen
class HookConfigEntry:
    """Hook configuration entry."""

    on: str = field(
        validator=validators.in_([ALL, *(t.value for t in NotificationType)])
    )
    """The notification type that triggers the hook, or ``*`` for all."""

    hook: HookConfigObject
    """The hook configuration."""

    def get_hook(self) -> Hook:
        """Get the configured :class:`Hook`."""
        if isinstance(self.hook, URLHookConfig):
            url = self.hook.url
            return lambda body: _post_json(url, body)
        elif isinstance(self.hook, PythonHookConfig):
            return _make_python_hook(self.hook.python)
        else:
            assert_never(self.hook)


@frozen
class NotificationConfig:
    """Notification configuration."""

    def _build_by_type(self) -> dict[str, list[HookConfigEntry]]:
        dict_: dict[str, list[HookConfigEntry]] = {}
        for obj in self.hooks:
            list_ = dict_.setdefault(obj.on, [])
            list_.append(obj)
        return dict_

    queue_size: int = field(default=1000, validator=validators.ge(1))
    """Maximum number of undelivered notifications held in memory."""

    timeout: float = field(default=10.0, validator=validators.gt(0))
    """Timeout in seconds for each URL hook request."""

    hooks: Sequence[HookConfigEntry] = field(default=(), converter=lambda v: tuple(v))
    _by_type: Mapping[str, list[HookConfigEntry]] = field(
        init=False,
        eq=False,
        repr=False,
        default=Factory(_build_by_type, takes_self=True),
    )

    def get_by_type(
        self, notification_type: NotificationType
    ) -> Generator[HookConfigEntry, None, None]:
        """Yield the :class:`HookConfigEntry` objects for a notification type."""
        yield from self._by_type.get(notification_type.value, [])
        yield from self._by_type.get(ALL, [])
