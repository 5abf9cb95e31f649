"""Common utilities."""
from datetime import datetime, timezone
from typing import Optional, TypeVar

from oes.attendance.errors import NotFoundError

T = TypeVar("T")


def get_now() -> datetime:
    """Get the current tz-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def check_not_found(obj: Optional[T], message: str = "Not found") -> T:
    """Raise :class:`NotFoundError` if the argument is null.

    Returns:
        The not-None ``obj``.
    """
    if obj is None:
        raise NotFoundError(message)
    return obj
