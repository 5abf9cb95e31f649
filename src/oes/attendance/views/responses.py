"""Response types."""
from __future__ import annotations

from datetime import datetime  # noqa
from typing import Optional
from uuid import UUID

from attrs import frozen
from blacksheep import Content, Response
from cattrs import BaseValidationError
from oes.attendance.entities.checkin import CheckinCodeEntity, CheckinEntity
from oes.attendance.entities.rsvp import RsvpEntity
from oes.attendance.errors import AttendanceError
from oes.attendance.models.checkin import CheckinMethod
from oes.attendance.models.rsvp import RsvpStatus
from oes.attendance.serialization import get_converter
from typing_extensions import Self


@frozen(kw_only=True)
class ExceptionDetails:
    """The JSON body of an error response."""

    exception: Optional[str] = None
    """The exception class name."""

    code: Optional[str] = None
    """Stable error code of domain errors, like ``gone``."""

    detail: Optional[str] = None
    children: Optional[list[ExceptionDetails]] = None
    """Nested validation errors."""

    @classmethod
    def create(cls, exc: BaseException) -> ExceptionDetails:
        name = type(exc).__qualname__
        if isinstance(exc, BaseValidationError):
            children = [cls.create(sub) for sub in exc.exceptions]
            return cls(exception=name, detail=exc.message, children=children or None)
        elif isinstance(exc, AttendanceError):
            return cls(exception=name, code=exc.code, detail=exc.detail)

        first_arg = exc.args[0] if exc.args else None
        return cls(
            exception=name,
            detail=first_arg if isinstance(first_arg, str) else None,
        )


class BodyValidationError(Exception):
    """A request body failed validation."""

    def __init__(self, exc: BaseValidationError):
        super().__init__("Unprocessable entity")
        self.exc = exc


def json_response(obj: object, status: int = 200) -> Response:
    """Serialize ``obj`` to a JSON :class:`Response`."""
    return Response(
        status, content=Content(b"application/json", get_converter().dumps(obj))
    )


@frozen
class RsvpResponse:
    """An RSVP."""

    id: UUID
    event_id: str
    user_id: str
    status: RsvpStatus
    date_created: datetime
    waitlist_position: Optional[int] = None

    @classmethod
    def create(cls, entity: RsvpEntity) -> Self:
        return cls(
            id=entity.id,
            event_id=entity.event_id,
            user_id=entity.user_id,
            status=entity.get_status(),
            date_created=entity.date_created,
            waitlist_position=entity.waitlist_position,
        )


@frozen
class RsvpStatusResponse:
    """The current user's RSVP, or null if they have none."""

    rsvp: Optional[RsvpResponse] = None


@frozen
class CheckinCodeResponse:
    """A check-in code."""

    id: UUID
    event_id: str
    code: str
    created_by: str
    date_created: datetime
    current_uses: int
    max_uses: Optional[int] = None
    date_expires: Optional[datetime] = None

    @classmethod
    def create(cls, entity: CheckinCodeEntity) -> Self:
        return cls(
            id=entity.id,
            event_id=entity.event_id,
            code=entity.code,
            created_by=entity.created_by,
            date_created=entity.date_created,
            current_uses=entity.current_uses,
            max_uses=entity.max_uses,
            date_expires=entity.date_expires,
        )


@frozen
class CheckinCodeStatusResponse:
    """A redeemable check-in code."""

    code: str
    event_id: str
    uses_remaining: Optional[int] = None
    date_expires: Optional[datetime] = None

    @classmethod
    def create(cls, entity: CheckinCodeEntity) -> Self:
        return cls(
            code=entity.code,
            event_id=entity.event_id,
            uses_remaining=(
                max(entity.max_uses - entity.current_uses, 0)
                if entity.max_uses is not None
                else None
            ),
            date_expires=entity.date_expires,
        )


@frozen
class CheckinResponse:
    """A check-in."""

    id: UUID
    event_id: str
    user_id: str
    method: CheckinMethod
    date_checked_in: datetime
    checkin_code_id: Optional[UUID] = None

    @classmethod
    def create(cls, entity: CheckinEntity) -> Self:
        return cls(
            id=entity.id,
            event_id=entity.event_id,
            user_id=entity.user_id,
            method=CheckinMethod(entity.method),
            date_checked_in=entity.date_checked_in,
            checkin_code_id=entity.checkin_code_id,
        )
