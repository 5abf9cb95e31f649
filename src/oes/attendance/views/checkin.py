"""Check-in views."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from attrs import frozen
from blacksheep import HTTPException, Request, Response, allow_anonymous, auth
from blacksheep.exceptions import BadRequestFormat
from blacksheep.server.openapi.common import ContentInfo, ResponseInfo
from oes.attendance.app import app
from oes.attendance.auth.handlers import RequireCheckin, RequireManage, get_user_id
from oes.attendance.auth.user import User
from oes.attendance.database import transaction
from oes.attendance.docs import docs, docs_helper
from oes.attendance.serialization.json import json_loads
from oes.attendance.services.redemption import RedemptionService
from oes.attendance.views.parameters import AttrsBody
from oes.attendance.views.responses import (
    CheckinCodeResponse,
    CheckinCodeStatusResponse,
    CheckinResponse,
    json_response,
)


@frozen
class CreateCheckinCodeRequest:
    """Request body for creating a check-in code."""

    max_uses: Optional[int] = None
    date_expires: Optional[datetime] = None


@auth(RequireManage)
@app.router.post("/events/{event_id}/checkin-codes")
@docs(
    responses={
        201: ResponseInfo(
            "The created check-in code",
            content=[ContentInfo(CheckinCodeResponse)],
        )
    },
    tags=["Check-in"],
)
@transaction
async def create_checkin_code(
    event_id: str,
    service: RedemptionService,
    user: User,
    body: AttrsBody[CreateCheckinCodeRequest],
) -> Response:
    """Create a check-in code for an event."""
    create = body.value
    if create.max_uses is not None and create.max_uses < 1:
        raise HTTPException(422, "max_uses must be at least 1")

    result = await service.create_code(
        event_id,
        get_user_id(user),
        max_uses=create.max_uses,
        date_expires=create.date_expires,
    )
    return json_response(CheckinCodeResponse.create(result), 201)


@auth(RequireManage)
@app.router.get("/events/{event_id}/checkin-codes")
@docs_helper(
    response_type=list[CheckinCodeResponse],
    response_summary="The check-in codes",
    tags=["Check-in"],
)
@transaction
async def list_checkin_codes(
    event_id: str, service: RedemptionService
) -> list[CheckinCodeResponse]:
    """List an event's check-in codes."""
    results = await service.list_codes(event_id)
    return [CheckinCodeResponse.create(r) for r in results]


@auth(RequireManage)
@app.router.delete("/checkin-codes/{code_id}")
@docs(tags=["Check-in"])
@transaction
async def delete_checkin_code(
    code_id: UUID, service: RedemptionService, user: User
) -> Response:
    """Delete a check-in code."""
    await service.delete_code(code_id, user.id)
    return Response(204)


@allow_anonymous()
@app.router.get("/checkin/{code}")
@docs_helper(
    response_type=CheckinCodeStatusResponse,
    response_summary="The check-in code",
    tags=["Check-in"],
)
@transaction
async def read_checkin_code(
    code: str, service: RedemptionService
) -> CheckinCodeStatusResponse:
    """Check whether a check-in code can be redeemed."""
    result = await service.check_code(code)
    return CheckinCodeStatusResponse.create(result)


@auth(RequireCheckin)
@app.router.post("/checkin/{code}")
@docs(
    responses={
        201: ResponseInfo(
            "The check-in",
            content=[ContentInfo(CheckinResponse)],
        )
    },
    tags=["Check-in"],
)
@transaction
async def redeem_checkin_code(
    request: Request, code: str, service: RedemptionService, user: User
) -> Response:
    """Check in to an event with a code.

    The body may include a ``method`` of ``link``, ``qr`` or ``nfc``.
    """
    method = await _get_method(request)
    checkin = await service.redeem(code, get_user_id(user), method)
    return json_response(CheckinResponse.create(checkin), 201)


async def _get_method(request: Request) -> Optional[str]:
    # the body is optional, ignore anything unreadable
    if not request.declares_json():
        return None

    try:
        body = await request.json(loads=json_loads)
    except (BadRequestFormat, ValueError):
        return None

    method = body.get("method") if isinstance(body, dict) else None
    return method if isinstance(method, str) else None
