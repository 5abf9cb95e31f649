"""RSVP views."""
from blacksheep import Response, auth
from blacksheep.server.openapi.common import ContentInfo, ResponseInfo
from oes.attendance.app import app
from oes.attendance.auth.handlers import (
    RequireAdmin,
    RequireEvent,
    RequireManage,
    get_user_id,
)
from oes.attendance.auth.user import User
from oes.attendance.database import transaction
from oes.attendance.docs import docs, docs_helper
from oes.attendance.models.rsvp import (
    AttendeeList,
    CancelResult,
    ReconcileResult,
    RsvpSummary,
)
from oes.attendance.services.admission import AdmissionService
from oes.attendance.views.responses import (
    RsvpResponse,
    RsvpStatusResponse,
    json_response,
)


@auth(RequireEvent)
@app.router.post("/events/{event_id}/rsvp")
@docs(
    responses={
        201: ResponseInfo(
            "The created RSVP",
            content=[ContentInfo(RsvpResponse)],
        )
    },
    tags=["RSVP"],
)
@transaction
async def create_rsvp(
    event_id: str, service: AdmissionService, user: User
) -> Response:
    """RSVP to an event.

    The RSVP is waitlisted if the event is full.
    """
    rsvp = await service.create_rsvp(event_id, get_user_id(user))
    return json_response(RsvpResponse.create(rsvp), 201)


@auth(RequireEvent)
@app.router.delete("/events/{event_id}/rsvp")
@docs_helper(
    response_type=CancelResult,
    response_summary="The user promoted from the waitlist, if any",
    tags=["RSVP"],
)
@transaction
async def cancel_rsvp(
    event_id: str, service: AdmissionService, user: User
) -> CancelResult:
    """Cancel the current user's RSVP."""
    return await service.cancel_rsvp(event_id, get_user_id(user))


@auth(RequireEvent)
@app.router.get("/events/{event_id}/rsvp")
@docs_helper(
    response_type=RsvpStatusResponse,
    response_summary="The current user's RSVP",
    tags=["RSVP"],
)
@transaction
async def read_rsvp(
    event_id: str, service: AdmissionService, user: User
) -> RsvpStatusResponse:
    """Get the current user's RSVP."""
    rsvp = await service.get_rsvp_status(event_id, get_user_id(user))
    return RsvpStatusResponse(RsvpResponse.create(rsvp) if rsvp is not None else None)


@auth(RequireEvent)
@app.router.get("/events/{event_id}/rsvp-summary")
@docs_helper(
    response_type=RsvpSummary,
    response_summary="The RSVP counts",
    tags=["RSVP"],
)
@transaction
async def read_rsvp_summary(
    event_id: str, service: AdmissionService, user: User
) -> RsvpSummary:
    """Get the RSVP counts for an event."""
    return await service.get_rsvp_summary(event_id, user.id)


@auth(RequireManage)
@app.router.get("/events/{event_id}/waitlist")
@docs_helper(
    response_type=list[RsvpResponse],
    response_summary="The waitlist in promotion order",
    tags=["RSVP"],
)
@transaction
async def list_waitlist(event_id: str, service: AdmissionService) -> list[RsvpResponse]:
    """List an event's waitlist."""
    results = await service.list_waitlist(event_id)
    return [RsvpResponse.create(r) for r in results]


@auth(RequireManage)
@app.router.get("/events/{event_id}/attendees")
@docs_helper(
    response_type=AttendeeList,
    response_summary="The attendees",
    tags=["RSVP"],
)
@transaction
async def list_attendees(event_id: str, service: AdmissionService) -> AttendeeList:
    """List an event's attendees with their check-in status."""
    return await service.list_attendees(event_id)


@auth(RequireAdmin)
@app.router.post("/events/{event_id}/reconcile")
@docs_helper(
    response_type=ReconcileResult,
    response_summary="The reconciled counts",
    tags=["RSVP"],
)
@transaction
async def reconcile(
    event_id: str, service: AdmissionService, user: User
) -> ReconcileResult:
    """Recompute an event's confirmed count and fill free seats from the waitlist."""
    return await service.reconcile(event_id, user.id)
