from fastapi import APIRouter, Depends, HTTPException, Query, status

from crewlink.api.deps import get_invitation_dispatcher, get_response_processor
from crewlink.api.errors import http_error
from crewlink.core.auth import Principal
from crewlink.core.clock import Clock, get_clock
from crewlink.core.security import get_principal
from crewlink.schemas.invitations import InvitationOut, InviteRequest, RespondOut, RespondRequest
from crewlink.schemas.jobs import JobOut
from crewlink.services.errors import EngagementError
from crewlink.services.invitations import InvitationDispatcher
from crewlink.services.repository import RepositoryUnavailableError
from crewlink.services.responses import ResponseProcessor

router = APIRouter()


@router.post("", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
async def invite_worker(
    payload: InviteRequest,
    principal: Principal = Depends(get_principal),
    dispatcher: InvitationDispatcher = Depends(get_invitation_dispatcher),
    clock: Clock = Depends(get_clock),
) -> InvitationOut:
    try:
        invitation = await dispatcher.invite_worker(
            payload.project_id,
            payload.worker_id,
            principal,
            message=payload.message,
            expires_at=payload.expires_at,
        )
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return InvitationOut.from_record(invitation, clock.now())


@router.get("", response_model=list[InvitationOut])
async def list_invitations(
    principal: Principal = Depends(get_principal),
    dispatcher: InvitationDispatcher = Depends(get_invitation_dispatcher),
    clock: Clock = Depends(get_clock),
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[InvitationOut]:
    try:
        rows = await dispatcher.list_invitations(principal, status=status_filter, limit=limit, offset=offset)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    now = clock.now()
    return [InvitationOut.from_record(row, now) for row in rows]


@router.get("/{invitation_id}", response_model=InvitationOut)
async def get_invitation(
    invitation_id: str,
    principal: Principal = Depends(get_principal),
    dispatcher: InvitationDispatcher = Depends(get_invitation_dispatcher),
    clock: Clock = Depends(get_clock),
) -> InvitationOut:
    try:
        invitation = await dispatcher.get_invitation(invitation_id, principal)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return InvitationOut.from_record(invitation, clock.now())


@router.post("/{invitation_id}/respond", response_model=RespondOut)
async def respond_to_invitation(
    invitation_id: str,
    payload: RespondRequest,
    principal: Principal = Depends(get_principal),
    processor: ResponseProcessor = Depends(get_response_processor),
    clock: Clock = Depends(get_clock),
) -> RespondOut:
    try:
        outcome = await processor.respond(invitation_id, principal, payload.decision, payload.note)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return RespondOut(
        invitation=InvitationOut.from_record(outcome.invitation, clock.now()),
        job_record=JobOut.model_validate(outcome.job_record) if outcome.job_record else None,
    )


@router.post("/{invitation_id}/cancel", response_model=InvitationOut)
async def cancel_invitation(
    invitation_id: str,
    principal: Principal = Depends(get_principal),
    dispatcher: InvitationDispatcher = Depends(get_invitation_dispatcher),
    clock: Clock = Depends(get_clock),
) -> InvitationOut:
    try:
        invitation = await dispatcher.cancel_invitation(invitation_id, principal)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return InvitationOut.from_record(invitation, clock.now())
