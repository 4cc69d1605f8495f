from fastapi import APIRouter, Depends, HTTPException, Query, status

from crewlink.api.deps import get_invitation_dispatcher, get_project_registry
from crewlink.api.errors import http_error
from crewlink.core.auth import Principal
from crewlink.core.clock import Clock, get_clock
from crewlink.core.security import get_principal
from crewlink.schemas.invitations import BatchInviteOut, BatchInviteRequest, InvitationOut, InviteFailureOut
from crewlink.schemas.projects import (
    ProjectCreateRequest,
    ProjectOut,
    ProjectStatus,
    ProjectStatusRequest,
    ProjectSummaryOut,
    ProjectUpdateRequest,
)
from crewlink.services.errors import EngagementError
from crewlink.services.invitations import InvitationDispatcher
from crewlink.services.projects import ProjectRegistry
from crewlink.services.repository import RepositoryUnavailableError

router = APIRouter()


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreateRequest,
    principal: Principal = Depends(get_principal),
    registry: ProjectRegistry = Depends(get_project_registry),
) -> ProjectOut:
    try:
        project = await registry.create_project(principal, payload.model_dump(exclude_unset=True))
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ProjectOut.model_validate(project)


@router.get("", response_model=list[ProjectOut])
async def list_projects(
    principal: Principal = Depends(get_principal),
    registry: ProjectRegistry = Depends(get_project_registry),
    status_filter: ProjectStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[ProjectOut]:
    try:
        projects = await registry.list_projects(principal, status=status_filter, limit=limit, offset=offset)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [ProjectOut.model_validate(project) for project in projects]


@router.get("/{project_id}", response_model=ProjectSummaryOut)
async def get_project(
    project_id: str,
    principal: Principal = Depends(get_principal),
    registry: ProjectRegistry = Depends(get_project_registry),
) -> ProjectSummaryOut:
    try:
        summary = await registry.get_project(project_id, principal)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ProjectSummaryOut(
        project=ProjectOut.model_validate(summary.project),
        invitation_counts=summary.invitation_counts,
    )


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project(
    project_id: str,
    payload: ProjectUpdateRequest,
    principal: Principal = Depends(get_principal),
    registry: ProjectRegistry = Depends(get_project_registry),
) -> ProjectOut:
    try:
        project = await registry.update_project(project_id, principal, payload.model_dump(exclude_unset=True))
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ProjectOut.model_validate(project)


@router.post("/{project_id}/status", response_model=ProjectOut)
async def transition_project(
    project_id: str,
    payload: ProjectStatusRequest,
    principal: Principal = Depends(get_principal),
    registry: ProjectRegistry = Depends(get_project_registry),
) -> ProjectOut:
    try:
        project = await registry.transition_status(project_id, payload.status, principal)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ProjectOut.model_validate(project)


@router.post("/{project_id}/invitations", response_model=BatchInviteOut)
async def invite_workers(
    project_id: str,
    payload: BatchInviteRequest,
    principal: Principal = Depends(get_principal),
    dispatcher: InvitationDispatcher = Depends(get_invitation_dispatcher),
    clock: Clock = Depends(get_clock),
) -> BatchInviteOut:
    try:
        result = await dispatcher.invite_workers(
            project_id,
            payload.worker_ids,
            principal,
            message=payload.message,
            expires_at=payload.expires_at,
        )
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    now = clock.now()
    return BatchInviteOut(
        created=[InvitationOut.from_record(row, now) for row in result.created],
        skipped=result.skipped,
        failed=[InviteFailureOut(**row) for row in result.failed],
    )


@router.get("/{project_id}/invitations", response_model=list[InvitationOut])
async def list_project_invitations(
    project_id: str,
    principal: Principal = Depends(get_principal),
    dispatcher: InvitationDispatcher = Depends(get_invitation_dispatcher),
    clock: Clock = Depends(get_clock),
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[InvitationOut]:
    try:
        rows = await dispatcher.list_invitations(
            principal,
            project_id=project_id,
            status=status_filter,
            limit=limit,
            offset=offset,
        )
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    now = clock.now()
    return [InvitationOut.from_record(row, now) for row in rows]
