from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from crewlink.api.deps import get_lifecycle_controller
from crewlink.api.errors import http_error
from crewlink.core.auth import Principal
from crewlink.core.security import get_principal
from crewlink.schemas.jobs import CompleteRequest, ConfirmRequest, JobOut, PayRequest
from crewlink.services.errors import EngagementError
from crewlink.services.lifecycle import JobLifecycleController
from crewlink.services.repository import RepositoryUnavailableError

router = APIRouter()


@router.get("", response_model=list[JobOut])
async def list_jobs(
    principal: Principal = Depends(get_principal),
    controller: JobLifecycleController = Depends(get_lifecycle_controller),
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[JobOut]:
    try:
        jobs = await controller.list_jobs(principal, status=status_filter, limit=limit, offset=offset)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobOut.model_validate(job) for job in jobs]


@router.get("/{job_id}", response_model=JobOut)
async def get_job(
    job_id: str,
    principal: Principal = Depends(get_principal),
    controller: JobLifecycleController = Depends(get_lifecycle_controller),
) -> JobOut:
    try:
        job = await controller.get_job(job_id, principal)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobOut.model_validate(job)


@router.post("/{job_id}/check-in", response_model=JobOut)
async def check_in(
    job_id: str,
    principal: Principal = Depends(get_principal),
    controller: JobLifecycleController = Depends(get_lifecycle_controller),
) -> JobOut:
    return await _advance(controller, job_id, "check_in", principal, {})


@router.post("/{job_id}/start", response_model=JobOut)
async def start_work(
    job_id: str,
    principal: Principal = Depends(get_principal),
    controller: JobLifecycleController = Depends(get_lifecycle_controller),
) -> JobOut:
    return await _advance(controller, job_id, "start_work", principal, {})


@router.post("/{job_id}/complete", response_model=JobOut)
async def complete_work(
    job_id: str,
    payload: CompleteRequest,
    principal: Principal = Depends(get_principal),
    controller: JobLifecycleController = Depends(get_lifecycle_controller),
) -> JobOut:
    return await _advance(controller, job_id, "complete_work", principal, payload.model_dump())


@router.post("/{job_id}/confirm", response_model=JobOut)
async def confirm_work(
    job_id: str,
    payload: ConfirmRequest,
    principal: Principal = Depends(get_principal),
    controller: JobLifecycleController = Depends(get_lifecycle_controller),
) -> JobOut:
    return await _advance(controller, job_id, "confirm", principal, payload.model_dump())


@router.post("/{job_id}/pay", response_model=JobOut)
async def record_payment(
    job_id: str,
    payload: PayRequest,
    principal: Principal = Depends(get_principal),
    controller: JobLifecycleController = Depends(get_lifecycle_controller),
) -> JobOut:
    return await _advance(controller, job_id, "pay", principal, payload.model_dump())


async def _advance(
    controller: JobLifecycleController,
    job_id: str,
    action: str,
    principal: Principal,
    payload: dict[str, Any],
) -> JobOut:
    try:
        job = await controller.advance(job_id, action, principal, payload)
    except EngagementError as exc:
        raise http_error(exc) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobOut.model_validate(job)
