from fastapi import APIRouter, Depends, HTTPException, Query, status

from crewlink.core.auth import Principal
from crewlink.core.security import get_principal
from crewlink.schemas.notifications import MarkAllReadOut, NotificationOut, UnreadCountOut
from crewlink.services.repository import RepositoryUnavailableError, get_repository

router = APIRouter()


@router.get("", response_model=list[NotificationOut])
async def list_notifications(
    principal: Principal = Depends(get_principal),
    repository=Depends(get_repository),
    unread_only: bool = Query(default=False),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[NotificationOut]:
    try:
        rows = await repository.list_notifications(
            recipient_id=principal.subject,
            recipient_role=principal.role.value,
            unread_only=unread_only,
            limit=limit,
            offset=offset,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [NotificationOut.model_validate(row) for row in rows]


@router.get("/unread-count", response_model=UnreadCountOut)
async def unread_count(
    principal: Principal = Depends(get_principal),
    repository=Depends(get_repository),
) -> UnreadCountOut:
    try:
        total = await repository.count_unread_notifications(
            recipient_id=principal.subject,
            recipient_role=principal.role.value,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return UnreadCountOut(unread=total)


@router.post("/read-all", response_model=MarkAllReadOut)
async def mark_all_read(
    principal: Principal = Depends(get_principal),
    repository=Depends(get_repository),
) -> MarkAllReadOut:
    try:
        marked = await repository.mark_all_notifications_read(
            recipient_id=principal.subject,
            recipient_role=principal.role.value,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return MarkAllReadOut(marked=marked)


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: str,
    principal: Principal = Depends(get_principal),
    repository=Depends(get_repository),
) -> NotificationOut:
    try:
        row = await repository.mark_notification_read(
            notification_id=notification_id,
            recipient_id=principal.subject,
            recipient_role=principal.role.value,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="notification not found")
    return NotificationOut.model_validate(row)
