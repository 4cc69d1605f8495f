from fastapi import HTTPException, status

from crewlink.services.errors import (
    AuthorizationError,
    ConflictError,
    EngagementError,
    ExpiredError,
    NotFoundError,
    StateError,
    ValidationError,
)

_STATUS_BY_ERROR: dict[type[EngagementError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StateError: status.HTTP_409_CONFLICT,
    ExpiredError: status.HTTP_410_GONE,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
}


def http_error(exc: EngagementError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=exc.to_detail())
