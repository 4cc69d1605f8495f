import hmac

from fastapi import Depends, Header, HTTPException, status

from crewlink.core.auth import Principal, parse_role
from crewlink.core.config import Settings, get_settings


async def get_principal(
    settings: Settings = Depends(get_settings),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    x_actor_role: str | None = Header(default=None, alias="X-Actor-Role"),
    x_actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
) -> Principal:
    """Resolve the calling actor from identity headers set by the gateway."""
    if settings.gateway_api_key:
        if not x_api_key or not hmac.compare_digest(x_api_key, settings.gateway_api_key):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"invalid or missing {settings.api_key_header}",
            )

    role = parse_role(x_actor_role)
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Role must be company or worker",
        )

    subject = (x_actor_id or "").strip()
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Actor-Id is required")

    return Principal(role=role, subject=subject)
