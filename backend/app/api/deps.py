"""FastAPI dependencies for the API layer."""

from fastapi import Depends, HTTPException, Request, status

from app.config import Settings, get_settings
from app.services import Credentials, NotificationGateway, PlatformClient


def get_platform(request: Request) -> PlatformClient:
    """Return the platform handle created at application startup."""

    platform = getattr(request.app.state, "platform", None)
    if platform is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Platform client is not initialised",
        )
    return platform


def get_gateway(request: Request) -> NotificationGateway:
    """Return the process-wide notification gateway."""

    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification gateway is not initialised",
        )
    return gateway


def get_credentials(request: Request, settings: Settings = Depends(get_settings)) -> Credentials:
    """Collect the caller's credential material from headers and cookies."""

    return Credentials.from_request_parts(
        request.headers,
        request.cookies,
        token_header=settings.user_token_header,
        token_cookie=settings.user_token_cookie,
    )
