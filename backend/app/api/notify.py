"""Join notification endpoints."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.api.deps import get_credentials, get_gateway, get_platform
from app.config import Settings, get_settings
from app.monitoring.metrics import join_broadcasts_total
from app.schemas import BroadcastJoinRequest, JoinBroadcast, JoinBroadcastData, NotifyJoinRequest
from app.services import Credentials, JoinRequest, NotificationGateway, PlatformClient, PlatformError

router = APIRouter(tags=["notifications"])

logger = logging.getLogger(__name__)


@router.post("/notify-join")
async def notify_join(
    payload: NotifyJoinRequest,
    gateway: NotificationGateway = Depends(get_gateway),
    credentials: Credentials = Depends(get_credentials),
) -> JSONResponse:
    """Post a join announcement into the room's discussion thread."""

    outcome = await gateway.notify_join(
        JoinRequest(
            room_id=payload.room_id,
            title_override=payload.title_override,
            content_override=payload.content_override,
        ),
        credentials,
    )
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_payload())


@router.post("/broadcast-join")
async def broadcast_join(
    payload: BroadcastJoinRequest,
    platform: PlatformClient = Depends(get_platform),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Send the join event to connected peers through the platform."""

    room_id = (payload.room_id or "").strip()
    if not room_id:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "Invalid request", "details": "missing room id"},
        )

    message = JoinBroadcast(
        data=JoinBroadcastData(
            message=settings.join_broadcast_message,
            timestamp=int(time.time() * 1000),
        )
    )
    try:
        await platform.broadcast(room_id, message.model_dump())
    except PlatformError as exc:
        join_broadcasts_total.labels("failed").inc()
        logger.warning("Join broadcast failed", extra={"room_id": room_id, "reason": str(exc)})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Failed to send join broadcast", "details": str(exc)},
        )
    join_broadcasts_total.labels("sent").inc()
    return JSONResponse(content={"success": True})
