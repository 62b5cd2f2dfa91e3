"""Schemas for the join notification endpoints."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class NotifyJoinRequest(BaseModel):
    """Body of ``POST /api/notify-join``.

    The room id is optional at the schema level so that a missing id
    surfaces as the gateway's 400 outcome rather than a validation error.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    room_id: str | None = Field(
        default=None, validation_alias=AliasChoices("roomId", "experienceId", "room_id")
    )
    title_override: str | None = Field(
        default=None, validation_alias=AliasChoices("titleOverride", "title", "title_override")
    )
    content_override: str | None = Field(
        default=None,
        validation_alias=AliasChoices("contentOverride", "content", "content_override"),
    )


class BroadcastJoinRequest(BaseModel):
    """Body of ``POST /api/broadcast-join``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    room_id: str | None = Field(
        default=None, validation_alias=AliasChoices("roomId", "experienceId", "room_id")
    )


class JoinBroadcastData(BaseModel):
    message: str
    timestamp: int = Field(..., ge=0, description="Milliseconds since the epoch")


class JoinBroadcast(BaseModel):
    """Real-time payload announcing a new listener."""

    type: str = "user_joined"
    data: JoinBroadcastData
