from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List, Literal

from pydantic import AnyHttpUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Airwave Radio API", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
        ],
        description="List of allowed CORS origins",
    )
    frame_ancestors: str = Field(
        default="*",
        description="Value of the CSP frame-ancestors directive; the app is embedded by the host platform",
    )

    platform_api_url: str = Field(
        default="https://api.whop.com/api/v5/app",
        description="Base URL of the hosting platform API",
    )
    platform_api_key: str | None = Field(default=None, description="Server-side platform API key")
    platform_app_id: str | None = Field(default=None, description="Platform application identifier")
    platform_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for every platform call made by the notification gateway",
    )
    service_identity_id: str | None = Field(
        default=None,
        description="Agent/service identity used as acting identity for platform writes",
    )

    notify_required_level: Literal["none", "authenticated", "admin"] = Field(
        default="none",
        description="Minimum caller authorization required by the join notification gateway",
    )
    notify_acting_identity: Literal["service", "user"] = Field(
        default="service",
        description="Identity on whose behalf thread creation and posting are performed",
    )

    user_token_header: str = Field(default="x-whop-user-token")
    user_token_cookie: str = Field(default="whop_user_token")
    dev_token_fallback_enabled: bool = Field(
        default=False,
        description="Allow referrer query tokens and unverified JWT decoding outside production",
    )
    dev_token_query_param: str = Field(default="whop-dev-user-token")
    dev_referrer_hosts: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["localhost", "127.0.0.1"],
    )

    thread_name: str = Field(default="Radio Discussions")
    thread_who_can_post: str = Field(default="everyone")
    announcement_title: str = Field(default="New Listener Joined")
    announcement_body: str = Field(
        default="Someone just joined the radio station! 🎧 Welcome to the vibe! What music are you feeling today?"
    )
    announcement_title_template: str = Field(default="🎵 {title}")
    announcement_body_template: str = Field(default="{content}\n\n*radio announcement*")
    join_broadcast_message: str = Field(default="🎵 someone joined the radio station")
    override_max_length: int = Field(
        default=500,
        description="Maximum length of client supplied title/content overrides",
    )

    cache_url: str | None = Field(
        default=None,
        description="Optional Redis URL for the room directory cache",
    )
    cache_timeout_seconds: float = Field(
        default=1.0,
        description="Socket timeout applied to every directory cache command",
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"production", "prod"}

    @field_validator("cors_origins", "dev_referrer_hosts", mode="before")
    @classmethod
    def split_comma_separated(cls, v: Any):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("platform_api_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def refuse_dev_fallback_in_production(self) -> "Settings":
        if self.dev_token_fallback_enabled and self.is_production:
            raise ValueError("DEV_TOKEN_FALLBACK_ENABLED cannot be used in production")
        return self

    @model_validator(mode="after")
    def require_service_identity_in_production(self) -> "Settings":
        if self.is_production and self.notify_acting_identity == "service" and not self.service_identity_id:
            raise ValueError("SERVICE_IDENTITY_ID is required when NOTIFY_ACTING_IDENTITY=service")
        return self

    def configuration_warnings(self) -> List[str]:
        """Non-fatal misconfigurations worth reporting at startup."""

        warnings: List[str] = []
        if not self.platform_api_key:
            warnings.append("PLATFORM_API_KEY is not set; platform calls will be rejected")
        if self.notify_acting_identity == "service" and not self.service_identity_id:
            warnings.append(
                "SERVICE_IDENTITY_ID is not set; join notifications will fail until it is configured"
            )
        if self.dev_token_fallback_enabled:
            warnings.append("Development token fallback is enabled; unverified tokens may be accepted")
        return warnings


@lru_cache
def get_settings() -> Settings:
    return Settings()
