import logging
import logging.config

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.config import get_settings
from app.core.security import redact_secret
from app.monitoring.registry import registry
from app.services import HttpPlatformClient, build_gateway, connect_cache


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        }
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "root": {
        "handlers": ["default"],
        "level": "INFO",
    },
    "loggers": {
        "httpx": {
            "handlers": ["default"],
            "level": "WARNING",
            "propagate": False,
        }
    },
}


logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def allow_platform_embedding(request: Request, call_next) -> Response:
    """The app is rendered inside the host platform's iframe."""

    response = await call_next(request)
    if "x-frame-options" in response.headers:
        del response.headers["x-frame-options"]
    response.headers["Content-Security-Policy"] = f"frame-ancestors {settings.frame_ancestors}"
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


@app.exception_handler(RequestValidationError)
async def malformed_request_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Invalid request", "details": str(exc.errors())},
    )


@app.get("/health", tags=["system"])
def health_check() -> dict[str, str]:
    """Simple health check endpoint."""
    return {"status": "ok", "environment": settings.environment}


@app.get("/metrics", tags=["metrics"], response_class=Response)
def export_metrics() -> Response:
    """Expose collected metrics for Prometheus scraping."""

    return Response(content=registry.render(), media_type="text/plain; version=0.0.4")


@app.on_event("startup")
async def _startup() -> None:
    logger.info(
        "Platform configuration: key=%s app_id=%s service_identity=%s environment=%s",
        redact_secret(settings.platform_api_key, visible=6),
        settings.platform_app_id or "<unset>",
        settings.service_identity_id or "<unset>",
        settings.environment,
    )
    for warning in settings.configuration_warnings():
        logger.warning(warning)

    platform = HttpPlatformClient.from_settings(settings)
    cache = await connect_cache(settings)
    app.state.platform = platform
    app.state.cache = cache
    app.state.gateway = build_gateway(platform, settings, directory_cache=cache)


@app.on_event("shutdown")
async def _shutdown() -> None:
    platform = getattr(app.state, "platform", None)
    if platform is not None:
        await platform.aclose()
        app.state.platform = None
    cache = getattr(app.state, "cache", None)
    if cache is not None:
        await cache.aclose()
        app.state.cache = None
    app.state.gateway = None


app.include_router(api_router, prefix="/api")
