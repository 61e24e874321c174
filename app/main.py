import os

import sentry_sdk
import structlog
from fastapi import FastAPI
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.cors import CORSMiddleware

from app.api import errors
from app.api.routers.admin_issues import router as admin_issues_router
from app.api.routers.healthz import router as healthz_router
from app.api.routers.issues import router as issues_router
from app.api.routers.readyz import router as readyz_router
from app.core.config import settings
from app.logging import setup_logging
from app.middleware.request_id import request_id_middleware
from app.middleware.security_headers import security_headers_middleware


def _init_sentry(env: str) -> None:
    """Initialize Sentry (no-op if DSN is missing)."""
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return
    # traces_sample_rate: clamp to [0.0, 0.2]
    try:
        rate_raw = float(os.getenv("SENTRY_TRACES_RATE", "0"))
    except ValueError:
        rate_raw = 0.0
    sentry_sdk.init(
        dsn=dsn,
        environment=env,
        release=os.getenv("RELEASE"),
        integrations=[StarletteIntegration()],
        traces_sample_rate=max(0.0, min(0.2, rate_raw)),
        # Caller coordinates and tokens must not leave the process
        send_default_pii=False,
    )


def create_app() -> FastAPI:
    # Initialize structured logging first
    setup_logging()

    env = os.getenv("APP_ENV", settings.app_env)
    _init_sentry(env)

    app = FastAPI(
        title="Civic Issue Tracker",
        description=(
            "Location-gated civic issue reporting API.\n"
            "- Every issue read requires the caller's latitude/longitude\n"
            f"- Issues farther than {settings.max_search_radius_km:g}km are never returned\n"
            "- Anonymous reports never expose their reporter\n"
        ),
        version="0.1.0",
    )
    errors.install(app)

    # Request-ID middleware (JSON access log)
    app.middleware("http")(request_id_middleware)
    # Security headers
    app.middleware("http")(security_headers_middleware)

    # CORS from ALLOW_ORIGINS env (comma-separated)
    allow_origins = settings.origins()
    if allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allow_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS", "HEAD"],
            allow_headers=["*"],
        )

    app.include_router(issues_router)
    app.include_router(admin_issues_router)
    app.include_router(healthz_router)
    app.include_router(readyz_router)

    # Debug-only endpoint to raise an error (disabled in prod)
    if env != "prod":

        @app.get("/debug/error", include_in_schema=False)
        def debug_error():
            raise RuntimeError("intentional error for Sentry debug")

    structlog.get_logger(__name__).info(
        "app_startup", env=env, max_search_radius_km=settings.max_search_radius_km
    )
    return app


app = create_app()
