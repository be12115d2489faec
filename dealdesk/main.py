from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from dealdesk import __version__
from dealdesk.core.config import settings
from dealdesk.core.database import async_session_factory, create_all
from dealdesk.core.errors import (
    disclosure_error_handler,
    global_exception_handler,
    http_exception_handler,
)
from dealdesk.core.exceptions import DisclosureError
from dealdesk.core.sentry import init_sentry
from dealdesk.middleware.security import (
    RequestBodySizeLimitMiddleware,
    SecurityHeadersMiddleware,
)

import dealdesk.models  # noqa: F401, register all models at startup

from dealdesk.modules.checklist.router import router as checklist_router
from dealdesk.modules.deal_releases.router import partner_router as partner_deals_router
from dealdesk.modules.deal_releases.router import router as deal_releases_router
from dealdesk.modules.requirements.router import router as requirements_router

# ── Sentry: must be initialised BEFORE FastAPI app is created ────────────────
init_sentry(settings.SENTRY_DSN, settings.SENTRY_ENVIRONMENT, settings.APP_VERSION)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    logger.info("Starting DealDesk API", env=settings.APP_ENV, version=__version__)
    if settings.APP_ENV == "development":
        # Deployed environments run alembic; local runs get tables on boot.
        await create_all()
    yield
    logger.info("Shutting down DealDesk API")


_is_prod = settings.APP_ENV == "production"

app = FastAPI(
    title="DealDesk API",
    description="Document checklists and progressive deal disclosure to funding partners.",
    version=__version__,
    docs_url=None if _is_prod else "/docs",
    redoc_url=None if _is_prod else "/redoc",
    openapi_url=None if _is_prod else "/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
)
# Security middleware (added last = outermost = first to see requests, last to touch responses)
app.add_middleware(
    RequestBodySizeLimitMiddleware,  # type: ignore[arg-type]
    max_bytes=settings.MAX_REQUEST_BODY_BYTES,
)
app.add_middleware(
    SecurityHeadersMiddleware,  # type: ignore[arg-type]
    is_production=_is_prod,
)

app.add_exception_handler(DisclosureError, disclosure_error_handler)  # type: ignore[arg-type]
app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, global_exception_handler)


# ── X-API-Version response header ────────────────────────────────────────────


@app.middleware("http")
async def add_version_header(request: Request, call_next) -> Response:
    response = await call_next(request)
    response.headers["X-API-Version"] = "v1"
    return response


# ── Health check (root-level, not under /v1) ─────────────────────────────────


@app.get("/health")
async def health_check() -> dict:
    """Probes the database."""
    checks: dict[str, dict] = {}

    try:
        async with async_session_factory() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy"}
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("health_check_failed", component="database", error=str(exc))
        checks["database"] = {"status": "unhealthy", "error": str(exc)}

    overall = (
        "healthy"
        if all(c["status"] == "healthy" for c in checks.values())
        else "degraded"
    )
    return {"status": overall, "service": "dealdesk-api", "version": __version__, "checks": checks}


# ── /v1 versioned router ──────────────────────────────────────────────────────

api_v1 = APIRouter(prefix="/v1")

api_v1.include_router(requirements_router)
api_v1.include_router(checklist_router)
api_v1.include_router(deal_releases_router)
api_v1.include_router(partner_deals_router)

app.include_router(api_v1)
