"""FastAPI application entrypoint.

All API routes prefixed /api. CORS restricted to CORS_ORIGIN.
Auto-generated OpenAPI docs at /docs.

A TenantRuntime owning the per-tenant connection cache is created once during
the lifespan and stored on app.state for injection via Depends().
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.admin import router as admin_router
from app.api.v1.auth import router as auth_router
from app.api.v1.health import router as health_router
from app.api.v1.superadmin import router as superadmin_router
from app.core.config import settings
from app.core.exceptions import LeadbaseError
from app.db.registry import close_registry
from app.db.tenants import TenantConnectionManager
from app.services.runtime import TenantRuntime


def _configure_logging() -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


_configure_logging()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle.

    Creates the singleton TenantRuntime and attaches it to app.state.
    Retrieved in request handlers via Depends() in app/api/deps.py.
    """
    # --- Startup ---
    logger.info("app_startup", env=settings.app_env)
    missing = settings.missing_required()
    if missing:
        logger.warning("missing_required_settings", settings=missing)

    app.state.tenant_runtime = TenantRuntime(
        TenantConnectionManager(settings.database_url)
    )
    yield

    # --- Shutdown ---
    logger.info("app_shutdown")
    await app.state.tenant_runtime.close()
    await close_registry()


app = FastAPI(
    title="Leadbase — Multi-tenant Lead Management API",
    description="Superadmin-provisioned tenants, each with its own database and lead form.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LeadbaseError)
async def leadbase_error_handler(request: Request, exc: LeadbaseError) -> JSONResponse:
    """Structured error response for all Leadbase exceptions."""
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed payloads and path parameters are 400, not 422."""
    details = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder(
            {
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Invalid request payload",
                    "details": details,
                }
            }
        ),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected: log it, reveal nothing."""
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "INTERNAL_ERROR", "message": "Internal Server Error"}},
    )


app.include_router(health_router)
app.include_router(auth_router, prefix="/api")
app.include_router(superadmin_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "Leadbase", "version": "1.0.0", "docs": "/docs"}
