"""
Profit Dashboard - Main FastAPI Application
"""
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from contextlib import asynccontextmanager
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import logging

from profit_dashboard.config import settings
from profit_dashboard.rate_limit import limiter
from profit_dashboard.runtime import build_runtime
from profit_dashboard.api.v1 import inventory, cost_overrides, settings as settings_api

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting up Profit Dashboard...")
    runtime = getattr(app.state, "runtime", None)
    if runtime is None:
        runtime = build_runtime(settings)
        app.state.runtime = runtime
    runtime.scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await runtime.scheduler.stop()
    runtime.dispose()


def create_app() -> FastAPI:
    """Build the FastAPI application; services are created by the lifespan"""
    app = FastAPI(
        title="Profit Dashboard API",
        description="Square inventory cache with gross-profit metrics",
        version=settings.APP_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Attach limiter to app state (required by slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Reject requests with spoofed Host headers
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    # Security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        return response

    # Include routers
    app.include_router(inventory.router, prefix="/api/v1", tags=["Inventory"])
    app.include_router(cost_overrides.router, prefix="/api/v1", tags=["Cost Overrides"])
    app.include_router(settings_api.router, prefix="/api/v1", tags=["Settings"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy"}

    return app


app = create_app()
