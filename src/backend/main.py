"""
Pollboard Backend Application

Users register, create polls, share them and vote; admins moderate.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.v1 import router as api_v1_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.middleware import (
    SecurityHeadersMiddleware,
    SessionGatekeeperMiddleware,
    server_error_response,
)
from core.rate_limit import RateLimiter, build_rate_limiter


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    await create_start_app_handler(app)()
    yield
    # Shutdown
    await create_stop_app_handler(app)()


def create_application(rate_limiter: Optional[RateLimiter] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.APP_NAME,
        description="Polls with owner/admin moderation",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    application.state.rate_limiter = rate_limiter or build_rate_limiter(settings)

    # Add middleware (order matters - the last one added runs first)
    # 1. Gatekeeper - rate limit, session refresh, route protection
    application.add_middleware(
        SessionGatekeeperMiddleware,
        rate_limiter=application.state.rate_limiter,
    )

    # 2. Security headers - outermost, so rejections and redirects get them too
    application.add_middleware(SecurityHeadersMiddleware)

    # Include routers
    application.include_router(api_v1_router, prefix="/api/v1")

    @application.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for load balancers and monitoring."""
        return {"status": "healthy", "service": "pollboard-api"}

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log unexpected failures and answer with a generic body."""
        return server_error_response(request, exc)

    return application


app = create_application()
