"""
RelayGate - messaging gateway delivery core

FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import observability modules
from app.config import settings
from app.errors import ValidationError
from app.gateway import DeliveryGateway
from app.logging_config import configure_logging
from app.sentry_config import configure_sentry
from app.middleware.logging import LoggingMiddleware
from app.routes.metrics import router as metrics_router

# Import route modules
from app.routes.events import router as events_router
from app.routes.messages import router as messages_router
from app.routes.jobs import router as jobs_router
from app.routes.deliveries import router as deliveries_router
from app.services.rate_limiter import rate_limiter


def create_app(gateway: DeliveryGateway | None = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        gateway: Pre-built gateway (tests); built from settings at startup if omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "gateway", None) is None:
            app.state.gateway = await DeliveryGateway.from_settings(settings)
        app.state.gateway.start()
        try:
            yield
        finally:
            await app.state.gateway.stop()
            await rate_limiter.close()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="REST gateway for a messaging account with reliable callback and bulk send delivery",
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    # Add logging middleware FIRST (runs before other middleware)
    app.add_middleware(LoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=exc.to_dict())

    # Include metrics endpoint FIRST (so it's always available)
    app.include_router(metrics_router)
    app.include_router(events_router)
    app.include_router(messages_router)
    app.include_router(jobs_router)
    app.include_router(deliveries_router)

    @app.get("/")
    async def root():
        """Service banner."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running"
        }

    @app.get("/health")
    async def health(request: Request):
        """Detailed health check."""
        gateway: DeliveryGateway | None = request.app.state.gateway
        if gateway is None:
            return {"status": "starting", "ready": False, "database": "unknown"}
        provider_status = await gateway.pool.provider.status()
        return {
            "status": "ok",
            "ready": provider_status.ready,
            "database": "connected" if gateway.persistent else "disabled",
            "callback": gateway.dispatcher.enabled,
            "workers": gateway.pool.running,
        }

    return app


# Initialize logging first
configure_logging()

# Initialize Sentry (if SENTRY_DSN is set)
configure_sentry()

app = create_app()
