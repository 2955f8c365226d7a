"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from . import models  # noqa: F401  registers tables on Base.metadata
from .core.config import Settings, settings
from .core.database import build_engine, build_session_factory, close_db, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    request_validation_handler,
)
from .core.middleware import setup_middleware
from .core.observability import (
    SERVICE_NAME,
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import booking, health, metrics, payments, reconciliation
from .services.payment_gateway import StripeGateway
from .services.side_effects import SideEffectOrchestrator
from .workers.manager import WorkerManager

# Configure structured logging
setup_structured_logging(settings)

# Configure traditional logging for compatibility
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Builds the database engine, payment gateway, side-effect orchestrator and
    background workers, keeps them on ``app.state``, and tears them down on
    shutdown.
    """
    app_settings: Settings = app.state.settings

    # Startup
    logger.info("Starting FastAPI application")
    logger.info(f"Environment: {app_settings.environment}")
    logger.info(f"Debug mode: {app_settings.debug}")

    try:
        engine = build_engine(app_settings)
        app.state.engine = engine
        app.state.session_factory = build_session_factory(engine)

        # Setup observability
        setup_tracing(app_settings)
        setup_metrics(app_settings)
        instrument_sqlalchemy(engine)
        logger.info("Observability setup completed")

        # Create tables for local development; deployed databases are migrated with Alembic
        if not app_settings.is_production:
            await init_db(engine)
            logger.info("Database initialized successfully")

        app.state.payment_gateway = StripeGateway(app_settings)
        app.state.side_effects = SideEffectOrchestrator(app.state.session_factory)

        # Start background workers
        app.state.worker_manager = WorkerManager(app.state.side_effects, app_settings)
        await app.state.worker_manager.start_all()
        logger.info("Background workers started successfully")
    except Exception as e:
        logger.error(f"Failed to initialize application: {e}")
        raise

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down FastAPI application")

    try:
        # Stop background workers; queued side effects run before this returns
        await app.state.worker_manager.stop_all()
        logger.info("Background workers stopped")

        # Close database connections
        await close_db(app.state.engine)
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error during application cleanup: {e}")

    logger.info("Application shutdown complete")


def register_routes(app: FastAPI) -> None:
    """Attach the API routers and inline service endpoints."""

    @app.get(
        "/health",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Health Check",
        description="Check if the service is healthy and responsive",
        response_model=dict,
    )
    async def health_check():
        """Liveness probe."""
        app_settings = app.state.settings
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": "1.0.0",
            "environment": app_settings.environment,
            "debug": app_settings.debug,
        }

    @app.get(
        "/ready",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Readiness Check",
        description="Check if the service can reach its database",
        response_model=dict,
    )
    async def readiness_check(request: Request):
        """
        Readiness probe.

        Returns 503 while the database is unreachable.
        """
        try:
            async with request.app.state.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning(f"Readiness check failed: {e}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unavailable", "service": SERVICE_NAME, "checks": {"database": "error"}},
            )

        return {
            "status": "ready",
            "service": SERVICE_NAME,
            "checks": {"database": "ok"},
        }

    app.include_router(health.router)
    app.include_router(payments.router)
    app.include_router(booking.router)
    app.include_router(reconciliation.router)
    app.include_router(metrics.router)


def create_app(app_settings: Settings = settings, use_lifespan: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings to run with
        use_lifespan: Disable to wire ``app.state`` by hand, as the tests do

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Marketplace Payments API",
        description="Payment intents, Stripe webhooks and booking materialization for the tourism marketplace",
        version="1.0.0",
        debug=app_settings.debug,
        lifespan=lifespan if use_lifespan else None,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
    )
    app.state.settings = app_settings

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )

    # Setup custom middleware
    setup_middleware(app, enable_logging=True)

    # Instrument FastAPI with OpenTelemetry
    instrument_fastapi(app)

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    register_routes(app)

    logger.info("FastAPI application created and configured")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "marketplace.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
