# backend/miche/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import is_running_tests, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .monitoring.sentry import init_sentry
from .routes.v1 import (
    availability as availability_v1,
    bookings as bookings_v1,
    health as health_v1,
    payments as payments_v1,
    prometheus as prometheus_v1,
    schedule as schedule_v1,
    services as services_v1,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info("%s API starting up...", BRAND_NAME)
    logger.info("Environment: %s", settings.environment)
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    if not settings.stripe_configured:
        logger.warning("STRIPE_SECRET_KEY not set; checkout and onboarding will fail")
    if not settings.elevated_path_configured:
        logger.warning("ELEVATED_DATABASE_URL not set; scoped writes have no fallback path")
    yield
    logger.info("%s API shutting down...", BRAND_NAME)


def create_app() -> FastAPI:
    init_sentry()

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(PrometheusMiddleware)

    # V1 API - prefixes are added here, never on the routers themselves
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(availability_v1.router, prefix="/professionals")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(schedule_v1.router, prefix="/schedule")
    api_v1.include_router(services_v1.router, prefix="/services")
    api_v1.include_router(payments_v1.router, prefix="/payments")
    app.include_router(api_v1)

    app.include_router(health_v1.router)
    app.include_router(prometheus_v1.router)
    return app


app = create_app()
