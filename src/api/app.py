"""
FastAPI application factory.

* Registers routes for accounts, trips, cabs, drivers, profile, files and admin.
* Builds the JWT ``TokenService``, the trip lock provider, the mailer and
  the profile photo storage once and shares them through ``app.state``.
* Starts / stops the background trip scheduler via lifespan events.
* Applies rate-limiting middleware and the domain error handlers.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.errors import register_exception_handlers
from src.api.middleware import limiter
from src.api.routes import admin, auth, cabs, drivers, files, profile, trips
from src.config import settings
from src.infrastructure.locks import build_lock_provider
from src.infrastructure.security import TokenService
from src.infrastructure.storage import FileStorage
from src.services.notifications import LoggingMailer
from src.workers import scheduler as _scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the trip scheduler on startup; stop on shutdown."""
    if settings.scheduler_enabled:
        await _scheduler.start_scheduler_loop(app.state.locks)
    yield
    if settings.scheduler_enabled:
        await _scheduler.stop_scheduler_loop()


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title="Cab Booking API",
        description=(
            "Registration and login for admins, customers and drivers, "
            "cab and driver management, and trip booking with assignment, "
            "billing and rating."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.token_service = TokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_minutes=settings.jwt_expiration_minutes,
    )
    app.state.locks = build_lock_provider(settings)
    app.state.mailer = LoggingMailer()
    app.state.file_storage = FileStorage(settings.upload_path)
    logger.info("Using %s lock backend", settings.lock_backend)

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)

    # Routers
    for module in (auth, trips, cabs, drivers, profile, files, admin):
        app.include_router(module.router, prefix="/api/v1")

    return app
