"""
FastAPI application entry point.
Challenge: Mount routes, middleware (Prometheus), startup recovery of exchange timers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from finderguard.config import ExchangeConfig, NotificationConfig, get_settings
from finderguard.api.v1.router import api_router
from finderguard.core.clock import SystemClock
from finderguard.db.repositories import ItemRepository, MatchRepository, UserRepository
from finderguard.db.session import async_session_maker
from finderguard.queue.tasks import CeleryExpiryScheduler, celery_dispatch
from finderguard.services.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ServiceError,
)
from finderguard.services.exchange_service import ExchangeService
from finderguard.services.notifier import Notifier

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def reschedule_exchange_timers() -> int:
    """Countdowns live in the queue, not in memory; re-derive them from stored start times."""
    settings = get_settings()
    async with async_session_maker() as session:
        service = ExchangeService(
            MatchRepository(session),
            ItemRepository(session),
            UserRepository(session),
            SystemClock(),
            ExchangeConfig.from_settings(settings),
            CeleryExpiryScheduler(),
            Notifier(NotificationConfig.from_settings(settings), celery_dispatch),
        )
        return await service.reschedule_pending()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: reschedule in-flight exchange timers when the store is reachable."""
    try:
        await reschedule_exchange_timers()
    except Exception as exc:
        # Overdue handovers are still settled on read and on late confirmation
        logger.warning("could not reschedule exchange timers at startup: %s", exc)
    yield


_ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
}


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    code = next(
        (c for cls, c in _ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    return JSONResponse(status_code=code, content={"detail": exc.reason})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(
        title=settings.app_name,
        description="Lost & found matching and time-boxed handover service.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS for the mobile/web client
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics at /metrics
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    app.add_exception_handler(ServiceError, service_error_handler)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
