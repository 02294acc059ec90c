"""
Celery tasks - exchange expiry timers and notification delivery.
"""

import asyncio
import logging

from finderguard.config import ExchangeConfig, NotificationConfig, get_settings
from finderguard.core.clock import SystemClock
from finderguard.db.repositories import ItemRepository, MatchRepository, UserRepository
from finderguard.db.session import worker_session
from finderguard.queue.celery_app import celery_app
from finderguard.services.exchange_service import ExchangeService, ExpiryOutcome
from finderguard.services.notifier import Notifier

logger = logging.getLogger(__name__)


def _run_async(coro):
    """Run async function from sync Celery task."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def expiry_task_id(match_id: int) -> str:
    return f"exchange-expiry-{match_id}"


class CeleryExpiryScheduler:
    """Schedules the expiry check as a countdown task keyed by match id."""

    def schedule(self, match_id: int, delay_seconds: float) -> None:
        expire_exchange_task.apply_async(
            args=[match_id],
            countdown=max(0.0, delay_seconds),
            task_id=expiry_task_id(match_id),
        )


def celery_dispatch(event: str, payload: dict) -> None:
    send_notification_task.delay(event, payload)


async def _expire_exchange(match_id: int) -> ExpiryOutcome:
    settings = get_settings()
    async with worker_session() as session:
        service = ExchangeService(
            MatchRepository(session),
            ItemRepository(session),
            UserRepository(session),
            SystemClock(),
            ExchangeConfig.from_settings(settings),
            CeleryExpiryScheduler(),
            Notifier(NotificationConfig.from_settings(settings), celery_dispatch),
        )
        return await service.expire_if_due(match_id)


@celery_app.task(bind=True, max_retries=3)
def expire_exchange_task(self, match_id: int):
    """
    Expire a handover whose window closed without the owner's confirmation.
    Early deliveries (clock skew, restarts) reschedule for the time left.
    """
    try:
        outcome = _run_async(_expire_exchange(match_id))
    except Exception as exc:
        raise self.retry(exc=exc, countdown=5)
    if outcome.status == "not_due":
        CeleryExpiryScheduler().schedule(match_id, outcome.remaining_seconds + 1)
    logger.info("expiry check for match id=%s: %s", match_id, outcome.status)
    return outcome.status


@celery_app.task
def send_notification_task(event: str, payload: dict):
    """Deliver a notification. Push plumbing is external; record what would be sent."""
    logger.info("notification %s -> users %s", event, payload.get("user_ids"))
    return event
