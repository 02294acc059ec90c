"""
Celery application - exchange expiry timers and notification delivery.
Challenge: A handover deadline must fire even if the API process restarts.
Design: RabbitMQ broker; Redis as result backend; timers and notifications on
separate queues so a notification backlog never delays an expiry.
"""

from celery import Celery

from finderguard.config import get_settings

settings = get_settings()

EXCHANGE_TIMER_QUEUE = "exchange-timers"
NOTIFICATION_QUEUE = "notifications"

celery_app = Celery(
    "finderguard",
    broker=settings.celery_broker_url,
    backend=settings.redis_url,
    include=["finderguard.queue.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    task_routes={
        "finderguard.queue.tasks.expire_exchange_task": {"queue": EXCHANGE_TIMER_QUEUE},
        "finderguard.queue.tasks.send_notification_task": {"queue": NOTIFICATION_QUEUE},
    },
    task_time_limit=60,
    worker_prefetch_multiplier=1,
    # Countdown messages stay unacked until the task has run
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)
