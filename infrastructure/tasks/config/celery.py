"""Celery app for buyer notifications (purchase receipts, refund notices).

The broker is Redis (REDIS__URL). Without a broker the API falls back to a
null notifier, so nothing here is imported on the request path in that case.
"""
from __future__ import annotations

import os

from celery import Celery
from celery.signals import setup_logging
from kombu import Queue

from core.config import settings
from core.logging_config import configure_logging, get_logger


logger = get_logger(__name__)

NOTIFICATION_QUEUE = "notifications"

CELERY_IMPORTS = (
    "infrastructure.tasks.tasks",
)


def _broker_url() -> str | None:
    return settings.redis.url or os.getenv("CELERY_BROKER_URL")


celery_app = Celery("coursepay")

celery_app.conf.update(
    broker_url=_broker_url(),
    result_backend=settings.redis.url or os.getenv("CELERY_RESULT_BACKEND"),
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # ack after the email is handed off so a crashed worker redelivers it
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # receipts are fire-and-forget; results only aid debugging
    result_expires=3600,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_default_retry_delay=5,
    task_queues=(
        Queue(NOTIFICATION_QUEUE),
        Queue("default"),
    ),
    task_routes={
        "infrastructure.tasks.tasks.notifications.*": {"queue": NOTIFICATION_QUEUE},
    },
    # a request thread must never hang on an unreachable broker
    broker_connection_timeout=2,
    task_publish_retry_policy={"max_retries": 1, "interval_start": 0, "interval_step": 0.2},
    imports=CELERY_IMPORTS,
)

if (settings.ENVIRONMENT or "").lower() in {"test", "testing"}:
    celery_app.conf.task_always_eager = True

celery_app.autodiscover_tasks(packages=CELERY_IMPORTS)


@setup_logging.connect
def _use_structlog(**kwargs):
    # keep worker logs in the same JSON shape as the API
    configure_logging()


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info("celery_configured", broker=sender.conf.broker_url, queue=NOTIFICATION_QUEUE)
