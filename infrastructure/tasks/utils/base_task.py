"""Base task for notification jobs: binds buyer/order ids into the log context."""
from __future__ import annotations

from celery import Task

from core.logging_config import bind_payment_context, get_logger

logger = get_logger(__name__)

# kwargs carry buyer/order ids only, never payment data
_CONTEXT_KEYS = ("buyer_id", "order_id", "invoice_id")


class BaseTask(Task):
    def __call__(self, *args, **kwargs):
        with bind_payment_context(task_name=self.name, **{k: kwargs.get(k) for k in _CONTEXT_KEYS}):
            return super().__call__(*args, **kwargs)

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        # retries exhausted; the buyer gets no receipt for this event
        logger.error(
            "notification_task_failed",
            task_id=task_id,
            task_name=self.name,
            order_id=kwargs.get("order_id"),
            buyer_id=kwargs.get("buyer_id"),
            exc=str(exc),
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.warning(
            "notification_task_retry",
            task_id=task_id,
            task_name=self.name,
            retries=self.request.retries,
            exc=str(exc),
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)
