"""Small dispatching helpers to decouple Celery from callers."""
from __future__ import annotations

from typing import Any, Dict

from core.logging_config import get_logger
from domain.payment.events import (
    PurchaseEvent,
    OrderFulfilled,
    FreeEnrollmentGranted,
    OrderRefunded,
)
from ..config.celery import celery_app


logger = get_logger(__name__)

_TASK_PREFIX = "infrastructure.tasks.tasks.notifications"


class TaskDispatcher:
    """Notifier backed by Celery; application services only see `notify`."""

    def notify(self, event: PurchaseEvent) -> None:
        """Fire-and-forget. Broker errors are logged, never raised."""
        if isinstance(event, OrderRefunded):
            task, kwargs = "send_refund_notice", {
                "buyer_id": event.buyer_id,
                "order_id": event.order_id,
                "course_ids": list(event.course_ids),
            }
        elif isinstance(event, (OrderFulfilled, FreeEnrollmentGranted)):
            task, kwargs = "send_purchase_receipt", {
                "buyer_id": event.buyer_id,
                "course_ids": list(event.course_ids),
                "order_id": event.order_id,
                "invoice_id": getattr(event, "invoice_id", None),
            }
        else:
            logger.warning("notification_unrouted", event_type=type(event).__name__)
            return
        try:
            self.enqueue(f"{_TASK_PREFIX}.{task}", kwargs=kwargs)
        except Exception as exc:
            logger.error(
                "notification_dispatch_failed",
                task=task,
                event_id=event.event_id,
                buyer_id=event.buyer_id,
                error=str(exc),
            )

    def enqueue(self, task_name: str, *, args: tuple | None = None, kwargs: Dict[str, Any] | None = None) -> None:
        """Schedule a task by name."""
        celery_app.send_task(task_name, args=args or (), kwargs=kwargs or {})
