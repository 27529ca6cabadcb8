"""Buyer notification tasks: purchase receipts and refund notices."""
from __future__ import annotations

from typing import Optional

from celery import shared_task

from ..utils.base_task import BaseTask
from core.logging_config import get_logger

logger = get_logger(__name__)

_RETRY = dict(
    bind=True,
    base=BaseTask,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)


@shared_task(**_RETRY)
def send_purchase_receipt(
    self,
    buyer_id: int,
    course_ids: list[int],
    order_id: Optional[int] = None,
    invoice_id: Optional[int] = None,
) -> None:
    """Email the buyer a receipt listing the purchased courses.

    Free enrollments arrive with no order or invoice.
    """
    logger.info(
        "send_purchase_receipt",
        buyer_id=buyer_id,
        order_id=order_id,
        invoice_id=invoice_id,
        course_ids=course_ids,
    )


@shared_task(**_RETRY)
def send_refund_notice(self, buyer_id: int, order_id: int, course_ids: list[int]) -> None:
    """Tell the buyer their access was revoked after a refund."""
    logger.info(
        "send_refund_notice",
        buyer_id=buyer_id,
        order_id=order_id,
        course_ids=course_ids,
    )
