"""
Payment lifecycle events.

Dataclass events record committed fulfillment facts for downstream handling
(receipts, notices). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class PurchaseEvent:
    buyer_id: int
    course_ids: list[int]
    order_id: Optional[int] = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class OrderFulfilled(PurchaseEvent):
    payment_id: Optional[int] = None
    invoice_id: Optional[int] = None


@dataclass
class FreeEnrollmentGranted(PurchaseEvent):
    pass


@dataclass
class OrderRefunded(PurchaseEvent):
    payment_id: Optional[int] = None
