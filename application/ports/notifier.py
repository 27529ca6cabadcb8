"""
Notification port: purchase receipts and refund notices.

Called only after the fulfillment transaction has committed. Implementations
must not raise; delivery failures are logged and dropped.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.payment.events import PurchaseEvent


@runtime_checkable
class Notifier(Protocol):
    def notify(self, event: PurchaseEvent) -> None: ...


class NullNotifier:
    """Used where no broker is configured."""

    def notify(self, event: PurchaseEvent) -> None:
        return None
