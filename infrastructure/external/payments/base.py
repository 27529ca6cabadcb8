"""
Base payment client implementing shared concerns: timeouts, retry, logging.

Concrete providers subclass and implement provider-specific calls.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from application.dtos.payments import (
    CheckoutSession,
    CheckoutSessionRequest,
    WebhookEvent,
)
from application.ports.payment_provider import PaymentProvider
from domain.payment.exceptions import PaymentRecoverableError


logger = get_logger(__name__)

T = TypeVar("T")


class BasePaymentClient(PaymentProvider):
    provider: str = "base"

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}

    @property
    def total_timeout(self) -> float:
        return float(self._timeouts_cfg["total"])

    async def aclose(self) -> None:
        return None

    async def _retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Retry only transient failures; anything else surfaces on first attempt."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(PaymentRecoverableError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self._log("payment_provider_retry", attempt=attempt.retry_state.attempt_number)
                return await fn()

    async def _run_blocking(self, fn: Callable[[], T]) -> T:
        """Run a blocking SDK call off the event loop under the total timeout."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self.total_timeout)
        except asyncio.TimeoutError as exc:
            raise PaymentRecoverableError(
                f"{self.provider} request timed out",
                provider=self.provider,
                provider_code="timeout",
            ) from exc

    async def create_checkout_session(self, req: CheckoutSessionRequest) -> CheckoutSession:  # type: ignore[override]
        raise NotImplementedError

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:  # type: ignore[override]
        raise NotImplementedError

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:  # type: ignore[override]
        raise NotImplementedError

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
