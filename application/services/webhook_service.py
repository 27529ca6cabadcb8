"""
Webhook processing: verify the provider signature, then route the event to the
idempotent success or refund path.

Non-error outcomes (duplicate delivery, unknown reference, ignored kind) come
back as a WebhookResult. Real failures raise and are answered with a non-2xx
status so the provider redelivers.
"""
from __future__ import annotations

from typing import Any

from application.dtos.checkout import WebhookOutcome, WebhookResult
from application.dtos.payments import WebhookEvent
from application.ports.payment_provider import PaymentProvider
from application.services.fulfillment_service import FulfillmentService
from application.services.refund_service import RefundService
from core.logging_config import bind_payment_context, get_logger
from domain.payment.exceptions import PaymentSignatureError
from shared.codes.payment_codes import (
    EVENT_CHARGE_REFUNDED,
    EVENT_CHECKOUT_COMPLETED,
    PAID_SESSION_STATUSES,
)


logger = get_logger(__name__)


class WebhookService:
    def __init__(
        self,
        provider: PaymentProvider,
        fulfillment: FulfillmentService,
        refunds: RefundService,
    ) -> None:
        self._provider = provider
        self._fulfillment = fulfillment
        self._refunds = refunds

    async def handle(self, headers: dict[str, Any], body: bytes) -> WebhookResult:
        try:
            event = self._provider.parse_webhook(headers, body)
        except PaymentSignatureError as exc:
            # nothing has been read from the payload; provider will retry
            logger.warning("webhook_signature_invalid", provider=self._provider.provider, error=exc.message)
            raise

        logger.info(
            "payment_webhook_parsed",
            provider=event.provider,
            event_type=event.type,
            event_id=event.id,
        )
        with bind_payment_context(webhook_event_id=event.id, webhook_event_type=event.type):
            if event.type == EVENT_CHECKOUT_COMPLETED:
                return await self._on_checkout_completed(event)
            if event.type == EVENT_CHARGE_REFUNDED:
                return await self._on_charge_refunded(event)

        logger.info("webhook_event_ignored", event_type=event.type, event_id=event.id)
        return WebhookResult(outcome=WebhookOutcome.IGNORED, event_id=event.id, event_type=event.type)

    async def _on_checkout_completed(self, event: WebhookEvent) -> WebhookResult:
        session = event.object
        reference = session.get("id")
        if not reference:
            logger.warning("webhook_event_ignored", event_type=event.type, event_id=event.id, reason="missing_reference")
            return WebhookResult(outcome=WebhookOutcome.IGNORED, event_id=event.id, event_type=event.type)
        if session.get("payment_status") not in PAID_SESSION_STATUSES:
            # async payment methods complete later via a separate event
            logger.info(
                "webhook_event_ignored",
                event_type=event.type,
                event_id=event.id,
                reference=reference,
                payment_status=session.get("payment_status"),
            )
            return WebhookResult(
                outcome=WebhookOutcome.IGNORED, event_id=event.id, event_type=event.type, reference=reference
            )

        outcome, order = await self._fulfillment.complete_by_reference(
            reference, payment_intent_ref=session.get("payment_intent")
        )
        return WebhookResult(
            outcome=outcome,
            event_id=event.id,
            event_type=event.type,
            reference=reference,
            order_id=order.id if order else None,
        )

    async def _on_charge_refunded(self, event: WebhookEvent) -> WebhookResult:
        charge = event.object
        reference = charge.get("payment_intent") or charge.get("id")
        if not reference:
            logger.warning("webhook_event_ignored", event_type=event.type, event_id=event.id, reason="missing_reference")
            return WebhookResult(outcome=WebhookOutcome.IGNORED, event_id=event.id, event_type=event.type)

        outcome, order = await self._refunds.refund_by_reference(reference)
        return WebhookResult(
            outcome=outcome,
            event_id=event.id,
            event_type=event.type,
            reference=reference,
            order_id=order.id if order else None,
        )
