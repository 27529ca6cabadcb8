"""
Payments API routes.

Only the provider webhook lives here. Keep this thin: signature checks and
state transitions belong to the application service.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_webhook_service
from application.dtos.checkout import WebhookResult
from application.services.webhook_service import WebhookService
from core.response import success_response, Response as ApiResponse


router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/webhooks/stripe", summary="Stripe webhook", response_model=ApiResponse[WebhookResult])
async def stripe_webhook(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
):
    # Signature is computed over the exact bytes received
    raw_body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    result = await service.handle(headers, raw_body)
    # 2xx acknowledges receipt, including duplicates and ignored kinds
    return success_response(data=result, message=f"Webhook {result.outcome.value}")
