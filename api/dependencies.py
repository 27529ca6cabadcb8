"""
API依赖项 - 认证、工作单元与应用服务装配
"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Callable, Optional

from application.ports.notifier import Notifier, NullNotifier
from application.ports.payment_provider import PaymentProvider
from application.services.checkout_service import CheckoutService
from application.services.fulfillment_service import FulfillmentService
from application.services.order_service import OrderService
from application.services.refund_service import RefundService
from application.services.token_service import TokenClaims, TokenService
from application.services.transaction_service import TransactionService
from application.services.webhook_service import WebhookService
from core.settings import payment_settings
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.exceptions import PaymentProviderNotConfiguredError
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


async def get_token(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> str:
    """从Bearer token中提取token"""
    if bearer_token and bearer_token.credentials:
        return bearer_token.credentials

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="未提供认证凭据",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_service() -> TokenService:
    return TokenService()


async def get_current_user(
    token: str = Depends(get_token),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """获取当前登录买家"""
    claims = tokens.verify_access_token(token)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的认证凭据",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


def get_uow_factory() -> Callable[..., AbstractUnitOfWork]:
    return SQLAlchemyUnitOfWork


def get_payment_provider(request: Request) -> Optional[PaymentProvider]:
    """lifespan 中构建的支付提供方（未配置时为 None）"""
    return getattr(request.app.state, "payment_provider", None)


def require_payment_provider(
    provider: Optional[PaymentProvider] = Depends(get_payment_provider),
) -> PaymentProvider:
    if provider is None:
        raise PaymentProviderNotConfiguredError(payment_settings.default_provider)
    return provider


def get_notifier(request: Request) -> Notifier:
    return getattr(request.app.state, "notifier", None) or NullNotifier()


def get_order_service(uow_factory=Depends(get_uow_factory)) -> OrderService:
    return OrderService(uow_factory)


def get_fulfillment_service(
    uow_factory=Depends(get_uow_factory),
    notifier: Notifier = Depends(get_notifier),
) -> FulfillmentService:
    return FulfillmentService(uow_factory, notifier)


def get_refund_service(
    uow_factory=Depends(get_uow_factory),
    notifier: Notifier = Depends(get_notifier),
) -> RefundService:
    return RefundService(uow_factory, notifier)


def get_checkout_service(
    uow_factory=Depends(get_uow_factory),
    orders: OrderService = Depends(get_order_service),
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
    provider: Optional[PaymentProvider] = Depends(get_payment_provider),
) -> CheckoutService:
    return CheckoutService(uow_factory, orders, fulfillment, provider)


def get_webhook_service(
    provider: PaymentProvider = Depends(require_payment_provider),
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
    refunds: RefundService = Depends(get_refund_service),
) -> WebhookService:
    return WebhookService(provider, fulfillment, refunds)


def get_transaction_service(uow_factory=Depends(get_uow_factory)) -> TransactionService:
    return TransactionService(uow_factory)
