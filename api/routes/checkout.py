"""
结账API路由 - 发起购买、成功/取消回跳
"""
from fastapi import APIRouter, Depends, Query

from api.dependencies import get_checkout_service, get_current_user
from application.dtos.checkout import CheckoutRequest, CheckoutResult, RedirectResult
from application.services.checkout_service import CheckoutService
from application.services.token_service import TokenClaims
from core.response import success_response, Response as ApiResponse

router = APIRouter(
    prefix="/checkout",
    tags=["Checkout"]
)


@router.post("", summary="发起购买", response_model=ApiResponse[CheckoutResult])
async def checkout(
    payload: CheckoutRequest,
    current_user: TokenClaims = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    购买一门或多门课程

    - 免费课程：直接开通，返回开通结果
    - **hosted**：返回 `sessionId` 与 `redirectUrl`，前端跳转至收银台
    - **direct**：同步扣款并返回开通结果
    """
    result = await service.checkout(current_user.user_id, payload, customer_email=current_user.email)
    return success_response(data=result, message="Checkout created")


@router.get("/success", summary="支付成功回跳", response_model=ApiResponse[RedirectResult])
async def checkout_success(
    session_id: str = Query(..., min_length=1, description="支付会话ID"),
    current_user: TokenClaims = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    """webhook 尚未送达时根据会话状态补偿履约，已处理过则直接返回当前状态"""
    result = await service.confirm_checkout(
        session_id, actor_id=current_user.user_id, is_admin=current_user.is_superuser
    )
    return success_response(data=result)


@router.get("/cancel", summary="支付取消回跳", response_model=ApiResponse[RedirectResult])
async def checkout_cancel(
    session_id: str = Query(..., min_length=1, description="支付会话ID"),
    current_user: TokenClaims = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    result = await service.abandon_checkout(
        session_id, actor_id=current_user.user_id, is_admin=current_user.is_superuser
    )
    return success_response(data=result, message="Checkout cancelled")
