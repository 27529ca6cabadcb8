"""
订单API路由
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_current_user, get_order_service
from application.dtos.checkout import TransactionDTO
from application.services.order_service import OrderService
from application.services.token_service import TokenClaims
from core.response import success_response, Response as ApiResponse

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)


@router.post("/{order_id}/cancel", summary="取消订单", response_model=ApiResponse[TransactionDTO])
async def cancel_order(
    order_id: int,
    current_user: TokenClaims = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """取消待支付订单（仅订单所有者或管理员）"""
    order = await service.cancel_order(
        order_id, actor_id=current_user.user_id, is_admin=current_user.is_superuser
    )
    return success_response(data=TransactionDTO.build(order, None, None), message="Order cancelled")
