"""
交易流水API路由
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_current_user, get_transaction_service
from application.dtos.checkout import TransactionDTO
from application.services.token_service import TokenClaims
from application.services.transaction_service import TransactionService
from core.config import settings
from core.response import paginated_response, Response as ApiResponse, PaginatedData

router = APIRouter(
    prefix="/transactions",
    tags=["Transactions"]
)


@router.get("", summary="交易列表", response_model=ApiResponse[PaginatedData[TransactionDTO]])
async def list_transactions(
    status: Optional[str] = Query(None, description="订单状态：PENDING/COMPLETED/CANCELLED/REFUNDED"),
    date_from: Optional[datetime] = Query(None, description="创建时间起（含）"),
    date_to: Optional[datetime] = Query(None, description="创建时间止（含）"),
    page: int = Query(1, ge=1, description="页码"),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="每页数量"),
    current_user: TokenClaims = Depends(get_current_user),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    分页查询订单、支付、发票与课程明细

    管理员可查看全部订单，普通用户只能看到自己的订单
    """
    items, total = await service.list_transactions(
        actor_id=current_user.user_id,
        is_admin=current_user.is_superuser,
        status=status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        size=size,
    )
    return paginated_response(items=items, total=total, page=page, size=size)
