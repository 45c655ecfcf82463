"""
订单路由模块（后台）

仅管理员可访问（非管理员返回 403001）：
- 查询全部订单（分页、状态过滤、搜索）
- 查询订单详情、状态历史
- 修改单个订单状态
- 批量修改订单状态（全部成功或全部回滚）
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app.api.deps import AdminUser, SessionDep
from app.api.routes.orders import to_history_data, to_order_detail, to_order_summary
from app.api.schemas import (
    ApiEnvelope,
    BulkStatusUpdateRequest,
    BulkUpdateData,
    OrdersData,
    OrderStatusUpdateRequest,
    StatusHistoryListData,
)
from app.crud import order as order_crud
from app.enums import OrderStatus
from app.services import order_service

router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


@router.get("", response_model=ApiEnvelope)
def list_orders(
    session: SessionDep,
    _: AdminUser,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    status: OrderStatus | None = None,
    search: str | None = Query(default=None, max_length=64),
) -> ApiEnvelope:
    """
    全部订单列表

    请求路径: GET /api/v1/admin/orders?status=PROCESSING&search=ORD-
    """
    rows, count = order_crud.list_orders(
        session=session, status=status, search=search, page=page, page_size=page_size
    )
    return ApiEnvelope(
        data=OrdersData(
            data=[to_order_summary(o) for o in rows],
            count=count,
            page=page,
            page_size=page_size,
        )
    )


@router.post("/bulk-status", response_model=ApiEnvelope)
def bulk_update_status(
    session: SessionDep, admin: AdminUser, body: BulkStatusUpdateRequest
) -> ApiEnvelope:
    """
    批量修改订单状态

    每个订单都按单个修改的规则校验（包括取消 / 失败必须填写原因），
    任意一个订单失败则全部回滚，并返回该订单的错误。

    请求路径: POST /api/v1/admin/orders/bulk-status
    """
    results = order_service.bulk_change_status(
        session=session,
        order_ids=body.order_ids,
        new_status=body.status,
        reason=body.reason,
        actor=admin,
    )
    return ApiEnvelope(
        data=BulkUpdateData(
            updated=len(results),
            orders=[to_order_summary(r.order) for r in results],
        )
    )


@router.get("/{order_id}", response_model=ApiEnvelope)
def get_order(session: SessionDep, _: AdminUser, order_id: int) -> ApiEnvelope:
    """订单详情（含明细、状态历史和允许的下一状态）"""
    result = order_crud.get_order(session=session, order_id=order_id)
    return ApiEnvelope(data=to_order_detail(result))


@router.patch("/{order_id}/status", response_model=ApiEnvelope)
def update_status(
    session: SessionDep,
    admin: AdminUser,
    order_id: int,
    body: OrderStatusUpdateRequest,
) -> ApiEnvelope:
    """
    修改订单状态

    取消时读取 cancellation_reason，标记失败时读取 failure_reason。

    请求路径: PATCH /api/v1/admin/orders/{order_id}/status

    Raises:
        AppError: 404301 / 400301 / 400302 / 409302 / 500301
    """
    result = order_service.change_status(
        session=session,
        order_id=order_id,
        new_status=body.status,
        reason=body.reason_for_target(),
        actor=admin,
    )
    return ApiEnvelope(data=to_order_detail(result))


@router.get("/{order_id}/history", response_model=ApiEnvelope)
def get_order_history(session: SessionDep, _: AdminUser, order_id: int) -> ApiEnvelope:
    """订单状态历史（按时间正序）"""
    result = order_crud.get_order(session=session, order_id=order_id)
    return ApiEnvelope(
        data=StatusHistoryListData(
            data=[to_history_data(h) for h in result.history],
            count=len(result.history),
        )
    )
