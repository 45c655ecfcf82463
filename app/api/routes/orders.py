"""
订单路由模块（顾客端）

处理顾客订单相关的 API 端点，包括：
- 下单（同步扣减库存）
- 查询自己的订单列表（分页、状态过滤、搜索）
- 查询单个订单详情（明细 + 状态历史）
- 取消 PENDING 订单（库存回补）
"""
from __future__ import annotations

from fastapi import APIRouter, Query  # FastAPI 路由和查询参数

from app.api.deps import CurrentUser, SessionDep  # 依赖注入
from app.api.schemas import (
    ApiEnvelope,
    OrderCancelRequest,
    OrderCreatedData,
    OrderCreateRequest,
    OrderDetailData,
    OrderItemData,
    OrdersData,
    OrderSummaryData,
    StatusHistoryData,
)
from app.crud import order as order_crud
from app.crud.order import OrderAggregate
from app.enums import OrderStatus  # 订单状态枚举
from app.models import Order, OrderStatusHistory  # 订单模型
from app.services import order_service
from app.services.order_state import allowed_targets

router = APIRouter(prefix="/orders", tags=["orders"])


def to_order_summary(order: Order) -> OrderSummaryData:
    """将订单模型转换为列表响应数据"""
    return OrderSummaryData(
        id=order.id,
        order_number=order.order_number,
        user_id=order.user_id,
        status=order.status,
        subtotal=order.subtotal,
        shipping_cost=order.shipping_cost,
        total=order.total,
        payment_method=order.payment_method,
        reason=order.reason,
        shipping_name=order.shipping_name,
        shipping_phone=order.shipping_phone,
        shipping_city=order.shipping_city,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def to_order_detail(result: OrderAggregate) -> OrderDetailData:
    """
    将订单聚合转换为详情响应数据

    allowed_next 为当前状态下可以流转到的目标状态，终态时为空列表。
    """
    order = result.order
    summary = to_order_summary(order)
    return OrderDetailData(
        **summary.model_dump(),
        shipping_address=order.shipping_address,
        shipping_district=order.shipping_district,
        shipping_province=order.shipping_province,
        notes=order.notes,
        restock_state=order.restock_state,
        items=[
            OrderItemData(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
            )
            for item in result.items
        ],
        history=[to_history_data(h) for h in result.history],
        allowed_next=allowed_targets(order.status),
    )


def to_history_data(row: OrderStatusHistory) -> StatusHistoryData:
    return StatusHistoryData(
        id=row.id,
        status=row.status,
        reason=row.reason,
        updated_by=row.updated_by,
        created_at=row.created_at,
    )


@router.post("", response_model=ApiEnvelope)
def create_order(session: SessionDep, current_user: CurrentUser, body: OrderCreateRequest) -> ApiEnvelope:
    """
    下单

    订单、明细、初始状态历史和库存扣减在一个事务中完成。
    订单号格式：ORD-{毫秒时间戳}-{5 位大写随机字符}

    请求路径: POST /api/v1/orders

    Returns:
        ApiEnvelope: 包含 order_id 和 order_number

    Raises:
        AppError: 400303 参数不合法 / 409301 库存不足
    """
    result = order_service.place_order(session=session, user=current_user, body=body)
    return ApiEnvelope(
        data=OrderCreatedData(order_id=result.order.id, order_number=result.order.order_number)
    )


@router.get("", response_model=ApiEnvelope)
def list_my_orders(
    session: SessionDep,
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),  # 页码，从 1 开始
    page_size: int = Query(default=20, ge=1, le=100),  # 每页数量，1-100
    status: OrderStatus | None = None,
    search: str | None = Query(default=None, max_length=64),
) -> ApiEnvelope:
    """
    获取当前用户的订单列表（分页，按创建时间倒序）

    请求路径: GET /api/v1/orders?page=1&page_size=20&status=PENDING
    """
    rows, count = order_crud.list_orders(
        session=session,
        user_id=current_user.id,
        status=status,
        search=search,
        page=page,
        page_size=page_size,
    )
    return ApiEnvelope(
        data=OrdersData(
            data=[to_order_summary(o) for o in rows],
            count=count,
            page=page,
            page_size=page_size,
        )
    )


@router.get("/{order_number}", response_model=ApiEnvelope)
def get_my_order(session: SessionDep, current_user: CurrentUser, order_number: str) -> ApiEnvelope:
    """
    获取订单详情

    只能查询当前用户自己的订单，其他用户的订单返回 404301。

    请求路径: GET /api/v1/orders/{order_number}
    """
    result = order_crud.get_order_by_number(
        session=session, order_number=order_number, user_id=current_user.id
    )
    return ApiEnvelope(data=to_order_detail(result))


@router.post("/{order_number}/cancel", response_model=ApiEnvelope)
def cancel_my_order(
    session: SessionDep,
    current_user: CurrentUser,
    order_number: str,
    body: OrderCancelRequest,
) -> ApiEnvelope:
    """
    取消订单

    只有 PENDING 状态的订单可以由顾客取消，取消后库存回补。

    请求路径: POST /api/v1/orders/{order_number}/cancel

    Raises:
        AppError: 404301 订单不存在 / 400301 订单不是 PENDING / 400302 原因为空或过短
    """
    result = order_service.cancel_my_order(
        session=session, user=current_user, order_number=order_number, reason=body.reason
    )
    return ApiEnvelope(data=to_order_detail(result))
