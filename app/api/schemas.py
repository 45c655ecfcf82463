"""
API 请求/响应数据模型（Schema）

定义所有 API 接口的请求和响应数据结构。
使用 Pydantic 进行数据验证和序列化。

关键概念：
- BaseModel: Pydantic 的模型基类，用于数据验证
- Field: 字段验证器，定义字段的约束（长度、范围等）
- 这些模型不是数据库表，只用于 API 数据交换
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal  # 精确数值类型，用于金额
from typing import Any  # 任意类型

from pydantic import BaseModel, EmailStr, Field  # Pydantic 核心类

from app.enums import OrderStatus, RestockState

# ============================================================
# 通用响应模型
# ============================================================


class Message(BaseModel):
    """
    消息响应模型

    用于 API 返回简单的文本消息。
    """
    message: str


class TokenPayload(BaseModel):
    """
    JWT Token 载荷模型

    用于解析 JWT token 中的用户信息，sub 存储用户 ID。
    """
    sub: str | None = None


class ApiEnvelope(BaseModel):
    """
    API 统一响应格式

    所有 API 响应都使用这个格式，包含：
    - code: 状态码（0 表示成功，非 0 表示错误）
    - message: 消息（成功时为 "success"，错误时为错误描述）
    - data: 数据（成功时返回业务数据，错误时为 None 或出错的状态信息）

    示例响应：
        {"code": 0, "message": "success", "data": {...}}
        {"code": 400301, "message": "Invalid status transition from DELIVERED to PENDING",
         "data": {"from": "DELIVERED", "to": "PENDING"}}
    """
    code: int = 0  # 默认成功
    message: str = "success"  # 默认成功消息
    data: Any | None = None  # 业务数据（可选）


# ============================================================
# 下单
# ============================================================


class OrderLineIn(BaseModel):
    """下单明细：商品、数量、下单时的单价"""
    product_id: int
    quantity: int = Field(ge=1, le=10000)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class ShippingAddressIn(BaseModel):
    """收货地址"""
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(default="", max_length=120)
    phone: str = Field(min_length=1, max_length=32)
    email: EmailStr | None = None
    address: str = Field(min_length=1, max_length=512)
    city: str = Field(min_length=1, max_length=128)
    district: str | None = Field(default=None, max_length=128)
    province: str | None = Field(default=None, max_length=128)


class OrderCreateRequest(BaseModel):
    """
    创建订单请求模型

    total 必须等于 subtotal + shipping_cost，否则返回 400303。
    """
    items: list[OrderLineIn] = Field(min_length=1)
    shipping_address: ShippingAddressIn
    payment_method: str = Field(min_length=1, max_length=32)  # 支付方式（如 COD）
    subtotal: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    shipping_cost: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    total: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    notes: str | None = Field(default=None, max_length=2000)


class OrderCreatedData(BaseModel):
    order_id: int
    order_number: str


# ============================================================
# 状态变更
# ============================================================


class OrderCancelRequest(BaseModel):
    """
    顾客取消订单请求

    原因的最小长度由 settings.CANCEL_REASON_MIN_LENGTH 控制，在路由中校验。
    """
    reason: str = Field(max_length=1000)


class OrderStatusUpdateRequest(BaseModel):
    """
    后台修改订单状态请求

    - 取消时使用 cancellation_reason
    - 标记失败时使用 failure_reason
    """
    status: OrderStatus
    cancellation_reason: str | None = Field(default=None, max_length=1000)
    failure_reason: str | None = Field(default=None, max_length=1000)

    def reason_for_target(self) -> str | None:
        """取出与目标状态对应的原因字段"""
        if self.status == OrderStatus.CANCELLED:
            return self.cancellation_reason
        if self.status == OrderStatus.FAILED:
            return self.failure_reason
        return None


class BulkStatusUpdateRequest(BaseModel):
    """批量修改订单状态（全部成功或全部回滚）"""
    order_ids: list[int] = Field(min_length=1, max_length=200)
    status: OrderStatus
    reason: str | None = Field(default=None, max_length=1000)


# ============================================================
# 订单响应
# ============================================================


class OrderItemData(BaseModel):
    id: int
    product_id: int
    quantity: int
    price: Decimal


class StatusHistoryData(BaseModel):
    id: int
    status: OrderStatus
    reason: str | None = None
    updated_by: str
    created_at: datetime


class OrderSummaryData(BaseModel):
    """订单列表中的单条订单"""
    id: int
    order_number: str
    user_id: int
    status: OrderStatus
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    payment_method: str
    reason: str | None = None
    shipping_name: str
    shipping_phone: str
    shipping_city: str
    created_at: datetime
    updated_at: datetime


class OrderDetailData(OrderSummaryData):
    """
    订单详情

    在列表字段之外包含完整收货信息、明细、状态历史，
    以及当前状态下允许流转到的目标状态（allowed_next，后台用于渲染操作按钮）。
    """
    shipping_address: str
    shipping_district: str | None = None
    shipping_province: str | None = None
    notes: str | None = None
    restock_state: RestockState
    items: list[OrderItemData] = []
    history: list[StatusHistoryData] = []
    allowed_next: list[OrderStatus] = []


class OrdersData(BaseModel):
    """
    订单列表响应模型

    返回当前页订单和总数。
    """
    data: list[OrderSummaryData]  # 订单列表
    count: int  # 总记录数
    page: int
    page_size: int


class StatusHistoryListData(BaseModel):
    data: list[StatusHistoryData]
    count: int


class BulkUpdateData(BaseModel):
    updated: int  # 更新的订单数
    orders: list[OrderSummaryData]
