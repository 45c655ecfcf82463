"""
订单模型模块

定义订单聚合的三张表：
- Order: 订单主表
- OrderItem: 订单明细（下单时的价格快照，创建后不可修改）
- OrderStatusHistory: 订单状态变更历史（只追加，兼作库存回补的幂等标记）
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import OrderStatus, RestockState

from .base import utc_now

# 状态历史中记录“库存已回补”的哨兵原因
STOCK_RESTORED_MARKER = "STOCK_RESTORED"
# 系统自动操作的执行人
SYSTEM_ACTOR = "SYSTEM"


class Order(SQLModel, table=True):
    """
    订单模型

    字段说明：
    - id: 主键（Snowflake ID）
    - order_number: 面向顾客的订单号（唯一）
    - user_id: 下单用户
    - status: 订单状态，只能通过 app.crud.order.update_order_status 修改
    - subtotal / shipping_cost / total: 金额，创建时满足 total = subtotal + shipping_cost
    - reason: 取消或失败原因；仅在 CANCELLED / FAILED 状态下非空
    - restock_state: 库存回补状态（幂等标记）
    - shipping_*: 收货信息
    - notes: 订单备注
    """
    __tablename__ = "orders"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    order_number: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False)
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False
        )
    )

    status: OrderStatus = Field(
        default=OrderStatus.PENDING,
        sa_column=Column(String(16), index=True, nullable=False),
    )
    subtotal: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    shipping_cost: Decimal = Field(
        default=Decimal("0.00"), sa_column=Column(Numeric(10, 2), nullable=False)
    )
    total: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))
    payment_method: str = Field(max_length=32)
    reason: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    restock_state: RestockState = Field(
        default=RestockState.NOT_REQUIRED,
        sa_column=Column(String(16), nullable=False),
    )

    shipping_name: str = Field(max_length=255)
    shipping_phone: str = Field(max_length=32)
    shipping_address: str = Field(max_length=512)
    shipping_city: str = Field(max_length=128)
    shipping_district: str | None = Field(default=None, max_length=128)
    shipping_province: str | None = Field(default=None, max_length=128)
    notes: str | None = Field(default=None, sa_column=Column(Text, nullable=True))

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), index=True, nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class OrderItem(SQLModel, table=True):
    """订单明细：商品、数量和下单时的单价快照"""
    __tablename__ = "order_items"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    order_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    product_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("products.id", ondelete="RESTRICT"), index=True, nullable=False
        )
    )
    quantity: int = Field(sa_column=Column(Integer, nullable=False))
    price: Decimal = Field(sa_column=Column(Numeric(10, 2), nullable=False))


class OrderStatusHistory(SQLModel, table=True):
    """
    订单状态历史

    每次状态变更追加一行，与订单更新在同一个事务中写入。
    reason 为 STOCK_RESTORED 的行由系统写入，表示该订单的库存已经回补过。
    """
    __tablename__ = "order_status_history"
    __table_args__ = (
        Index("ix_order_status_history_order_reason", "order_id", "reason"),
    )

    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    order_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    status: OrderStatus = Field(sa_column=Column(String(16), nullable=False))
    reason: str | None = Field(default=None, max_length=1024)
    updated_by: str = Field(max_length=64)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
