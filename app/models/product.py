"""
商品模型模块

只包含订单与库存相关的字段；商品目录的其余信息由商品管理模块维护。
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Column, DateTime, Integer, Numeric, String
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id

from .base import utc_now


class Product(SQLModel, table=True):
    """
    商品模型

    stock 同时表示“实际库存”和“可售库存”：
    下单时扣减，订单取消或失败时回补。所有修改都必须是相对更新
    （stock = stock + delta），见 app.crud.inventory。
    """
    __tablename__ = "products"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    name: str = Field(max_length=255)
    sku: str | None = Field(
        default=None, sa_column=Column(String(64), unique=True, nullable=True)
    )
    price: Decimal = Field(
        default=Decimal("0.00"),
        sa_column=Column(Numeric(10, 2), nullable=False),
    )
    stock: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    is_active: bool = Field(default=True)

    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
