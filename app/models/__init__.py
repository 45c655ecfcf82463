"""
数据库模型定义模块

本模块使用 SQLModel 定义所有数据库表结构。

模型按功能拆分：
- user.py: 用户模型
- product.py: 商品（库存）模型
- order.py: 订单、订单明细、订单状态历史
- notification.py: 站内通知
"""
from sqlmodel import SQLModel

from .base import utc_now
from .notification import Notification
from .order import (
    STOCK_RESTORED_MARKER,
    SYSTEM_ACTOR,
    Order,
    OrderItem,
    OrderStatusHistory,
)
from .product import Product
from .user import User

__all__ = [
    "SQLModel",
    "utc_now",
    "User",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Notification",
    "STOCK_RESTORED_MARKER",
    "SYSTEM_ACTOR",
]
