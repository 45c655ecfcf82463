"""CRUD 操作模块"""
from .inventory import (
    adjust_stock,
    check_stock_integrity,
    has_been_restocked,
    reserve_stock,
    restock_order_items,
)
from .order import (
    OrderAggregate,
    bulk_update_order_status,
    cancel_order_by_customer,
    create_order,
    get_order,
    get_order_by_number,
    get_status_history,
    list_orders,
    update_order_status,
)

__all__ = [
    "adjust_stock",
    "check_stock_integrity",
    "has_been_restocked",
    "reserve_stock",
    "restock_order_items",
    "OrderAggregate",
    "bulk_update_order_status",
    "cancel_order_by_customer",
    "create_order",
    "get_order",
    "get_order_by_number",
    "get_status_history",
    "list_orders",
    "update_order_status",
]
