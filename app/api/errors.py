"""
自定义异常模块

定义应用特定的异常类，用于统一的错误处理。
所有业务异常都继承自 AppError，在 main.py 中有统一的异常处理器，
返回 {"code": ..., "message": ..., "data": ...} 格式的响应。

订单域错误码：
- 404301 OrderNotFound
- 400301 InvalidTransition（data 中带 from / to 状态）
- 400302 MissingReason
- 400303 InvalidOrder（下单参数不合法）
- 409301 InsufficientStock（下单时库存不足）
- 409302 ConcurrentStockViolation（库存数据异常，需要人工排查）
- 500301 PersistenceError（事务提交失败，可以重试）
"""
from __future__ import annotations

from typing import Any

from app.enums import OrderStatus


class AppError(Exception):
    """
    应用自定义异常类

    包含：
    - code: 业务错误码（用于前端区分不同错误）
    - message: 错误消息
    - status_code: HTTP 状态码
    - data: 附加数据（可选）

    使用示例：
        raise AppError(code=404301, message="Order not found", status_code=404)
    """

    def __init__(
        self,
        *,
        code: int,
        message: str,
        status_code: int = 400,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.data = data

    @property
    def retryable(self) -> bool:
        """调用方是否可以原样重试（参数错误类不可重试）"""
        return self.status_code >= 500 or self.status_code == 409


class OrderNotFound(AppError):
    def __init__(self, order_ref: int | str) -> None:
        super().__init__(
            code=404301,
            message=f"Order {order_ref} not found",
            status_code=404,
        )
        self.order_ref = order_ref


class InvalidTransition(AppError):
    """请求的目标状态不能从当前状态到达"""

    def __init__(self, current: OrderStatus, requested: OrderStatus) -> None:
        current = OrderStatus(current)
        requested = OrderStatus(requested)
        super().__init__(
            code=400301,
            message=f"Invalid status transition from {current.value} to {requested.value}",
            status_code=400,
            data={"from": current.value, "to": requested.value},
        )
        self.current = current
        self.requested = requested

    @property
    def retryable(self) -> bool:
        return False


class MissingReason(AppError):
    """取消 / 失败时没有提供原因"""

    def __init__(self, requested: OrderStatus, min_length: int | None = None) -> None:
        requested = OrderStatus(requested)
        if min_length:
            message = f"Reason must be at least {min_length} characters"
        elif requested == OrderStatus.CANCELLED:
            message = "Cancellation reason is required when cancelling an order"
        else:
            message = "Failure reason is required when marking order as failed"
        super().__init__(code=400302, message=message, status_code=400)
        self.requested = requested

    @property
    def retryable(self) -> bool:
        return False


class InvalidOrder(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(code=400303, message=message, status_code=400)


class InsufficientStock(AppError):
    def __init__(self, product_id: int, requested: int) -> None:
        super().__init__(
            code=409301,
            message=f"Insufficient stock for product {product_id}",
            status_code=409,
            data={"product_id": product_id, "requested": requested},
        )
        self.product_id = product_id


class ConcurrentStockViolation(AppError):
    """
    PENDING -> PROCESSING 时发现商品缺失或库存为负

    说明上游存在数据一致性问题，订单状态不会变更。
    """

    def __init__(self, product_id: int, stock: int | None) -> None:
        if stock is None:
            message = f"Product {product_id} referenced by the order no longer exists"
        else:
            message = f"Stock for product {product_id} is negative ({stock})"
        super().__init__(
            code=409302,
            message=message,
            status_code=409,
            data={"product_id": product_id, "stock": stock},
        )
        self.product_id = product_id
        self.stock = stock


class PersistenceError(AppError):
    def __init__(self, message: str = "Failed to persist order changes") -> None:
        super().__init__(code=500301, message=message, status_code=500)


def forbidden() -> AppError:
    """非管理员访问后台接口"""
    return AppError(code=403001, message="Admin privileges required", status_code=403)
