"""
库存 CRUD 操作

所有库存变更都是相对更新（UPDATE products SET stock = stock + :delta），
不在应用层先读后写，避免并发下单与取消时丢失更新。

这里的函数都不提交事务，由调用方（app.crud.order）统一提交或回滚。
"""
import logging
from collections.abc import Iterable

from sqlalchemy import update
from sqlmodel import Session, select

from app.api.errors import ConcurrentStockViolation, InsufficientStock, InvalidOrder
from app.enums import OrderStatus, RestockState
from app.models import (
    STOCK_RESTORED_MARKER,
    SYSTEM_ACTOR,
    Order,
    OrderItem,
    OrderStatusHistory,
    Product,
    utc_now,
)

logger = logging.getLogger(__name__)


def adjust_stock(*, session: Session, product_id: int, delta: int) -> int:
    """对商品库存做相对增减，返回受影响的行数（商品不存在时为 0）"""
    result = session.exec(  # type: ignore[call-overload]
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + delta, updated_at=utc_now())
    )
    return result.rowcount


def reserve_stock(*, session: Session, items: Iterable[OrderItem]) -> None:
    """
    下单时扣减库存

    每个明细执行一次带条件的相对扣减（stock >= quantity 时才扣），
    条件不满足说明库存不足或商品不存在，整个下单事务随之回滚。

    Raises:
        InvalidOrder: 商品不存在或已下架
        InsufficientStock: 库存不足
    """
    for item in items:
        result = session.exec(  # type: ignore[call-overload]
            update(Product)
            .where(
                Product.id == item.product_id,
                Product.is_active == True,  # noqa: E712
                Product.stock >= item.quantity,
            )
            .values(stock=Product.stock - item.quantity, updated_at=utc_now())
        )
        if result.rowcount == 1:
            continue

        product = session.get(Product, item.product_id)
        if product is None or not product.is_active:
            raise InvalidOrder(f"Product {item.product_id} is not available")
        raise InsufficientStock(item.product_id, item.quantity)


def check_stock_integrity(*, session: Session, items: Iterable[OrderItem]) -> None:
    """
    复核订单涉及商品的库存状态

    库存在下单时已经扣减，这里不会再次扣减，只检查商品仍然存在且库存不为负。

    Raises:
        ConcurrentStockViolation: 商品缺失或库存为负
    """
    product_ids = {item.product_id for item in items}
    if not product_ids:
        return
    products = {
        p.id: p
        for p in session.exec(
            select(Product)
            .where(Product.id.in_(product_ids))  # type: ignore[union-attr]
            .execution_options(populate_existing=True)
        ).all()
    }
    for product_id in sorted(product_ids):
        product = products.get(product_id)
        if product is None:
            logger.error("Stock integrity check failed: product %s is missing", product_id)
            raise ConcurrentStockViolation(product_id, None)
        if product.stock < 0:
            logger.error(
                "Stock integrity check failed: product %s has negative stock %s",
                product_id,
                product.stock,
            )
            raise ConcurrentStockViolation(product_id, product.stock)


def has_been_restocked(*, session: Session, order_id: int) -> bool:
    """
    订单的库存是否已经回补过

    以订单上的 restock_state 为准，同时兼容只有历史标记行的旧数据。
    调用方需要先持有订单行锁，保证并发取消时检查与写标记是串行的。
    """
    order = session.get(Order, order_id)
    if order is not None and order.restock_state == RestockState.COMPLETED:
        return True
    marker = session.exec(
        select(OrderStatusHistory.id).where(
            OrderStatusHistory.order_id == order_id,
            OrderStatusHistory.reason == STOCK_RESTORED_MARKER,
        )
    ).first()
    return marker is not None


def restock_order_items(
    *,
    session: Session,
    order: Order,
    items: Iterable[OrderItem],
    status: OrderStatus,
) -> bool:
    """
    订单取消或失败时回补库存（幂等）

    1. 已回补过则直接返回
    2. 每个明细相对增加 quantity
    3. 在同一事务中写入回补标记（历史行 + restock_state）

    Args:
        session: 数据库会话（调用方负责提交）
        order: 已加锁的订单
        items: 订单明细
        status: 触发回补的状态（CANCELLED / FAILED）

    Returns:
        本次是否实际回补了库存
    """
    if has_been_restocked(session=session, order_id=order.id):
        logger.info("Order %s already restocked, skipping", order.order_number)
        return False

    for item in items:
        adjust_stock(session=session, product_id=item.product_id, delta=item.quantity)

    session.add(
        OrderStatusHistory(
            order_id=order.id,
            status=status,
            reason=STOCK_RESTORED_MARKER,
            updated_by=SYSTEM_ACTOR,
        )
    )
    order.restock_state = RestockState.COMPLETED
    session.add(order)
    logger.info("Restocked order %s", order.order_number)
    return True
