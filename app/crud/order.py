"""
订单 CRUD 操作

订单聚合（Order + OrderItem + OrderStatusHistory）的事务边界。
所有状态变更都走 update_order_status / bulk_update_order_status，
在一个事务里完成：加锁读取订单 -> 状态机校验 -> 库存复核 -> 更新状态 ->
库存回补 -> 追加历史。任何一步失败都整体回滚。

这里只负责数据库事务，提交后的通知由 app.services.order_service 发送。
"""
import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from app.api.errors import AppError, InvalidOrder, InvalidTransition, OrderNotFound, PersistenceError
from app.api.schemas import OrderLineIn, ShippingAddressIn
from app.core.snowflake import generate_order_number
from app.crud import inventory
from app.enums import OrderStatus, RestockState
from app.models import Order, OrderItem, OrderStatusHistory, utc_now
from app.services.order_state import Transition, ensure_transition

logger = logging.getLogger(__name__)


@dataclass
class OrderAggregate:
    """订单及其明细和状态历史"""
    order: Order
    items: list[OrderItem] = field(default_factory=list)
    history: list[OrderStatusHistory] = field(default_factory=list)
    transition: Transition | None = None


@contextmanager
def _unit_of_work(session: Session) -> Iterator[None]:
    """提交事务；业务异常原样抛出，数据库异常转换为 PersistenceError，两者都先回滚"""
    try:
        yield
        session.commit()
    except AppError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Order transaction failed: %s", e)
        raise PersistenceError() from e


# ============================================================================
# 查询
# ============================================================================


def get_order_items(*, session: Session, order_id: int) -> list[OrderItem]:
    return list(
        session.exec(
            select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        ).all()
    )


def get_status_history(*, session: Session, order_id: int) -> list[OrderStatusHistory]:
    """订单状态历史，按时间正序"""
    return list(
        session.exec(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.created_at, OrderStatusHistory.id)  # type: ignore[arg-type]
        ).all()
    )


def _load_aggregate(session: Session, order: Order) -> OrderAggregate:
    return OrderAggregate(
        order=order,
        items=get_order_items(session=session, order_id=order.id),
        history=get_status_history(session=session, order_id=order.id),
    )


def get_order(*, session: Session, order_id: int) -> OrderAggregate:
    """
    按 ID 查询订单详情

    Raises:
        OrderNotFound: 订单不存在
    """
    order = session.get(Order, order_id)
    if not order:
        raise OrderNotFound(order_id)
    return _load_aggregate(session, order)


def get_order_by_number(
    *, session: Session, order_number: str, user_id: int | None = None
) -> OrderAggregate:
    """
    按订单号查询订单详情，指定 user_id 时只查询该用户的订单

    Raises:
        OrderNotFound: 订单不存在或不属于该用户
    """
    stmt = select(Order).where(Order.order_number == order_number)
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    order = session.exec(stmt).first()
    if not order:
        raise OrderNotFound(order_number)
    return _load_aggregate(session, order)


def list_orders(
    *,
    session: Session,
    user_id: int | None = None,
    status: OrderStatus | None = None,
    search: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Order], int]:
    """
    订单列表（分页，按创建时间倒序）

    Args:
        user_id: 只查询该用户的订单（顾客端）；None 表示全部（后台）
        status: 状态过滤
        search: 按订单号、收货人、收货电话模糊搜索

    Returns:
        (当前页订单, 总数)
    """
    conditions = []
    if user_id is not None:
        conditions.append(Order.user_id == user_id)
    if status is not None:
        conditions.append(Order.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                Order.order_number.ilike(pattern),  # type: ignore[attr-defined]
                Order.shipping_name.ilike(pattern),  # type: ignore[attr-defined]
                Order.shipping_phone.ilike(pattern),  # type: ignore[attr-defined]
            )
        )

    count = session.exec(
        select(func.count()).select_from(Order).where(*conditions)
    ).one()

    offset = (page - 1) * page_size
    rows = session.exec(
        select(Order)
        .where(*conditions)
        .order_by(Order.created_at.desc())  # type: ignore[attr-defined]
        .offset(offset)
        .limit(page_size)
    ).all()
    return list(rows), count


# ============================================================================
# 创建订单
# ============================================================================


def create_order(
    *,
    session: Session,
    user_id: int,
    items: Sequence[OrderLineIn],
    shipping: ShippingAddressIn,
    payment_method: str,
    subtotal: Decimal,
    shipping_cost: Decimal,
    total: Decimal,
    notes: str | None = None,
) -> OrderAggregate:
    """
    创建订单（PENDING）并同步扣减库存

    订单、明细、初始状态历史和库存扣减在同一个事务中完成；
    任一商品库存不足时整单回滚。

    Raises:
        InvalidOrder: 没有明细或金额不一致
        InsufficientStock: 库存不足
        PersistenceError: 事务提交失败
    """
    if not items:
        raise InvalidOrder("No items in order")
    if subtotal + shipping_cost != total:
        raise InvalidOrder("Order total must equal subtotal plus shipping cost")

    order = Order(
        order_number=generate_order_number(),
        user_id=user_id,
        status=OrderStatus.PENDING,
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        total=total,
        payment_method=payment_method,
        shipping_name=f"{shipping.first_name} {shipping.last_name}".strip(),
        shipping_phone=shipping.phone,
        shipping_address=shipping.address,
        shipping_city=shipping.city,
        shipping_district=shipping.district,
        shipping_province=shipping.province,
        notes=notes or None,
    )
    order_items = [
        OrderItem(
            order_id=order.id,
            product_id=line.product_id,
            quantity=line.quantity,
            price=line.price,
        )
        for line in items
    ]

    with _unit_of_work(session):
        session.add(order)
        session.flush()
        session.add_all(order_items)
        inventory.reserve_stock(session=session, items=order_items)
        session.add(
            OrderStatusHistory(
                order_id=order.id,
                status=OrderStatus.PENDING,
                updated_by=str(user_id),
            )
        )

    session.refresh(order)
    logger.info("Order %s created for user %s", order.order_number, user_id)
    return _load_aggregate(session, order)


# ============================================================================
# 状态变更
# ============================================================================


def _lock_order(session: Session, order_id: int) -> Order:
    """加行锁读取订单，并用数据库中的最新值覆盖会话里的旧对象"""
    order = session.exec(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if not order:
        raise OrderNotFound(order_id)
    return order


def _apply_transition(
    session: Session,
    order: Order,
    new_status: OrderStatus,
    reason: str | None,
    actor: str,
) -> OrderAggregate:
    """在当前事务中对已加锁的订单执行状态流转（不提交）"""
    transition = ensure_transition(order.status, new_status, reason)
    items = get_order_items(session=session, order_id=order.id)

    if transition.checks_stock:
        inventory.check_stock_integrity(session=session, items=items)

    order.status = transition.target
    order.reason = transition.outcome.reason
    order.updated_at = utc_now()
    if transition.restocks and order.restock_state == RestockState.NOT_REQUIRED:
        order.restock_state = RestockState.PENDING
    session.add(order)

    if transition.restocks:
        inventory.restock_order_items(
            session=session, order=order, items=items, status=transition.target
        )

    session.add(
        OrderStatusHistory(
            order_id=order.id,
            status=transition.target,
            reason=transition.outcome.reason,
            updated_by=actor,
        )
    )
    logger.info(
        "Order %s: %s -> %s by %s",
        order.order_number,
        transition.current.value,
        transition.target.value,
        actor,
    )
    return OrderAggregate(order=order, items=items, transition=transition)


def update_order_status(
    *,
    session: Session,
    order_id: int,
    new_status: OrderStatus,
    reason: str | None,
    actor: str,
    only_from: OrderStatus | None = None,
) -> OrderAggregate:
    """
    修改订单状态（单个事务）

    Args:
        session: 数据库会话
        order_id: 订单 ID
        new_status: 目标状态
        reason: 取消 / 失败原因（进入 CANCELLED / FAILED 时必填）
        actor: 操作人标识，写入状态历史
        only_from: 限定订单必须处于该状态（顾客取消只允许 PENDING）

    Returns:
        OrderAggregate: 更新后的订单、明细、完整状态历史及本次流转

    Raises:
        OrderNotFound / InvalidTransition / MissingReason /
        ConcurrentStockViolation / PersistenceError
    """
    with _unit_of_work(session):
        order = _lock_order(session, order_id)
        if only_from is not None and order.status != only_from:
            raise InvalidTransition(order.status, new_status)
        result = _apply_transition(session, order, new_status, reason, actor)

    session.refresh(result.order)
    result.history = get_status_history(session=session, order_id=order_id)
    return result


def cancel_order_by_customer(
    *, session: Session, user_id: int, order_number: str, reason: str
) -> OrderAggregate:
    """
    顾客取消自己的订单（仅限 PENDING）

    Raises:
        OrderNotFound: 订单不存在或不属于该用户
        InvalidTransition: 订单不是 PENDING
        MissingReason: 原因为空
    """
    order_id = session.exec(
        select(Order.id).where(Order.order_number == order_number, Order.user_id == user_id)
    ).first()
    if order_id is None:
        raise OrderNotFound(order_number)
    return update_order_status(
        session=session,
        order_id=order_id,
        new_status=OrderStatus.CANCELLED,
        reason=reason,
        actor=str(user_id),
        only_from=OrderStatus.PENDING,
    )


def bulk_update_order_status(
    *,
    session: Session,
    order_ids: Sequence[int],
    new_status: OrderStatus,
    reason: str | None,
    actor: str,
) -> list[OrderAggregate]:
    """
    批量修改订单状态

    每个订单执行与单个修改完全相同的校验（包括原因必填），
    全部在一个事务中完成：任一订单失败则全部回滚。
    按 ID 升序加锁，避免并发批量操作互相死锁。
    """
    if not order_ids:
        return []

    results: list[OrderAggregate] = []
    with _unit_of_work(session):
        for order_id in sorted(set(order_ids)):
            order = _lock_order(session, order_id)
            results.append(_apply_transition(session, order, new_status, reason, actor))

    for result in results:
        session.refresh(result.order)
        result.history = get_status_history(session=session, order_id=result.order.id)
    logger.info("Bulk updated %d orders to %s by %s", len(results), new_status.value, actor)
    return results
