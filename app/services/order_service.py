"""
订单业务服务

路由层调用的入口：先执行订单事务（app.crud.order），
事务提交成功后再发送通知（app.services.notification_service）。
通知在事务之外执行，失败不会影响已经提交的订单变更。
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlmodel import Session

from app.api.errors import InvalidTransition, MissingReason
from app.api.schemas import OrderCreateRequest
from app.core.config import settings
from app.crud import order as order_crud
from app.crud.order import OrderAggregate
from app.enums import OrderStatus
from app.models import User
from app.services import notification_service

logger = logging.getLogger(__name__)


def _dispatch(session: Session, result: OrderAggregate, *, created: bool = False) -> None:
    """提交后发送通知；任何异常都只记录日志"""
    order = result.order
    try:
        customer = session.get(User, order.user_id)
        if customer is None:
            logger.error("Order %s has no owner %s, skipping notifications", order.order_number, order.user_id)
            return
        if created:
            notification_service.notify_order_created(session=session, order=order, customer=customer)
        else:
            notification_service.notify_status_changed(session=session, order=order, customer=customer)
    except Exception as e:
        logger.error("Notification dispatch failed for order %s: %s", order.order_number, e)


def place_order(*, session: Session, user: User, body: OrderCreateRequest) -> OrderAggregate:
    """顾客下单（扣减库存），成功后通知顾客和管理员"""
    result = order_crud.create_order(
        session=session,
        user_id=user.id,
        items=body.items,
        shipping=body.shipping_address,
        payment_method=body.payment_method,
        subtotal=body.subtotal,
        shipping_cost=body.shipping_cost,
        total=body.total,
        notes=body.notes,
    )
    _dispatch(session, result, created=True)
    return result


def change_status(
    *,
    session: Session,
    order_id: int,
    new_status: OrderStatus,
    reason: str | None,
    actor: User,
) -> OrderAggregate:
    """后台修改单个订单状态"""
    result = order_crud.update_order_status(
        session=session,
        order_id=order_id,
        new_status=new_status,
        reason=reason,
        actor=str(actor.id),
    )
    _dispatch(session, result)
    return result


def cancel_my_order(
    *, session: Session, user: User, order_number: str, reason: str
) -> OrderAggregate:
    """
    顾客取消自己的 PENDING 订单

    先检查订单状态，再检查原因长度；原因去掉首尾空白后不能短于
    CANCEL_REASON_MIN_LENGTH。加锁后 crud 层会再次校验状态。
    """
    current = order_crud.get_order_by_number(
        session=session, order_number=order_number, user_id=user.id
    ).order.status
    if current != OrderStatus.PENDING:
        raise InvalidTransition(current, OrderStatus.CANCELLED)
    cleaned = reason.strip()
    if cleaned and len(cleaned) < settings.CANCEL_REASON_MIN_LENGTH:
        raise MissingReason(OrderStatus.CANCELLED, min_length=settings.CANCEL_REASON_MIN_LENGTH)
    result = order_crud.cancel_order_by_customer(
        session=session, user_id=user.id, order_number=order_number, reason=cleaned
    )
    _dispatch(session, result)
    return result


def bulk_change_status(
    *,
    session: Session,
    order_ids: Sequence[int],
    new_status: OrderStatus,
    reason: str | None,
    actor: User,
) -> list[OrderAggregate]:
    """后台批量修改订单状态（全部成功后逐个通知）"""
    results = order_crud.bulk_update_order_status(
        session=session,
        order_ids=order_ids,
        new_status=new_status,
        reason=reason,
        actor=str(actor.id),
    )
    for result in results:
        _dispatch(session, result)
    return results
