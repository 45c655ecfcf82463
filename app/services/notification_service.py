"""
订单通知服务

订单事务提交之后调用，负责：
1. 写站内通知（顾客本人；新订单时同时广播给所有管理员）
2. 把邮件事件写入 Redis Streams，由 notification worker 异步发送

所有函数都是尽力而为：失败只记录 ERROR 日志，不向调用方抛出，
订单状态变更不会因为通知失败而失败或回滚。
"""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.config import settings
from app.core.redis import get_redis
from app.enums import NotificationType, OrderStatus, UserRole
from app.models import Notification, Order, User

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    OrderStatus.PENDING: "has been placed and is awaiting confirmation",
    OrderStatus.PROCESSING: "is being processed",
    OrderStatus.PACKAGED: "has been packaged",
    OrderStatus.SHIPPED: "has been shipped",
    OrderStatus.DELIVERED: "has been delivered",
    OrderStatus.CANCELLED: "has been cancelled",
    OrderStatus.FAILED: "could not be delivered",
}


def _format_total(total: Decimal) -> str:
    return f"{Decimal(total):.2f}"


def _order_payload(order: Order) -> dict[str, str]:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "status": OrderStatus(order.status).value,
        "total": _format_total(order.total),
    }


def build_email_event(order: Order, customer: User, *, kind: str = "customer") -> dict[str, str]:
    """
    构造邮件事件

    Redis Streams 的字段值只能是字符串，reason 为空时写空串。
    """
    return {
        "kind": kind,
        "order_number": order.order_number,
        "customer_name": customer.name or order.shipping_name,
        "customer_email": customer.email,
        "new_status": OrderStatus(order.status).value,
        "total": _format_total(order.total),
        "reason": order.reason or "",
    }


def enqueue_email(event: dict[str, str]) -> bool:
    """把邮件事件写入通知队列，返回是否成功"""
    try:
        get_redis().xadd(settings.NOTIFICATION_STREAM, event)
    except Exception as e:
        logger.error(
            "Failed to enqueue %s email for order %s: %s",
            event.get("kind"),
            event.get("order_number"),
            e,
        )
        return False
    return True


def _save_notifications(session: Session, rows: list[Notification]) -> bool:
    if not rows:
        return True
    try:
        session.add_all(rows)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Failed to save %d in-app notifications: %s", len(rows), e)
        return False
    return True


def notify_order_created(*, session: Session, order: Order, customer: User) -> None:
    """新订单：通知顾客和所有管理员，并发送确认邮件"""
    payload = _order_payload(order)
    rows = [
        Notification(
            user_id=customer.id,
            type=NotificationType.ORDER_CREATED,
            title="Order Placed Successfully",
            message=f"Your order {order.order_number} has been placed successfully.",
            payload=payload,
        )
    ]
    try:
        admin_ids = session.exec(select(User.id).where(User.role == UserRole.ADMIN)).all()
    except SQLAlchemyError as e:
        logger.error("Failed to load admins for order %s: %s", order.order_number, e)
        admin_ids = []
    customer_name = customer.name or order.shipping_name
    for admin_id in admin_ids:
        rows.append(
            Notification(
                user_id=admin_id,
                type=NotificationType.ORDER_CREATED,
                title="New Order Received",
                message=(
                    f"New order {order.order_number} from {customer_name} - "
                    f"Total: {_format_total(order.total)}"
                ),
                payload={**payload, "customer_name": customer_name},
            )
        )
    _save_notifications(session, rows)

    enqueue_email(build_email_event(order, customer))
    if settings.ADMIN_NOTIFY_EMAIL:
        enqueue_email(build_email_event(order, customer, kind="admin"))


def notify_status_changed(*, session: Session, order: Order, customer: User) -> None:
    """订单状态变更：通知顾客并发送状态邮件"""
    status = OrderStatus(order.status)
    message = f"Your order {order.order_number} {_STATUS_MESSAGES[status]}."
    if order.reason:
        message = f"{message} Reason: {order.reason}"
    _save_notifications(
        session,
        [
            Notification(
                user_id=customer.id,
                type=NotificationType.ORDER_STATUS_CHANGED,
                title="Order Status Updated",
                message=message[:1024],
                payload=_order_payload(order),
            )
        ],
    )
    enqueue_email(build_email_event(order, customer))
