"""
订单邮件发送模块

通过 SMTP 发送订单相关邮件：
- 顾客：下单确认、订单状态变更
- 管理员：新订单提醒（需要配置 ADMIN_NOTIFY_EMAIL）

只由通知 worker 调用，API 进程不直接发邮件。
未配置 SMTP 时（settings.emails_enabled 为 False）只记录日志，不发送。
"""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr

from app.api.errors import AppError
from app.core.config import settings

logger = logging.getLogger(__name__)

_SUBJECTS = {
    "PENDING": "Order Confirmed",
    "PROCESSING": "Order Processing",
    "PACKAGED": "Order Packaged",
    "SHIPPED": "Order Shipped",
    "DELIVERED": "Order Delivered",
    "CANCELLED": "Order Cancelled",
    "FAILED": "Order Delivery Failed",
}

_STATUS_LINES = {
    "PENDING": "We have received your order and will start processing it soon.",
    "PROCESSING": "Your order is being prepared.",
    "PACKAGED": "Your order has been packed and is waiting for the courier.",
    "SHIPPED": "Your order is on its way.",
    "DELIVERED": "Your order has been delivered. Thank you for shopping with us!",
    "CANCELLED": "Your order has been cancelled.",
    "FAILED": "We were unable to deliver your order.",
}


@dataclass(frozen=True)
class OrderEmail:
    """
    一封订单邮件的内容

    由 Redis Streams 消息还原，字段都是字符串。
    kind 为 customer 时发给顾客，为 admin 时发给 ADMIN_NOTIFY_EMAIL。
    """
    order_number: str
    customer_name: str
    customer_email: str
    new_status: str
    total: str
    reason: str | None = None
    kind: str = "customer"

    @classmethod
    def from_fields(cls, fields: dict[str, str]) -> OrderEmail:
        return cls(
            order_number=fields["order_number"],
            customer_name=fields.get("customer_name") or "Customer",
            customer_email=fields.get("customer_email", ""),
            new_status=fields["new_status"],
            total=fields.get("total", ""),
            reason=fields.get("reason") or None,
            kind=fields.get("kind", "customer"),
        )

    @property
    def recipient(self) -> str | None:
        if self.kind == "admin":
            return settings.ADMIN_NOTIFY_EMAIL
        return self.customer_email or None

    @property
    def subject(self) -> str:
        if self.kind == "admin":
            return f"New Order #{self.order_number} - {self.total}"
        return f"{_SUBJECTS.get(self.new_status, 'Order Update')} - {self.order_number}"

    def body(self) -> str:
        if self.kind == "admin":
            return (
                f"New order {self.order_number} from {self.customer_name} "
                f"<{self.customer_email}>.\n"
                f"Total: {self.total}\n"
            )
        lines = [
            f"Hi {self.customer_name},",
            "",
            f"Order {self.order_number}: "
            f"{_STATUS_LINES.get(self.new_status, f'Status is now {self.new_status}.')}",
        ]
        if self.reason:
            lines.append(f"Reason: {self.reason}")
        lines.extend(["", f"Order total: {self.total}"])
        return "\n".join(lines) + "\n"


class SmtpMailer:
    """
    SMTP 邮件客户端

    连接参数从 settings 读取；每次发送建立一个新连接。
    """

    def __init__(self) -> None:
        self._enabled = settings.emails_enabled

    def _connect(self) -> smtplib.SMTP:
        if settings.SMTP_SSL:
            server: smtplib.SMTP = smtplib.SMTP_SSL(
                settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS
            )
        else:
            server = smtplib.SMTP(
                settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS
            )
            if settings.SMTP_TLS:
                server.starttls()
        if settings.SMTP_USER:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
        return server

    def build_message(self, email: OrderEmail) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = email.subject
        msg["From"] = formataddr(
            (settings.EMAILS_FROM_NAME or settings.PROJECT_NAME, settings.EMAILS_FROM_EMAIL or "")
        )
        msg["To"] = email.recipient or ""
        msg.set_content(email.body())
        return msg

    def send(self, email: OrderEmail) -> bool:
        """
        发送一封订单邮件

        Returns:
            是否实际发送（未配置 SMTP 或没有收件人时返回 False）

        Raises:
            AppError: SMTP 发送失败（502401），由 worker 重试
        """
        if not self._enabled:
            logger.info("Emails disabled, skipping %s for order %s", email.kind, email.order_number)
            return False
        if not email.recipient:
            logger.warning("No recipient for %s email of order %s", email.kind, email.order_number)
            return False

        msg = self.build_message(email)
        try:
            with self._connect() as server:
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise AppError(code=502401, message=f"SMTP send error: {e}", status_code=502) from e
        logger.info("Sent %s email for order %s to %s", email.kind, email.order_number, email.recipient)
        return True


mailer = SmtpMailer()
