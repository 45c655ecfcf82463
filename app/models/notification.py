"""
站内通知模型模块
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, Column, DateTime, ForeignKey, String
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import NotificationType

from .base import utc_now


class Notification(SQLModel, table=True):
    """
    站内通知

    下单、订单状态变更时写入，供前端通知中心展示。
    payload 保存订单号、订单 ID、状态等附加信息。
    """
    __tablename__ = "notifications"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    user_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    type: NotificationType = Field(sa_column=Column(String(32), nullable=False))
    title: str = Field(max_length=255)
    message: str = Field(max_length=1024)
    payload: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    is_read: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
