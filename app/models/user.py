"""
用户模型模块

订单域只关心用户的归属、联系方式和角色；登录认证由外部系统负责。
"""
from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, String
from sqlmodel import Field, SQLModel

from app.core.snowflake import generate_id
from app.enums import UserRole

from .base import utc_now


class User(SQLModel, table=True):
    """
    用户模型

    字段说明：
    - id: 主键（Snowflake ID），也是 JWT 中的 sub
    - email: 邮箱（唯一，用于发送订单邮件）
    - name: 姓名
    - phone: 手机号（可选）
    - role: 角色（CUSTOMER / ADMIN）
    """
    __tablename__ = "users"
    id: int = Field(
        default_factory=generate_id,
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False),
    )
    email: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False)
    )
    name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    role: UserRole = Field(
        default=UserRole.CUSTOMER, sa_column=Column(String(16), nullable=False)
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
