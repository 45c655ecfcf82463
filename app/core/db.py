"""
数据库连接模块

管理数据库引擎的创建，以及初始数据（管理员账户）的写入。

重要提示：
- 数据库表结构通过 Alembic 迁移管理，不要在这里创建表
- 确保在使用前导入所有模型（app.models），否则关系可能无法正确初始化
"""
import logging

from sqlmodel import Session, create_engine, select

from app.core.config import settings
from app.enums import UserRole
from app.models import User

logger = logging.getLogger(__name__)

# 创建数据库引擎（连接池）
engine = create_engine(str(settings.SQLALCHEMY_DATABASE_URI), pool_pre_ping=True)


def init_db(session: Session) -> None:
    """
    初始化数据库种子数据

    配置了 FIRST_ADMIN_EMAIL 时创建管理员账户（已存在则跳过）。
    管理员会收到新订单的站内广播通知。

    Args:
        session: 数据库会话
    """
    # Tables should be created with Alembic migrations.
    if not settings.FIRST_ADMIN_EMAIL:
        return

    admin = session.exec(
        select(User).where(User.email == settings.FIRST_ADMIN_EMAIL)
    ).first()
    if admin:
        return

    session.add(
        User(
            email=settings.FIRST_ADMIN_EMAIL,
            name=settings.FIRST_ADMIN_NAME,
            role=UserRole.ADMIN,
        )
    )
    session.commit()
    logger.info("Created admin user %s", settings.FIRST_ADMIN_EMAIL)
