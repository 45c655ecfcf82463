"""
基础模型模块

定义所有模型共用的工具函数。
"""
from datetime import datetime, timezone

from sqlmodel import SQLModel


def utc_now() -> datetime:
    """当前 UTC 时间（带时区）"""
    return datetime.now(timezone.utc)


__all__ = ["SQLModel", "utc_now"]
