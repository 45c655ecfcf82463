"""
Redis 连接模块

订单通知事件通过 Redis Streams 投递：
API 进程在订单事务提交后 XADD，notification worker 用消费者组读取并 XACK。

使用 @lru_cache 保证进程内只创建一个客户端（自带连接池）。
"""
from __future__ import annotations

from functools import lru_cache

import redis

from app.core.config import settings


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    """
    获取 Redis 客户端实例

    decode_responses=True：Streams 消息的字段和值都以 str 返回。
    socket 超时较短，Redis 不可用时通知入队快速失败，不拖慢订单接口。
    """
    return redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD,
        decode_responses=True,
        socket_connect_timeout=2,
    )
