"""
应用启动前检查脚本

在执行迁移和启动 API / notification worker 之前，
等待数据库和 Redis 就绪（容器编排时依赖服务可能还在初始化）。

运行方式：
    python -m app.backend_pre_start
"""
import logging

from sqlalchemy import Engine
from sqlmodel import Session, select
from tenacity import (
    after_log,
    before_log,
    retry,
    stop_after_attempt,
    wait_fixed,
)

from app.core.db import engine
from app.core.redis import get_redis

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

max_tries = 60 * 5  # 最多等待 5 分钟
wait_seconds = 1


@retry(
    stop=stop_after_attempt(max_tries),
    wait=wait_fixed(wait_seconds),
    before=before_log(logger, logging.INFO),
    after=after_log(logger, logging.WARN),
)
def init(db_engine: Engine) -> None:
    """执行 select(1) 检查数据库连接，失败时由 tenacity 重试"""
    try:
        with Session(db_engine) as session:
            session.exec(select(1))
    except Exception as e:
        logger.error(e)
        raise e


@retry(
    stop=stop_after_attempt(max_tries),
    wait=wait_fixed(wait_seconds),
    before=before_log(logger, logging.INFO),
    after=after_log(logger, logging.WARN),
)
def wait_for_redis() -> None:
    """PING Redis；通知队列依赖 Redis，但 API 在 Redis 不可用时仍可工作"""
    try:
        get_redis().ping()
    except Exception as e:
        logger.error(e)
        raise e


def main() -> None:
    logger.info("Initializing service")
    init(engine)
    wait_for_redis()
    logger.info("Service finished initializing")


if __name__ == "__main__":  # pragma: no cover
    main()
