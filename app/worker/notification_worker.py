"""
Notification Worker - 发送订单邮件

从 Redis Streams 消费订单邮件事件（app.services.notification_service 写入），
通过 SMTP 发送。发送失败按 NOTIFICATION_MAX_RETRIES 重试，
重试用尽后记录 ERROR 日志并确认消息，不会阻塞后续消息。

运行方式：
    python -m app.worker.notification_worker
"""
from __future__ import annotations

import logging
import os
import time

from redis.exceptions import ResponseError
from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.api.errors import AppError
from app.core.config import settings
from app.core.redis import get_redis
from app.integrations.mailer import OrderEmail, mailer

logger = logging.getLogger("notification_worker")

CONSUMER = os.environ.get("NOTIFICATION_WORKER_CONSUMER", "c1")
# 超过该空闲时间（毫秒）的未确认消息会被重新认领
RECLAIM_IDLE_MS = 60_000


def ensure_consumer_group() -> None:
    r = get_redis()
    try:
        r.xgroup_create(settings.NOTIFICATION_STREAM, settings.NOTIFICATION_GROUP, id="0-0", mkstream=True)
    except ResponseError as e:
        if "BUSYGROUP" not in str(e):
            raise


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, AppError) and exc.retryable


def send_with_retry(email: OrderEmail) -> bool:
    """发送邮件，SMTP 错误时指数退避重试"""
    retrying = Retrying(
        stop=stop_after_attempt(max(1, settings.NOTIFICATION_MAX_RETRIES)),
        wait=wait_exponential(multiplier=1, max=30),
        retry=retry_if_exception(_is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARN),
        reraise=False,
    )
    return retrying(mailer.send, email)


def handle_message(msg_id: str, fields: dict[str, str]) -> None:
    """处理一条消息；无论成功与否都会确认，失败只记录日志"""
    r = get_redis()
    try:
        email = OrderEmail.from_fields(fields)
    except KeyError as e:
        logger.error("Malformed notification message %s, missing %s", msg_id, e)
        r.xack(settings.NOTIFICATION_STREAM, settings.NOTIFICATION_GROUP, msg_id)
        return

    try:
        send_with_retry(email)
    except RetryError as e:
        logger.error(
            "Giving up %s email for order %s after %d attempts: %s",
            email.kind,
            email.order_number,
            e.last_attempt.attempt_number,
            e.last_attempt.exception(),
        )
    except AppError as e:
        logger.error("Failed to send %s email for order %s: %s", email.kind, email.order_number, e.message)
    except Exception as e:
        logger.exception("Unexpected error sending %s email for order %s: %s", email.kind, email.order_number, e)
    r.xack(settings.NOTIFICATION_STREAM, settings.NOTIFICATION_GROUP, msg_id)


def _read_batch() -> list[tuple[str, dict[str, str]]]:
    r = get_redis()
    resp = r.xreadgroup(
        settings.NOTIFICATION_GROUP,
        CONSUMER,
        {settings.NOTIFICATION_STREAM: ">"},
        count=10,
        block=5000,
    )
    messages: list[tuple[str, dict[str, str]]] = []
    if resp:
        for _stream, batch in resp:
            messages.extend(batch)
        return messages

    # 重新认领其他 consumer 崩溃后遗留的消息（Redis 6.2+）
    try:
        _next, claimed, *_ = r.xautoclaim(
            settings.NOTIFICATION_STREAM,
            settings.NOTIFICATION_GROUP,
            CONSUMER,
            min_idle_time=RECLAIM_IDLE_MS,
            start_id="0-0",
            count=10,
        )
        messages.extend(claimed)
    except ResponseError as e:
        logger.warning("xautoclaim unavailable: %s", e)
    return messages


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    ensure_consumer_group()
    logger.info(
        "notification worker started: stream=%s group=%s consumer=%s emails_enabled=%s",
        settings.NOTIFICATION_STREAM,
        settings.NOTIFICATION_GROUP,
        CONSUMER,
        settings.emails_enabled,
    )

    while True:
        try:
            for msg_id, fields in _read_batch():
                handle_message(msg_id, fields)
        except Exception as e:
            logger.exception("worker loop error: %s", e)
            time.sleep(1)


if __name__ == "__main__":  # pragma: no cover
    main()
