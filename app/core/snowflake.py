"""
ID 与订单号生成模块

- generate_id(): 64 位 Snowflake ID，作为所有表的主键
- generate_order_number(): 面向顾客的订单号，格式 ORD-<毫秒时间戳>-<5 位随机后缀>

Snowflake ID 结构（64 位）：
- 41 位：时间戳（毫秒，从 2024-01-01 开始）
- 10 位：节点 ID（0-1023，由 SNOWFLAKE_NODE_ID 配置）
- 12 位：同一毫秒内的序列号（0-4095）
"""
from __future__ import annotations

import secrets
import string
import threading
import time

from app.core.config import settings

_EPOCH_MS = 1704067200000  # 2024-01-01T00:00:00Z
_MAX_NODE_ID = 1023
_SEQ_MASK = 0xFFF
_MAX_BACKWARD_MS = 5000

_ORDER_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase
ORDER_SUFFIX_LENGTH = 5


class Snowflake:
    """线程安全的 Snowflake ID 生成器"""

    def __init__(self, *, node_id: int) -> None:
        if not (0 <= node_id <= _MAX_NODE_ID):
            raise ValueError(f"SNOWFLAKE_NODE_ID must be in [0, {_MAX_NODE_ID}]")
        self._node_id = node_id
        self._lock = threading.Lock()
        self._last_ts = -1
        self._seq = 0

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)

    @classmethod
    def _wait_until(cls, target_ms: int) -> int:
        """阻塞到时钟追上 target_ms，返回当前毫秒时间戳"""
        ts = cls._now_ms()
        while ts < target_ms:
            time.sleep(0.001)
            ts = cls._now_ms()
        return ts

    def next_id(self) -> int:
        """
        生成下一个 ID

        时钟小幅回拨（不超过 5 秒）时等待追平，超过则拒绝生成，防止 ID 重复。

        Raises:
            RuntimeError: 时钟回拨超过 5 秒
        """
        with self._lock:
            ts = self._now_ms()
            if ts < self._last_ts:
                drift = self._last_ts - ts
                if drift > _MAX_BACKWARD_MS:
                    raise RuntimeError(
                        f"Clock moved backwards by {drift}ms. "
                        "Refusing to generate IDs to prevent duplicates."
                    )
                ts = self._wait_until(self._last_ts)

            if ts == self._last_ts:
                self._seq = (self._seq + 1) & _SEQ_MASK
                if self._seq == 0:
                    # 本毫秒序列号用尽
                    ts = self._wait_until(self._last_ts + 1)
            else:
                self._seq = 0

            self._last_ts = ts
            return ((ts - _EPOCH_MS) << 22) | (self._node_id << 12) | self._seq


_GENERATOR: Snowflake | None = None


def _get_generator() -> Snowflake:
    global _GENERATOR
    if _GENERATOR is None:
        _GENERATOR = Snowflake(node_id=settings.SNOWFLAKE_NODE_ID)
    return _GENERATOR


def generate_id() -> int:
    """生成全局唯一的主键 ID"""
    return _get_generator().next_id()


def generate_order_number(now_ms: int | None = None) -> str:
    """
    生成订单号

    格式：ORD-<毫秒时间戳>-<5 位大写字母数字>，例如 ORD-1718000000000-7QX2K。
    唯一性最终由 orders.order_number 的唯一索引保证。

    Args:
        now_ms: 指定时间戳（测试用），默认取当前时间
    """
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(
        secrets.choice(_ORDER_SUFFIX_ALPHABET) for _ in range(ORDER_SUFFIX_LENGTH)
    )
    return f"ORD-{ts}-{suffix}"
