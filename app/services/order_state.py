"""
订单状态机

定义订单状态之间的合法流转，以及每次流转带来的副作用：
- 是否必须提供原因（进入 CANCELLED / FAILED）
- 是否回补库存（进入 CANCELLED / FAILED）
- 是否需要复核库存（PENDING -> PROCESSING）

正向流程是线性的：PENDING -> PROCESSING -> PACKAGED -> SHIPPED -> DELIVERED。
SHIPPED 之前的任意非终态都可以取消；发货后只能标记为失败。
"""
from __future__ import annotations

from dataclasses import dataclass

from app.api.errors import InvalidTransition, MissingReason
from app.enums import OrderStatus, OutcomeKind

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.FAILED}
    ),
    OrderStatus.PROCESSING: frozenset(
        {OrderStatus.PACKAGED, OrderStatus.CANCELLED, OrderStatus.FAILED}
    ),
    OrderStatus.PACKAGED: frozenset(
        {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.FAILED}
    ),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.FAILED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)
RESTOCK_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.FAILED})

# 线性正向流程，用于前端展示进度
HAPPY_PATH = (
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.PACKAGED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


@dataclass(frozen=True)
class OrderOutcome:
    """
    订单的负向结果

    kind 为 None 表示订单没有被取消或失败，此时 reason 一定为 None；
    kind 为 cancelled / failed 时 reason 一定非空。
    """
    kind: OutcomeKind | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        if (self.kind is None) != (self.reason is None):
            raise ValueError("reason must be set exactly when the order has a negative outcome")

    @classmethod
    def none(cls) -> OrderOutcome:
        return cls()

    @classmethod
    def cancelled(cls, reason: str) -> OrderOutcome:
        return cls(kind=OutcomeKind.cancelled, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> OrderOutcome:
        return cls(kind=OutcomeKind.failed, reason=reason)


@dataclass(frozen=True)
class Transition:
    """一次已通过校验的状态流转及其副作用"""
    current: OrderStatus
    target: OrderStatus
    outcome: OrderOutcome

    @property
    def restocks(self) -> bool:
        return self.target in RESTOCK_STATUSES

    @property
    def checks_stock(self) -> bool:
        return self.current == OrderStatus.PENDING and self.target == OrderStatus.PROCESSING

    @property
    def notifies(self) -> bool:
        return True


def validate_transition(current: OrderStatus | str, requested: OrderStatus | str) -> bool:
    """判断 current -> requested 是否是合法流转"""
    try:
        current = OrderStatus(current)
        requested = OrderStatus(requested)
    except ValueError:
        return False
    return requested in TRANSITIONS[current]


def allowed_targets(current: OrderStatus | str) -> list[OrderStatus]:
    """当前状态可以流转到的目标状态（按正向流程顺序）"""
    targets = TRANSITIONS[OrderStatus(current)]
    return [s for s in OrderStatus if s in targets]


def is_terminal(status: OrderStatus | str) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def _clean_reason(reason: str | None) -> str | None:
    if reason is None:
        return None
    reason = reason.strip()
    return reason or None


def ensure_transition(
    current: OrderStatus | str,
    requested: OrderStatus | str,
    reason: str | None = None,
) -> Transition:
    """
    校验状态流转并计算副作用

    先校验流转是否合法，再校验原因；两者都在任何数据修改之前执行。

    Args:
        current: 当前状态
        requested: 目标状态
        reason: 取消 / 失败原因（进入其他状态时忽略）

    Returns:
        Transition: 通过校验的流转

    Raises:
        InvalidTransition: 流转不在状态表中
        MissingReason: 进入 CANCELLED / FAILED 但原因为空
    """
    current = OrderStatus(current)
    requested = OrderStatus(requested)
    if not validate_transition(current, requested):
        raise InvalidTransition(current, requested)

    reason = _clean_reason(reason)
    if requested == OrderStatus.CANCELLED:
        if reason is None:
            raise MissingReason(requested)
        outcome = OrderOutcome.cancelled(reason)
    elif requested == OrderStatus.FAILED:
        if reason is None:
            raise MissingReason(requested)
        outcome = OrderOutcome.failed(reason)
    else:
        # 进入其他状态时清空原因
        outcome = OrderOutcome.none()

    return Transition(current=current, target=requested, outcome=outcome)


def outcome_of(status: OrderStatus | str, reason: str | None) -> OrderOutcome:
    """根据订单当前的 status / reason 还原 OrderOutcome"""
    status = OrderStatus(status)
    if status == OrderStatus.CANCELLED and reason:
        return OrderOutcome.cancelled(reason)
    if status == OrderStatus.FAILED and reason:
        return OrderOutcome.failed(reason)
    return OrderOutcome.none()
