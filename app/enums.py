"""
枚举类型定义模块

定义应用中使用的所有枚举类型。
所有枚举都继承自 str 和 Enum，这样既可以用作字符串，又具有枚举的特性。
"""
from enum import Enum  # 枚举类型，用于定义固定的选项集合


class UserRole(str, Enum):
    """
    用户角色枚举

    - CUSTOMER: 普通顾客
    - ADMIN: 后台管理员（可以修改订单状态，接收新订单广播）
    """
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


class OrderStatus(str, Enum):
    """
    订单状态枚举

    订单的生命周期状态，合法的流转关系见 app.services.order_state：
    - PENDING: 待处理（下单时的初始状态，库存已扣减）
    - PROCESSING: 处理中
    - PACKAGED: 已打包
    - SHIPPED: 已发货
    - DELIVERED: 已签收（终态）
    - CANCELLED: 已取消（终态，需要取消原因，库存回补）
    - FAILED: 失败（终态，需要失败原因，库存回补）
    """
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PACKAGED = "PACKAGED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class RestockState(str, Enum):
    """
    库存回补状态枚举

    - NOT_REQUIRED: 订单仍在正常流转，无需回补
    - PENDING: 订单已进入取消/失败状态，但库存尚未回补
    - COMPLETED: 库存已回补（幂等标记，不会再次回补）
    """
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class OutcomeKind(str, Enum):
    """订单负向终态的类型（取消 / 失败）"""
    cancelled = "cancelled"
    failed = "failed"


class NotificationType(str, Enum):
    """
    站内通知类型枚举

    - ORDER_CREATED: 下单成功（顾客）/ 新订单（管理员广播）
    - ORDER_STATUS_CHANGED: 订单状态变更
    """
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
