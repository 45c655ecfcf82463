"""
API 路由聚合模块

将所有业务路由模块聚合到一个统一的 router 中。
这个 router 会被注册到主应用（app/main.py）上。

路由模块说明：
- orders: 顾客订单（下单、查询、取消）
- admin_orders: 后台订单（查询、修改状态、批量修改、状态历史）
- utils: 工具相关（健康检查等）
"""
from fastapi import APIRouter

from app.api.routes import (
    admin_orders,  # 后台订单路由
    orders,  # 顾客订单路由
    utils,  # 工具路由
)

# 创建主 API 路由器
api_router = APIRouter()

api_router.include_router(orders.router)  # /orders/*
api_router.include_router(admin_orders.router)  # /admin/orders/*
api_router.include_router(utils.router)  # /utils/*
