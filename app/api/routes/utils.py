"""
工具路由模块

健康检查：确认进程存活且数据库可以连接。
"""
from fastapi import APIRouter
from sqlmodel import select

from app.api.deps import SessionDep

router = APIRouter(prefix="/utils", tags=["utils"])


@router.get("/health-check/")
def health_check(session: SessionDep) -> bool:
    """
    健康检查端点

    请求路径: GET /api/v1/utils/health-check/

    数据库不可用时查询抛出异常，返回 500，负载均衡器据此摘除实例。
    """
    session.exec(select(1))
    return True
