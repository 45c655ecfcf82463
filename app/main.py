"""
FastAPI 应用主入口

负责：
1. 创建 FastAPI 应用实例
2. 配置全局中间件（CORS、Sentry）
3. 注册全局异常处理器，所有错误都返回 {"code", "message", "data"}
4. 注册 API 路由

运行方式：
    uvicorn app.main:app --reload  # 开发模式
    fastapi dev app/main.py  # 或使用 FastAPI CLI
"""
import logging
from typing import Any

import sentry_sdk  # Sentry 错误监控
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError  # 请求验证错误
from fastapi.middleware.cors import CORSMiddleware  # CORS 中间件
from fastapi.responses import JSONResponse  # JSON 响应
from fastapi.routing import APIRoute  # 路由类型

from app.api.errors import AppError
from app.api.main import api_router
from app.core.config import settings

logger = logging.getLogger(__name__)


def custom_generate_unique_id(route: APIRoute) -> str:
    """OpenAPI 操作 ID：{tag}-{route_name}，如 "orders-create_order" """
    return f"{route.tags[0]}-{route.name}"


# 初始化 Sentry 错误监控（本地环境不启用）
if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":  # pragma: no cover
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    generate_unique_id_function=custom_generate_unique_id,
)


@app.exception_handler(AppError)
async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    """
    应用自定义异常处理器

    捕获所有 AppError 异常，返回统一的错误响应格式。
    data 中带出错时的附加信息，如非法流转的 from / to 状态。
    """
    if exc.status_code >= 500:
        logger.error("Request failed with %s: %s", exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.message, "data": exc.data},
    )


@app.exception_handler(HTTPException)
async def http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """
    HTTP 异常处理器

    detail 为 {"code", "message"} 字典时直接使用，
    否则错误码取 HTTP 状态码 * 1000（如 401 -> 401000）。
    """
    payload: dict[str, Any]
    if isinstance(exc.detail, dict) and {"code", "message"} <= set(exc.detail.keys()):
        payload = {"code": exc.detail.get("code"), "message": exc.detail.get("message")}
    else:
        payload = {"code": exc.status_code * 1000, "message": str(exc.detail)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": payload["code"], "message": payload["message"], "data": None},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """请求参数校验失败（字段类型错误、必填字段缺失等），返回 422000 和详细错误列表"""
    return JSONResponse(
        status_code=422,
        content={
            "code": 422000,
            "message": "Validation error",
            "data": {"errors": jsonable_encoder(exc.errors())},
        },
    )


# 允许前端（商城 / 后台）跨域访问
if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# 所有路由都添加 /api/v1 前缀
app.include_router(api_router, prefix=settings.API_V1_STR)
