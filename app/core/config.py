"""
应用配置模块

使用 Pydantic Settings 管理所有环境变量和配置。
配置从项目根目录的 .env 文件读取，支持类型验证和默认值。

关键概念：
- BaseSettings: Pydantic 的配置基类，自动从环境变量读取
- computed_field: 计算字段，根据其他字段动态生成
- model_validator: 模型验证器，用于自定义验证逻辑
"""
import secrets  # 用于生成安全的随机字符串
import warnings  # 用于发出警告
from typing import Annotated, Any, Literal  # 类型注解工具

from pydantic import (
    AnyUrl,  # URL 类型验证
    BeforeValidator,  # 字段验证前的转换器
    HttpUrl,  # HTTP URL 类型验证
    PostgresDsn,  # PostgreSQL 连接字符串验证
    computed_field,  # 计算字段装饰器
    model_validator,  # 模型验证器装饰器
)
from pydantic_settings import BaseSettings, SettingsConfigDict  # 配置管理
from typing_extensions import Self  # 用于类型注解中引用自身类型


def parse_cors(v: Any) -> list[str] | str:
    """
    解析 CORS 配置值

    支持逗号分隔的字符串或列表两种格式。

    Raises:
        ValueError: 当输入格式不正确时
    """
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    """
    应用配置类

    配置来源优先级：
    1. 环境变量（最高优先级）
    2. .env 文件
    3. 代码中的默认值（最低优先级）
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,  # 忽略空的环境变量
        extra="ignore",  # 忽略未定义的额外字段
    )
    API_V1_STR: str = "/api/v1"  # API 版本前缀
    SECRET_KEY: str = secrets.token_urlsafe(32)  # JWT 签名密钥（默认随机生成）
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        """CORS 允许的源（去除尾部斜杠）"""
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    PROJECT_NAME: str = "Storefront Orders"
    SENTRY_DSN: HttpUrl | None = None

    # Snowflake
    SNOWFLAKE_NODE_ID: int = 0

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "storefront"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> PostgresDsn:
        return PostgresDsn.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    # 初始管理员（initial_data 脚本使用）
    FIRST_ADMIN_EMAIL: str | None = None
    FIRST_ADMIN_NAME: str = "Admin"

    # SMTP 邮件服务器配置（通知 worker 发送邮件）
    SMTP_TLS: bool = True  # 是否使用 STARTTLS
    SMTP_SSL: bool = False  # 是否使用 SSL
    SMTP_PORT: int = 587  # SMTP 端口
    SMTP_HOST: str | None = None  # SMTP 服务器地址
    SMTP_USER: str | None = None  # SMTP 用户名
    SMTP_PASSWORD: str | None = None  # SMTP 密码
    SMTP_TIMEOUT_SECONDS: int = 10
    EMAILS_FROM_EMAIL: str | None = None  # 发件人邮箱
    EMAILS_FROM_NAME: str | None = None  # 发件人名称
    ADMIN_NOTIFY_EMAIL: str | None = None  # 新订单提醒的管理员邮箱

    @computed_field  # type: ignore[prop-decorator]
    @property
    def emails_enabled(self) -> bool:
        return bool(self.SMTP_HOST and self.EMAILS_FROM_EMAIL)

    # Redis 配置（通知事件队列）
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None

    # 订单通知队列（Redis Streams）
    NOTIFICATION_STREAM: str = "order_notifications"
    NOTIFICATION_GROUP: str = "notification_worker"
    NOTIFICATION_MAX_RETRIES: int = 3

    # 顾客取消订单时原因的最小长度
    CANCEL_REASON_MIN_LENGTH: int = 10

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        """
        检查敏感配置是否使用了默认值

        本地环境只发出警告，其他环境直接报错。

        Raises:
            ValueError: 在非本地环境使用默认值时
        """
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        self._check_default_secret("SECRET_KEY", self.SECRET_KEY)
        self._check_default_secret("POSTGRES_PASSWORD", self.POSTGRES_PASSWORD)

        return self


# 创建全局配置实例，整个应用共享
settings = Settings()  # type: ignore
