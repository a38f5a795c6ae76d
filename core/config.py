"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class RedisSettings(BaseModel):
    url: Optional[str] = None
    max_connections: int = 10
    namespace: str = "affirm-charges"


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./charges.db"
    echo: bool = False


class OrderLockSettings(BaseModel):
    # 单笔订单变更锁：timeout 为锁持有上限，blocking_timeout 为等待上限（秒）
    timeout: int = 30
    blocking_timeout: int = 10


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Affirm Charge Service")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # 店铺对外地址，用于拼接结账/回跳链接
    SITE_URL: str = Field(default="http://localhost:8000")
    API_PREFIX: str = Field(default="/api/v1")

    # 管理端接口令牌（X-Admin-Token），未配置时管理端接口全部拒绝
    ADMIN_API_TOKEN: Optional[str] = Field(default=None)

    # 平台信息，随错误上报一起发送
    PLATFORM_NAME: str = Field(default="python-fastapi")
    PLATFORM_VERSION: str = Field(default="0.1")

    redis: RedisSettings = Field(default_factory=RedisSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    order_lock: OrderLockSettings = Field(default_factory=OrderLockSettings)

    # CORS配置
    CORS_ORIGINS: list = Field(default=["http://localhost:3000", "http://localhost:8000"])

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("SITE_URL")
    @classmethod
    def _strip_site_url(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                return json.loads(s)
            return [item.strip() for item in s.split(",") if item.strip()]
        return v


settings = Settings()
