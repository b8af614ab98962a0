# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description:

from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.common.constants import RATE_LIMIT_MEMORY_STORAGE


class Settings(BaseSettings):
    """全局配置，从 .env / 环境变量读取"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 运行环境
    ENV: str = Field("dev", description="运行环境: dev / test / prod")
    SERVICE_NAME: str = Field(
        "cinnamon-api",
        description="服务名（日志标识）",
        validation_alias=AliasChoices("SERVICE_NAME", "service_name"),
    )
    HOST: str = Field("0.0.0.0", description="监听地址", validation_alias=AliasChoices("HOST", "host"))
    PORT: int = Field(8000, description="监听端口", validation_alias=AliasChoices("PORT", "port"))

    # 日志
    LOG_LEVEL: str = Field(
        "INFO",
        description="日志级别",
        validation_alias=AliasChoices("LOG_LEVEL", "log_level"),
    )
    LOG_FORMAT: str = Field(
        "text",
        description="日志格式: text / json（生产建议 json）",
        validation_alias=AliasChoices("LOG_FORMAT", "log_format"),
    )
    LOG_SINK: str = Field(
        "console",
        description="请求日志去向: console / cloudwatch / none",
        validation_alias=AliasChoices("LOG_SINK", "log_sink"),
    )
    SLOW_REQUEST_THRESHOLD_MS: float = Field(
        1000,
        description="慢请求阈值（毫秒），超过即记录请求日志",
        validation_alias=AliasChoices("SLOW_REQUEST_THRESHOLD_MS", "slow_request_threshold_ms"),
    )

    # CloudWatch
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = Field(
        "us-east-1",
        description="AWS region",
        validation_alias=AliasChoices("AWS_REGION", "aws_region"),
    )
    CLOUDWATCH_LOG_GROUP: Optional[str] = Field(
        None,
        description="CloudWatch log group（默认 <ENV>-api）",
        validation_alias=AliasChoices("CLOUDWATCH_LOG_GROUP", "cloudwatch_log_group"),
    )
    CLOUDWATCH_LOG_STREAM: Optional[str] = Field(
        None,
        description="CloudWatch log stream（默认 <ENV>-api）",
        validation_alias=AliasChoices("CLOUDWATCH_LOG_STREAM", "cloudwatch_log_stream"),
    )

    # 限流
    RATE_LIMIT_ENABLED: bool = Field(
        True,
        description="是否启用限流",
        validation_alias=AliasChoices("RATE_LIMIT_ENABLED", "rate_limit_enabled"),
    )
    RATE_LIMITER_POINTS: int = Field(
        100,
        description="全局限流：每个 IP 每个窗口允许的请求数",
        validation_alias=AliasChoices("RATE_LIMITER_POINTS", "rate_limiter_points"),
    )
    RATE_LIMITER_DURATION_IN_SECONDS: int = Field(
        60,
        description="全局限流窗口（秒）",
        validation_alias=AliasChoices("RATE_LIMITER_DURATION_IN_SECONDS", "rate_limiter_duration_in_seconds"),
    )
    LOGIN_LIMITER_POINTS: int = Field(
        5,
        description="登录限流：每个 IP 每个窗口允许的尝试次数",
        validation_alias=AliasChoices("LOGIN_LIMITER_POINTS", "login_limiter_points"),
    )
    LOGIN_LIMITER_DURATION_IN_SECONDS: int = Field(
        900,
        description="登录限流窗口（秒）",
        validation_alias=AliasChoices("LOGIN_LIMITER_DURATION_IN_SECONDS", "login_limiter_duration_in_seconds"),
    )
    REDIS_URL: Optional[str] = Field(
        None,
        description="限流计数存储，未配置时使用进程内存",
        validation_alias=AliasChoices("REDIS_URL", "redis_url"),
    )

    # CORS
    ALLOWED_ORIGINS: str = Field(
        "http://localhost:3001",
        description="允许的跨域来源，逗号分隔",
        validation_alias=AliasChoices("ALLOWED_ORIGINS", "allowed_origins"),
    )

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() in ("prod", "production")

    @property
    def is_development(self) -> bool:
        return self.ENV.lower() in ("dev", "development")

    @property
    def log_group(self) -> str:
        return self.CLOUDWATCH_LOG_GROUP or f"{self.ENV}-api"

    @property
    def log_stream(self) -> str:
        return self.CLOUDWATCH_LOG_STREAM or f"{self.ENV}-api"

    @property
    def rate_limit_storage_uri(self) -> str:
        return f"async+{self.REDIS_URL}" if self.REDIS_URL else RATE_LIMIT_MEMORY_STORAGE

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


settings = Settings()
