"""
app.core.config
~~~~~~~~~~~~~~~

聊天后端配置，基于 pydantic-settings。

取值顺序：环境变量 → ``.env.{ENVIRONMENT}`` → ``.env`` → 字段默认值。
测试时设置 ``ENVIRONMENT=test`` 并提供一个假的 ``GEMINI_API_KEY`` 即可。
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]

# 必须在类定义前确定，用来挑选 env 文件
_ENV_NAME: str = os.getenv("ENVIRONMENT", "dev")

_DEFAULT_LOG_LEVELS: dict[str, str] = {"dev": "INFO", "test": "DEBUG", "prod": "WARNING"}


class Settings(BaseSettings):
    """进程级配置。"""

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENV_NAME}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    PROJECT_NAME: str = Field(default="LingoLink Chat Backend")
    VERSION: str = Field(default="0.1.0")
    ENVIRONMENT: Environment = Field(default="dev", description="dev / test / prod")

    # ── Gemini 翻译 ───────────────────────────────────────────────────
    GEMINI_API_KEY: str = Field(..., description="Google Gemini API Key")
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash", description="翻译所用模型")
    TRANSLATION_MAX_OUTPUT_TOKENS: int = Field(default=2048, gt=0)

    # ── MongoDB ───────────────────────────────────────────────────────
    MONGO_URI: str = Field(default="mongodb://localhost:27017")
    MONGO_DB_NAME: str = Field(default="lingolink")

    # ── 聊天室 ────────────────────────────────────────────────────────
    DEFAULT_LANGUAGE: str = Field(default="en", description="未指定语言时使用的语言代码")
    ROOM_CODE_LENGTH: int = Field(default=6, ge=4, le=12)
    ROOM_CODE_MAX_ATTEMPTS: int = Field(default=10, ge=1, description="房间码碰撞探测次数上限")
    MESSAGE_HISTORY_LIMIT: int = Field(default=50, ge=1, description="历史消息默认条数")

    # ── HTTP 服务 ─────────────────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)
    CORS_ORIGINS: list[str] = Field(
        default_factory=list,
        description="prod 环境允许的前端来源，dev / test 下放开全部来源",
    )
    LOG_LEVEL: str | None = Field(
        default=None,
        description="显式日志级别，不设置时按环境推断",
    )

    @property
    def is_prod(self) -> bool:
        return self.ENVIRONMENT == "prod"

    @property
    def debug(self) -> bool:
        """debug 与热重载只在 dev 环境开启。"""
        return self.ENVIRONMENT == "dev"

    @property
    def effective_log_level(self) -> str:
        return self.LOG_LEVEL or _DEFAULT_LOG_LEVELS.get(self.ENVIRONMENT, "INFO")

    @property
    def cors_origins(self) -> list[str]:
        return self.CORS_ORIGINS if self.is_prod else ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings: Settings = get_settings()
