"""
app.core.logging
~~~~~~~~~~~~~~~~

日志配置。级别取自 ``settings.effective_log_level``。

一条连接上的所有事件处理共享同一个 ``connection_id_ctx_var``，
日志行里的 ``conn`` 列就是它，按连接 grep 即可还原一次会话。
"""
from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

from app.core.config import settings

# 非 WebSocket 上下文中为 "-"
connection_id_ctx_var: ContextVar[str] = ContextVar("connection_id", default="-")

_LOG_FORMAT: str = "%(asctime)s | %(levelname)-7s | conn=%(conn_id)s | %(name)s | %(message)s"
_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS: tuple[str, ...] = ("httpcore", "httpx", "pymongo", "google_genai")


class ConnectionIdFilter(logging.Filter):
    """给每条记录补上 ``conn_id`` 字段。"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.conn_id = connection_id_ctx_var.get()
        return True


def setup_logging() -> None:
    """配置根 logger，重复调用会覆盖之前的配置。"""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ConnectionIdFilter())
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))

    logging.basicConfig(
        level=getattr(logging, settings.effective_log_level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
