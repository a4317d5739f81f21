"""
app.core.rate_limit
~~~~~~~~~~~~~~~~~~~

REST 接口的限流配置。

WebSocket 事件不在此限流：聊天消息的"发送必成功"语义由上层保证。
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

# --------- HTTP 接口限流器 ---------
# 基于客户端 IP 地址进行限流，单进程内存存储
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
)
