"""
app.core.rate_limit
~~~~~~~~~~~~~~~~~~~

REST 接口限流配置（基于客户端 IP）。

WebSocket 通道不在此限流，房间内唯一的流控手段是单飞生成标记。
"""
from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=not settings.is_test,
)
