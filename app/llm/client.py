"""
app.llm.client
~~~~~~~~~~~~~~

上游 HTTP 客户端工厂 —— 全局共享的连接池创建入口。

``OpenAIChatClient`` 与菜谱服务统一从此处获取 ``httpx.AsyncClient``，
应用生命周期内只创建一次，关闭时由 lifespan 负责 ``aclose()``。
"""
from __future__ import annotations

import httpx

from app.core.config import settings


def create_http_client(
    api_key: str | None = None,
    base_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """创建已认证的上游 API 客户端。

    Args:
        api_key: Bearer Token，默认读取 ``settings.OPENAI_API_KEY``。
        base_url: 接口基础地址，默认读取 ``settings.OPENAI_BASE_URL``。
        transport: 可选的自定义传输层（用于测试注入 ``httpx.MockTransport``）。

    Returns:
        配置好鉴权头与超时的 ``httpx.AsyncClient``。
    """
    token = api_key if api_key is not None else settings.OPENAI_API_KEY
    return httpx.AsyncClient(
        base_url=base_url or settings.OPENAI_BASE_URL,
        headers={
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        },
        timeout=settings.UPSTREAM_TIMEOUT,
        transport=transport,
    )
