"""
app.llm.openai_client
~~~~~~~~~~~~~~~~~~~~~

纯 LLM 客户端封装 —— 只负责与 Chat Completions 接口的连接和调用。

不包含任何房间、广播逻辑（这些职责属于 ``RoomRelay``）。
通过构造函数注入 ``httpx.AsyncClient``，测试时可替换为 ``MockTransport``。

连接池在进程内共享，但每次 ``stream_reply()`` 打开的流式响应只属于
发起它的那一次生成会话，迭代结束或被放弃时随之关闭。
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import httpx

from app.core.config import settings
from app.core.exceptions import StreamCorruption, UpstreamUnavailable
from app.core.logging import get_logger
from app.llm.sse import extract_delta, iter_sse_payloads
from app.prompts.cooking import CHAT_SYSTEM_PROMPT, build_chat_messages

logger = get_logger(__name__)

_COMPLETIONS_PATH: str = "/chat/completions"


async def _read_error_body(response: httpx.Response) -> str:
    """尽力读取错误响应体，读取失败时返回空串。"""
    try:
        raw = await response.aread()
    except httpx.HTTPError:
        return ""
    return raw.decode("utf-8", errors="replace")


class OpenAIChatClient:
    """Chat Completions 接口客户端。

    Attributes:
        model_name: 使用的模型名称。
        system_prompt: 聊天房间使用的系统级指令。
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        model_name: str | None = None,
        system_prompt: str = CHAT_SYSTEM_PROMPT,
    ) -> None:
        """初始化客户端。

        Args:
            http_client: 共享的 ``httpx.AsyncClient``（已配置鉴权与基础地址）。
            model_name: 模型名称，默认读取 ``settings.OPENAI_MODEL``。
            system_prompt: 流式聊天使用的系统 Prompt。
        """
        self.model_name: str = model_name or settings.OPENAI_MODEL
        self.system_prompt: str = system_prompt
        self._http: httpx.AsyncClient = http_client
        logger.info("LLM 客户端已初始化 | model=%s", self.model_name)

    async def stream_reply(self, prompt: str) -> AsyncGenerator[str, None]:
        """发起一次流式请求，按到达顺序逐段返回回复文本。

        Args:
            prompt: 用户输入的原始文本（非空）。

        Yields:
            模型回复的增量片段，空片段已被过滤。

        Raises:
            UpstreamUnavailable: 上游返回非 2xx，此时不会产出任何片段。
            httpx.HTTPError: 传输层异常（连接中断、超时等）。
        """
        body: dict[str, Any] = {
            "model": self.model_name,
            "stream": True,
            "messages": build_chat_messages(self.system_prompt, prompt),
        }
        async with self._http.stream("POST", _COMPLETIONS_PATH, json=body) as response:
            if not response.is_success:
                detail = await _read_error_body(response)
                raise UpstreamUnavailable(response.status_code, detail)

            async for payload in iter_sse_payloads(response.aiter_text()):
                try:
                    fragment = extract_delta(payload)
                except StreamCorruption as e:
                    logger.debug("跳过损坏的 SSE 行: %s", e)
                    continue
                if fragment:
                    yield fragment

    async def complete_json(
        self,
        system_prompt: str,
        prompt: str,
        response_format: dict[str, Any],
    ) -> str:
        """发起一次非流式结构化请求，返回 ``choices[0].message.content``。

        Args:
            system_prompt: 本次请求的系统指令。
            prompt: 用户输入。
            response_format: Chat Completions 的 ``response_format`` 字段。

        Returns:
            模型返回的原始文本内容，缺失时为空串。

        Raises:
            UpstreamUnavailable: 上游返回非 2xx。
        """
        body: dict[str, Any] = {
            "model": self.model_name,
            "response_format": response_format,
            "messages": build_chat_messages(system_prompt, prompt),
        }
        response = await self._http.post(_COMPLETIONS_PATH, json=body)
        if not response.is_success:
            raise UpstreamUnavailable(response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError:
            logger.warning("上游响应不是合法 JSON | status=%d", response.status_code)
            return ""
        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return ""
        return content or ""
