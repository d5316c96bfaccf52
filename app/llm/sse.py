"""
app.llm.sse
~~~~~~~~~~~

Server-Sent Events 流解析 —— 把任意切分的文本块还原为 ``data:`` 负载。

上游以空行（``\\n\\n``）分隔事件块，每块包含若干行，只有 ``data:`` 开头的行
携带负载。网络分块边界与事件块边界并不对齐，所以 ``SSEBuffer`` 会保留末尾
尚未完整的事件块，等下一次 ``feed()`` 再拼接。

``SSEBuffer`` 是一次生成会话私有的累加器，不能在会话之间共享。
"""
from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator

from app.core.exceptions import StreamCorruption

DATA_PREFIX: str = "data:"
DONE_SENTINEL: str = "[DONE]"
_BLOCK_DELIMITER: str = "\n\n"


class SSEBuffer:
    """SSE 事件块累加器。

    Attributes:
        pending: 尚未遇到块分隔符的残余文本。
    """

    def __init__(self) -> None:
        self.pending: str = ""

    def feed(self, chunk: str) -> list[str]:
        """追加一段文本，返回本次新完成的事件块中的全部 data 负载。

        Args:
            chunk: 已解码的 UTF-8 文本块，长度任意。

        Returns:
            按出现顺序排列的负载字符串（已去除前缀与首尾空白，空负载被丢弃）。
        """
        self.pending = (self.pending + chunk).replace("\r\n", "\n")
        *blocks, self.pending = self.pending.split(_BLOCK_DELIMITER)

        payloads: list[str] = []
        for block in blocks:
            for line in block.split("\n"):
                if not line.startswith(DATA_PREFIX):
                    continue
                data = line[len(DATA_PREFIX):].strip()
                if data:
                    payloads.append(data)
        return payloads


async def iter_sse_payloads(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    """驱动 ``SSEBuffer`` 消费文本流，逐个产出 data 负载。

    遇到 ``[DONE]`` 立即结束，丢弃缓冲区中剩余的内容；
    上游结束时末尾未以空行收尾的残块同样被丢弃。
    """
    buffer = SSEBuffer()
    async for chunk in chunks:
        for payload in buffer.feed(chunk):
            if payload == DONE_SENTINEL:
                return
            yield payload


def extract_delta(payload: str) -> str:
    """从一条 Chat Completions 流式负载中取出 ``choices[0].delta.content``。

    Raises:
        StreamCorruption: 负载不是合法 JSON。
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise StreamCorruption(f"malformed SSE payload: {payload[:80]!r}") from e

    if not isinstance(data, dict):
        return ""
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""
