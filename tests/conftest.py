"""
tests.conftest
~~~~~~~~~~~~~~

共享测试工具 —— mock 掉所有外部调用（上游模型 API、真实 WebSocket），
使单元测试可在无网络环境下快速运行。
"""
from __future__ import annotations

import asyncio
import json
import os
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("OPENAI_API_KEY", "test-fake-key")
os.environ.setdefault("ENVIRONMENT", "test")

from app.services.connection import RoomConnection  # noqa: E402


# ── 连接 Mock ─────────────────────────────────────────────────────────

def make_conn(fail: bool = False, stall: bool = False) -> RoomConnection:
    """创建一个底层为 ``AsyncMock`` 的真实 ``RoomConnection``。

    Args:
        fail: 为 True 时 ``send_text`` 抛出异常，模拟已断开的连接。
        stall: 为 True 时 ``send_text`` 永远不返回，模拟停止读取的客户端。
    """
    websocket = AsyncMock()
    if fail:
        websocket.send_text.side_effect = RuntimeError("socket already closed")
    if stall:
        async def never_completes(*args: Any, **kwargs: Any) -> None:
            await asyncio.Event().wait()

        websocket.send_text.side_effect = never_completes
    return RoomConnection(websocket)


def sent_events(conn: RoomConnection) -> list[dict[str, Any]]:
    """按顺序取出某个连接收到的全部事件（已反序列化）。"""
    return [json.loads(call.args[0]) for call in conn.websocket.send_text.call_args_list]


# ── 上游 LLM Mock ─────────────────────────────────────────────────────

class FakeLLM:
    """模拟 ``OpenAIChatClient.stream_reply``。

    Attributes:
        fragments: 依次产出的片段。
        gate: 若设置，产出第一个片段前等待该事件，用于让生成保持进行中。
        error: 若设置，产出全部片段后抛出该异常。
        calls: 每次调用收到的 prompt。
    """

    def __init__(
        self,
        fragments: list[str] | None = None,
        gate: asyncio.Event | None = None,
        error: Exception | None = None,
    ) -> None:
        self.fragments = fragments if fragments is not None else ["Pre", "heat ", "oven."]
        self.gate = gate
        self.error = error
        self.calls: list[str] = []

    async def stream_reply(self, prompt: str) -> AsyncGenerator[str, None]:
        self.calls.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        for fragment in self.fragments:
            yield fragment
        if self.error is not None:
            raise self.error


def user_message(msg_id: str, text: str) -> str:
    """构造一条客户端 ``user_message`` 原始帧。"""
    return json.dumps({"type": "user_message", "id": msg_id, "text": text})


def sse_body(*payloads: str) -> bytes:
    """把若干 data 负载拼成上游 SSE 响应体。"""
    return "".join(f"data: {p}\n\n" for p in payloads).encode("utf-8")


def delta_payload(text: str) -> str:
    """构造一条 Chat Completions 流式增量负载。"""
    return json.dumps({"choices": [{"index": 0, "delta": {"content": text}}]})
