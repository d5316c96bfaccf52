"""
app.services.connection
~~~~~~~~~~~~~~~~~~~~~~~

WebSocket 连接适配器 —— 给中继层提供 send / receive / close 三个原语。

``RoomConnection`` 只包装一条 WebSocket，不关心房间和广播；
发送失败统一转换为 ``TransportError``，由上层决定是否注销该连接。
"""
from __future__ import annotations

import uuid
from enum import Enum

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from app.core.exceptions import TransportError
from app.core.logging import get_logger

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """单条连接的生命周期状态。"""

    CONNECTING = "connecting"
    JOINED = "joined"
    CLOSED = "closed"


class RoomConnection:
    """房间内的一条客户端连接。

    Attributes:
        websocket: 底层 WebSocket 连接。
        conn_id: 连接短 ID，仅用于日志。
        display_name: 客户端在 ``join`` 事件中声明的显示名称。
        state: 当前生命周期状态。
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.conn_id: str = uuid.uuid4().hex[:8]
        self.display_name: str | None = None
        self.state: ConnectionState = ConnectionState.CONNECTING

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    async def accept(self) -> None:
        """完成 WebSocket 升级握手。"""
        await self.websocket.accept()

    async def receive_text(self) -> str:
        """接收一条消息帧并按文本返回。

        二进制帧按 UTF-8 解码（非法字节替换），交由上层当作普通文本校验。

        Raises:
            WebSocketDisconnect: 客户端断开连接。
        """
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(code=message.get("code", 1000))
        text = message.get("text")
        if text is not None:
            return text
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def send_text(self, payload: str) -> None:
        """发送一条已序列化的文本帧。

        Raises:
            TransportError: 连接已关闭或底层发送失败。
        """
        if self.is_closed:
            raise TransportError(f"connection {self.conn_id} is closed")
        try:
            await self.websocket.send_text(payload)
        except Exception as e:
            raise TransportError(f"send failed on {self.conn_id}: {e}") from e

    async def send_event(self, event: BaseModel) -> None:
        """序列化并发送一个事件模型。"""
        await self.send_text(event.model_dump_json())

    def mark_closed(self) -> None:
        """标记连接已由对端关闭，之后的 ``close()`` 不再触碰底层连接。"""
        self.state = ConnectionState.CLOSED

    async def close(self, code: int = 1000) -> None:
        """关闭连接。可重复调用，永不抛出异常。"""
        if self.is_closed:
            return
        self.state = ConnectionState.CLOSED
        try:
            await self.websocket.close(code=code)
        except Exception as e:
            logger.debug("关闭连接时出错（已忽略）| conn=%s | %s", self.conn_id, e)

    def __repr__(self) -> str:
        return f"RoomConnection(conn_id={self.conn_id!r}, state={self.state.value})"
