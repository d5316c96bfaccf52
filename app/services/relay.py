"""
app.services.relay
~~~~~~~~~~~~~~~~~~

房间中继协议处理器 —— 驱动单条连接的生命周期，并在房间内触发助手生成。

连接状态: ``CONNECTING → JOINED → CLOSED``。

一条 ``user_message`` 的处理流程:
  1. 文本去空白后为空 → 向房间广播 error，结束
  2. 广播 ``message_added``（role=user，沿用客户端 ID，服务端时间戳）
  3. ``try_begin_generation()`` 失败 → 广播 busy 错误，结束
  4. 以房间为宿主启动生成任务：先广播空的助手消息确立 ID，
     再逐段广播 ``assistant_delta``，最后广播 ``assistant_done``
  5. 生成期间任何异常都转为一次 error 广播，``end_generation()`` 恰好调用一次

注意第 2 步在第 3 步之前：即使房间忙，用户消息也已经对所有人可见。
"""
from __future__ import annotations

import asyncio
import uuid

import httpx
from fastapi import WebSocket, WebSocketDisconnect

from app.core.exceptions import MalformedInput, RelayError, RoomBusy
from app.core.logging import get_logger
from app.llm.openai_client import OpenAIChatClient
from app.schemas.events import (
    AssistantDeltaEvent,
    AssistantDoneEvent,
    ErrorEvent,
    JoinEvent,
    MessageAddedEvent,
    UserMessageEvent,
    parse_client_event,
)
from app.services.connection import ConnectionState, RoomConnection
from app.services.registry import RoomRegistry
from app.services.room import ChatRoom

logger = get_logger(__name__)

EMPTY_MESSAGE_ERROR: str = "Message text must not be empty."


def _describe_failure(exc: Exception) -> str:
    """把生成过程中的异常转换为可以展示给用户的一句话。"""
    if isinstance(exc, RelayError):
        return exc.message
    if isinstance(exc, httpx.TimeoutException):
        return "Assistant timed out; try again in a moment."
    if isinstance(exc, httpx.HTTPError):
        return f"Assistant connection failed: {exc}"
    return str(exc) or "Assistant error"


def new_assistant_id() -> str:
    """为一条助手消息生成 ID。"""
    return f"a_{uuid.uuid4()}"


class RoomRelay:
    """房间中继（全局一个实例，挂载于 ``app.state.relay``）。

    Attributes:
        registry: 房间注册表。
        llm: 上游流式聊天客户端。
    """

    def __init__(self, registry: RoomRegistry, llm: OpenAIChatClient) -> None:
        self.registry = registry
        self.llm = llm

    # ── 连接生命周期 ──────────────────────────────────────────────────

    async def serve(self, websocket: WebSocket, room_id: str) -> None:
        """接管一条 WebSocket 连接，直到它关闭。

        Args:
            websocket: 尚未 accept 的 WebSocket 连接。
            room_id: 目标房间 ID。
        """
        conn = RoomConnection(websocket)
        await conn.accept()

        # 取房间与注册之间不能有挂起点，否则房间可能在中途被 evict
        room = self.registry.get_or_create(room_id)
        room.register(conn)
        conn.state = ConnectionState.JOINED
        logger.info("连接加入房间 | room=%s | conn=%s | 在线: %d", room_id, conn.conn_id, room.online_count)

        try:
            while True:
                raw = await conn.receive_text()
                await self.handle_message(room, conn, raw)
        except WebSocketDisconnect:
            conn.mark_closed()
        except Exception as e:
            logger.error("WebSocket 接收异常: %s | room=%s", e, room_id, exc_info=True)
        finally:
            room.unregister(conn)
            await conn.close()
            logger.info("连接离开房间 | room=%s | conn=%s | 在线: %d", room_id, conn.conn_id, room.online_count)
            self.registry.evict(room_id)

    # ── 入站消息 ──────────────────────────────────────────────────────

    async def handle_message(
        self, room: ChatRoom, conn: RoomConnection, raw: str,
    ) -> asyncio.Task[None] | None:
        """处理一条入站原始消息。格式错误只回复发送者，不会中断连接。

        Returns:
            若本条消息启动了生成，返回对应的后台任务；否则为 None。
        """
        try:
            event = parse_client_event(raw)
        except MalformedInput as e:
            logger.info("消息格式错误 | room=%s | conn=%s | %s", room.room_id, conn.conn_id, e.message)
            await room.send_to(conn, ErrorEvent(message=e.message))
            return None

        if isinstance(event, JoinEvent):
            conn.display_name = event.display_name
            logger.info(
                "连接确认加入 | room=%s | conn=%s | name=%s",
                room.room_id, conn.conn_id, event.display_name,
            )
            return None

        return await self.handle_user_message(room, event)

    async def handle_user_message(
        self, room: ChatRoom, event: UserMessageEvent,
    ) -> asyncio.Task[None] | None:
        """广播用户消息，并在房间空闲时启动一次助手生成。"""
        if not event.text.strip():
            await room.broadcast(ErrorEvent(message=EMPTY_MESSAGE_ERROR))
            return None

        await room.broadcast(MessageAddedEvent(role="user", id=event.id, text=event.text))

        if not room.try_begin_generation():
            logger.info("房间忙，拒绝生成 | room=%s | msg=%s", room.room_id, event.id)
            await room.broadcast(ErrorEvent(message=RoomBusy().message))
            return None

        assistant_id = new_assistant_id()
        task = asyncio.create_task(
            self.run_generation(room, assistant_id, event.text),
            name=f"generation-{room.room_id}-{assistant_id}",
        )
        room.track(task)
        task.add_done_callback(lambda _: self.registry.evict(room.room_id))
        return task

    # ── 生成会话 ──────────────────────────────────────────────────────

    async def run_generation(self, room: ChatRoom, assistant_id: str, text: str) -> None:
        """执行一次完整的生成会话并把结果广播给房间。

        调用前必须已成功 ``try_begin_generation()``；本方法在所有退出路径上
        释放生成槽位，且不会向调用方抛出普通异常。
        """
        logger.info("开始生成 | room=%s | id=%s", room.room_id, assistant_id)
        fragments = 0
        try:
            await room.broadcast(MessageAddedEvent(role="assistant", id=assistant_id, text=""))
            async for fragment in self.llm.stream_reply(text):
                if not fragment:
                    continue
                fragments += 1
                await room.broadcast(AssistantDeltaEvent(id=assistant_id, text=fragment))
            await room.broadcast(AssistantDoneEvent(id=assistant_id))
            logger.info("生成完成 | room=%s | id=%s | 片段数: %d", room.room_id, assistant_id, fragments)
        except Exception as e:
            logger.error("生成失败 | room=%s | id=%s | %s", room.room_id, assistant_id, e, exc_info=True)
            await room.broadcast(ErrorEvent(message=_describe_failure(e)))
        finally:
            room.end_generation()
