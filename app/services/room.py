"""
app.services.room
~~~~~~~~~~~~~~~~~

聊天房间领域模型 —— 维护房间成员集合、广播能力与单飞生成标记。

所有状态变更都在同一个事件循环上以同步方法完成，方法内部没有 ``await``，
因此 ``try_begin_generation()`` 的检查与置位不会被其他协程打断。
广播在房间级发送锁内进行，保证房间内每个成员看到的事件顺序完全一致。
"""
from __future__ import annotations

import asyncio

from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import TransportError
from app.core.logging import get_logger
from app.schemas.rooms import RoomInfoData
from app.services.connection import RoomConnection

logger = get_logger(__name__)


class ChatRoom:
    """一个独立的聊天房间。

    Attributes:
        room_id: 房间唯一标识。
        connections: 当前在线的连接集合（无序）。
        send_timeout: 向单个成员发送一帧的超时（秒）。
    """

    def __init__(self, room_id: str, send_timeout: float | None = None) -> None:
        self.room_id = room_id
        self.connections: set[RoomConnection] = set()
        self.send_timeout: float = settings.WS_SEND_TIMEOUT if send_timeout is None else send_timeout
        self._generating: bool = False
        self._send_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()

    # ── 成员管理 ──────────────────────────────────────────────────────

    def register(self, conn: RoomConnection) -> None:
        """加入成员集合，重复加入无副作用。"""
        self.connections.add(conn)

    def unregister(self, conn: RoomConnection) -> None:
        """移出成员集合，连接不在集合中时静默返回。"""
        self.connections.discard(conn)

    @property
    def online_count(self) -> int:
        """当前在线连接数。"""
        return len(self.connections)

    # ── 广播 ──────────────────────────────────────────────────────────

    async def broadcast(self, event: BaseModel) -> None:
        """向房间内所有在线连接广播事件。

        每个成员的发送都有 ``send_timeout`` 上限。发送失败或超时的连接
        被注销并关闭，不影响其他成员，也不会向调用方抛出异常。
        """
        payload: str = event.model_dump_json()
        async with self._send_lock:
            recipients = list(self.connections)
            results = await asyncio.gather(
                *(self._send_with_timeout(conn, payload) for conn in recipients),
                return_exceptions=True,
            )
            failed: list[RoomConnection] = []
            for conn, result in zip(recipients, results):
                if isinstance(result, Exception):
                    logger.warning(
                        "广播失败，移除断开的连接 | room=%s | conn=%s | %s",
                        self.room_id, conn.conn_id, result,
                    )
                    self.unregister(conn)
                    failed.append(conn)
        if failed:
            await asyncio.gather(*(self._close_quietly(conn) for conn in failed))

    async def send_to(self, conn: RoomConnection, event: BaseModel) -> None:
        """只向单个连接发送事件（如格式错误提示）。"""
        try:
            await self._send_with_timeout(conn, event.model_dump_json())
        except TransportError as e:
            logger.warning("单播失败，移除连接 | room=%s | %s", self.room_id, e)
            self.unregister(conn)
            await self._close_quietly(conn)

    async def _send_with_timeout(self, conn: RoomConnection, payload: str) -> None:
        """发送一帧；超时按 ``TransportError`` 处理。"""
        try:
            await asyncio.wait_for(conn.send_text(payload), self.send_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"send timed out on {conn.conn_id} after {self.send_timeout}s",
            ) from e

    async def _close_quietly(self, conn: RoomConnection) -> None:
        """关闭被移除的连接，让客户端感知并重连。关闭本身同样受超时限制。"""
        try:
            await asyncio.wait_for(conn.close(code=1011), self.send_timeout)
        except asyncio.TimeoutError:
            logger.debug("关闭连接超时（已忽略）| room=%s | conn=%s", self.room_id, conn.conn_id)

    # ── 单飞生成标记 ──────────────────────────────────────────────────

    @property
    def generating(self) -> bool:
        """是否有助手回复正在生成。"""
        return self._generating

    def try_begin_generation(self) -> bool:
        """尝试占用本房间的生成槽位。已被占用时立即返回 False，不排队。"""
        if self._generating:
            return False
        self._generating = True
        return True

    def end_generation(self) -> None:
        """释放生成槽位。每次成功的 ``try_begin_generation()`` 必须对应一次调用。"""
        self._generating = False

    # ── 后台任务 ──────────────────────────────────────────────────────

    def track(self, task: asyncio.Task[None]) -> None:
        """持有生成任务的引用。任务归房间所有，连接断开不会取消它。"""
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def is_idle(self) -> bool:
        """没有成员且没有生成任务。"""
        return not self.connections and not self._generating and not self._tasks

    async def aclose(self) -> None:
        """取消并等待所有未完成的生成任务（仅在进程关闭时调用）。

        尚未开始运行就被取消的任务不会执行自己的 ``finally``，
        因此这里最后再释放一次生成槽位。
        """
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.end_generation()

    def info(self) -> RoomInfoData:
        """返回房间摘要信息。"""
        return RoomInfoData(
            room_id=self.room_id,
            online_count=self.online_count,
            generating=self.generating,
        )
