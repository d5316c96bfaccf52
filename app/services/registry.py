"""
app.services.registry
~~~~~~~~~~~~~~~~~~~~~

房间注册表 —— 把房间 ID 映射到唯一的 ``ChatRoom`` 实例。

房间在首次被引用时懒创建。最后一个成员离开且没有生成任务时，
中继通过 ``evict()`` 移除该空闲房间，之后再次引用会创建新实例。
``get_or_create()`` 是同步方法，创建过程中没有挂起点，
同一事件循环上的并发首访问不可能创建出两个实例。
"""
from __future__ import annotations

import asyncio

from app.core.logging import get_logger
from app.schemas.rooms import RoomInfoData
from app.services.room import ChatRoom

logger = get_logger(__name__)


class RoomRegistry:
    """房间注册表（由 lifespan 创建，挂载于 ``app.state``）。

    - ``get_or_create(room_id)`` → 获取/创建指定房间
    - ``get(room_id)``           → 只查询，不创建
    - ``list_rooms()``           → 列出所有房间摘要
    - ``evict(room_id)``         → 移除一个空闲房间
    """

    def __init__(self) -> None:
        self._rooms: dict[str, ChatRoom] = {}

    def get_or_create(self, room_id: str) -> ChatRoom:
        """获取指定房间，不存在则创建。

        Args:
            room_id: 房间唯一标识。

        Returns:
            对应的 ``ChatRoom`` 实例；同一 ID 永远返回同一实例。
        """
        room = self._rooms.get(room_id)
        if room is None:
            room = ChatRoom(room_id)
            self._rooms[room_id] = room
            logger.info("房间已创建 | room_id=%s | 房间总数: %d", room_id, len(self._rooms))
        return room

    def get(self, room_id: str) -> ChatRoom | None:
        return self._rooms.get(room_id)

    def list_rooms(self) -> list[RoomInfoData]:
        """列出所有房间的摘要信息。"""
        return [room.info() for room in self._rooms.values()]

    def evict(self, room_id: str) -> bool:
        """移除一个空闲房间（无成员、无生成任务）。

        Returns:
            是否真的移除了房间。
        """
        room = self._rooms.get(room_id)
        if room is None or not room.is_idle:
            return False
        del self._rooms[room_id]
        logger.info("房间已移除 | room_id=%s", room_id)
        return True

    async def aclose(self) -> None:
        """关闭所有房间的后台任务。"""
        await asyncio.gather(*(room.aclose() for room in self._rooms.values()))
        self._rooms.clear()

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms
