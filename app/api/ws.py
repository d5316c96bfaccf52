"""
app.api.ws
~~~~~~~~~~

WebSocket 实时交互接口 —— 多房间聊天模式。

提供 ``/ws/{room_id}`` 端点，客户端通过 room_id 加入指定房间。
同一房间内所有连接看到完全相同的事件序列（用户消息、助手增量、结束标记、错误）。
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, WebSocket

from app.core.logging import get_logger, request_id_ctx_var
from app.services.relay import RoomRelay

logger = get_logger(__name__)

router: APIRouter = APIRouter()


@router.websocket("/ws/{room_id}")
async def websocket_room_endpoint(websocket: WebSocket, room_id: str) -> None:
    """WebSocket 房间端点。

    消息协议（JSON）:
      - 客户端 → ``join`` / ``user_message``
      - 服务端 → ``message_added`` / ``assistant_delta`` / ``assistant_done`` / ``error``

    Args:
        websocket: FastAPI WebSocket 连接对象。
        room_id: 房间唯一标识。
    """
    token = request_id_ctx_var.set(f"ws-{uuid.uuid4().hex[:8]}")
    try:
        relay: RoomRelay = websocket.app.state.relay
        await relay.serve(websocket, room_id)
    finally:
        request_id_ctx_var.reset(token)
