"""
app.schemas.events
~~~~~~~~~~~~~~~~~~

房间 WebSocket 通道上的 JSON 事件模型。

客户端 → 中继:
  - ``{"type": "join", "roomId": ..., "displayName": ...}``
  - ``{"type": "user_message", "id": ..., "text": ...}``

中继 → 客户端（广播给房间全体成员）:
  - ``{"type": "message_added", "role": "user"|"assistant", "id", "text", "ts"}``
  - ``{"type": "assistant_delta", "id", "text"}``
  - ``{"type": "assistant_done", "id"}``
  - ``{"type": "error", "message"}``
"""
from __future__ import annotations

import time
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.core.exceptions import MalformedInput

MessageRole = Literal["user", "assistant"]


def now_ms() -> int:
    """服务端时间戳（毫秒）。"""
    return int(time.time() * 1000)


# ── 客户端事件 ────────────────────────────────────────────────────────

class JoinEvent(BaseModel):
    """加入房间。仅作确认，不回放历史。"""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["join"] = "join"
    room_id: str = Field(..., alias="roomId", description="房间唯一标识")
    display_name: str | None = Field(
        default=None, alias="displayName", description="可选的显示名称",
    )


class UserMessageEvent(BaseModel):
    """用户发送的一条聊天消息，``id`` 由客户端生成。"""

    type: Literal["user_message"] = "user_message"
    id: str = Field(..., min_length=1, description="客户端生成的消息 ID")
    text: str = Field(..., description="消息正文")


ClientEvent = Annotated[
    Union[JoinEvent, UserMessageEvent],
    Field(discriminator="type"),
]

_client_event_adapter: TypeAdapter[ClientEvent] = TypeAdapter(ClientEvent)


def parse_client_event(raw: str) -> JoinEvent | UserMessageEvent:
    """解析一条客户端原始消息。

    Args:
        raw: WebSocket 收到的文本帧。

    Returns:
        对应的客户端事件模型。

    Raises:
        MalformedInput: JSON 非法、``type`` 未知或缺少必填字段。
    """
    try:
        return _client_event_adapter.validate_json(raw)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        if first.get("type") == "json_invalid":
            raise MalformedInput("Invalid JSON") from e
        raise MalformedInput(f"Invalid message: {first.get('msg', 'unrecognized event')}") from e


# ── 服务端事件 ────────────────────────────────────────────────────────

class MessageAddedEvent(BaseModel):
    """新增一条完整消息。助手消息以空文本出现，随后由 delta 补全。"""

    type: Literal["message_added"] = "message_added"
    role: MessageRole
    id: str
    text: str
    ts: int = Field(default_factory=now_ms, description="服务端时间戳（毫秒）")


class AssistantDeltaEvent(BaseModel):
    """助手消息的增量片段。"""

    type: Literal["assistant_delta"] = "assistant_delta"
    id: str
    text: str


class AssistantDoneEvent(BaseModel):
    """助手消息结束标记。"""

    type: Literal["assistant_done"] = "assistant_done"
    id: str


class ErrorEvent(BaseModel):
    """人类可读的错误提示。"""

    type: Literal["error"] = "error"
    message: str
