"""
app.schemas.rooms
~~~~~~~~~~~~~~~~~

房间相关的 Pydantic 响应模型。
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class RoomInfoData(BaseModel):
    """房间摘要信息数据类型"""

    room_id: str = Field(..., description="房间唯一标识")
    online_count: int = Field(..., description="当前在线连接数")
    generating: bool = Field(..., description="是否有助手回复正在生成")
