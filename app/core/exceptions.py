"""
app.core.exceptions
~~~~~~~~~~~~~~~~~~~

中继服务的异常分类。

每一类异常对应一种固定的处理策略（由 ``RoomRelay`` 执行）:

  - ``MalformedInput``       → 仅回复发送者 error 事件，连接保持
  - ``RoomBusy``             → 向房间广播 error 事件，不自动重试
  - ``UpstreamUnavailable``  → 广播 error 事件，本次生成结束并释放锁
  - ``StreamCorruption``     → 跳过该行，流继续
  - ``TransportError``       → 注销该连接，不影响其他成员
"""
from __future__ import annotations


class RelayError(Exception):
    """中继服务异常基类。"""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MalformedInput(RelayError):
    """客户端消息无法解析或缺少必填字段。"""


class RoomBusy(RelayError):
    """房间内已有一次生成正在进行。"""

    def __init__(self, message: str = "Assistant is busy; try again in a moment.") -> None:
        super().__init__(message)


class UpstreamUnavailable(RelayError):
    """上游模型 API 返回非 2xx 或没有响应体。"""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"OpenAI error {status_code}: {body}")


class StreamCorruption(RelayError):
    """SSE 流中单行 data 负载不是合法 JSON。"""


class TransportError(RelayError):
    """单个连接的发送/接收失败。"""


class RecipeGenerationError(RelayError):
    """结构化菜谱生成失败，携带应返回给调用方的 HTTP 状态码。"""

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.status_code = status_code
        super().__init__(message)
