"""
app.api.rooms
~~~~~~~~~~~~~

房间 REST 接口 —— 只读查询，不会创建房间。

端点:
  - ``GET /rooms``            → 获取房间列表
  - ``GET /rooms/{room_id}``  → 获取房间详情
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.api.deps import get_registry
from app.core.config import settings
from app.core.rate_limit import limiter
from app.schemas.api_response import ApiResponse
from app.schemas.rooms import RoomInfoData
from app.services.registry import RoomRegistry

router: APIRouter = APIRouter()


@router.get("/rooms", summary="获取房间列表")
@limiter.limit(settings.API_RATE_LIMIT)
async def list_rooms(
    request: Request,
    registry: RoomRegistry = Depends(get_registry),
) -> ApiResponse[list[RoomInfoData]]:
    """返回所有已被引用过的房间摘要。"""
    return ApiResponse.ok(data=registry.list_rooms())


@router.get(
    "/rooms/{room_id}",
    summary="获取房间详情",
    response_model=ApiResponse[RoomInfoData],
)
@limiter.limit(settings.API_RATE_LIMIT)
async def room_info(
    request: Request,
    room_id: str,
    registry: RoomRegistry = Depends(get_registry),
) -> ApiResponse[RoomInfoData] | JSONResponse:
    """返回指定房间的在线人数与生成状态。

    Args:
        room_id: 房间唯一标识。
    """
    room = registry.get(room_id)
    if room is None:
        return ApiResponse.fail(msg=f"房间不存在: {room_id}", code=404).to_response()
    return ApiResponse.ok(data=room.info())
