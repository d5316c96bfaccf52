"""
app.api.deps
~~~~~~~~~~~~

FastAPI 依赖项 —— 从 ``app.state`` 取出 lifespan 中构建的全局服务。
"""
from __future__ import annotations

from fastapi import Request

from app.services.recipe import RecipeService
from app.services.registry import RoomRegistry


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


def get_recipe_service(request: Request) -> RecipeService:
    return request.app.state.recipe_service
