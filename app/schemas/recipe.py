"""
app.schemas.recipe
~~~~~~~~~~~~~~~~~~

结构化菜谱生成接口的请求/响应模型。

字段名沿用前端约定的 camelCase（``readyIn``、``futureSteps``），
模型返回的 JSON 直接按这些名字校验。
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RecipePrompt(BaseModel):
    """菜谱生成请求体。"""

    prompt: str = Field(
        ..., min_length=8, max_length=400, description="用户对菜谱的描述",
    )


class Ingredient(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    label: str
    amount: str
    futureSteps: list[int]
    note: str | None = None


class Step(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    label: str
    tip: str | None = None
    duration: str | None = None


class RecipePlan(BaseModel):
    """一份完整的菜谱计划。"""

    model_config = ConfigDict(extra="forbid")

    id: str
    title: str
    summary: str
    readyIn: str
    tags: list[str] = Field(..., min_length=1, max_length=5)
    ingredients: list[Ingredient] = Field(..., min_length=3)
    steps: list[Step] = Field(..., min_length=3)
