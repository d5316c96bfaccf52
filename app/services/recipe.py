"""
app.services.recipe
~~~~~~~~~~~~~~~~~~~

结构化菜谱生成服务 —— 一次请求、一次上游调用、一次 Schema 校验，无状态。
"""
from __future__ import annotations

import json

import httpx
from pydantic import ValidationError

from app.core.exceptions import RecipeGenerationError, UpstreamUnavailable
from app.core.logging import get_logger
from app.llm.openai_client import OpenAIChatClient
from app.prompts.cooking import RECIPE_RESPONSE_FORMAT, RECIPE_SYSTEM_PROMPT
from app.schemas.recipe import RecipePlan

logger = get_logger(__name__)


class RecipeService:
    """根据用户描述生成一份 ``RecipePlan``。"""

    def __init__(self, llm: OpenAIChatClient) -> None:
        self.llm = llm

    async def generate(self, prompt: str) -> RecipePlan:
        """调用上游模型生成菜谱并校验结构。

        Args:
            prompt: 已通过长度校验的用户描述。

        Returns:
            校验通过的菜谱计划。

        Raises:
            RecipeGenerationError: 上游失败（502）、内容为空或非 JSON（500）、
                结构不符合 Schema（502）。
        """
        try:
            content = await self.llm.complete_json(
                RECIPE_SYSTEM_PROMPT, prompt, RECIPE_RESPONSE_FORMAT,
            )
        except UpstreamUnavailable as e:
            raise RecipeGenerationError(e.message, status_code=502) from e
        except httpx.HTTPError as e:
            raise RecipeGenerationError(f"Upstream request failed: {e}", status_code=502) from e

        if not content:
            raise RecipeGenerationError("Assistant returned no content", status_code=500)

        try:
            plan_json = json.loads(content)
        except json.JSONDecodeError as e:
            raise RecipeGenerationError("Assistant response was not valid JSON", status_code=500) from e

        try:
            plan = RecipePlan.model_validate(plan_json)
        except ValidationError as e:
            logger.warning("菜谱结构校验失败: %s", e.errors()[:3])
            raise RecipeGenerationError(
                f"Assistant response did not match the recipe schema: {e.error_count()} error(s)",
                status_code=502,
            ) from e

        logger.info("菜谱已生成 | title=%s | 步骤数: %d", plan.title, len(plan.steps))
        return plan
