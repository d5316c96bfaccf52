"""
app.api.recipes
~~~~~~~~~~~~~~~

结构化菜谱生成接口（HTTP 一次性，无状态）。

端点:
  - ``POST /recipes`` → 根据描述生成一份菜谱计划
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.api.deps import get_recipe_service
from app.core.config import settings
from app.core.exceptions import RecipeGenerationError
from app.core.logging import get_logger
from app.core.rate_limit import limiter
from app.schemas.api_response import ApiResponse
from app.schemas.recipe import RecipePlan, RecipePrompt
from app.services.recipe import RecipeService

logger = get_logger(__name__)

router: APIRouter = APIRouter()


@router.post(
    "/recipes",
    summary="生成菜谱",
    response_model=ApiResponse[RecipePlan],
)
@limiter.limit(settings.API_RATE_LIMIT)
async def generate_recipe(
    request: Request,
    body: RecipePrompt,
    service: RecipeService = Depends(get_recipe_service),
) -> ApiResponse[RecipePlan] | JSONResponse:
    """根据用户描述调用模型生成结构化菜谱。

    Args:
        body: 包含 8~400 字符描述的请求体。
    """
    try:
        plan = await service.generate(body.prompt)
    except RecipeGenerationError as e:
        logger.warning("菜谱生成失败 | status=%d | %s", e.status_code, e.message)
        return ApiResponse.fail(msg=e.message, code=e.status_code).to_response()
    return ApiResponse.ok(data=plan)
