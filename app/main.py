"""
app.main
~~~~~~~~

FastAPI 应用入口 —— 注册路由、挂载中间件、定义生命周期。
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api import recipes, rooms, ws
from app.core.config import settings
from app.core.logging import get_logger, setup_logging
from app.core.rate_limit import limiter
from app.llm.client import create_http_client
from app.llm.openai_client import OpenAIChatClient
from app.schemas.api_response import ApiResponse
from app.services.recipe import RecipeService
from app.services.registry import RoomRegistry
from app.services.relay import RoomRelay

# 初始化日志系统（必须在其他模块之前）
setup_logging()
logger = get_logger(__name__)


# ── 生命周期 ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期钩子，仅在 worker 启动/关闭时各执行一次。"""
    # ── 启动 ──
    http_client = create_http_client()
    llm = OpenAIChatClient(http_client)
    registry = RoomRegistry()

    app.state.registry = registry
    app.state.relay = RoomRelay(registry=registry, llm=llm)
    app.state.recipe_service = RecipeService(llm)

    if not settings.OPENAI_API_KEY:
        logger.warning("未配置 OPENAI_API_KEY，上游调用将返回 401")
    logger.info(
        "🚀 应用已启动 | env=%s | debug=%s | model=%s | log_level=%s",
        settings.ENVIRONMENT,
        settings.debug,
        llm.model_name,
        settings.effective_log_level,
    )
    yield
    # ── 关闭 ──
    await registry.aclose()
    await http_client.aclose()
    logger.info("👋 应用已关闭")


# ── 创建 FastAPI 实例 ─────────────────────────────────────────────────

app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="菜谱聊天房间中继与结构化菜谱生成 API",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ── CORS 中间件 ───────────────────────────────────────────────────────
if settings.allow_cors_all_origins:
    # dev / test 环境：允许所有来源，方便本地调试
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

# ── 路由挂载 ──────────────────────────────────────────────────────────
app.include_router(rooms.router, prefix="/api", tags=["Rooms"])
app.include_router(recipes.router, prefix="/api", tags=["Recipes"])
app.include_router(ws.router, tags=["WebSocket Rooms"])


# ── 全局异常处理器 ────────────────────────────────────────────────────

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """请求体校验失败时返回 400 + 统一应答体（而非 FastAPI 默认的 422）。"""
    response = ApiResponse.fail(
        msg="请求参数校验失败",
        code=400,
        data=jsonable_encoder(exc.errors()),
    )
    return response.to_response()


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """捕获所有未处理异常，返回统一的 ApiResponse.fail() 格式。"""
    logger.error("未捕获异常: %s %s -> %s", request.method, request.url, exc, exc_info=True)
    # 非 prod 环境返回详细错误信息，prod 环境隐藏内部细节
    detail = str(exc) if not settings.is_prod else "服务器内部错误"
    return ApiResponse.fail(msg=detail, code=500, data=None).to_response()


@app.get("/health", tags=["System"])
async def health_check(request: Request) -> JSONResponse:
    """验证服务是否正常运行。

    Returns:
        包含服务状态与房间数量的 JSON 响应。
    """
    registry: RoomRegistry = request.app.state.registry
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "debug": settings.debug,
            "log_level": settings.effective_log_level,
            "rooms": len(registry),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload,  # 仅 dev 环境开启热重载
        log_level=settings.effective_log_level.lower(),
    )
