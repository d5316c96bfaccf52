"""
app.prompts.cooking
~~~~~~~~~~~~~~~~~~~

烹饪助手的 Prompt 模板与结构化输出格式。

聊天房间与菜谱生成接口各自使用一条固定的系统指令；
菜谱接口额外携带 JSON Schema，让模型按 ``RecipePlan`` 的结构返回。
"""
from __future__ import annotations

from typing import Any

CHAT_SYSTEM_PROMPT: str = "You are a helpful cooking assistant for a recipe book website."

RECIPE_SYSTEM_PROMPT: str = (
    "You are a culinary assistant that designs structured recipe plans. "
    "Produce balanced ingredient lists and numbered steps. "
    "Respond only with JSON matching the provided schema."
)


def build_chat_messages(system_prompt: str, user_text: str) -> list[dict[str, str]]:
    """组装 Chat Completions 的 ``messages`` 字段（系统指令 + 单条用户消息）。"""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_text},
    ]


# ── 结构化菜谱输出格式 ────────────────────────────────────────────────

_INGREDIENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["id", "label", "amount", "futureSteps"],
    "properties": {
        "id": {"type": "string"},
        "label": {"type": "string"},
        "amount": {"type": "string"},
        "futureSteps": {"type": "array", "items": {"type": "integer"}},
        "note": {"type": "string"},
    },
}

_STEP_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "required": ["id", "label"],
    "properties": {
        "id": {"type": "string"},
        "label": {"type": "string"},
        "tip": {"type": "string"},
        "duration": {"type": "string"},
    },
}

RECIPE_RESPONSE_FORMAT: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "recipe_plan",
        "schema": {
            "type": "object",
            "additionalProperties": False,
            "required": ["id", "title", "summary", "readyIn", "tags", "ingredients", "steps"],
            "properties": {
                "id": {"type": "string"},
                "title": {"type": "string"},
                "summary": {"type": "string"},
                "readyIn": {"type": "string"},
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 1,
                    "maxItems": 5,
                },
                "ingredients": {"type": "array", "minItems": 3, "items": _INGREDIENT_SCHEMA},
                "steps": {"type": "array", "minItems": 3, "items": _STEP_SCHEMA},
            },
        },
    },
}
