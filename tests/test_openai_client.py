"""
tests.test_openai_client
~~~~~~~~~~~~~~~~~~~~~~~~

``OpenAIChatClient`` 单元测试 —— 用 ``httpx.MockTransport`` 模拟上游，
不发起任何真实网络请求。
"""
from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from app.core.exceptions import UpstreamUnavailable
from app.llm.client import create_http_client
from app.llm.openai_client import OpenAIChatClient
from app.prompts.cooking import CHAT_SYSTEM_PROMPT
from conftest import delta_payload, sse_body


def _client_for(handler: Callable[[httpx.Request], httpx.Response]) -> OpenAIChatClient:
    http = create_http_client(
        api_key="sk-test",
        base_url="https://upstream.test/v1",
        transport=httpx.MockTransport(handler),
    )
    return OpenAIChatClient(http, model_name="gpt-test")


async def _collect(llm: OpenAIChatClient, prompt: str) -> list[str]:
    return [fragment async for fragment in llm.stream_reply(prompt)]


# ── 流式回复 ──────────────────────────────────────────────────────────

class TestStreamReply:
    """测试流式请求与片段产出。"""

    @pytest.mark.asyncio
    async def test_fragments_in_order(self) -> None:
        """上游产出 Pre / heat / oven. 三段时，应按顺序返回三段。"""
        body = sse_body(
            delta_payload("Pre"), delta_payload("heat "), delta_payload("oven."), "[DONE]",
        )
        llm = _client_for(lambda request: httpx.Response(200, content=body))

        assert await _collect(llm, "How long for salmon?") == ["Pre", "heat ", "oven."]

    @pytest.mark.asyncio
    async def test_request_shape(self) -> None:
        """请求应带鉴权头、stream=true、固定系统指令和用户文本。"""
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, content=sse_body("[DONE]"))

        llm = _client_for(handler)
        await _collect(llm, "How long for salmon?")

        request = captured[0]
        payload = json.loads(request.content)
        assert request.method == "POST"
        assert request.url == "https://upstream.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert payload["stream"] is True
        assert payload["model"] == "gpt-test"
        assert payload["messages"] == [
            {"role": "system", "content": CHAT_SYSTEM_PROMPT},
            {"role": "user", "content": "How long for salmon?"},
        ]

    @pytest.mark.asyncio
    async def test_chunk_boundaries_do_not_matter(self) -> None:
        """响应体被切成任意小块时，结果与整块一致。"""
        body = sse_body(delta_payload("Sear "), delta_payload("skin-side down."), "[DONE]")

        async def tiny_chunks() -> AsyncIterator[bytes]:
            for i in range(0, len(body), 7):
                yield body[i:i + 7]

        llm = _client_for(lambda request: httpx.Response(200, content=tiny_chunks()))

        assert await _collect(llm, "salmon") == ["Sear ", "skin-side down."]

    @pytest.mark.asyncio
    async def test_sentinel_stops_production(self) -> None:
        """[DONE] 之后即使还有数据也不再产出。"""
        body = sse_body(delta_payload("Done"), "[DONE]", delta_payload("ignored"))
        llm = _client_for(lambda request: httpx.Response(200, content=body))

        assert await _collect(llm, "x") == ["Done"]

    @pytest.mark.asyncio
    async def test_malformed_and_empty_lines_are_skipped(self) -> None:
        """损坏的 JSON 行与空片段被跳过，流继续。"""
        body = sse_body(
            '{"choices": [{"delta": {"role": "assistant"}}]}',
            '{"choices": [{"delta": {"content": "Wh',
            delta_payload(""),
            delta_payload("Whisk."),
            "[DONE]",
        )
        llm = _client_for(lambda request: httpx.Response(200, content=body))

        assert await _collect(llm, "x") == ["Whisk."]

    @pytest.mark.asyncio
    async def test_end_of_data_without_sentinel(self) -> None:
        body = sse_body(delta_payload("Stir"))
        llm = _client_for(lambda request: httpx.Response(200, content=body))

        assert await _collect(llm, "x") == ["Stir"]

    @pytest.mark.asyncio
    async def test_non_success_raises_before_any_fragment(self) -> None:
        """非 2xx 响应应抛出 UpstreamUnavailable，携带状态码与响应体。"""
        llm = _client_for(
            lambda request: httpx.Response(429, text='{"error": "rate limited"}'),
        )

        with pytest.raises(UpstreamUnavailable) as exc_info:
            await _collect(llm, "x")

        assert exc_info.value.status_code == 429
        assert "rate limited" in exc_info.value.body
        assert exc_info.value.message.startswith("OpenAI error 429:")


# ── 非流式结构化调用 ──────────────────────────────────────────────────

class TestCompleteJson:
    """测试 complete_json 的内容提取。"""

    @pytest.mark.asyncio
    async def test_returns_message_content(self) -> None:
        captured: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(json.loads(request.content))
            return httpx.Response(
                200, json={"choices": [{"message": {"content": '{"ok": true}'}}]},
            )

        llm = _client_for(handler)
        content = await llm.complete_json("system", "user text", {"type": "json_object"})

        assert content == '{"ok": true}'
        assert captured[0]["response_format"] == {"type": "json_object"}
        assert "stream" not in captured[0]

    @pytest.mark.asyncio
    async def test_missing_content_is_empty(self) -> None:
        llm = _client_for(lambda request: httpx.Response(200, json={"choices": []}))

        assert await llm.complete_json("s", "u", {}) == ""

    @pytest.mark.asyncio
    async def test_non_success_raises(self) -> None:
        llm = _client_for(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(UpstreamUnavailable, match="OpenAI error 500: boom"):
            await llm.complete_json("s", "u", {})
