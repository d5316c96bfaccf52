"""
tests.test_sse
~~~~~~~~~~~~~~

SSE 累加器与增量负载解析的单元测试。
"""
from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from app.core.exceptions import StreamCorruption
from app.llm.sse import SSEBuffer, extract_delta, iter_sse_payloads
from conftest import delta_payload


async def _chunks(*parts: str) -> AsyncIterator[str]:
    for part in parts:
        yield part


# ── SSEBuffer ─────────────────────────────────────────────────────────

class TestSSEBuffer:
    """测试跨分块的事件块拼接。"""

    def test_complete_block_in_one_chunk(self) -> None:
        buffer = SSEBuffer()

        assert buffer.feed("data: hello\n\n") == ["hello"]
        assert buffer.pending == ""

    def test_block_split_across_chunks(self) -> None:
        """分块边界落在事件块中间时，残块应保留到下一次 feed。"""
        buffer = SSEBuffer()

        assert buffer.feed("data: {\"a\"") == []
        assert buffer.pending == "data: {\"a\""
        assert buffer.feed(": 1}\n") == []
        assert buffer.feed("\ndata: next") == ['{"a": 1}']
        assert buffer.pending == "data: next"

    def test_multiple_lines_per_block(self) -> None:
        buffer = SSEBuffer()

        assert buffer.feed("data: one\ndata: two\n\n") == ["one", "two"]

    def test_lines_without_prefix_are_ignored(self) -> None:
        """注释行、event 行以及空负载都不应产出。"""
        buffer = SSEBuffer()

        payloads = buffer.feed(": keep-alive\nevent: ping\ndata:\ndata: real\n\n")

        assert payloads == ["real"]

    def test_crlf_line_endings(self) -> None:
        buffer = SSEBuffer()

        assert buffer.feed("data: a\r\n\r") == []
        assert buffer.feed("\ndata: b\r\n\r\n") == ["a", "b"]

    def test_independent_buffers_do_not_share_state(self) -> None:
        first, second = SSEBuffer(), SSEBuffer()

        first.feed("data: partial")

        assert second.pending == ""
        assert second.feed("data: x\n\n") == ["x"]


# ── iter_sse_payloads ─────────────────────────────────────────────────

class TestIterSSEPayloads:
    """测试流式驱动与哨兵终止。"""

    @pytest.mark.asyncio
    async def test_stops_at_sentinel(self) -> None:
        """遇到 [DONE] 后立即结束，同一块中的后续行和之后的块都被丢弃。"""
        stream = _chunks(
            "data: first\n\n",
            "data: [DONE]\ndata: same-block\n\n",
            "data: after\n\n",
        )

        result = [p async for p in iter_sse_payloads(stream)]

        assert result == ["first"]

    @pytest.mark.asyncio
    async def test_discards_trailing_partial_block(self) -> None:
        """上游结束时没有空行收尾的残块不会被产出。"""
        stream = _chunks("data: one\n\n", "data: unterminated")

        result = [p async for p in iter_sse_payloads(stream)]

        assert result == ["one"]

    @pytest.mark.asyncio
    async def test_sentinel_split_across_chunks(self) -> None:
        stream = _chunks("data: a\n\ndata: [DO", "NE]\n\ndata: b\n\n")

        result = [p async for p in iter_sse_payloads(stream)]

        assert result == ["a"]


# ── extract_delta ─────────────────────────────────────────────────────

class TestExtractDelta:
    """测试 choices[0].delta.content 的提取。"""

    def test_content_present(self) -> None:
        assert extract_delta(delta_payload("Pre")) == "Pre"

    def test_role_only_delta_is_empty(self) -> None:
        assert extract_delta('{"choices": [{"delta": {"role": "assistant"}}]}') == ""

    def test_missing_choices_is_empty(self) -> None:
        assert extract_delta('{"usage": {"total_tokens": 3}}') == ""
        assert extract_delta('{"choices": []}') == ""
        assert extract_delta("[1, 2]") == ""

    def test_malformed_json_raises(self) -> None:
        with pytest.raises(StreamCorruption):
            extract_delta('{"choices": [{"delta": ')
