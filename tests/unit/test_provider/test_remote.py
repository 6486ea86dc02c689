"""Tests for the RemoteAIProvider HTTP implementation."""

from __future__ import annotations

import json

import httpx
import pytest

from livecommentary.domain.models import ChatMessage, CommentaryPrompts, CommentarySettings
from livecommentary.provider.base import (
    ConnectionFailed,
    InvalidResponseShape,
    MisconfiguredEndpoint,
    RemoteError,
)
from livecommentary.provider.remote import RemoteAIProvider


def _completion(content: str | None) -> dict:
    return {"choices": [{"message": {"content": content}}]}


class RecordingTransport(httpx.AsyncBaseTransport):
    """Answers every request with a canned response and records requests."""

    def __init__(self, handler) -> None:
        self._handler = handler
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)


@pytest.fixture
def settings() -> CommentarySettings:
    return CommentarySettings(remote_url="http://x/y", api_key="test-key", temperature=0.3, top_p=0.8)


def _provider(handler) -> tuple[RemoteAIProvider, RecordingTransport]:
    transport = RecordingTransport(handler)
    return RemoteAIProvider(transport=transport), transport


class TestRequestAssembly:

    @pytest.mark.asyncio
    async def test_sends_openai_compatible_body(self, settings: CommentarySettings) -> None:
        provider, transport = _provider(lambda r: httpx.Response(200, json=_completion("hi")))
        await provider.fetch_raw_response("base64image", settings, [], "prompt text")

        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "http://x/y"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["Content-Type"] == "application/json"

        body = json.loads(request.content)
        assert body["model"] == "gpt-4o"
        assert body["max_tokens"] == 256
        assert body["temperature"] == 0.3
        assert body["top_p"] == 0.8
        assert body["messages"][0]["role"] == "system"
        assert body["messages"][1]["role"] == "user"
        assert "prompt text" in body["messages"][1]["content"][0]["text"]
        assert body["messages"][1]["content"][1]["image_url"]["url"] == (
            "data:image/jpeg;base64,base64image"
        )

    @pytest.mark.asyncio
    async def test_no_authorization_without_api_key(self) -> None:
        provider, transport = _provider(lambda r: httpx.Response(200, json=_completion("hi")))
        await provider.fetch_raw_response("img", CommentarySettings(remote_url="http://x/y"), [])
        assert "Authorization" not in transport.requests[0].headers

    def test_system_instruction_uses_last_eight_history_entries(self) -> None:
        history = [
            ChatMessage(id=str(i), username=f"user{i}", color="#fff", text=f"msg {i}")
            for i in range(10)
        ]
        provider = RemoteAIProvider()
        instruction = provider.build_system_instruction(CommentaryPrompts(), history)
        assert "user1: msg 1" not in instruction
        assert "user2: msg 2" in instruction
        assert "user9: msg 9" in instruction
        assert instruction.strip().endswith("Generate new comments.")

    def test_user_prompt_changes_task_and_prompt(self) -> None:
        provider = RemoteAIProvider()
        prompts = CommentaryPrompts()
        instruction = provider.build_system_instruction(prompts, [], user_prompt="hello")
        assert instruction.strip().endswith("Respond to the user input.")
        assert provider.build_task_prompt(prompts, "hello") == prompts.render_chat("hello")
        assert '"hello"' in provider.build_task_prompt(prompts, "hello")
        assert provider.build_task_prompt(prompts) == prompts.interval

    def test_context_block_is_json(self) -> None:
        provider = RemoteAIProvider()
        instruction = provider.build_system_instruction(
            CommentaryPrompts(system="persona"), [], context={"score": [2, 1]}
        )
        assert "Current Application State/Stats:" in instruction
        assert '"score": [\n    2,\n    1\n  ]' in instruction
        assert instruction.index("persona") < instruction.index("Current Application State")

    def test_no_context_block_when_empty(self) -> None:
        provider = RemoteAIProvider()
        instruction = provider.build_system_instruction(CommentaryPrompts(), [], context={})
        assert "Current Application State" not in instruction


class TestResponses:

    @pytest.mark.asyncio
    async def test_returns_completion_text(self, settings: CommentarySettings) -> None:
        provider, _ = _provider(lambda r: httpx.Response(200, json=_completion("<comment>A</comment>")))
        assert await provider.fetch_raw_response("img", settings, []) == "<comment>A</comment>"

    @pytest.mark.asyncio
    async def test_generate_comment_parses(self, settings: CommentarySettings) -> None:
        content = "<comment>Funny comment 1</comment><comment>Sarcastic comment 2</comment>"
        provider, _ = _provider(lambda r: httpx.Response(200, json=_completion(content)))
        comments = await provider.generate_comment("img", settings, [], "prompt")
        assert comments == ["Funny comment 1", "Sarcastic comment 2"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"choices": []}, _completion(None), {"choices": [{}]}])
    async def test_empty_completion_is_valid(self, settings: CommentarySettings, body: dict) -> None:
        provider, _ = _provider(lambda r: httpx.Response(200, json=body))
        assert await provider.fetch_raw_response("img", settings, []) == ""


class TestErrors:

    @pytest.mark.asyncio
    async def test_missing_url_fails_before_transport(self) -> None:
        provider, transport = _provider(lambda r: httpx.Response(200, json=_completion("x")))
        with pytest.raises(MisconfiguredEndpoint, match="not configured"):
            await provider.fetch_raw_response("img", CommentarySettings(remote_url=""), [])
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_http_500_raises_remote_error(self, settings: CommentarySettings) -> None:
        provider, transport = _provider(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(RemoteError) as exc_info:
            await provider.fetch_raw_response("img", settings, [])
        assert str(exc_info.value) == "Remote VLM Error: Internal Server Error"
        assert exc_info.value.status_code == 500
        assert exc_info.value.raw_response == "boom"
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json={"result": "nope"}),
            httpx.Response(200, json=["not", "an", "object"]),
            httpx.Response(200, text="<html>not json</html>"),
        ],
    )
    async def test_unrecognized_body_raises_invalid_shape(
        self, settings: CommentarySettings, response: httpx.Response
    ) -> None:
        provider, _ = _provider(lambda r: response)
        with pytest.raises(InvalidResponseShape):
            await provider.fetch_raw_response("img", settings, [])

    @pytest.mark.asyncio
    async def test_transport_failure_raises_connection_failed(
        self, settings: CommentarySettings
    ) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider, _ = _provider(refuse)
        with pytest.raises(ConnectionFailed, match="Failed to connect"):
            await provider.fetch_raw_response("img", settings, [])

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self, settings: CommentarySettings) -> None:
        provider, _ = _provider(lambda r: httpx.Response(200, json=_completion("x")))
        await provider.fetch_raw_response("img", settings, [])
        await provider.aclose()
        await provider.aclose()
