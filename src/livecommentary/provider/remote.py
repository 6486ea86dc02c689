"""OpenAI-compatible remote provider implementation.

Posts a chat-completions request with the frame attached as an
``image_url`` part. Works with OpenAI, OpenRouter, llama.cpp server,
vLLM and any other endpoint speaking the same body shape.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from livecommentary.domain.models import ChatMessage, CommentaryPrompts, CommentarySettings
from livecommentary.provider.base import (
    HISTORY_WINDOW,
    AIProvider,
    ConnectionFailed,
    InvalidResponseShape,
    MisconfiguredEndpoint,
    ProgressCallback,
    ProviderError,
    RemoteError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
MAX_TOKENS = 256


class RemoteAIProvider(AIProvider):
    """Commentary provider talking to a remote chat-completions endpoint.

    The endpoint URL, key and sampling parameters come from the
    CommentarySettings passed on every call, so edits made by the user
    take effect on the next request.
    """

    def __init__(
        self,
        timeout: float | None = 60.0,
        max_tokens: int = MAX_TOKENS,
        history_window: int = HISTORY_WINDOW,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(history_window=history_window)
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Lazily initialize the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
            logger.info("Initialized remote provider client (timeout=%s)", self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def build_payload(
        self,
        image: str,
        settings: CommentarySettings,
        history: Sequence[ChatMessage],
        user_prompt: str | None = None,
        prompts: CommentaryPrompts | None = None,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Assemble the chat-completions request body."""
        prompts = prompts or CommentaryPrompts()
        return {
            "model": settings.model_name or DEFAULT_MODEL,
            "messages": [
                {
                    "role": "system",
                    "content": self.build_system_instruction(prompts, history, user_prompt, context),
                },
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self.build_task_prompt(prompts, user_prompt)},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/jpeg;base64,{image}"},
                        },
                    ],
                },
            ],
            "max_tokens": self._max_tokens,
            "temperature": settings.temperature,
            "top_p": settings.top_p,
        }

    async def fetch_raw_response(
        self,
        image: str,
        settings: CommentarySettings,
        history: Sequence[ChatMessage],
        user_prompt: str | None = None,
        on_progress: ProgressCallback | None = None,
        prompts: CommentaryPrompts | None = None,
        context: dict[str, Any] | None = None,
    ) -> str:
        """POST the frame to the endpoint and return the completion text."""
        if not settings.remote_url:
            raise MisconfiguredEndpoint("Remote server URL is not configured.", provider="remote")

        payload = self.build_payload(image, settings, history, user_prompt, prompts, context)
        headers = {"Content-Type": "application/json"}
        if settings.api_key:
            headers["Authorization"] = f"Bearer {settings.api_key}"

        try:
            client = await self._ensure_client()
            response = await client.post(settings.remote_url, json=payload, headers=headers)

            if not response.is_success:
                logger.error("Remote VLM error: %s %s", response.status_code, response.text[:200])
                raise RemoteError(
                    f"Remote VLM Error: {response.reason_phrase}",
                    status_code=response.status_code,
                    provider="remote",
                    raw_response=response.text,
                )

            try:
                data = response.json()
            except ValueError as e:
                raise InvalidResponseShape(
                    "Invalid response structure from remote VLM server.",
                    provider="remote",
                    raw_response=response.text,
                ) from e

            choices = data.get("choices") if isinstance(data, dict) else None
            if not isinstance(choices, list):
                logger.error("Invalid response structure: %s", response.text[:200])
                raise InvalidResponseShape(
                    "Invalid response structure from remote VLM server.",
                    provider="remote",
                    raw_response=response.text,
                )

            text = _completion_text(choices)
            logger.debug("Remote VLM raw response: %s", text[:200])
            return text

        except ProviderError:
            raise
        except Exception as e:
            logger.error("Error generating comment from remote VLM: %s", e)
            raise ConnectionFailed(
                "Failed to connect to remote VLM server.", provider="remote"
            ) from e


def _completion_text(choices: list) -> str:
    """Content of the first choice, or "" when there is none."""
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""
