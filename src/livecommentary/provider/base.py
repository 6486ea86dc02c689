"""Abstract base class for AI providers.

All provider implementations must conform to this interface, enabling
the orchestrator to swap the remote endpoint for another backend (or a
test double) without changing the rest of the pipeline.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Sequence

from livecommentary.domain.models import ChatMessage, CommentaryPrompts, CommentarySettings
from livecommentary.provider.parser import parse_comments

logger = logging.getLogger(__name__)

# Receives partial LoadingState updates, e.g. {"status": "loading", "message": "..."}
ProgressCallback = Callable[[dict[str, Any]], None]

HISTORY_WINDOW = 8


class AIProvider(ABC):
    """Abstract interface for commentary model providers."""

    def __init__(self, history_window: int = HISTORY_WINDOW) -> None:
        self._history_window = history_window

    @abstractmethod
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
        """Send one frame to the model and return the raw completion text.

        Args:
            image: Bare base64 JPEG payload.
            settings: Endpoint and sampling parameters.
            history: Chat so far; only the most recent entries are sent.
            user_prompt: Text typed by the user, if this call answers it.
            on_progress: Receives loading-state updates during long
                         provider-side initialization.
            prompts: Prompt templates (defaults when None).
            context: Arbitrary JSON-serializable application state.

        Raises:
            ProviderError: If the call fails.
        """
        ...

    def parse_response(self, text: str) -> list[str]:
        """Parse a raw completion into comments."""
        return parse_comments(text)

    async def generate_comment(
        self,
        image: str,
        settings: CommentarySettings,
        history: Sequence[ChatMessage],
        user_prompt: str | None = None,
        on_progress: ProgressCallback | None = None,
        prompts: CommentaryPrompts | None = None,
        context: dict[str, Any] | None = None,
    ) -> list[str]:
        """Fetch a completion and parse it into comments."""
        text = await self.fetch_raw_response(
            image, settings, history, user_prompt, on_progress, prompts, context
        )
        return self.parse_response(text)

    async def aclose(self) -> None:
        """Release any transport resources."""

    def build_system_instruction(
        self,
        prompts: CommentaryPrompts,
        history: Sequence[ChatMessage],
        user_prompt: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> str:
        """Combine persona, optional app state, recent chat and the task."""
        recent = history[-self._history_window:] if self._history_window else []
        recent_history = "\n".join(f"{msg.username}: {msg.text}" for msg in recent)

        context_block = ""
        if context:
            context_block = (
                "\nCurrent Application State/Stats:\n"
                f"{json.dumps(context, indent=2, default=str)}\n"
                "Use this data to inform your commentary."
            )

        task = "Respond to the user input." if user_prompt else "Generate new comments."
        return (
            f"\n{prompts.system}\n\n{context_block}\n\n"
            f"Chat History:\n{recent_history}\n\n"
            f"Task: Analyze the attached image. {task}\n"
        )

    @staticmethod
    def build_task_prompt(prompts: CommentaryPrompts, user_prompt: str | None = None) -> str:
        if user_prompt:
            return prompts.render_chat(user_prompt)
        return prompts.interval


class ProviderError(Exception):
    """Raised when a commentary request fails."""

    def __init__(self, message: str, provider: str = "", raw_response: str = "") -> None:
        super().__init__(message)
        self.provider = provider
        self.raw_response = raw_response


class MisconfiguredEndpoint(ProviderError):
    """No endpoint URL is configured; no request was attempted."""


class RemoteError(ProviderError):
    """The endpoint answered with a non-success HTTP status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        provider: str = "",
        raw_response: str = "",
    ) -> None:
        super().__init__(message, provider=provider, raw_response=raw_response)
        self.status_code = status_code


class InvalidResponseShape(ProviderError):
    """The endpoint answered successfully but not with a completion body."""


class ConnectionFailed(ProviderError):
    """The request could not be completed (DNS, refused, reset, timeout)."""
