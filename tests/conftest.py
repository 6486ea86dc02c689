"""Shared test fixtures for the livecommentary test suite.

Provides scripted frame sources and providers so the orchestrator can be
exercised without a display or a network.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Sequence

import numpy as np
import pytest
import pytest_asyncio

from livecommentary.capture.base import FrameSource, PermissionDenied
from livecommentary.commentary.orchestrator import CommentaryOrchestrator
from livecommentary.commentary.store import SettingsStore
from livecommentary.domain.models import (
    CaptureMode,
    ChatMessage,
    CommentaryPrompts,
    CommentarySettings,
)
from livecommentary.provider.base import AIProvider, ProgressCallback


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class StubFrameSource(FrameSource):
    """Frame source returning a fixed payload; can be told to refuse start."""

    def __init__(
        self,
        frame: str | None = "ZnJhbWU=",
        mode: CaptureMode = CaptureMode.SCREEN_CAPTURE,
        deny: bool = False,
    ) -> None:
        super().__init__()
        self.mode = mode
        self.frame = frame
        self.deny = deny
        self.start_calls = 0
        self.stop_calls = 0
        self.closed = False

    async def start(self) -> bool:
        self.start_calls += 1
        if self.deny:
            raise self._fail_start(PermissionDenied())
        self._is_capturing = True
        return True

    def stop(self) -> None:
        self.stop_calls += 1
        self._is_capturing = False

    async def close(self) -> None:
        await super().close()
        self.closed = True

    async def capture_frame(self) -> str | None:
        return self.frame

    def end_stream(self) -> None:
        """Simulate the user revoking screen sharing."""
        self._handle_stream_ended()


class StubProvider(AIProvider):
    """Provider returning scripted completions or raising scripted errors.

    When ``gate`` is set, each call blocks until the gate is released.
    When ``progress`` is set, it is reported through on_progress first.
    """

    def __init__(self, responses: Sequence[str | Exception] = ("",)) -> None:
        super().__init__()
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()
        self.progress: dict[str, Any] | None = None
        self.closed = False

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
        self.calls.append(
            {
                "image": image,
                "settings": settings,
                "history": list(history),
                "user_prompt": user_prompt,
                "on_progress": on_progress,
                "prompts": prompts,
                "context": context,
            }
        )
        self.started.set()
        if self.progress is not None and on_progress is not None:
            on_progress(self.progress)
        if self.gate is not None:
            await self.gate.wait()
        result = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_image() -> np.ndarray:
    """A 2048x1024 BGR gradient image."""
    image = np.zeros((1024, 2048, 3), dtype=np.uint8)
    image[:, :, 1] = np.linspace(0, 255, 2048, dtype=np.uint8)
    return image


@pytest.fixture
def frame_source() -> StubFrameSource:
    return StubFrameSource()


@pytest.fixture
def provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def store(tmp_path) -> SettingsStore:
    return SettingsStore(tmp_path / "storage.json")


@pytest_asyncio.fixture
async def make_orchestrator(frame_source: StubFrameSource, provider: StubProvider):
    """Factory building an orchestrator around the stub source/provider."""
    created: list[CommentaryOrchestrator] = []

    def _make(**kwargs: Any) -> CommentaryOrchestrator:
        kwargs.setdefault("source", frame_source)
        kwargs.setdefault("provider", provider)
        kwargs.setdefault("config", {"remoteUrl": "http://x/y", "apiKey": ""})
        kwargs.setdefault("rng", random.Random(7))
        kwargs.setdefault("user_prompt_delay", 0)
        orchestrator = CommentaryOrchestrator(**kwargs)
        created.append(orchestrator)
        return orchestrator

    yield _make

    for orchestrator in created:
        await orchestrator.aclose()
