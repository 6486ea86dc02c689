"""FastAPI HTTP server exposing the commentary widget to host pages.

The host renders the chat; this server owns the orchestrator. Hosts poll
``/messages`` (optionally with ``?after=<id>``), toggle capture, post
user chat lines, edit settings, push live context and, in external mode,
push their own frames.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field, ValidationError

from livecommentary.capture.external import FrameSlot
from livecommentary.commentary.orchestrator import CommentaryOrchestrator
from livecommentary.domain.models import ChatMessage, CommentarySettings, LoadingState
from livecommentary.utils.imaging import strip_data_uri

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    text: str = Field(min_length=1, description="Text typed by the user")


class FrameRequest(BaseModel):
    image: str = Field(min_length=1, description="Base64 JPEG or data URI")


class ContextRequest(BaseModel):
    data: dict[str, Any] | None = Field(default=None, description="Application state for the model")


class CommentaryStatus(BaseModel):
    status: str = "ok"
    mode: str
    capturing: bool
    generating: bool
    pending: int
    loading: LoadingState


def create_app(
    orchestrator: CommentaryOrchestrator,
    frame_slot: FrameSlot | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        orchestrator.welcome()
        logger.info("Commentary endpoint started (%s)", orchestrator.mode.value)
        yield
        for task in list(app.state.user_tasks):
            task.cancel()
        await orchestrator.aclose()
        logger.info("Commentary endpoint stopped")

    app = FastAPI(
        title="livecommentary",
        description="Live AI chat commentary for host pages",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.orchestrator = orchestrator
    app.state.frame_slot = frame_slot
    app.state.user_tasks = set()

    def _status() -> CommentaryStatus:
        return CommentaryStatus(
            mode=orchestrator.mode.value,
            capturing=orchestrator.is_capturing,
            generating=orchestrator.is_generating,
            pending=orchestrator.pending_count,
            loading=orchestrator.loading_state,
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok", "mode": orchestrator.mode.value}

    @app.get("/status")
    async def get_status() -> CommentaryStatus:
        return _status()

    @app.get("/messages")
    async def get_messages(
        after: str | None = Query(default=None, description="Only messages newer than this id"),
    ) -> list[ChatMessage]:
        messages = list(orchestrator.messages)
        if after is not None:
            ids = [m.id for m in messages]
            if after in ids:
                messages = messages[ids.index(after) + 1:]
        return messages

    @app.post("/messages", status_code=202)
    async def post_message(request: ChatRequest) -> dict[str, str]:
        # Answering can take a model round trip; do not hold the request open
        task = asyncio.create_task(orchestrator.send_user_message(request.text))
        app.state.user_tasks.add(task)
        task.add_done_callback(app.state.user_tasks.discard)
        return {"status": "accepted"}

    @app.post("/capture/toggle")
    async def toggle_capture() -> CommentaryStatus:
        await orchestrator.toggle_capture()
        return _status()

    @app.get("/settings")
    async def get_settings() -> dict[str, Any]:
        return orchestrator.settings.to_record()

    @app.patch("/settings")
    async def patch_settings(changes: dict[str, Any]) -> dict[str, Any]:
        try:
            settings: CommentarySettings = orchestrator.update_settings(changes)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False)) from e
        return settings.to_record()

    @app.put("/context")
    async def put_context(request: ContextRequest) -> dict[str, str]:
        orchestrator.set_context_data(request.data)
        return {"status": "ok"}

    @app.post("/frames", status_code=204)
    async def push_frame(request: FrameRequest) -> None:
        slot: FrameSlot | None = app.state.frame_slot
        if slot is None:
            raise HTTPException(status_code=409, detail="Server is not in external capture mode")
        slot.push(strip_data_uri(request.image))

    return app
