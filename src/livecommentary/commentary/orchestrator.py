"""The commentary orchestrator.

Ties together the frame source, the AI provider and the chat message
list: capture -> generate -> dedupe -> queue -> paced display.

Two periodic tasks run while capturing. The trigger loop asks for new
comments on the configured interval, but only when the pending queue is
short and nothing is in flight. The display loop releases one queued
comment every few seconds so bursts from a single completion read like
a chat instead of a wall of text.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable, Coroutine, Mapping, Sequence, Union

from livecommentary.capture.base import CaptureError, FrameSource
from livecommentary.commentary.session import CommentarySession
from livecommentary.commentary.store import SettingsStore, merge_settings
from livecommentary.commentary.users import DEFAULT_COLOR, create_chat_message
from livecommentary.domain.models import (
    CaptureMode,
    ChatMessage,
    CommentaryPrompts,
    CommentarySettings,
    LoadingState,
    LoadingStatus,
    QueuedComment,
)
from livecommentary.provider.base import AIProvider

logger = logging.getLogger(__name__)

MAX_MESSAGES = 100
QUEUE_HIGH_WATER = 3
DISPLAY_INTERVAL = (2.5, 3.5)
USER_PROMPT_DELAY = 0.5

SYSTEM_USER = "System"
LOCAL_USER = "Me"
INFO_COLOR = "#8BE9FD"
HINT_COLOR = "#BD93F9"
STARTED_COLOR = "#50FA7B"
PAUSED_COLOR = "#FFB86C"
ERROR_COLOR = "#FF5555"

ResponseTransform = Callable[[str], Union[Sequence[Union[ChatMessage, Mapping[str, Any]]], None]]
MessageListener = Callable[[ChatMessage], None]


class CommentaryOrchestrator:
    """Central coordinator for the capture-to-commentary pipeline.

    Owns the user settings, the chat message list, the loading state and
    the mutable CommentarySession (pending queue, seen cache, in-flight
    counter). All state is touched from the event loop thread only.

    Example usage::

        orchestrator = CommentaryOrchestrator(
            source=ScreenCapture(),
            provider=RemoteAIProvider(),
            store=SettingsStore("~/.config/livecommentary/storage.json"),
        )
        orchestrator.add_message_listener(print)
        await orchestrator.toggle_capture()
    """

    def __init__(
        self,
        source: FrameSource,
        provider: AIProvider,
        store: SettingsStore | None = None,
        config: Mapping[str, Any] | CommentarySettings | None = None,
        prompts: Mapping[str, str] | CommentaryPrompts | None = None,
        context_data: dict[str, Any] | None = None,
        usernames: Sequence[str] | None = None,
        response_transform: ResponseTransform | None = None,
        display_interval: tuple[float, float] = DISPLAY_INTERVAL,
        user_prompt_delay: float = USER_PROMPT_DELAY,
        rng: random.Random | None = None,
    ) -> None:
        self._source = source
        self._provider = provider
        self._store = store
        self._settings = store.load(config) if store is not None else merge_settings(config)
        self._prompts = CommentaryPrompts.merged(prompts)
        self._context_data = context_data
        self._usernames = list(usernames) if usernames else None
        self._response_transform = response_transform
        self._display_interval = display_interval
        self._user_prompt_delay = user_prompt_delay
        self._rng = rng or random.Random()

        self._messages: list[ChatMessage] = []
        self._listeners: list[MessageListener] = []
        self._loading_state = LoadingState()
        self._session = CommentarySession()
        self._capturing = False
        self._starting = False
        self._trigger_task: asyncio.Task | None = None
        self._display_task: asyncio.Task | None = None
        self._evaluations: set[asyncio.Task] = set()

        source.add_ended_listener(self._on_source_ended)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def settings(self) -> CommentarySettings:
        return self._settings

    @property
    def prompts(self) -> CommentaryPrompts:
        return self._prompts

    @property
    def loading_state(self) -> LoadingState:
        return self._loading_state

    @property
    def mode(self) -> CaptureMode:
        return self._source.mode

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    @property
    def is_generating(self) -> bool:
        return self._session.is_generating

    @property
    def pending_count(self) -> int:
        return self._session.pending_count

    @property
    def pending(self) -> tuple[QueuedComment, ...]:
        return self._session.pending()

    @property
    def seen_count(self) -> int:
        return self._session.seen_count

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message_listener(self, listener: MessageListener) -> None:
        """Register a callback receiving every appended or merged message."""
        self._listeners.append(listener)

    def add_message(
        self,
        text: str,
        username: str | None = None,
        color: str | None = None,
        attachment: str | None = None,
    ) -> ChatMessage:
        """Append a chat message, keeping only the most recent 100.

        Without a username a random one is drawn from the username pool.
        """
        msg = create_chat_message(text, username, color, self._usernames, attachment, self._rng)
        self._messages.append(msg)
        del self._messages[:-MAX_MESSAGES]
        self._notify(msg)
        return msg

    def merge_messages(self, new_messages: Sequence[ChatMessage | Mapping[str, Any]]) -> None:
        """Add messages, replacing existing ones with the same id."""
        incoming = [
            m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m)
            for m in new_messages
        ]
        new_ids = {m.id for m in incoming}
        kept = [m for m in self._messages if m.id not in new_ids]
        self._messages = (kept + incoming)[-MAX_MESSAGES:]
        for msg in incoming:
            self._notify(msg)

    def welcome(self) -> None:
        """Post the greeting shown when the widget first appears."""
        self._system_message("Welcome! Click Play to start.", INFO_COLOR)
        if self.mode == CaptureMode.SCREEN_CAPTURE:
            self._system_message("Use the settings icon to configure.", HINT_COLOR)

    def _system_message(self, text: str, color: str) -> ChatMessage:
        return self.add_message(text, SYSTEM_USER, color)

    def _notify(self, msg: ChatMessage) -> None:
        for listener in list(self._listeners):
            try:
                listener(msg)
            except Exception:
                logger.exception("Message listener failed")

    # ------------------------------------------------------------------
    # Settings / context
    # ------------------------------------------------------------------

    def update_settings(
        self,
        changes: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> CommentarySettings:
        """Apply and persist a partial settings update.

        Keys may be camelCase or snake_case.

        Raises:
            pydantic.ValidationError: If the result is out of range.
        """
        self._settings = merge_settings(self._settings, changes, kwargs)
        if self._store is not None:
            self._store.save(self._settings)
        logger.info("Settings updated: %s", sorted({*(changes or {}), *kwargs}))
        return self._settings

    def set_context_data(self, context_data: dict[str, Any] | None) -> None:
        """Replace the application state sent with the next request."""
        self._context_data = context_data

    def _on_progress(self, update: Mapping[str, Any]) -> None:
        self._loading_state = LoadingState.model_validate(
            {**self._loading_state.model_dump(), **update}
        )

    # ------------------------------------------------------------------
    # Capture lifecycle
    # ------------------------------------------------------------------

    async def toggle_capture(self) -> bool:
        """Start or stop commentary. Returns whether capture is now active."""
        if self._capturing:
            self.stop_capture()
            self._system_message("Commentary paused.", PAUSED_COLOR)
            return False

        if not await self.start_capture():
            return False
        if self.mode == CaptureMode.EXTERNAL:
            self._system_message("Commentary started on external source.", STARTED_COLOR)
        else:
            self._system_message("Let's go! Live commentary started.", STARTED_COLOR)
        return True

    async def start_capture(self) -> bool:
        """Start the frame source and both loops.

        A refused start is reported as one system chat message and leaves
        the orchestrator idle; retrying is always allowed.
        """
        if self._capturing:
            return True
        if self._starting:
            return False
        self._starting = True
        try:
            await self._source.start()
        except CaptureError as e:
            self._system_message(str(e), ERROR_COLOR)
            return False
        finally:
            self._starting = False

        epoch = self._session.next_epoch()
        self._session.clear_queue()
        self._session.reset_seen()
        self._capturing = True
        self._trigger_task = asyncio.create_task(self._trigger_loop(epoch))
        if self._response_transform is None:
            self._display_task = asyncio.create_task(self._display_loop(epoch))
        logger.info("Commentary started (%s)", self.mode.value)
        return True

    def stop_capture(self) -> None:
        """Stop the frame source, halt both loops and drop queued comments."""
        self._source.stop()
        self._halt()

    def _halt(self) -> None:
        was_capturing = self._capturing
        self._capturing = False
        self._session.next_epoch()
        for task in (self._trigger_task, self._display_task):
            if task is not None:
                task.cancel()
        self._trigger_task = None
        self._display_task = None
        self._session.clear_queue()
        if was_capturing:
            logger.info("Commentary stopped")

    def _on_source_ended(self) -> None:
        if self._capturing:
            logger.info("Frame source ended, halting commentary")
            self._halt()

    async def aclose(self) -> None:
        """Stop capturing, cancel outstanding evaluations, close source and provider."""
        if self._capturing:
            self.stop_capture()
        for task in list(self._evaluations):
            task.cancel()
        if self._evaluations:
            await asyncio.gather(*self._evaluations, return_exceptions=True)
        await self._source.close()
        await self._provider.aclose()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def send_user_message(self, text: str) -> None:
        """Post a user chat line and ask the model to respond to it.

        Starts capture first if needed.
        """
        self.add_message(text, LOCAL_USER, DEFAULT_COLOR)
        active = self._capturing or await self.start_capture()
        if not active:
            return
        # Give a freshly started source time to produce its first frame
        await asyncio.sleep(self._user_prompt_delay)
        await self.trigger_evaluation(text)

    async def trigger_evaluation(self, user_prompt: str | None = None) -> None:
        """Capture a frame and turn the model's reaction into chat.

        Automatic calls are dropped while another generation is in
        flight; a user prompt always gets its own attempt. Failures become
        a system chat message and never propagate.
        """
        if self._session.is_generating and not user_prompt:
            logger.debug("Generation already in flight, skipping")
            return

        epoch = self._session.epoch
        self._session.begin_generation()
        try:
            image = await self._source.capture_frame()
            if not image:
                logger.debug("No frame available yet")
                return
            if epoch != self._session.epoch:
                return

            raw_text = await self._provider.fetch_raw_response(
                image,
                self._settings,
                tuple(self._messages),
                user_prompt,
                self._on_progress,
                self._prompts,
                self._context_data,
            )
            if epoch != self._session.epoch:
                logger.debug("Discarding response for a stopped capture session")
                return

            if self._response_transform is not None:
                transformed = self._response_transform(raw_text)
                if transformed:
                    self.merge_messages(transformed)
            else:
                self.process_comments(self._provider.parse_response(raw_text), image)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            if epoch != self._session.epoch:
                logger.debug("Ignoring failure from a stopped capture session: %s", e)
                return
            logger.error("Commentary generation failed: %s", e)
            # Initialization progress UI takes precedence over transient errors
            if self._loading_state.status != LoadingStatus.LOADING:
                self._system_message(str(e) or "AI Error", ERROR_COLOR)
        finally:
            self._session.end_generation()

    def process_comments(
        self,
        comments: Sequence[str],
        attachment: str | None = None,
    ) -> list[QueuedComment]:
        """Queue new unique comments; the first one carries the frame."""
        queued = self._session.enqueue_batch(comments, attachment)
        if queued:
            logger.debug("Queued %d comments (%d pending)", len(queued), self.pending_count)
        return queued

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _trigger_loop(self, epoch: int) -> None:
        while self._session.epoch == epoch:
            self._check_and_fetch()
            # Interval read each tick so settings edits apply without restart
            await asyncio.sleep(self._settings.capture_interval_seconds)

    def _check_and_fetch(self) -> None:
        if self._session.pending_count >= QUEUE_HIGH_WATER:
            logger.debug("Backpressure: %d comments pending", self._session.pending_count)
            return
        if self._session.is_generating or self._loading_state.status == LoadingStatus.LOADING:
            return
        self._spawn(self.trigger_evaluation())

    async def _display_loop(self, epoch: int) -> None:
        low, high = self._display_interval
        while True:
            await asyncio.sleep(self._rng.uniform(low, high))
            if self._session.epoch != epoch:
                return
            item = self._session.dequeue()
            if item is not None:
                self.add_message(item.text, attachment=item.attachment)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._evaluations.add(task)
        task.add_done_callback(self._evaluations.discard)
