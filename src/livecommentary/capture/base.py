"""Abstract base class for frame sources.

All capture implementations must conform to this interface, enabling
the orchestrator to swap between OS screen capture and an externally
supplied frame function without changing the rest of the pipeline.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

from livecommentary.domain.models import CaptureMode

logger = logging.getLogger(__name__)

EndedListener = Callable[[], None]


class FrameSource(ABC):
    """Abstract interface for acquiring still frames from a visual source.

    A source is either capturing or not; at most one capture session is
    active per instance. Frames are returned as bare base64 JPEG payloads
    (no ``data:`` prefix), or ``None`` when no frame is available yet.

    Example usage::

        source = ScreenCapture(monitor=1)
        if await source.start():
            frame = await source.capture_frame()
        source.stop()
    """

    mode: CaptureMode

    def __init__(self) -> None:
        self._is_capturing: bool = False
        self._last_error: str | None = None
        self._ended_listeners: list[EndedListener] = []

    @property
    def is_capturing(self) -> bool:
        """Whether a capture session is currently active."""
        return self._is_capturing

    @property
    def last_error(self) -> str | None:
        """Message of the last failed start, cleared on the next start."""
        return self._last_error

    def add_ended_listener(self, listener: EndedListener) -> None:
        """Register a callback fired when the stream ends upstream.

        Upstream termination (e.g. the captured display disappears) is an
        expected end of session, not a failure: the source becomes
        inactive without recording an error.
        """
        self._ended_listeners.append(listener)

    @abstractmethod
    async def start(self) -> bool:
        """Begin a capture session.

        Returns:
            True once capture is active.

        Raises:
            PermissionDenied: The OS refused or the user cancelled capture.
            MisconfiguredSource: The source cannot produce frames.
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """End the capture session and release resources.

        Safe to call multiple times.
        """
        ...

    async def close(self) -> None:
        """Stop capturing and free any resources held by the source.

        Safe to call multiple times. The source is not reused afterwards.
        """
        self.stop()

    @abstractmethod
    async def capture_frame(self) -> str | None:
        """Capture one frame as a bare base64 JPEG payload.

        Returns None when no frame is available; that is an expected
        transient condition, not an error.
        """
        ...

    def _fail_start(self, error: CaptureError) -> CaptureError:
        self._is_capturing = False
        self._last_error = str(error)
        logger.warning("Capture start failed (%s): %s", self.mode.value, error)
        return error

    def _handle_stream_ended(self) -> None:
        """Transition to inactive after an upstream stop and notify listeners."""
        if not self._is_capturing:
            return
        logger.info("Capture stream ended upstream (%s)", self.mode.value)
        self.stop()
        self._last_error = None
        for listener in list(self._ended_listeners):
            listener()


class CaptureError(Exception):
    """Raised when a capture session cannot be started."""


class PermissionDenied(CaptureError):
    """The OS or user refused the screen capture request."""

    def __init__(self, message: str = "Permission denied or cancelled.") -> None:
        super().__init__(message)


class MisconfiguredSource(CaptureError):
    """External mode was selected without a frame function."""

    def __init__(self, message: str = "External capture source not provided") -> None:
        super().__init__(message)
