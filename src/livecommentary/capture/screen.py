"""Screen capture implementation using mss.

Captures the configured monitor, downsamples it and encodes it as a
JPEG payload for the AI provider.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

import mss
import numpy as np
from mss.exception import ScreenShotError

from livecommentary.capture.base import FrameSource, PermissionDenied
from livecommentary.domain.models import CaptureMode
from livecommentary.utils.imaging import encode_frame

logger = logging.getLogger(__name__)

# Completed grabs required before frames are handed out: the priming grab
# done by start() plus the first real one.
HAVE_CURRENT_DATA = 2


class ScreenCapture(FrameSource):
    """Captures frames from a display using mss.

    mss handles are bound to the thread that created them, so every mss
    call runs on a dedicated single-thread executor rather than blocking
    the event loop.
    """

    mode = CaptureMode.SCREEN_CAPTURE

    def __init__(
        self,
        monitor: int = 1,
        max_dimension: int = 1024,
        jpeg_quality: int = 60,
    ) -> None:
        super().__init__()
        self._monitor_index = monitor
        self._max_dimension = max_dimension
        self._jpeg_quality = jpeg_quality
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="livecommentary-capture"
        )
        self._sct: mss.base.MSSBase | None = None
        self._monitor: dict | None = None
        self._ready_state: int = 0
        self._closed = False

    async def start(self) -> bool:
        """Open the display and prime the first grab."""
        self._last_error = None
        if self._is_capturing:
            return True
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._executor, self._open_sync)
        except (ScreenShotError, IndexError, OSError) as e:
            logger.error("Error starting screen capture: %s", e)
            raise self._fail_start(PermissionDenied()) from e
        self._is_capturing = True
        logger.info(
            "Started screen capture on monitor %d (%dx%d)",
            self._monitor_index, self._monitor["width"], self._monitor["height"],
        )
        return True

    def stop(self) -> None:
        """Release the display handle."""
        was_capturing = self._is_capturing
        self._is_capturing = False
        self._ready_state = 0
        if not self._closed:
            self._executor.submit(self._close_sync)
        if was_capturing:
            logger.info("Stopped screen capture on monitor %d", self._monitor_index)

    async def close(self) -> None:
        """Release the display handle and shut down the capture thread."""
        if self._closed:
            return
        self.stop()
        self._closed = True
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._executor.shutdown)
        logger.debug("Screen capture thread shut down")

    async def capture_frame(self) -> str | None:
        """Grab, downsample and encode the current screen contents."""
        if not self._is_capturing:
            return None
        loop = asyncio.get_running_loop()
        try:
            image = await loop.run_in_executor(self._executor, self._grab_sync)
        except ScreenShotError as e:
            logger.warning("Screen grab failed, treating as end of stream: %s", e)
            self._handle_stream_ended()
            return None
        if image is None or not self._is_capturing:
            return None
        self._ready_state += 1
        if self._ready_state < HAVE_CURRENT_DATA:
            logger.debug("No frame yet (ready state %d)", self._ready_state)
            return None
        return await loop.run_in_executor(
            self._executor, encode_frame, image, self._max_dimension, self._jpeg_quality
        )

    def _open_sync(self) -> None:
        """Open mss and validate the monitor (runs on the capture thread)."""
        sct = mss.mss()
        try:
            self._monitor = sct.monitors[self._monitor_index]
            sct.grab(self._monitor)
        except Exception:
            sct.close()
            raise
        self._sct = sct
        self._ready_state = 1

    def _grab_sync(self) -> np.ndarray | None:
        """Synchronous screen grab (runs on the capture thread)."""
        if self._sct is None:
            return None
        return np.array(self._sct.grab(self._monitor))

    def _close_sync(self) -> None:
        if self._sct is not None:
            self._sct.close()
            self._sct = None
