"""Externally supplied frame source.

The host application provides a zero-argument function (sync or async)
returning the current frame. Supported return values:

- ``str``: bare base64 payload or a ``data:image/...;base64,`` URI
- ``bytes``: an already-encoded image file
- ``numpy.ndarray``: a BGR(A) image, encoded like screen frames
- ``PIL.Image.Image``: encoded like screen frames
- ``None``: no frame available
"""

from __future__ import annotations

import base64
import inspect
import logging
from typing import Any, Awaitable, Callable, Union

import numpy as np
from PIL import Image

from livecommentary.capture.base import FrameSource, MisconfiguredSource
from livecommentary.domain.models import CaptureMode
from livecommentary.utils.imaging import encode_frame, pil_to_numpy, strip_data_uri

logger = logging.getLogger(__name__)

FrameFunction = Callable[[], Union[Any, Awaitable[Any]]]


class ExternalFrameSource(FrameSource):
    """Pulls frames from a caller-supplied function.

    No OS permission is involved, so ``start`` always succeeds once a
    source function is present. Exceptions raised by the function are
    logged and reported as "no frame", never propagated.
    """

    mode = CaptureMode.EXTERNAL

    def __init__(
        self,
        source: FrameFunction | None = None,
        max_dimension: int = 1024,
        jpeg_quality: int = 60,
    ) -> None:
        super().__init__()
        self._source = source
        self._max_dimension = max_dimension
        self._jpeg_quality = jpeg_quality

    async def start(self) -> bool:
        self._last_error = None
        if self._source is None:
            raise self._fail_start(MisconfiguredSource())
        self._is_capturing = True
        logger.info("External frame source started")
        return True

    def stop(self) -> None:
        if self._is_capturing:
            logger.info("External frame source stopped")
        self._is_capturing = False

    async def capture_frame(self) -> str | None:
        if self._source is None:
            return None
        try:
            result = self._source()
            if inspect.isawaitable(result):
                result = await result
            return self._to_payload(result)
        except Exception as e:
            logger.error("External capture error: %s", e)
            return None

    def _to_payload(self, result: Any) -> str | None:
        if result is None:
            return None
        if isinstance(result, str):
            return strip_data_uri(result) or None
        if isinstance(result, (bytes, bytearray)):
            return base64.b64encode(bytes(result)).decode("utf-8") or None
        if isinstance(result, Image.Image):
            result = pil_to_numpy(result)
        if isinstance(result, np.ndarray):
            return encode_frame(result, self._max_dimension, self._jpeg_quality)
        raise TypeError(f"Unsupported frame type: {type(result).__name__}")


class FrameSlot:
    """Holds the latest frame pushed by a host page.

    Usable directly as the frame function of an ExternalFrameSource: the
    host pushes frames at its own pace and each capture reads the newest.
    """

    def __init__(self) -> None:
        self._frame: str | None = None

    def push(self, frame: str) -> None:
        self._frame = frame

    def clear(self) -> None:
        self._frame = None

    @property
    def has_frame(self) -> bool:
        return self._frame is not None

    def __call__(self) -> str | None:
        return self._frame
