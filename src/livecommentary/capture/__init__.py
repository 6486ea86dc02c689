"""Frame Source module for livecommentary.

Acquires single still images for commentary, either from an OS-level
screen capture or from a caller-supplied frame function. The abstract
base class owns the capture lifecycle so the orchestrator never cares
which mode is active.

Public API:
    FrameSource -- Abstract base class
    ExternalFrameSource -- Caller-supplied frame function
    FrameSlot -- Latest-frame holder for pushed frames
    ScreenCapture -- mss screen capture implementation
    create_frame_source -- Build the source for a CaptureMode
"""

from __future__ import annotations

from livecommentary.capture.base import (
    CaptureError,
    FrameSource,
    MisconfiguredSource,
    PermissionDenied,
)
from livecommentary.capture.external import ExternalFrameSource, FrameFunction, FrameSlot
from livecommentary.domain.models import CaptureMode

__all__ = [
    "CaptureError",
    "ExternalFrameSource",
    "FrameFunction",
    "FrameSlot",
    "FrameSource",
    "MisconfiguredSource",
    "PermissionDenied",
    "ScreenCapture",
    "create_frame_source",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "ScreenCapture":
        from livecommentary.capture.screen import ScreenCapture
        return ScreenCapture
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def create_frame_source(
    mode: CaptureMode | str,
    external_source: FrameFunction | None = None,
    monitor: int = 1,
    max_dimension: int = 1024,
    jpeg_quality: int = 60,
) -> FrameSource:
    """Create the frame source for the given capture mode."""
    mode = CaptureMode(mode)
    if mode == CaptureMode.EXTERNAL:
        return ExternalFrameSource(
            source=external_source,
            max_dimension=max_dimension,
            jpeg_quality=jpeg_quality,
        )
    from livecommentary.capture.screen import ScreenCapture
    return ScreenCapture(
        monitor=monitor,
        max_dimension=max_dimension,
        jpeg_quality=jpeg_quality,
    )
