"""Domain models for livecommentary.

This package contains the core data structures shared by the capture,
provider and commentary modules. All models use Pydantic v2 for
validation and serialization.
"""

from livecommentary.domain.models import (
    CaptureMode,
    ChatMessage,
    CommentaryPrompts,
    CommentarySettings,
    LoadingState,
    LoadingStatus,
    ProgressItem,
    QueuedComment,
)

__all__ = [
    "CaptureMode",
    "ChatMessage",
    "CommentaryPrompts",
    "CommentarySettings",
    "LoadingState",
    "LoadingStatus",
    "ProgressItem",
    "QueuedComment",
]
