"""Commentary orchestration for livecommentary.

Public API:
    CommentaryOrchestrator -- Capture/generate/queue/display coordinator
    CommentarySession -- Mutable queue, seen cache and in-flight state
    SettingsStore -- Durable settings persistence
"""

from livecommentary.commentary.orchestrator import CommentaryOrchestrator, ResponseTransform
from livecommentary.commentary.session import CommentarySession, SeenCommentCache
from livecommentary.commentary.store import SettingsStore, merge_settings
from livecommentary.commentary.users import create_chat_message, generate_fake_user

__all__ = [
    "CommentaryOrchestrator",
    "CommentarySession",
    "ResponseTransform",
    "SeenCommentCache",
    "SettingsStore",
    "create_chat_message",
    "generate_fake_user",
    "merge_settings",
]
