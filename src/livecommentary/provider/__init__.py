"""AI Provider module for livecommentary.

Sends a captured frame plus rolling chat context to a vision-capable
language model and turns the completion into discrete comments.

Public API:
    AIProvider -- Abstract base class
    RemoteAIProvider -- OpenAI-compatible HTTP endpoint implementation
    parse_comments -- Completion text to comment strings
"""

from livecommentary.provider.base import (
    AIProvider,
    ConnectionFailed,
    InvalidResponseShape,
    MisconfiguredEndpoint,
    ProgressCallback,
    ProviderError,
    RemoteError,
)
from livecommentary.provider.parser import parse_comments

__all__ = [
    "AIProvider",
    "ConnectionFailed",
    "InvalidResponseShape",
    "MisconfiguredEndpoint",
    "ProgressCallback",
    "ProviderError",
    "RemoteAIProvider",
    "RemoteError",
    "parse_comments",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "RemoteAIProvider":
        from livecommentary.provider.remote import RemoteAIProvider
        return RemoteAIProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
