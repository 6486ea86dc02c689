"""Core domain models for the livecommentary system.

These models represent the data flowing through the pipeline: the
user-tunable commentary settings, the prompt templates, chat messages
shown to the viewer, comments waiting to be displayed, and the
provider-side loading state.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class CaptureMode(str, enum.Enum):
    """Where frames come from."""

    SCREEN_CAPTURE = "screen-capture"  # OS-level display capture
    EXTERNAL = "external"  # Caller-supplied frame function


class LoadingStatus(str, enum.Enum):
    """Provider-side long-running initialization status."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Settings / Prompts
# ---------------------------------------------------------------------------


class CommentarySettings(BaseModel):
    """User-tunable commentary parameters.

    Persisted as a single JSON blob using camelCase keys
    (``captureIntervalSeconds``, ``remoteUrl``, ...). Unknown keys in a
    stored record are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        protected_namespaces=(),
    )

    capture_interval_seconds: float = Field(default=10.0, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=1.5)
    top_k: int = Field(default=40, ge=1)
    top_p: float = Field(default=0.95, ge=0.0, le=1.0)
    model_name: str = Field(default="gpt-4o")
    remote_url: str = Field(default="http://localhost:8080/v1/chat/completions")
    api_key: str = Field(default="")

    def to_record(self) -> dict:
        """Serialize to the persisted camelCase record."""
        return self.model_dump(by_alias=True)


USER_PROMPT_PLACEHOLDER = "{{userPrompt}}"

DEFAULT_SYSTEM_PROMPT = """You are a participant in a Twitch-style chat.
Your task is to analyze the provided screenshot and generate 1 or 2 short, funny, or insightful comments.

Guidelines:
- Be funny, sarcastic, or supportive (hype).
- Use internet slang if appropriate.
- Do NOT describe the image technically (e.g., "I see a web page"). Instead, react to its contents.
- Do NOT repeat the user's prompt.
- Be concise (under 15 words).
- If provided, use the Chat History for context.

Format: Enclose every distinct comment in <comment>tags</comment>. Example: <comment>LMAO what is that??</comment>
If you cannot follow the tag format, just output the plain text comments, one per line.
"""

DEFAULT_INTERVAL_PROMPT = "Look at the screen content. React to it as a viewer."

DEFAULT_CHAT_PROMPT = (
    'The streamer said: "' + USER_PROMPT_PLACEHOLDER + '".\n'
    "Reply to them or comment on the screen. Be witty and concise."
)


class CommentaryPrompts(BaseModel):
    """Prompt templates guiding the model's persona and tasks.

    ``chat`` contains the ``{{userPrompt}}`` placeholder, substituted with
    the live user utterance.
    """

    model_config = ConfigDict(frozen=True)

    system: str = Field(default=DEFAULT_SYSTEM_PROMPT, description="Persona and behavior")
    interval: str = Field(default=DEFAULT_INTERVAL_PROMPT, description="Automatic tick prompt")
    chat: str = Field(default=DEFAULT_CHAT_PROMPT, description="Reply-to-user prompt")

    def render_chat(self, user_prompt: str) -> str:
        return self.chat.replace(USER_PROMPT_PLACEHOLDER, user_prompt)

    @classmethod
    def merged(cls, overrides: dict | CommentaryPrompts | None = None) -> CommentaryPrompts:
        """Build prompts from defaults with caller overrides on top."""
        if overrides is None:
            return cls()
        if isinstance(overrides, CommentaryPrompts):
            return overrides
        return cls(**{k: v for k, v in overrides.items() if v is not None})


# ---------------------------------------------------------------------------
# Chat Models
# ---------------------------------------------------------------------------


class ChatMessage(BaseModel):
    """A single chat line shown to the viewer. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique message identifier")
    username: str
    color: str = Field(description="Display color for the username, e.g. '#ff79c6'")
    text: str
    attachment: str | None = Field(
        default=None, description="Base64 JPEG of the frame this message reacts to"
    )


class QueuedComment(BaseModel):
    """A generated comment waiting for the display loop."""

    model_config = ConfigDict(frozen=True)

    text: str
    attachment: str | None = None


# ---------------------------------------------------------------------------
# Loading State
# ---------------------------------------------------------------------------


class ProgressItem(BaseModel):
    """Progress of one long-running provider initialization step."""

    file: str
    status: str
    progress: float = 0.0
    total: float = 0.0


class LoadingState(BaseModel):
    """Provider-side initialization state, updated via progress callbacks."""

    model_config = ConfigDict(frozen=True)

    status: LoadingStatus = LoadingStatus.IDLE
    message: str | None = None
    progress_items: list[ProgressItem] = Field(default_factory=list)
    error: str | None = None
