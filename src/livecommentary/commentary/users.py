"""Synthetic chat users and message construction."""

from __future__ import annotations

import random
import uuid
from typing import NamedTuple, Sequence

from livecommentary.domain.models import ChatMessage

FAKE_USERNAMES: tuple[str, ...] = (
    "PixelPirate", "CodeWizard", "DataDragon", "CyberSamurai", "LogicLlama",
    "SyntaxSorcerer", "GlitchGoblin", "StreamSage", "ByteBard", "KernelKnight",
)

USER_COLORS: tuple[str, ...] = (
    "#ff79c6", "#50fa7b", "#8be9fd", "#f1fa8c", "#ffb86c", "#ff5555",
    "#bd93f9", "#ff92d0", "#6272a4", "#44475a",
)

DEFAULT_COLOR = "#ffffff"


class ChatUser(NamedTuple):
    username: str
    color: str


def generate_fake_user(
    usernames: Sequence[str] | None = None,
    rng: random.Random | None = None,
) -> ChatUser:
    """Pick a random username; its color is index-aligned with the pool."""
    pool = usernames if usernames else FAKE_USERNAMES
    index = (rng or random).randrange(len(pool))
    return ChatUser(pool[index], USER_COLORS[index % len(USER_COLORS)])


def create_chat_message(
    text: str,
    username: str | None = None,
    color: str | None = None,
    usernames: Sequence[str] | None = None,
    attachment: str | None = None,
    rng: random.Random | None = None,
) -> ChatMessage:
    if username:
        user = ChatUser(username, color or DEFAULT_COLOR)
    else:
        user = generate_fake_user(usernames, rng)
    return ChatMessage(
        id=uuid.uuid4().hex,
        username=user.username,
        color=user.color,
        text=text,
        attachment=attachment,
    )
