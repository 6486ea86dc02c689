"""Completion parsing.

Models are asked to wrap each comment in ``<comment>`` tags. Smaller or
less obedient models often ignore that, so plain lines are accepted as a
fallback after dropping the usual "Here are some comments:" preambles.
"""

from __future__ import annotations

import re

_COMMENT_TAG = re.compile(r"<comment>(.*?)</comment>", re.IGNORECASE | re.DOTALL)
_CODE_FENCE = re.compile(r"```[\w-]*\n?(.*?)```", re.DOTALL)
_STRAY_TAG = re.compile(r"</?comment>", re.IGNORECASE)


def parse_comments(text: str | None) -> list[str]:
    """Split a raw completion into comment strings, in order.

    Never raises; returns an empty list when nothing usable is found.
    """
    if not text:
        return []

    matches = _COMMENT_TAG.findall(text)
    if matches:
        return [m.strip() for m in matches if m.strip()]

    clean = _CODE_FENCE.sub(r"\1", text).strip()
    clean = _STRAY_TAG.sub("", clean)

    return [line for line in (raw.strip() for raw in clean.split("\n")) if _is_comment_line(line)]


def _is_comment_line(line: str) -> bool:
    if not line:
        return False
    lower = line.lower()
    # Meta-commentary preambles
    return not (lower.startswith("here are") or lower.startswith("sure") or lower.endswith(":"))
