"""Mutable per-orchestrator commentary state.

The pending queue, duplicate cache, in-flight counter and session epoch
change on every tick and are read from timer callbacks, so they live in
one object owned by the orchestrator and are touched only through
methods. Everything runs on the event loop thread; no locking needed.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from livecommentary.domain.models import QueuedComment

logger = logging.getLogger(__name__)

SEEN_CAPACITY = 100


class SeenCommentCache:
    """Bounded set of delivered comment texts, evicting oldest first."""

    def __init__(self, capacity: int = SEEN_CAPACITY) -> None:
        self._capacity = capacity
        # dict keeps insertion order
        self._items: dict[str, None] = {}

    def __contains__(self, text: object) -> bool:
        return text in self._items

    def __len__(self) -> int:
        return len(self._items)

    def add(self, text: str) -> None:
        if text in self._items:
            return
        self._items[text] = None
        if len(self._items) > self._capacity:
            oldest = next(iter(self._items))
            del self._items[oldest]

    def clear(self) -> None:
        self._items.clear()


class CommentarySession:
    """Single-owner mutable record behind the orchestrator."""

    def __init__(self, seen_capacity: int = SEEN_CAPACITY) -> None:
        self._queue: deque[QueuedComment] = deque()
        self._seen = SeenCommentCache(seen_capacity)
        self._in_flight = 0
        self._epoch = 0

    # -- queue ---------------------------------------------------------------

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def pending(self) -> tuple[QueuedComment, ...]:
        return tuple(self._queue)

    def dequeue(self) -> QueuedComment | None:
        return self._queue.popleft() if self._queue else None

    def clear_queue(self) -> None:
        self._queue.clear()

    def enqueue_batch(
        self,
        comments: Iterable[str],
        attachment: str | None = None,
    ) -> list[QueuedComment]:
        """Queue the comments that were not delivered before.

        Repeats within the batch and texts already in the seen cache are
        dropped. Only the first survivor carries the frame attachment.
        """
        unique_batch = list(dict.fromkeys(comments))
        fresh = [text for text in unique_batch if text not in self._seen]

        items = [
            QueuedComment(text=text, attachment=attachment if index == 0 else None)
            for index, text in enumerate(fresh)
        ]
        for item in items:
            self._seen.add(item.text)
            self._queue.append(item)

        if len(fresh) < len(unique_batch):
            logger.debug("Dropped %d repeated comments", len(unique_batch) - len(fresh))
        return items

    # -- seen cache ----------------------------------------------------------

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    def has_seen(self, text: str) -> bool:
        return text in self._seen

    def reset_seen(self) -> None:
        self._seen.clear()

    # -- in-flight generations -----------------------------------------------

    @property
    def is_generating(self) -> bool:
        return self._in_flight > 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def begin_generation(self) -> None:
        self._in_flight += 1

    def end_generation(self) -> None:
        self._in_flight = max(0, self._in_flight - 1)

    # -- capture epochs ------------------------------------------------------

    @property
    def epoch(self) -> int:
        return self._epoch

    def next_epoch(self) -> int:
        """Invalidate work started under the previous capture session."""
        self._epoch += 1
        return self._epoch
