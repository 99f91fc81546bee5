"""Short-lived rolling message history per conversation thread."""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List

from ...models import RollingMessage


class RollingHistory:
    """Bounded deque of chat-completion messages per thread key; lost on restart."""

    def __init__(self, limit: int = 40) -> None:
        self._limit = limit
        self._threads: Dict[str, Deque[RollingMessage]] = {}

    def append(self, thread_key: str, message: RollingMessage) -> None:
        thread = self._threads.get(thread_key)
        if thread is None:
            thread = self._threads[thread_key] = deque(maxlen=self._limit)
        thread.append(message)

    def insert_after(self, thread_key: str, anchor: RollingMessage, message: RollingMessage) -> None:
        """Place *message* directly after *anchor* (matched by identity).

        Answers land next to the user turn they reply to even when later user
        turns were admitted while the answer was being generated. A missing
        anchor (evicted or reset) falls back to a plain append.
        """
        thread = self._threads.get(thread_key)
        if thread is None:
            self.append(thread_key, message)
            return

        for index in range(len(thread) - 1, -1, -1):
            if thread[index] is anchor:
                break
        else:
            thread.append(message)
            return

        if len(thread) == thread.maxlen:
            thread.popleft()
            index -= 1
        thread.insert(index + 1, message)

    def snapshot(self, thread_key: str) -> List[RollingMessage]:
        return list(self._threads.get(thread_key, ()))

    def reset(self, thread_key: str) -> None:
        self._threads.pop(thread_key, None)


__all__ = ["RollingHistory"]
