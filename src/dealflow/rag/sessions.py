"""Bounded in-memory conversation store.

Sessions are keyed by (user_id, thread_id). The store keeps at most
max_sessions threads (least recently used evicted first), forgets a thread
that has been idle longer than ttl_seconds, and keeps only the last
max_messages messages of each thread.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field

SessionKey = tuple[str, str]


@dataclass
class _Session:
    messages: list[dict[str, str]] = field(default_factory=list)
    touched_at: float = 0.0


class SessionStore:
    """Thread-safe LRU + TTL store of chat histories."""

    def __init__(
        self,
        max_sessions: int = 256,
        ttl_seconds: float = 3_600.0,
        max_messages: int = 40,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.max_sessions = max_sessions
        self.ttl_seconds = ttl_seconds
        self.max_messages = max_messages
        self._clock = clock
        self._sessions: OrderedDict[SessionKey, _Session] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._expire(self._clock())
            return len(self._sessions)

    def get(self, user_id: str, thread_id: str) -> list[dict[str, str]]:
        """Return a copy of the thread's messages, oldest first ([] if unknown)."""
        key = (user_id, thread_id)
        with self._lock:
            now = self._clock()
            self._expire(now)
            session = self._sessions.get(key)
            if session is None:
                return []
            session.touched_at = now
            self._sessions.move_to_end(key)
            return [dict(m) for m in session.messages]

    def append(self, user_id: str, thread_id: str, *messages: dict[str, str]) -> None:
        """Add *messages* to the thread, creating it (and evicting) as needed."""
        key = (user_id, thread_id)
        with self._lock:
            now = self._clock()
            self._expire(now)
            session = self._sessions.get(key)
            if session is None:
                session = _Session()
                self._sessions[key] = session
            session.messages.extend(dict(m) for m in messages)
            del session.messages[: -self.max_messages]
            session.touched_at = now
            self._sessions.move_to_end(key)
            while len(self._sessions) > self.max_sessions:
                self._sessions.popitem(last=False)

    def clear(self, user_id: str, thread_id: str) -> None:
        with self._lock:
            self._sessions.pop((user_id, thread_id), None)

    def _expire(self, now: float) -> None:
        # Oldest first, so stop at the first live session.
        while self._sessions:
            key, session = next(iter(self._sessions.items()))
            if now - session.touched_at <= self.ttl_seconds:
                break
            del self._sessions[key]
