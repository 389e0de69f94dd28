"""Thread-safe rotation over browser identities (user agents, proxies)."""

from __future__ import annotations

import random
from threading import Lock
from typing import Iterable, Literal, Optional


class RotatingPool:
    """Hand out entries either round-robin (``cycle``) or at random."""

    def __init__(self, entries: Iterable[str], mode: Literal["cycle", "random"] = "cycle") -> None:
        self.mode = mode
        self._lock = Lock()
        self._index = 0
        self._entries = [e.strip() for e in entries if e and e.strip()]

    def __len__(self) -> int:
        return len(self._entries)

    def next(self) -> Optional[str]:
        with self._lock:
            if not self._entries:
                return None
            if self.mode == "random":
                return random.choice(self._entries)
            entry = self._entries[self._index % len(self._entries)]
            self._index += 1
            return entry


__all__ = ["RotatingPool"]
