"""
Civil Registry Backend - Resident Identifier Generator
=======================================================

What:  Generates business-facing resident identifiers (`BR<digits>`).
How:   prefix + 13-digit millisecond timestamp + 3-digit node + 4-digit sequence

           BR 1729654321000 042 0007
           │  │             │   └── sequence within the millisecond
           │  │             └────── per-process node number (random at start-up)
           │  └──────────────────── milliseconds since the epoch
           └─────────────────────── configurable prefix

Within one process the output is strictly increasing: the sequence advances
inside a millisecond, and when it overflows (or the wall clock steps back)
the generator borrows the next millisecond instead of reusing a value.
Across processes the node number separates workers; the unique index on
`residents.resident_id` remains the final arbiter.
"""

import secrets
import threading
import time
from typing import Optional

from civil_registry.config import settings

SEQUENCE_LIMIT = 10_000
NODE_LIMIT = 1_000


class ResidentIdGenerator:
    """Monotonic identifier source. One instance per process."""

    def __init__(self, prefix: str = "BR", node: Optional[int] = None):
        self.prefix = prefix
        self.node = secrets.randbelow(NODE_LIMIT) if node is None else node % NODE_LIMIT
        self._lock = threading.Lock()
        self._last_ms = 0
        self._sequence = 0

    @staticmethod
    def _now_ms() -> int:
        return time.time_ns() // 1_000_000

    def next_id(self) -> str:
        with self._lock:
            now_ms = self._now_ms()
            if now_ms > self._last_ms:
                self._last_ms = now_ms
                self._sequence = 0
            else:
                self._sequence += 1
                if self._sequence >= SEQUENCE_LIMIT:
                    self._last_ms += 1
                    self._sequence = 0
            return f"{self.prefix}{self._last_ms:013d}{self.node:03d}{self._sequence:04d}"


resident_id_generator = ResidentIdGenerator(prefix=settings.resident_id_prefix)
