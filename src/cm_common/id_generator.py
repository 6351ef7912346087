"""Time-ordered ID generator for mint intents.

Intent IDs are opaque to clients but sort by creation time, which keeps
the scheduler's scans and the admin listings index-friendly.
Layout (64 bits): 41 bits ms since epoch | 10 bits worker | 12 bits sequence.
"""

import threading
import time


class SnowflakeIdGenerator:
    _EPOCH_MS = 1_700_000_000_000
    _WORKER_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, worker_id: int = 0) -> None:
        if not (0 <= worker_id < (1 << self._WORKER_BITS)):
            raise ValueError(f"worker_id must be 0-{(1 << self._WORKER_BITS) - 1}")
        self._worker_id = worker_id
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_int(self) -> int:
        with self._lock:
            now_ms = int(time.time() * 1000)
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    while now_ms <= self._last_ms:
                        now_ms = int(time.time() * 1000)
            else:
                self._sequence = 0
            self._last_ms = now_ms
            return (
                ((now_ms - self._EPOCH_MS) << (self._WORKER_BITS + self._SEQUENCE_BITS))
                | (self._worker_id << self._SEQUENCE_BITS)
                | self._sequence
            )


_default_generator = SnowflakeIdGenerator()


def generate_id(prefix: str = "") -> str:
    """Next unique ID from the module-level generator, optionally prefixed."""
    return f"{prefix}{_default_generator.next_int()}"


def generate_intent_id() -> str:
    return generate_id("mi_")
