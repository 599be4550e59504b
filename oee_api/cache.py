# =============================
# ========= cache.py ==========
# =============================
"""In-process TTL cache for realtime machine metrics.

Key = (machine_id, wall-clock bucket). A hit requires the entry to exist for
the current bucket and be younger than the TTL. Expiry is lazy (checked on
read); `sweep()` drops stale entries and runs every `sweep_every` sets.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, Hashable, Optional, Tuple
import logging
import threading
import time

logger = logging.getLogger("oee.cache")


class RealtimeCache:
    def __init__(
        self,
        ttl_sec: float = 300,
        bucket_sec: float = 10,
        clock: Callable[[], float] = time.time,
        sweep_every: int = 100,
    ):
        if ttl_sec <= 0 or bucket_sec <= 0:
            raise ValueError("ttl_sec and bucket_sec must be > 0")
        self.ttl_sec = float(ttl_sec)
        self.bucket_sec = float(bucket_sec)
        self._clock = clock
        self._store: Dict[Tuple[Hashable, int], Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._sweep_every = max(1, int(sweep_every))
        self._sets = 0
        self.hits = 0
        self.misses = 0

    def key_for(self, machine_id: Hashable, now: Optional[float] = None) -> Tuple[Hashable, int]:
        now = self._clock() if now is None else now
        return (machine_id, int(now // self.bucket_sec))

    def get(self, machine_id: Hashable) -> Optional[Any]:
        now = self._clock()
        key = self.key_for(machine_id, now)
        with self._lock:
            item = self._store.get(key)
            if item is not None:
                stored_at, val = item
                if now - stored_at < self.ttl_sec:
                    self.hits += 1
                    return val
            self.misses += 1
            return None

    def set(self, machine_id: Hashable, value: Any) -> None:
        now = self._clock()
        with self._lock:
            self._store[self.key_for(machine_id, now)] = (now, value)
            self._sets += 1
            due = self._sets % self._sweep_every == 0
        # past-bucket entries are never read again
        if due:
            self.sweep()

    def sweep(self) -> int:
        """Drop entries older than the TTL or from a past bucket. Returns number removed."""
        now = self._clock()
        bucket = int(now // self.bucket_sec)
        with self._lock:
            stale = [k for k, (stored_at, _) in self._store.items()
                     if k[1] != bucket or now - stored_at >= self.ttl_sec]
            for k in stale:
                self._store.pop(k, None)
        if stale:
            logger.debug("cache sweep: removed %d entries", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._store)
