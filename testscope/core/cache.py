from __future__ import annotations

from time import time
from typing import Any, Dict, Hashable, Optional, Tuple
import threading


class TTLCache:
    """In-memory TTL cache for upstream listings.

    - Bounded; when over capacity the entries closest to expiry are evicted.
    - Guarded by a lock so concurrent requests can share one instance.
    - An optional daemon thread sweeps expired entries periodically.
    """

    def __init__(
        self,
        max_items: int = 64,
        sweep_interval_seconds: Optional[float] = 60.0,
    ) -> None:
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self._max = max_items
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if sweep_interval_seconds and sweep_interval_seconds > 0:
            self._sweeper = threading.Thread(
                target=self._sweep_loop, args=(sweep_interval_seconds,), daemon=True
            )
            self._sweeper.start()

    def _sweep_loop(self, interval: float) -> None:
        while not self._stopped.wait(interval):
            self.purge()

    def stop(self) -> None:
        self._stopped.set()
        if self._sweeper is not None and self._sweeper is not threading.current_thread():
            self._sweeper.join(timeout=1.0)

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def purge(self) -> None:
        now = time()
        with self._lock:
            for key in [k for k, (expires, _) in self._entries.items() if expires < now]:
                del self._entries[key]
            overflow = len(self._entries) - self._max
            if overflow > 0:
                oldest = sorted(self._entries.items(), key=lambda kv: kv[1][0])[:overflow]
                for key, _ in oldest:
                    del self._entries[key]

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires, value = entry
            if expires < time():
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = (time() + float(ttl_seconds), value)
        self.purge()

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

