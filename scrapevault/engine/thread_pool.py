"""Named thread pools bounding batch and browser fan-out."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Dict

BATCH_POOL = "batch"
BROWSER_POOL = "browser"


class ThreadPoolManager:
    """Lazily create one executor per pool name."""

    def __init__(self, default_workers: int = 8, pool_sizes: Dict[str, int] | None = None) -> None:
        self.default_workers = default_workers
        self.pool_sizes = dict(pool_sizes or {})
        self._executors: Dict[str, ThreadPoolExecutor] = {}
        self._lock = Lock()

    def get(self, name: str = BATCH_POOL, max_workers: int | None = None) -> ThreadPoolExecutor:
        with self._lock:
            if name not in self._executors:
                workers = max_workers or self.pool_sizes.get(name) or self.default_workers
                self._executors[name] = ThreadPoolExecutor(
                    max_workers=workers, thread_name_prefix=f"scrapevault-{name}"
                )
            return self._executors[name]

    def shutdown(self, wait: bool = False) -> None:
        with self._lock:
            for executor in self._executors.values():
                executor.shutdown(wait=wait)
            self._executors.clear()


__all__ = ["BATCH_POOL", "BROWSER_POOL", "ThreadPoolManager"]
