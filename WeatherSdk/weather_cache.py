"""Bounded TTL cache with LRU eviction, guarded by a reader/writer lock."""
import logging
import threading
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, List, Optional


def normalize_city_key(city_name: str) -> str:
    """Cache key for a city name: trimmed and case-folded."""
    return city_name.strip().casefold()


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload; replaced wholesale on refresh, never mutated."""
    payload: str
    fetched_at: float  # seconds since the epoch

    def is_expired(self, ttl_seconds: float, now: float) -> bool:
        return now - self.fetched_at > ttl_seconds


class ReadWriteLock:
    """
    Many readers or one writer.

    Waiting writers block new readers so a steady stream of probes
    cannot starve a put.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class WeatherCache:
    """
    City key -> CacheEntry, in recency order (least recent first).

    Reads share the lock; writes are exclusive. Nothing here touches the
    network.
    """

    def __init__(self, max_size: int):
        self.max_size = max_size
        self.lock = ReadWriteLock()
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        # Readers share self.lock, so recency updates need their own mutex
        self._recency_lock = threading.Lock()

    def probe(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for key (expired or not) and mark it recently used."""
        with self.lock.read_locked():
            entry = self._entries.get(key)
            if entry is not None:
                with self._recency_lock:
                    self._entries.move_to_end(key)
            return entry

    def put(
        self,
        key: str,
        payload: str,
        now: float,
        only_if: Optional[Callable[[], bool]] = None
    ) -> bool:
        """
        Insert or replace an entry, evicting the least recently used one if full.

        Args:
            only_if: Checked under the write lock; the write is skipped when
                it returns False

        Returns:
            bool: True if the entry was stored
        """
        with self.lock.write_locked():
            if only_if is not None and not only_if():
                return False
            self._entries[key] = CacheEntry(payload=payload, fetched_at=now)
            self._entries.move_to_end(key)
            if len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logging.debug(f"Cache full ({self.max_size}), evicted '{evicted}'")
            return True

    def remove(self, key: str) -> None:
        with self.lock.write_locked():
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self.lock.write_locked():
            self._entries.clear()

    def size(self) -> int:
        with self.lock.read_locked():
            return len(self._entries)

    def keys(self) -> List[str]:
        """Snapshot of cached keys, least recently used first."""
        with self.lock.read_locked():
            with self._recency_lock:
                return list(self._entries)
