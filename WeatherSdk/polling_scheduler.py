"""Background refresh of every cached city on a fixed interval."""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Set

from weather_cache import WeatherCache
from weather_provider import WeatherProviderBase, WeatherProviderError


class PollingScheduler:
    """
    Timer thread that fans refreshes out to a fixed-size worker pool.

    Ticks run at a fixed rate, the first one immediately. A tick only
    snapshots the cached keys and submits one task per key; the tasks run
    concurrently with each other and with foreground lookups. A failed
    refresh is logged and leaves the stale entry in place.
    """

    def __init__(
        self,
        cache: WeatherCache,
        provider: WeatherProviderBase,
        interval_seconds: float,
        pool_size: int,
        is_open: Callable[[], bool],
        clock: Callable[[], float] = time.time,
        name: str = "owm"
    ):
        """
        Args:
            cache: Cache whose keys are refreshed
            provider: Used to fetch each key
            interval_seconds: Time between tick starts
            pool_size: Number of worker threads
            is_open: Evaluated under the cache write lock before each write-back
            clock: Timestamp source for refreshed entries
            name: Suffix for thread names
        """
        self.cache = cache
        self.provider = provider
        self.interval_seconds = interval_seconds
        self.is_open = is_open
        self.clock = clock

        self._stop = threading.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=pool_size,
            thread_name_prefix=f"owm-async-{name}",
        )
        self._thread = threading.Thread(target=self._run, name=f"owm-poller-{name}", daemon=True)
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    def start(self) -> None:
        logging.info(f"Starting weather polling every {self.interval_seconds}s")
        self._thread.start()

    def _run(self) -> None:
        started = time.monotonic()
        tick = 0
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception as exc:
                logging.exception(f"Polling tick failed: {exc}")
            tick += 1
            next_due = started + tick * self.interval_seconds
            if self._stop.wait(max(0.0, next_due - time.monotonic())):
                break
        logging.debug("Polling thread stopped")

    def poll_once(self) -> int:
        """
        Submit one refresh task per cached key.

        Returns:
            int: Number of tasks submitted
        """
        if not self.is_open():
            return 0

        keys = self.cache.keys()
        logging.debug(f"Polling tick: refreshing {len(keys)} cached cities")
        submitted = 0
        for key in keys:
            try:
                future = self._executor.submit(self._refresh, key)
            except RuntimeError:
                # Executor already shut down
                logging.debug("Worker pool shut down, abandoning polling tick")
                break
            with self._pending_lock:
                self._pending.add(future)
            future.add_done_callback(self._forget)
            submitted += 1
        return submitted

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _refresh(self, key: str) -> None:
        try:
            payload = self.provider.fetch(key)
        except WeatherProviderError as err:
            logging.error(f"Background refresh failed for '{key}': {err}")
            return
        except Exception as exc:
            logging.exception(f"Unexpected error refreshing '{key}': {exc}")
            return

        if self.cache.put(key, payload, self.clock(), only_if=self.is_open):
            logging.debug(f"Refreshed cached weather for '{key}'")
        else:
            logging.debug(f"Service closed, discarding refreshed weather for '{key}'")

    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def stop(self, scheduler_timeout: float = 5.0, pool_timeout: float = 10.0) -> bool:
        """
        Stop the timer, then drain the worker pool.

        In-flight refreshes get pool_timeout seconds to finish. After that,
        queued tasks are cancelled and the provider is told to abandon its
        backoff waits.

        Returns:
            bool: True if every refresh finished within the timeout
        """
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(scheduler_timeout)
            if self._thread.is_alive():
                logging.warning(f"Polling thread did not stop within {scheduler_timeout}s")

        with self._pending_lock:
            pending = set(self._pending)
        _, not_done = wait(pending, timeout=pool_timeout)

        if not_done:
            logging.warning(f"{len(not_done)} refresh task(s) still running after {pool_timeout}s, cancelling")
            self._executor.shutdown(wait=False, cancel_futures=True)
            self.provider.cancel()
            return False

        self._executor.shutdown(wait=False)
        return True
