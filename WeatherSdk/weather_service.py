"""Weather service with caching, retries and optional background polling."""
import logging
import time
from typing import Callable, Optional

import requests

from weather_cache import WeatherCache, normalize_city_key
from weather_config import Mode, WeatherConfig
from openweather_provider import OpenWeatherProvider
from polling_scheduler import PollingScheduler
from weather_provider import (
    WeatherProviderBase,
    InvalidArgumentError,
    ServiceClosedError,
    TransientNetworkError,
    WeatherIOError,
)


class WeatherService:
    """
    Service that wraps a weather provider with a per-city cache.

    Cities are cached for ttl_seconds; an expired or missing entry is fetched
    again on the next lookup. In polling mode every cached city is also
    refreshed in the background so lookups rarely wait on the network.

    Concurrent misses for the same city may each trigger a fetch; the last
    write wins.
    """

    def __init__(
        self,
        api_key: str,
        config: Optional[WeatherConfig] = None,
        provider: Optional[WeatherProviderBase] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize weather service.

        Args:
            api_key: OpenWeather API key
            config: Cache and polling settings (defaults to WeatherConfig())
            provider: Weather provider to use (defaults to OpenWeatherProvider)
            clock: Timestamp source for cache entries
        """
        if api_key is None or not api_key.strip():
            raise InvalidArgumentError("API key must not be null or empty")

        self.api_key = api_key
        self.config = config or WeatherConfig()
        self.provider = provider or OpenWeatherProvider(
            api_key=api_key,
            units=self.config.units,
            lang=self.config.lang,
            timeout=self.config.request_timeout_seconds,
        )
        self.clock = clock

        self._cache = WeatherCache(self.config.max_cache_size)
        self._closed = False
        self._scheduler: Optional[PollingScheduler] = None

        if self.config.mode is Mode.POLLING:
            self._scheduler = PollingScheduler(
                cache=self._cache,
                provider=self.provider,
                interval_seconds=self.config.polling_interval_seconds,
                pool_size=self.config.thread_pool_size,
                is_open=self.is_open,
                clock=self.clock,
                name=str(id(self)),
            )
            self._scheduler.start()

        logging.info(
            "Weather service ready (mode=%s cache ttl=%ss max size=%s)",
            self.config.mode.value,
            self.config.ttl_seconds,
            self.config.max_cache_size,
        )

    def get_by_city(self, city_name: str) -> str:
        """
        Get current weather for a city, using the cache if still fresh.

        Returns:
            str: JSON weather payload

        Raises:
            ServiceClosedError: If the service has been closed
            InvalidArgumentError: If city_name is blank
            WeatherIOError: If the network or remote service keeps failing
            WeatherProviderError: For any other provider failure (not found, 4xx, ...)
        """
        self._ensure_open()
        if city_name is None or not city_name.strip():
            raise InvalidArgumentError("City name must not be null or empty")

        key = normalize_city_key(city_name)
        entry = self._cache.probe(key)
        if entry is not None:
            now = self.clock()
            cache_age = now - entry.fetched_at
            if not entry.is_expired(self.config.ttl_seconds, now):
                logging.debug(f"Using cached weather for '{key}' (age: {cache_age:.1f}s, TTL: {self.config.ttl_seconds}s)")
                return entry.payload
            logging.info(f"Cache expired for '{key}' (age: {cache_age:.1f}s > TTL: {self.config.ttl_seconds}s), fetching new data")

        logging.info(f"Fetching weather for '{city_name}' from provider...")
        try:
            payload = self.provider.fetch(city_name)
        except (TransientNetworkError, requests.exceptions.RequestException, OSError) as e:
            logging.error(f"Weather fetch failed for '{city_name}': {e}")
            raise WeatherIOError(f"I/O error: {e}") from e

        if not self._cache.put(key, payload, self.clock(), only_if=self.is_open):
            logging.debug(f"Service closed during fetch, not caching '{key}'")
        return payload

    def clear(self) -> None:
        """Drop every cached city."""
        self._cache.clear()

    def delete(self, city_name: str) -> None:
        """Drop one city from the cache. Blank or unknown names are ignored."""
        self._ensure_open()
        if city_name is None or not city_name.strip():
            return
        self._cache.remove(normalize_city_key(city_name))

    def size(self) -> int:
        self._ensure_open()
        return self._cache.size()

    def is_open(self) -> bool:
        return not self._closed

    def close(self) -> None:
        """
        Stop background polling and empty the cache.

        Safe to call more than once; only the first call does anything.
        """
        with self._cache.lock.write_locked():
            if self._closed:
                return
            self._closed = True

        logging.info("Closing weather service")
        if self._scheduler is not None:
            if not self._scheduler.stop():
                logging.warning("Weather polling did not shut down cleanly")

        self._cache.clear()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ServiceClosedError("Weather service is closed")
