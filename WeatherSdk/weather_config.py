"""Configuration for weather services."""
import os
from dataclasses import dataclass, field
from enum import Enum

from weather_provider import InvalidArgumentError

VALID_UNITS = ("standard", "metric", "imperial")


class Mode(Enum):
    """How cached cities are kept fresh."""
    ON_DEMAND = "on-demand"  # refresh only when a caller hits an expired entry
    POLLING = "polling"  # refresh every cached city in the background


def default_thread_pool_size() -> int:
    return min(4, os.cpu_count() or 1)


@dataclass(frozen=True)
class WeatherConfig:
    """
    Immutable settings for one weather service.

    Values are validated once at construction; invalid values raise
    InvalidArgumentError rather than being clamped.
    """
    mode: Mode = Mode.ON_DEMAND
    ttl_seconds: float = 600
    polling_interval_seconds: float = 600
    max_cache_size: int = 10
    thread_pool_size: int = field(default_factory=default_thread_pool_size)
    request_timeout_seconds: float = 10
    units: str = "standard"
    lang: str = "en"

    def __post_init__(self):
        if not isinstance(self.mode, Mode):
            raise InvalidArgumentError(f"Mode must be one of {[m.value for m in Mode]}, got {self.mode!r}")
        if self.ttl_seconds <= 0:
            raise InvalidArgumentError("TTL must be positive")
        if self.polling_interval_seconds <= 0:
            raise InvalidArgumentError("Polling interval must be positive")
        if self.max_cache_size <= 0:
            raise InvalidArgumentError("Max cache size must be positive")
        if self.thread_pool_size <= 0:
            raise InvalidArgumentError("Thread pool size must be positive")
        if self.request_timeout_seconds <= 0:
            raise InvalidArgumentError("Request timeout must be positive")
        if self.units not in VALID_UNITS:
            raise InvalidArgumentError(f"Units must be one of {VALID_UNITS}, got {self.units!r}")
        if not self.lang or not self.lang.strip():
            raise InvalidArgumentError("Language must not be empty")

    @staticmethod
    def builder() -> "ConfigBuilder":
        return ConfigBuilder()


class ConfigBuilder:
    """Chainable builder for WeatherConfig; validation happens in build()."""

    def __init__(self):
        self._values = {}

    def mode(self, mode: Mode) -> "ConfigBuilder":
        self._values["mode"] = mode
        return self

    def ttl_seconds(self, ttl_seconds: float) -> "ConfigBuilder":
        self._values["ttl_seconds"] = ttl_seconds
        return self

    def polling_interval_seconds(self, polling_interval_seconds: float) -> "ConfigBuilder":
        self._values["polling_interval_seconds"] = polling_interval_seconds
        return self

    def max_cache_size(self, max_cache_size: int) -> "ConfigBuilder":
        self._values["max_cache_size"] = max_cache_size
        return self

    def thread_pool_size(self, thread_pool_size: int) -> "ConfigBuilder":
        self._values["thread_pool_size"] = thread_pool_size
        return self

    def request_timeout_seconds(self, request_timeout_seconds: float) -> "ConfigBuilder":
        self._values["request_timeout_seconds"] = request_timeout_seconds
        return self

    def units(self, units: str) -> "ConfigBuilder":
        self._values["units"] = units
        return self

    def lang(self, lang: str) -> "ConfigBuilder":
        self._values["lang"] = lang
        return self

    def build(self) -> WeatherConfig:
        return WeatherConfig(**self._values)
