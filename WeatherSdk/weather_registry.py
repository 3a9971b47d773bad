"""Process-wide registry holding one weather service per API key."""
import logging
import threading
from typing import Callable, Dict, List, Optional

from weather_config import WeatherConfig
from weather_provider import InvalidArgumentError
from weather_service import WeatherService


def _require_key(api_key: str) -> None:
    if api_key is None or not api_key.strip():
        raise InvalidArgumentError("API key must not be null or empty")


class WeatherServiceRegistry:
    """
    Maps an API key to its live WeatherService.

    create() looks up and constructs under one lock, so concurrent calls
    for the same key share a single service. Tests can build their own
    registry instead of using the module-level one.
    """

    def __init__(self, service_factory: Callable[..., WeatherService] = WeatherService):
        self._service_factory = service_factory
        self._services: Dict[str, WeatherService] = {}
        self._lock = threading.Lock()

    def create(self, api_key: str, config: Optional[WeatherConfig] = None) -> WeatherService:
        """
        Return the service for api_key, creating it on first use.

        The config only applies when the service is created; an existing
        service keeps its original settings.
        """
        _require_key(api_key)
        with self._lock:
            service = self._services.get(api_key)
            if service is None:
                service = self._service_factory(api_key, config or WeatherConfig())
                self._services[api_key] = service
                logging.info(f"Registered weather service ({len(self._services)} active)")
            elif config is not None and config != service.config:
                logging.debug("Weather service already registered, ignoring new config")
            return service

    def get(self, api_key: str) -> Optional[WeatherService]:
        _require_key(api_key)
        with self._lock:
            return self._services.get(api_key)

    def delete(self, api_key: str) -> None:
        """Unregister and close the service for api_key, if any."""
        _require_key(api_key)
        with self._lock:
            service = self._services.pop(api_key, None)
        if service is None:
            return

        try:
            service.close()
        except Exception as exc:
            logging.error(f"Error closing weather service: {exc}", exc_info=True)
        else:
            logging.info(f"Unregistered weather service ({len(self)} active)")

    def shutdown(self) -> None:
        """Close and unregister every service."""
        for api_key in self.keys():
            self.delete(api_key)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._services)

    def __len__(self) -> int:
        with self._lock:
            return len(self._services)


registry = WeatherServiceRegistry()
