"""Weather provider abstraction and the error types shared by every layer."""
from abc import ABC, abstractmethod
from typing import Optional


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    @abstractmethod
    def fetch(self, city_name: str) -> str:
        """
        Fetch current weather for a city.

        Args:
            city_name: Free-form city name, e.g. "London" or "Paris,FR"

        Returns:
            str: Serialized weather payload (JSON text)

        Raises:
            WeatherProviderError: If the provider fails to fetch data
        """
        pass

    def cancel(self) -> None:
        """Abort pending backoff waits. Providers without waits ignore this."""
        pass


class WeatherProviderError(Exception):
    """Exception raised when a weather provider fails."""
    pass


class InvalidArgumentError(WeatherProviderError, ValueError):
    """Blank city name or credential, or an invalid configuration value."""
    pass


class CityNotFoundError(WeatherProviderError):
    """Geocoding returned no candidates for the requested city."""

    def __init__(self, city_name: str):
        super().__init__(f"No cities were found with name '{city_name}'")
        self.city_name = city_name


class ClientRequestError(WeatherProviderError):
    """4xx response from the remote service. Never retried."""

    def __init__(self, message: str, status_code: int, body_excerpt: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body_excerpt = body_excerpt


class TransientNetworkError(WeatherProviderError):
    """5xx response or transport failure that outlived the retry budget."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body_excerpt: Optional[str] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body_excerpt = body_excerpt


class WeatherIOError(WeatherProviderError):
    """I/O failure as reported by the service layer; the cause is chained."""
    pass


class ServiceClosedError(WeatherProviderError):
    """Operation attempted on a closed weather service."""
    pass


class FetchInterruptedError(WeatherProviderError):
    """A backoff wait was cancelled before the request could be retried."""
    pass
