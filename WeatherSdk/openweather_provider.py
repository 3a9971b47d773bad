"""OpenWeather geocoding + Current Weather API provider implementation."""
import logging
import threading
from typing import Any, Dict, Optional

import requests

from weather_provider import (
    WeatherProviderBase,
    WeatherProviderError,
    CityNotFoundError,
    ClientRequestError,
    TransientNetworkError,
    FetchInterruptedError,
)
from weather_data import CityInfo, WeatherData

MAX_BODY_EXCERPT = 512


def truncate(text: Optional[str]) -> Optional[str]:
    """Cut a response body down to a diagnostic excerpt."""
    if text is None:
        return None
    return text[:MAX_BODY_EXCERPT]


def _describe_body(text: Optional[str]) -> str:
    excerpt = truncate(text) or ""
    if text is not None and len(text) > MAX_BODY_EXCERPT:
        excerpt += "..."
    return excerpt


class OpenWeatherProvider(WeatherProviderBase):
    """
    Weather provider resolving a city name in two steps.

    1. Geocoding API (https://openweathermap.org/api/geocoding-api) turns the
       name into coordinates, limited to the best match.
    2. Current Weather API (https://openweathermap.org/current) is queried
       for those coordinates.

    Every request goes through a retry loop: 4xx responses fail immediately,
    5xx responses and transport errors are retried with exponential backoff.
    """

    GEOCODING_URL = "https://api.openweathermap.org/geo/1.0/direct"
    WEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"
    MAX_ATTEMPTS = 3

    def __init__(
        self,
        api_key: str,
        units: str = "standard",
        lang: str = "en",
        timeout: float = 10,
        backoff_base_seconds: float = 1.0
    ):
        """
        Initialize OpenWeather provider.

        Args:
            api_key: OpenWeather API key
            units: Temperature units ("metric", "imperial", or "standard")
            lang: Language code for descriptions (e.g., "en", "de")
            timeout: HTTP request timeout in seconds
            backoff_base_seconds: First retry delay; doubles on each attempt
        """
        self.api_key = api_key
        self.units = units
        self.lang = lang
        self.timeout = timeout
        self.backoff_base_seconds = backoff_base_seconds
        self._cancelled = threading.Event()

    def fetch(self, city_name: str) -> str:
        """
        Fetch current weather for a city name.

        Returns:
            str: JSON payload with the normalized weather fields

        Raises:
            CityNotFoundError: If geocoding finds no match
            ClientRequestError: On a 4xx response
            TransientNetworkError: When retries are exhausted
            FetchInterruptedError: If cancel() is called during a backoff wait
            WeatherProviderError: If a response cannot be parsed
        """
        city = self.geocode(city_name)
        logging.debug(f"Resolved '{city_name}' to {city.name} ({city.lat}, {city.lon}) {city.country or ''}")
        return self.get_current(city.lat, city.lon).to_json()

    def geocode(self, city_name: str) -> CityInfo:
        params = {"q": city_name, "limit": 1, "appid": self.api_key}
        data = self._get_json(self.GEOCODING_URL, params, "/geo/1.0/direct")

        if not data:
            logging.error(f"Geocoding returned no results for '{city_name}'")
            raise CityNotFoundError(city_name)

        try:
            return CityInfo.from_api_response(data[0])
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logging.error(f"Failed to parse geocoding response: {e}", exc_info=True)
            raise WeatherProviderError(f"Failed to parse response: {str(e)}") from e

    def get_current(self, lat: float, lon: float) -> WeatherData:
        params = {
            "lat": lat,
            "lon": lon,
            "appid": self.api_key,
            "units": self.units,
            "lang": self.lang,
        }
        data = self._get_json(self.WEATHER_URL, params, "/data/2.5/weather")

        try:
            weather_data = WeatherData.from_api_response(data)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logging.error(f"Failed to parse API response: {e}", exc_info=True)
            raise WeatherProviderError(f"Failed to parse response: {str(e)}") from e

        logging.info(f"Successfully parsed weather data: {weather_data.temp}, {weather_data.condition_main}")
        return weather_data

    def cancel(self) -> None:
        """Abort any backoff wait, now and in the future."""
        self._cancelled.set()

    def _get_json(self, url: str, params: Dict[str, Any], endpoint: str) -> Any:
        response = self._send_with_retry(url, params)

        if response.status_code != 200:
            raise WeatherProviderError(
                f"OpenWeather API returned status {response.status_code} for {endpoint} : "
                f"{_describe_body(response.text)}"
            )

        try:
            return response.json()
        except ValueError as e:
            logging.error(f"Non-JSON response from {endpoint}: {_describe_body(response.text)}")
            raise WeatherProviderError(f"Failed to parse response: {str(e)}") from e

    def _send_with_retry(self, url: str, params: Dict[str, Any]) -> requests.Response:
        """GET with up to MAX_ATTEMPTS tries; backoff is base * 2**attempt."""
        for attempt in range(self.MAX_ATTEMPTS):
            if self._cancelled.is_set():
                raise FetchInterruptedError("Request interrupted")

            last_attempt = attempt + 1 >= self.MAX_ATTEMPTS
            try:
                logging.info(f"Making OpenWeather API request: {url} (attempt {attempt + 1}/{self.MAX_ATTEMPTS})")
                response = requests.get(url, params=params, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                logging.warning(f"Network error during API request: {e}")
                if last_attempt:
                    raise TransientNetworkError(
                        f"Network error when calling OpenWeather API: {str(e)}"
                    ) from e
                self._sleep_backoff(attempt)
                continue

            code = response.status_code
            logging.info(f"API response status: {code}")

            if 400 <= code < 500:
                logging.error(f"Non-retryable error ({code}), stopping retries")
                raise ClientRequestError(
                    f"Client error ({code}) from OpenWeather API: {_describe_body(response.text)}",
                    status_code=code,
                    body_excerpt=truncate(response.text),
                )

            if code >= 500:
                if last_attempt:
                    logging.error(f"Server error ({code}) after {self.MAX_ATTEMPTS} attempts")
                    raise TransientNetworkError(
                        f"OpenWeather API returned status {code} after {self.MAX_ATTEMPTS} attempts: "
                        f"{_describe_body(response.text)}",
                        status_code=code,
                        body_excerpt=truncate(response.text),
                    )
                logging.warning(f"Server error ({code}) from OpenWeather API")
                self._sleep_backoff(attempt)
                continue

            return response

        # Unreachable: the last attempt either returns or raises
        raise TransientNetworkError(
            f"Failed to get response from OpenWeather API after {self.MAX_ATTEMPTS} attempts"
        )

    def _sleep_backoff(self, attempt: int) -> None:
        delay = self.backoff_base_seconds * (2 ** attempt)
        logging.info(f"Retrying in {delay}s...")
        if self._cancelled.wait(delay):
            raise FetchInterruptedError("Request interrupted during retry backoff")
