"""Tests for OpenWeather provider."""
import json
import threading
import time
import pytest
import requests
from unittest.mock import Mock, patch
from openweather_provider import OpenWeatherProvider, truncate
from weather_provider import (
    WeatherProviderError,
    CityNotFoundError,
    ClientRequestError,
    TransientNetworkError,
    FetchInterruptedError,
)


def make_response(status_code=200, json_data=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text if text or json_data is None else json.dumps(json_data)
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def sample_geocode_response():
    """Sample OpenWeather geocoding response."""
    return [
        {
            "name": "London",
            "local_names": {"en": "London"},
            "lat": 51.5073219,
            "lon": -0.1276474,
            "country": "GB",
            "state": "England"
        }
    ]


@pytest.fixture
def sample_openweather_response():
    """Sample OpenWeather API response."""
    return {
        "coord": {"lon": -0.1276, "lat": 51.5073},
        "weather": [
            {
                "id": 803,
                "main": "Clouds",
                "description": "broken clouds",
                "icon": "04d"
            }
        ],
        "base": "stations",
        "main": {
            "temp": 292.55,
            "feels_like": 292.87,
            "pressure": 1014,
            "humidity": 89
        },
        "visibility": 10000,
        "wind": {"speed": 3.13, "deg": 93},
        "clouds": {"all": 53},
        "dt": 1684929490,
        "sys": {"country": "GB", "sunrise": 1684900000, "sunset": 1684950000},
        "timezone": 3600,
        "name": "London",
        "id": 2643743
    }


@pytest.fixture
def provider():
    """Create OpenWeather provider instance with a tiny backoff."""
    return OpenWeatherProvider(
        api_key="test_key",
        units="metric",
        backoff_base_seconds=0.01
    )


def test_openweather_provider_success(provider, sample_geocode_response, sample_openweather_response):
    """Test the two-step lookup and the normalized payload."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = [
            make_response(json_data=sample_geocode_response),
            make_response(json_data=sample_openweather_response),
        ]

        payload = json.loads(provider.fetch("London"))

        assert payload == {
            "weather": {"main": "Clouds", "description": "broken clouds"},
            "temperature": {"temp": 292.55, "feels_like": 292.87},
            "visibility": 10000,
            "wind": {"speed": 3.13},
            "datetime": 1684929490,
            "sys": {"sunrise": 1684900000, "sunset": 1684950000},
            "timezone": 3600,
            "name": "London",
        }
        assert mock_get.call_count == 2


def test_openweather_provider_request_parameters(provider, sample_geocode_response, sample_openweather_response):
    """Test that geocoding coordinates feed the weather request."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = [
            make_response(json_data=sample_geocode_response),
            make_response(json_data=sample_openweather_response),
        ]

        provider.fetch("London")

        geo_call, weather_call = mock_get.call_args_list
        assert geo_call.args[0] == OpenWeatherProvider.GEOCODING_URL
        assert geo_call.kwargs["params"] == {"q": "London", "limit": 1, "appid": "test_key"}
        assert weather_call.args[0] == OpenWeatherProvider.WEATHER_URL
        assert weather_call.kwargs["params"]["lat"] == 51.5073219
        assert weather_call.kwargs["params"]["lon"] == -0.1276474
        assert weather_call.kwargs["params"]["units"] == "metric"
        assert weather_call.kwargs["timeout"] == 10


def test_openweather_provider_city_not_found(provider):
    """Test that an empty geocoding result fails without retrying."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = make_response(json_data=[])

        with pytest.raises(CityNotFoundError) as exc_info:
            provider.fetch("Atlantis")

        assert "No cities were found with name 'Atlantis'" in str(exc_info.value)
        assert mock_get.call_count == 1


def test_openweather_provider_no_retry_on_4xx(provider):
    """Test that client errors are not retried."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = make_response(
            401, json_data={"cod": 401, "message": "Invalid API key"}
        )

        with pytest.raises(ClientRequestError) as exc_info:
            provider.fetch("London")

        assert exc_info.value.status_code == 401
        assert "401" in str(exc_info.value)
        assert "Invalid API key" in str(exc_info.value)
        assert mock_get.call_count == 1


def test_openweather_provider_retry_on_5xx(provider, sample_geocode_response, sample_openweather_response):
    """Test that a server error is retried and the result is unchanged."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = [
            make_response(json_data=sample_geocode_response),
            make_response(json_data=sample_openweather_response),
        ]
        first_try = provider.fetch("London")

    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = [
            make_response(json_data=sample_geocode_response),
            make_response(503, text="Service Unavailable"),
            make_response(json_data=sample_openweather_response),
        ]
        second_try = provider.fetch("London")

        assert mock_get.call_count == 3

    assert second_try == first_try


def test_openweather_provider_backoff_delay(sample_geocode_response):
    """Test that a retry waits at least the backoff delay."""
    provider = OpenWeatherProvider(api_key="test_key", backoff_base_seconds=0.2)

    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = [
            requests.exceptions.Timeout("Read timed out"),
            make_response(json_data=sample_geocode_response),
        ]

        start = time.monotonic()
        city = provider.geocode("London")
        elapsed = time.monotonic() - start

    assert city.country == "GB"
    assert elapsed >= 0.2


def test_openweather_provider_network_error_exhausts_retries(provider):
    """Test that transport errors are retried, then surfaced."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = requests.exceptions.ConnectionError("Connection refused")

        with pytest.raises(TransientNetworkError) as exc_info:
            provider.fetch("London")

        assert "Network error" in str(exc_info.value)
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)
        assert mock_get.call_count == 3


def test_openweather_provider_5xx_exhausts_retries(provider):
    """Test that repeated server errors carry a truncated body."""
    body = "x" * 2000
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = make_response(500, text=body)

        with pytest.raises(TransientNetworkError) as exc_info:
            provider.fetch("London")

        assert exc_info.value.status_code == 500
        assert exc_info.value.body_excerpt == "x" * 512
        assert str(exc_info.value).endswith("x" * 512 + "...")
        assert mock_get.call_count == 3


def test_openweather_provider_cancelled_before_request(provider):
    """Test that a cancelled provider refuses to send requests."""
    provider.cancel()
    with patch('openweather_provider.requests.get') as mock_get:
        with pytest.raises(FetchInterruptedError):
            provider.fetch("London")
        mock_get.assert_not_called()


def test_openweather_provider_cancel_interrupts_backoff():
    """Test that cancel() cuts a backoff wait short."""
    provider = OpenWeatherProvider(api_key="test_key", backoff_base_seconds=30)

    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = make_response(502, text="Bad Gateway")
        timer = threading.Timer(0.1, provider.cancel)
        timer.start()

        start = time.monotonic()
        with pytest.raises(FetchInterruptedError):
            provider.fetch("London")
        elapsed = time.monotonic() - start
        timer.join()

    assert elapsed < 5
    assert mock_get.call_count == 1


def test_openweather_provider_invalid_json(provider):
    """Test handling of a non-JSON success response."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = make_response(200, text="<html>oops</html>")

        with pytest.raises(WeatherProviderError) as exc_info:
            provider.fetch("London")

        assert "Failed to parse response" in str(exc_info.value)


def test_openweather_provider_malformed_geocode(provider):
    """Test handling of a geocoding result without coordinates."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = make_response(json_data=[{"name": "London"}])

        with pytest.raises(WeatherProviderError) as exc_info:
            provider.fetch("London")

        assert "Failed to parse response" in str(exc_info.value)


def test_truncate():
    assert truncate(None) is None
    assert truncate("short") == "short"
    assert len(truncate("y" * 600)) == 512
