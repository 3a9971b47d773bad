"""Weather domain model - pure data structures independent of any API."""
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class CityInfo:
    """A geocoding candidate for a city name."""
    name: str
    lat: float
    lon: float
    country: Optional[str] = None
    state: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "CityInfo":
        return cls(
            name=data.get("name", ""),
            lat=float(data["lat"]),
            lon=float(data["lon"]),
            country=data.get("country"),
            state=data.get("state"),
        )


@dataclass
class WeatherData:
    """
    Normalized current weather, re-shaped from the OpenWeather response.

    Blocks (weather, temperature, wind, sys) are None when the source
    response did not contain them, and are left out of the serialized payload.
    """
    condition_main: Optional[str] = None  # e.g., "Clouds", "Rain", "Clear"
    condition_description: Optional[str] = None  # e.g., "broken clouds"
    temp: Optional[float] = None
    feels_like: Optional[float] = None
    has_temperature: bool = False
    wind_speed: Optional[float] = None
    sunrise: Optional[int] = None
    sunset: Optional[int] = None
    has_sys: bool = False
    visibility: int = 0
    timestamp: int = 0  # UNIX timestamp (UTC)
    timezone_offset: int = 0  # Offset from UTC in seconds
    name: Optional[str] = None

    @property
    def has_condition(self) -> bool:
        return self.condition_main is not None or self.condition_description is not None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "WeatherData":
        """
        Map a /data/2.5/weather response body.

        Raises:
            TypeError, ValueError: If a block has the wrong shape
        """
        weather = cls(
            visibility=int(data.get("visibility") or 0),
            timestamp=int(data.get("dt") or 0),
            timezone_offset=int(data.get("timezone") or 0),
            name=data.get("name"),
        )

        # Only the first condition is kept
        conditions = data.get("weather") or []
        if conditions:
            weather.condition_main = conditions[0].get("main")
            weather.condition_description = conditions[0].get("description")

        main_data = data.get("main")
        if main_data:
            weather.has_temperature = True
            weather.temp = main_data.get("temp")
            weather.feels_like = main_data.get("feels_like")

        wind_data = data.get("wind")
        if wind_data:
            weather.wind_speed = wind_data.get("speed", 0.0)

        sys_data = data.get("sys")
        if sys_data:
            weather.has_sys = True
            weather.sunrise = sys_data.get("sunrise")
            weather.sunset = sys_data.get("sunset")

        return weather

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.has_condition:
            out["weather"] = {
                "main": self.condition_main,
                "description": self.condition_description,
            }
        if self.has_temperature:
            out["temperature"] = {"temp": self.temp, "feels_like": self.feels_like}
        out["visibility"] = self.visibility
        if self.wind_speed is not None:
            out["wind"] = {"speed": self.wind_speed}
        out["datetime"] = self.timestamp
        if self.has_sys:
            out["sys"] = {"sunrise": self.sunrise, "sunset": self.sunset}
        out["timezone"] = self.timezone_offset
        out["name"] = self.name
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
