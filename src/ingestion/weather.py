"""
Current weather from Open-Meteo (no API key needed)
"""
import logging
from typing import Any, Dict

import httpx

from core.errors import CollectionError
from ingestion.base import SignalCollector, SignalEvent, WeatherInfo
from services.config import LocationConfig

logger = logging.getLogger(__name__)

# WMO weather interpretation codes
WEATHER_CODES = {
    0: "Clear",
    1: "Mainly Clear",
    2: "Partly Cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Fog",
    51: "Drizzle",
    53: "Drizzle",
    55: "Drizzle",
    61: "Rain",
    63: "Rain",
    65: "Heavy Rain",
    71: "Snow",
    73: "Snow",
    75: "Heavy Snow",
    80: "Rain Showers",
    81: "Rain Showers",
    82: "Violent Rain Showers",
    95: "Thunderstorm",
    96: "Thunderstorm",
    99: "Thunderstorm",
}


def is_extreme_weather(condition: str, temp_c: float, wind_kph: float) -> bool:
    return (
        temp_c > 35
        or temp_c < -10
        or wind_kph > 72
        or condition in ("Thunderstorm", "Violent Rain Showers", "Heavy Snow")
    )


class WeatherCollector(SignalCollector):
    BASE_URL = "https://api.open-meteo.com/v1/forecast"

    kind = "weather"

    def __init__(self, location: LocationConfig, timeout: float = 10.0):
        self.location = location
        self.timeout = timeout
        self.name = "open-meteo"

    def parse(self, data: Dict[str, Any]) -> WeatherInfo:
        current = data.get("current")
        if not current:
            raise CollectionError("Open-Meteo response has no current weather", kind=self.kind)

        try:
            temp_c = float(current["temperature_2m"])
            wind_kph = float(current.get("wind_speed_10m", 0.0))
            humidity = int(current.get("relative_humidity_2m", 0))
            code = int(current.get("weather_code", 0))
        except (KeyError, TypeError, ValueError) as e:
            raise CollectionError(f"Unexpected Open-Meteo payload: {e}", kind=self.kind) from e

        condition = WEATHER_CODES.get(code, "Unknown")
        return WeatherInfo(
            condition=condition,
            location=self.location.name,
            temp_c=temp_c,
            humidity=humidity,
            wind_kph=wind_kph,
            is_extreme=is_extreme_weather(condition, temp_c, wind_kph),
        )

    async def collect(self) -> SignalEvent:
        params = {
            "latitude": self.location.latitude,
            "longitude": self.location.longitude,
            "current": "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code",
            "wind_speed_unit": "kmh",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(self.BASE_URL, params=params)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CollectionError(f"Weather request failed: {e}", kind=self.kind) from e

        weather = self.parse(data)
        return SignalEvent(kind=self.kind, value=weather, source=self.name)
