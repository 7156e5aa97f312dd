#!/usr/bin/env python3
"""
Weather acquisition and storage.

Bridges the OpenWeatherMap One Call format (or the offline simulator) and
the WeatherSample series the recommendation engine consumes, and enforces
the ordering the engine relies on: one current sample, then forecast days
in strictly increasing date order starting after it.
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

import requests

from common.config import Settings
from common.database import WeatherRepository
from common.errors import InvalidInputError, WeatherFetchError
from common.models import WeatherSample
from common.weather_simulation import generate_weather_series

logger = logging.getLogger(__name__)

MAX_FORECAST_DAYS = 7


def _rain_mm(entry: Dict[str, Any]) -> float:
    """Daily rain is a number in One Call 3.0; older payloads nest it under '1h'."""
    rain = entry.get("rain") or 0.0
    if isinstance(rain, dict):
        rain = rain.get("1h", 0.0)
    return float(rain)


def _condition(entry: Dict[str, Any]) -> Optional[str]:
    weather = entry.get("weather") or []
    return weather[0].get("main") if weather else None


def parse_onecall(payload: Dict[str, Any], today: date) -> List[WeatherSample]:
    """
    Convert a One Call response into today's sample plus forecast samples.

    Args:
        payload: Decoded JSON with 'current' and 'daily' sections
        today: Date assigned to the current sample

    Returns:
        List starting with the current sample, followed by up to seven
        forecast samples in date order
    """
    try:
        current = payload["current"]
        daily = payload["daily"]
        first = daily[0]

        samples = [
            WeatherSample(
                date=today,
                temperature_min=float(first["temp"]["min"]),
                temperature_max=float(first["temp"]["max"]),
                temperature_avg=float(current["temp"]),
                humidity=float(current["humidity"]),
                precipitation_mm=_rain_mm(first),
                is_forecast=False,
                wind_speed=current.get("wind_speed"),
                uv_index=current.get("uvi"),
                condition=_condition(current),
            )
        ]

        for offset in range(1, min(len(daily), MAX_FORECAST_DAYS + 1)):
            day = daily[offset]
            samples.append(
                WeatherSample(
                    date=today + timedelta(days=offset),
                    temperature_min=float(day["temp"]["min"]),
                    temperature_max=float(day["temp"]["max"]),
                    temperature_avg=float(day["temp"]["day"]),
                    humidity=float(day["humidity"]),
                    precipitation_mm=_rain_mm(day),
                    is_forecast=True,
                    wind_speed=day.get("wind_speed"),
                    uv_index=day.get("uvi"),
                    condition=_condition(day),
                )
            )
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise WeatherFetchError(f"Unexpected OpenWeatherMap payload: {e}") from e

    return samples


def check_forecast_order(samples: Sequence[WeatherSample]) -> None:
    """Raise InvalidInputError unless forecasts follow the current sample strictly by date."""
    current = [s for s in samples if not s.is_forecast]
    if len(current) > 1:
        raise InvalidInputError(f"Expected at most one current sample, got {len(current)}")

    previous = current[0].date if current else None
    for sample in samples:
        if not sample.is_forecast:
            continue
        if previous is not None and sample.date <= previous:
            raise InvalidInputError(
                f"Forecast for {sample.date} is out of order (follows {previous})"
            )
        previous = sample.date


class OpenWeatherClient:
    """Fetches daily weather from the OpenWeatherMap One Call API."""

    def __init__(self, api_key: Optional[str], base_url: str, timeout: float = 10.0):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    def fetch(self, lat: float, lon: float, today: date) -> List[WeatherSample]:
        if not self.api_key:
            raise WeatherFetchError("OPENWEATHER_API_KEY is required")

        try:
            response = requests.get(
                self.base_url,
                params={
                    "lat": lat,
                    "lon": lon,
                    "appid": self.api_key,
                    "units": "metric",
                    "exclude": "minutely,hourly,alerts",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Weather API request failed: {e}")
            raise WeatherFetchError("Failed to fetch weather data from OpenWeatherMap") from e
        except ValueError as e:
            raise WeatherFetchError("OpenWeatherMap returned invalid JSON") from e

        return parse_onecall(payload, today)


class SimulatedWeatherClient:
    """Offline stand-in producing the same series shape as OpenWeatherClient."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed

    def fetch(self, lat: float, lon: float, today: date) -> List[WeatherSample]:
        location_id = f"{lat:.2f},{lon:.2f}"
        return generate_weather_series(location_id, today, MAX_FORECAST_DAYS, self.seed)


def build_weather_client(settings: Settings):
    if settings.weather_mode == "simulated":
        logger.info("Using simulated weather")
        return SimulatedWeatherClient()
    return OpenWeatherClient(
        settings.openweather_api_key, settings.openweather_url, settings.weather_timeout
    )


class WeatherService:
    """Weather provider backed by the weather_data table."""

    def __init__(
        self,
        repository: WeatherRepository,
        client,
        lat: float = 48.8566,
        lon: float = 2.3522,
    ):
        self.repository = repository
        self.client = client
        self.lat = lat
        self.lon = lon

    def fetch_and_store(
        self, lat: Optional[float] = None, lon: Optional[float] = None, today: Optional[date] = None
    ) -> List[WeatherSample]:
        today = today or date.today()
        lat = self.lat if lat is None else lat
        lon = self.lon if lon is None else lon

        samples = self.client.fetch(lat, lon, today)
        for sample in samples:
            self.repository.upsert(sample)

        logger.info(f"Weather data updated: {len(samples)} entries for ({lat}, {lon})")
        return samples

    def get_forecast(self, days: int = 5, today: Optional[date] = None) -> List[WeatherSample]:
        """Today's observation (if stored) followed by forecasts for the next `days` days."""
        today = today or date.today()
        stored = self.repository.between(today, today + timedelta(days=days))

        current = [s for s in stored if not s.is_forecast and s.date == today]
        forecast = sorted(
            (s for s in stored if s.is_forecast and s.date > today), key=lambda s: s.date
        )
        series = current[:1] + forecast

        check_forecast_order(series)
        return series

    def get_current(self, today: Optional[date] = None) -> Optional[WeatherSample]:
        return self.repository.for_date(today or date.today(), is_forecast=False)

    def get_recent(self, days: int = 7, today: Optional[date] = None) -> List[WeatherSample]:
        today = today or date.today()
        return self.repository.between(today - timedelta(days=days), today)

    def get_for_date(self, day: date) -> Optional[WeatherSample]:
        return self.repository.for_date(day)

    def cleanup_old_data(self, days_to_keep: int = 30, today: Optional[date] = None) -> int:
        today = today or date.today()
        removed = self.repository.delete_observations_before(today - timedelta(days=days_to_keep))
        logger.info(f"Cleaned up {removed} old weather records")
        return removed

    def get_stats(self, start: date, end: date) -> Dict[str, float]:
        df = self.repository.observations_frame(start, end)

        if df.empty:
            return {
                "avg_temperature": 0.0,
                "max_temperature": 0.0,
                "min_temperature": 0.0,
                "avg_humidity": 0.0,
                "total_rainfall": 0.0,
                "total_days": 0,
            }

        return {
            "avg_temperature": round(float(df["temperature_avg"].mean()), 2),
            "max_temperature": round(float(df["temperature_max"].max()), 2),
            "min_temperature": round(float(df["temperature_min"].min()), 2),
            "avg_humidity": round(float(df["humidity"].mean()), 2),
            "total_rainfall": round(float(df["precipitation_mm"].sum()), 2),
            "total_days": int(len(df)),
        }

    def health(self, today: Optional[date] = None) -> Dict[str, Any]:
        current = self.get_current(today)
        forecast = self.get_forecast(5, today)
        return {
            "has_current_weather": current is not None,
            "forecast_days_available": len(forecast),
            "last_updated": current.created_at if current else None,
            "api_status": "connected",
        }
