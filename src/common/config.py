"""
Environment-driven configuration.

Every knob has a default suitable for local development so the API, the
Airflow DAG and the scripts can all start with an empty environment.
"""

import os
from dataclasses import dataclass
from typing import List, Optional


def get_database_url() -> str:
    """Database URL from DATABASE_URL, else built from the POSTGRES_* variables."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    db_user = os.getenv("POSTGRES_USER", "postgres")
    db_pass = os.getenv("POSTGRES_PASSWORD", "postgres")
    db_host = os.getenv("POSTGRES_HOST", "localhost")
    db_port = os.getenv("POSTGRES_PORT", "5432")
    db_name = os.getenv("POSTGRES_DB", "smart_watering")

    return f"postgresql+psycopg2://{db_user}:{db_pass}@{db_host}:{db_port}/{db_name}"


@dataclass(frozen=True)
class Settings:
    database_url: str
    weather_mode: str = "openweather"
    openweather_api_key: Optional[str] = None
    openweather_url: str = "https://api.openweathermap.org/data/3.0/onecall"
    weather_lat: float = 48.8566
    weather_lon: float = 2.3522
    weather_timeout: float = 10.0
    forecast_days: int = 5
    forecast_lookahead_days: int = 3
    # Daily batch is stricter than on-demand generation for a single plant.
    batch_confidence_threshold: float = 0.7
    on_demand_confidence_threshold: float = 0.5
    cors_origins: tuple = ("*",)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=get_database_url(),
            weather_mode=os.getenv("WEATHER_MODE", "openweather").lower(),
            openweather_api_key=os.getenv("OPENWEATHER_API_KEY") or None,
            openweather_url=os.getenv(
                "OPENWEATHER_URL", "https://api.openweathermap.org/data/3.0/onecall"
            ),
            weather_lat=float(os.getenv("WEATHER_LAT", "48.8566")),
            weather_lon=float(os.getenv("WEATHER_LON", "2.3522")),
            weather_timeout=float(os.getenv("WEATHER_TIMEOUT", "10")),
            forecast_days=int(os.getenv("FORECAST_DAYS", "5")),
            forecast_lookahead_days=int(os.getenv("FORECAST_LOOKAHEAD_DAYS", "3")),
            batch_confidence_threshold=float(
                os.getenv("BATCH_CONFIDENCE_THRESHOLD", "0.7")
            ),
            on_demand_confidence_threshold=float(
                os.getenv("ON_DEMAND_CONFIDENCE_THRESHOLD", "0.5")
            ),
            cors_origins=tuple(_split_csv(os.getenv("CORS_ORIGINS", "*"))),
        )


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]
