"""
Shared value types, configuration, persistence and weather simulation
for the smart watering system.
"""

from .models import (
    PlantProfile,
    PlantRecord,
    PlantType,
    Recommendation,
    ScheduleStatus,
    Season,
    WateringEvent,
    WateringFactors,
    WateringSchedule,
    WeatherSample,
    season_for_month,
)
from .weather_simulation import (
    jitter,
    generate_temperature,
    generate_humidity,
    generate_precipitation,
    generate_weather_sample,
    generate_weather_series,
)

__all__ = [
    'PlantProfile',
    'PlantRecord',
    'PlantType',
    'Recommendation',
    'ScheduleStatus',
    'Season',
    'WateringEvent',
    'WateringFactors',
    'WateringSchedule',
    'WeatherSample',
    'season_for_month',
    'jitter',
    'generate_temperature',
    'generate_humidity',
    'generate_precipitation',
    'generate_weather_sample',
    'generate_weather_series',
]
