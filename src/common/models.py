"""
Value types shared across the smart watering system.

Engine inputs (PlantProfile, WeatherSample, WateringEvent) and its output
(Recommendation) are frozen dataclasses so a recommendation can never mutate
the data it was computed from. Persisted records (PlantRecord,
WateringSchedule) are plain dataclasses owned by the repositories.
"""

from dataclasses import dataclass, fields
from datetime import date, datetime
from enum import Enum
from typing import Optional


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


class PlantType(str, Enum):
    SUCCULENT = "succulent"
    TROPICAL = "tropical"
    MEDITERRANEAN = "mediterranean"
    TEMPERATE = "temperate"
    DESERT = "desert"
    AQUATIC = "aquatic"


class ScheduleStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


def season_for_month(month: int) -> Season:
    """Meteorological season, Northern-hemisphere convention."""
    if 3 <= month <= 5:
        return Season.SPRING
    if 6 <= month <= 8:
        return Season.SUMMER
    if 9 <= month <= 11:
        return Season.AUTUMN
    return Season.WINTER


@dataclass(frozen=True)
class PlantProfile:
    """Static watering parameters of a plant."""

    base_water_amount_ml: float = 250.0
    base_frequency_days: int = 7
    spring_multiplier: float = 1.0
    summer_multiplier: float = 1.2
    autumn_multiplier: float = 0.8
    winter_multiplier: float = 0.5
    min_temperature: float = 15.0
    max_temperature: float = 30.0
    ideal_humidity: float = 50.0
    rain_threshold_mm: float = 5.0

    def seasonal_multiplier(self, season: Season) -> float:
        return {
            Season.SPRING: self.spring_multiplier,
            Season.SUMMER: self.summer_multiplier,
            Season.AUTUMN: self.autumn_multiplier,
            Season.WINTER: self.winter_multiplier,
        }.get(season, 1.0)


PROFILE_FIELDS = tuple(f.name for f in fields(PlantProfile))


@dataclass(frozen=True)
class WeatherSample:
    """One day of observed (current) or forecast weather."""

    date: date
    temperature_min: float
    temperature_max: float
    temperature_avg: float
    humidity: float
    precipitation_mm: float = 0.0
    is_forecast: bool = False
    wind_speed: Optional[float] = None
    uv_index: Optional[float] = None
    condition: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def is_rainy_day(self, threshold: float = 1.0) -> bool:
        return self.precipitation_mm >= threshold

    def is_hot_day(self, threshold: float = 30.0) -> bool:
        return self.temperature_max >= threshold

    def is_dry_day(self, threshold: float = 40.0) -> bool:
        return self.humidity <= threshold


@dataclass(frozen=True)
class WateringEvent:
    """A watering that actually happened (manual or from a schedule)."""

    watered_at: datetime
    plant_id: Optional[str] = None
    water_amount_ml: float = 0.0
    was_scheduled: bool = False
    schedule_id: Optional[str] = None
    notes: Optional[str] = None
    soil_moisture_level: Optional[float] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class WateringFactors:
    seasonal_factor: float
    weather_factor: float
    history_factor: float
    temperature_factor: float
    humidity_factor: float
    rain_factor: float


@dataclass(frozen=True)
class Recommendation:
    should_water: bool
    water_amount_ml: int
    confidence: float
    reason: str
    next_watering_date: Optional[date] = None
    rule: str = "scored"


@dataclass
class PlantRecord:
    """A registered plant as stored in the database."""

    name: str
    type: PlantType = PlantType.TEMPERATE
    description: Optional[str] = None
    base_water_amount_ml: float = 250.0
    base_frequency_days: int = 7
    spring_multiplier: float = 1.0
    summer_multiplier: float = 1.2
    autumn_multiplier: float = 0.8
    winter_multiplier: float = 0.5
    min_temperature: float = 15.0
    max_temperature: float = 30.0
    ideal_humidity: float = 50.0
    rain_threshold_mm: float = 5.0
    is_active: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_profile(self) -> PlantProfile:
        return PlantProfile(**{name: getattr(self, name) for name in PROFILE_FIELDS})


@dataclass
class WateringSchedule:
    plant_id: str
    scheduled_date: date
    water_amount_ml: float
    status: ScheduleStatus = ScheduleStatus.PENDING
    reason: Optional[str] = None
    actual_water_amount_ml: Optional[float] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def mark_completed(self, actual_amount=None, notes=None, at=None):
        self.status = ScheduleStatus.COMPLETED
        self.completed_at = at or datetime.now()
        self.actual_water_amount_ml = (
            actual_amount if actual_amount is not None else self.water_amount_ml
        )
        if notes:
            self.notes = notes

    def mark_skipped(self, reason=None):
        self.status = ScheduleStatus.SKIPPED
        if reason:
            self.reason = reason

    def is_overdue(self, today: date) -> bool:
        return self.status == ScheduleStatus.PENDING and self.scheduled_date < today


__all__ = [
    "Season",
    "PlantType",
    "ScheduleStatus",
    "season_for_month",
    "PlantProfile",
    "PROFILE_FIELDS",
    "WeatherSample",
    "WateringEvent",
    "WateringFactors",
    "Recommendation",
    "PlantRecord",
    "WateringSchedule",
]
