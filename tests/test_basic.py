#!/usr/bin/env python3
"""
Basic tests to ensure pytest works correctly.
These tests validate core value types without a database.
"""

import pytest
import sys
import os
import random
import pandas as pd
from dataclasses import FrozenInstanceError
from datetime import date, datetime, timedelta

# Add src to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from common import (
    PlantProfile,
    PlantRecord,
    PlantType,
    ScheduleStatus,
    Season,
    WateringSchedule,
    WeatherSample,
    generate_humidity,
    generate_precipitation,
    generate_temperature,
    generate_weather_series,
    jitter,
    season_for_month,
)
from common.errors import (
    InvalidInputError,
    NotFoundError,
    PlantNotFoundError,
    ScheduleNotFoundError,
    WateringError,
)


class TestBasicFunctionality:
    """Basic functionality tests."""

    def test_python_environment(self):
        """Test that Python environment is working."""
        assert sys.version_info >= (3, 8)

    def test_pandas_functionality(self):
        """Test pandas basic functionality."""
        df = pd.DataFrame({"status": ["pending", "completed", "completed"], "water": [250, 200, 300]})
        assert len(df) == 3
        assert df["status"].value_counts()["completed"] == 2


class TestSeasons:
    """Meteorological seasons, Northern hemisphere."""

    @pytest.mark.parametrize(
        "month, season",
        [
            (1, Season.WINTER),
            (2, Season.WINTER),
            (3, Season.SPRING),
            (5, Season.SPRING),
            (6, Season.SUMMER),
            (8, Season.SUMMER),
            (9, Season.AUTUMN),
            (11, Season.AUTUMN),
            (12, Season.WINTER),
        ],
    )
    def test_season_for_month(self, month, season):
        assert season_for_month(month) == season

    def test_seasonal_multiplier(self):
        profile = PlantProfile(spring_multiplier=1.1, summer_multiplier=1.6, autumn_multiplier=0.9, winter_multiplier=0.4)

        assert profile.seasonal_multiplier(Season.SUMMER) == 1.6
        assert profile.seasonal_multiplier(Season.WINTER) == 0.4


class TestValueTypes:
    """Weather samples, plant records and schedules."""

    def setup_method(self):
        self.sample = WeatherSample(
            date=date(2025, 7, 1),
            temperature_min=18.0,
            temperature_max=30.0,
            temperature_avg=25.0,
            humidity=40.0,
            precipitation_mm=1.0,
        )

    def test_weather_thresholds_are_inclusive(self):
        assert self.sample.is_hot_day(30) is True
        assert self.sample.is_hot_day(31) is False
        assert self.sample.is_dry_day(40) is True
        assert self.sample.is_rainy_day() is True
        assert self.sample.is_rainy_day(1.5) is False

    def test_engine_inputs_are_frozen(self):
        with pytest.raises(FrozenInstanceError):
            self.sample.humidity = 80.0

    def test_plant_record_to_profile(self):
        record = PlantRecord(name="Lemon tree", type=PlantType.MEDITERRANEAN, base_frequency_days=4, rain_threshold_mm=8)

        profile = record.to_profile()

        assert isinstance(profile, PlantProfile)
        assert profile.base_frequency_days == 4
        assert profile.rain_threshold_mm == 8

    def test_schedule_transitions(self):
        schedule = WateringSchedule(plant_id="p1", scheduled_date=date(2025, 7, 1), water_amount_ml=250)
        at = datetime(2025, 7, 1, 7, 30)

        assert schedule.is_overdue(date(2025, 7, 2)) is True

        schedule.mark_completed(notes="Morning", at=at)

        assert schedule.status == ScheduleStatus.COMPLETED
        assert schedule.actual_water_amount_ml == 250
        assert schedule.completed_at == at
        assert schedule.is_overdue(date(2025, 7, 2)) is False

    def test_schedule_completed_with_zero_amount(self):
        schedule = WateringSchedule(plant_id="p1", scheduled_date=date(2025, 7, 1), water_amount_ml=250)

        schedule.mark_completed(actual_amount=0)

        assert schedule.actual_water_amount_ml == 0

    def test_schedule_skip_keeps_reason(self):
        schedule = WateringSchedule(plant_id="p1", scheduled_date=date(2025, 7, 1), water_amount_ml=250, reason="Due")

        schedule.mark_skipped("On holiday")

        assert schedule.status == ScheduleStatus.SKIPPED
        assert schedule.reason == "On holiday"


class TestErrors:
    """Error hierarchy."""

    def test_hierarchy(self):
        assert issubclass(InvalidInputError, WateringError)
        assert issubclass(InvalidInputError, ValueError)
        assert issubclass(PlantNotFoundError, NotFoundError)
        assert issubclass(ScheduleNotFoundError, LookupError)

    def test_plant_not_found_carries_id(self):
        error = PlantNotFoundError("abc")
        assert error.plant_id == "abc"
        assert str(error) == "Plant not found or inactive"


class TestWeatherSimulation:
    """Synthetic weather used offline."""

    def test_summer_is_warmer_than_winter(self):
        summer = generate_temperature("48.86,2.35", date(2025, 7, 25))
        winter = generate_temperature("48.86,2.35", date(2025, 1, 20))
        assert summer > winter

    def test_summer_is_drier(self):
        assert generate_humidity("x", date(2025, 7, 25)) < generate_humidity("x", date(2025, 1, 20))

    def test_precipitation_is_non_negative(self):
        rng = random.Random(5)
        values = [generate_precipitation(rng) for _ in range(200)]

        assert all(v >= 0.0 for v in values)
        assert any(v == 0.0 for v in values)
        assert any(v > 0.0 for v in values)

    def test_jitter_with_zero_noise(self):
        assert jitter(20.0, 0.0, random.Random(1)) == 20.0

    def test_series_dates(self):
        today = date(2025, 3, 1)
        series = generate_weather_series("loc", today, forecast_days=3, seed=9)

        assert [s.date for s in series] == [today + timedelta(days=i) for i in range(4)]
        assert [s.is_forecast for s in series] == [False, True, True, True]


if __name__ == "__main__":
    pytest.main([__file__])
