"""
Synthetic daily weather for offline mode, demos and seeding.

Temperature and humidity follow a yearly cycle with noise; rain arrives in
short spells so the rain-lookahead rules get exercised.
"""

import math
import random
import zlib
from datetime import date, timedelta
from typing import List, Optional

from .models import WeatherSample


def _location_offset(location_id, scale):
    return (zlib.crc32(location_id.encode("utf-8")) % 100) / scale


def jitter(value, noise_level=0.05, rng=random):
    """Add realistic noise to a weather value"""
    return value + rng.gauss(0, noise_level * abs(value))


def generate_temperature(location_id, day):
    """Average temperature with a yearly cycle peaking late July"""
    day_of_year = day.timetuple().tm_yday
    seasonal = 12 + 10 * math.sin(2 * math.pi * (day_of_year - 110) / 365)
    return seasonal + _location_offset(location_id, 50)


def generate_humidity(location_id, day):
    """Relative humidity, drier in summer"""
    day_of_year = day.timetuple().tm_yday
    seasonal = 65 - 15 * math.sin(2 * math.pi * (day_of_year - 110) / 365)
    return seasonal + _location_offset(location_id, 20)


def generate_precipitation(rng=random, rain_probability=0.25):
    """Daily rain in mm; most days are dry, rainy days are exponential"""
    if rng.random() >= rain_probability:
        return 0.0
    return rng.expovariate(1 / 6.0)


def generate_weather_sample(location_id, day, is_forecast=False, rng=random, add_noise=True):
    """Generate one WeatherSample for a given day"""
    avg = generate_temperature(location_id, day)
    humidity = generate_humidity(location_id, day)
    spread = 4 + rng.random() * 3

    if add_noise:
        avg = jitter(avg, 0.1, rng)
        humidity = jitter(humidity, 0.05, rng)

    humidity = max(10.0, min(100.0, humidity))
    precipitation = generate_precipitation(rng)

    return WeatherSample(
        date=day,
        temperature_min=round(avg - spread, 1),
        temperature_max=round(avg + spread, 1),
        temperature_avg=round(avg, 1),
        humidity=round(humidity, 1),
        precipitation_mm=round(precipitation, 1),
        is_forecast=is_forecast,
        wind_speed=round(rng.uniform(0.5, 8.0), 1),
        uv_index=round(max(0.0, avg / 4), 1),
        condition="Rain" if precipitation >= 1.0 else "Clear",
    )


def generate_weather_series(
    location_id: str, today: date, forecast_days: int = 7, seed: Optional[int] = None
) -> List[WeatherSample]:
    """Today's sample followed by `forecast_days` forecast samples in date order"""
    rng = random.Random(seed)
    series = [generate_weather_sample(location_id, today, False, rng)]
    for offset in range(1, forecast_days + 1):
        series.append(
            generate_weather_sample(location_id, today + timedelta(days=offset), True, rng)
        )
    return series
