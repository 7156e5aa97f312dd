"""
Watering recommendation engine.

Turns a plant profile, a short weather series (today + forecast) and the
most recent watering into a Recommendation. The rules are evaluated in
strict priority order and the first one that matches wins:

1. Rain forecast within the lookahead window and the plant is not overdue
2. Rain today above the plant's threshold and the plant is not overdue
3. Emergency: more than ``MAX_SKIP_DAYS`` past the base frequency
4. Scored decision from six multiplicative factors

Everything here is a pure function of its arguments. The as-of timestamp
``now`` is always passed in explicitly; the engine never reads the clock.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

from common.errors import InvalidInputError
from common.models import (
    PlantProfile,
    Recommendation,
    Season,
    WateringEvent,
    WateringFactors,
    WeatherSample,
    season_for_month,
)

logger = logging.getLogger(__name__)

MAX_SKIP_DAYS = 3
DEFAULT_LOOKAHEAD_DAYS = 3

RAIN_FORECAST_CONFIDENCE = 0.8
NO_RAIN_CONFIDENCE = 0.6
RAIN_TODAY_CONFIDENCE = 0.9
EMERGENCY_CONFIDENCE = 0.95
EMERGENCY_MULTIPLIER = 1.2

HOT_DAY_C = 25
VERY_HOT_DAY_C = 28
HEATWAVE_C = 30
DRY_DAY_PCT = 40
VERY_DRY_DAY_PCT = 35
ARID_DAY_PCT = 30

REASON_SEPARATOR = " • "
STANDARD_CONDITIONS = "Standard conditions"


@dataclass(frozen=True)
class RainOutlook:
    will_rain: bool
    confidence: float
    days_until_rain: Optional[int] = None
    rain_date: Optional[date] = None
    expected_rain: Optional[float] = None


def _round_ml(amount: float) -> int:
    """Round half up, so 2.5 ml becomes 3 ml."""
    return int(math.floor(amount + 0.5))


def _fmt(value: float) -> str:
    return f"{value:g}"


def current_season(now: datetime) -> Season:
    return season_for_month(now.month)


def days_since_watering(
    last_watering: Optional[WateringEvent], base_frequency_days: int, now: datetime
) -> int:
    """Whole days since the last watering; never-watered plants count as due."""
    if last_watering is None:
        return base_frequency_days + 1

    elapsed = (now - last_watering.watered_at).total_seconds()
    if elapsed <= 0:
        return 0
    return math.floor(elapsed / 86400)


def select_current_weather(weather: Sequence[WeatherSample]) -> WeatherSample:
    """The observed sample, or the first sample when none is marked current."""
    for sample in weather:
        if not sample.is_forecast:
            return sample
    return weather[0]


def select_forecast(
    weather: Sequence[WeatherSample], lookahead_days: int
) -> List[WeatherSample]:
    """Forecast samples in the order given, truncated to the lookahead window.

    The caller guarantees chronological order starting tomorrow; see
    watering.weather.check_forecast_order.
    """
    return [sample for sample in weather if sample.is_forecast][:lookahead_days]


def predict_rain_incoming(
    forecast: Sequence[WeatherSample], threshold_mm: float
) -> RainOutlook:
    for position, day in enumerate(forecast, start=1):
        if day.precipitation_mm >= threshold_mm:
            return RainOutlook(
                will_rain=True,
                confidence=RAIN_FORECAST_CONFIDENCE,
                days_until_rain=position,
                rain_date=day.date,
                expected_rain=day.precipitation_mm,
            )
    return RainOutlook(will_rain=False, confidence=NO_RAIN_CONFIDENCE)


def weather_factor(current: WeatherSample, plant: PlantProfile) -> float:
    factor = 1.0

    if current.is_hot_day(HOT_DAY_C):
        factor *= 1.3
    if current.is_dry_day(DRY_DAY_PCT):
        factor *= 1.2
    if current.temperature_avg > plant.max_temperature:
        factor *= 1.4
    if current.humidity < plant.ideal_humidity * 0.7:
        factor *= 1.2

    return min(factor, 2.0)


def history_factor(days_since: int, never_watered: bool, base_frequency_days: int) -> float:
    if never_watered:
        return 1.2
    if days_since > base_frequency_days * 1.5:
        return 1.4
    if days_since < base_frequency_days * 0.7:
        return 0.6
    return 1.0


def temperature_factor(temperature: float, plant: PlantProfile) -> float:
    if temperature > plant.max_temperature:
        return 1.3
    if temperature < plant.min_temperature:
        return 0.7
    if temperature > plant.max_temperature - 5:
        return 1.1
    return 1.0


def humidity_factor(humidity: float, plant: PlantProfile) -> float:
    ideal = plant.ideal_humidity

    if humidity < ideal * 0.6:
        return 1.3
    if humidity > ideal * 1.4:
        return 0.8
    if humidity < ideal * 0.8:
        return 1.1
    return 1.0


def rain_factor(rain_mm: float, plant: PlantProfile) -> float:
    if rain_mm >= plant.rain_threshold_mm:
        return 0.3
    if rain_mm >= plant.rain_threshold_mm * 0.5:
        return 0.7
    return 1.0


def calculate_factors(
    plant: PlantProfile,
    current: WeatherSample,
    days_since: int,
    never_watered: bool,
    season: Season,
) -> WateringFactors:
    return WateringFactors(
        seasonal_factor=plant.seasonal_multiplier(season),
        weather_factor=weather_factor(current, plant),
        history_factor=history_factor(days_since, never_watered, plant.base_frequency_days),
        temperature_factor=temperature_factor(current.temperature_avg, plant),
        humidity_factor=humidity_factor(current.humidity, plant),
        rain_factor=rain_factor(current.precipitation_mm, plant),
    )


def adjusted_amount(base_amount: float, factors: WateringFactors) -> float:
    return (
        base_amount
        * factors.seasonal_factor
        * factors.weather_factor
        * factors.temperature_factor
        * factors.humidity_factor
        * factors.rain_factor
        * max(factors.history_factor, 0.3)
    )


def should_recommend_watering(
    days_since: int,
    base_frequency_days: int,
    factors: WateringFactors,
    current: WeatherSample,
) -> bool:
    if days_since >= base_frequency_days:
        return True

    urgency = (days_since / base_frequency_days) * factors.weather_factor * factors.temperature_factor

    if urgency > 0.8 and current.is_hot_day(VERY_HOT_DAY_C):
        return True
    if urgency > 0.9 and current.is_dry_day(VERY_DRY_DAY_PCT):
        return True
    return False


def calculate_confidence(current: WeatherSample, plant: PlantProfile, days_since: int) -> float:
    confidence = 0.5
    confidence += min(days_since / plant.base_frequency_days, 0.3)

    if current.is_hot_day(HEATWAVE_C):
        confidence += 0.2
    if current.is_dry_day(ARID_DAY_PCT):
        confidence += 0.15
    if current.precipitation_mm > plant.rain_threshold_mm:
        confidence += 0.25

    return min(max(confidence, 0.1), 1.0)


def generate_reason(
    factors: WateringFactors, current: WeatherSample, days_since: int, plant: PlantProfile
) -> str:
    reasons = []

    if days_since >= plant.base_frequency_days:
        reasons.append(f"{days_since} days since last watering")
    if current.is_hot_day(VERY_HOT_DAY_C):
        reasons.append(f"High temperature: {_fmt(current.temperature_max)}°C")
    if current.is_dry_day(VERY_DRY_DAY_PCT):
        reasons.append(f"Low humidity: {_fmt(current.humidity)}%")
    if factors.seasonal_factor > 1.1:
        reasons.append("Seasonal needs increased")

    return REASON_SEPARATOR.join(reasons) or STANDARD_CONDITIONS


def _validate(plant: PlantProfile, weather: Sequence[WeatherSample], lookahead_days: int):
    if plant.base_frequency_days <= 0:
        raise InvalidInputError(
            f"base_frequency_days must be positive, got {plant.base_frequency_days}"
        )
    if not weather:
        raise InvalidInputError("Weather series is empty; cannot evaluate watering")
    if lookahead_days < 0:
        raise InvalidInputError(
            f"forecast_lookahead_days must be >= 0, got {lookahead_days}"
        )


def recommend(
    plant: PlantProfile,
    weather: Sequence[WeatherSample],
    last_watering: Optional[WateringEvent] = None,
    forecast_lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
    *,
    now: datetime,
) -> Recommendation:
    """
    Compute a watering recommendation.

    Args:
        plant: Static watering profile of the plant
        weather: At most one current sample plus forecast samples in
            chronological order starting tomorrow
        last_watering: Most recent watering, or None if never watered
        forecast_lookahead_days: How many forecast days to scan for rain
        now: As-of timestamp used for the season and elapsed days

    Returns:
        A fresh Recommendation; inputs are never modified

    Raises:
        InvalidInputError: empty weather, non-positive base frequency or
            negative lookahead
    """
    _validate(plant, weather, forecast_lookahead_days)

    frequency = plant.base_frequency_days
    season = current_season(now)
    seasonal = plant.seasonal_multiplier(season)
    days_since = days_since_watering(last_watering, frequency, now)
    overdue = days_since >= frequency

    current = select_current_weather(weather)
    forecast = select_forecast(weather, forecast_lookahead_days)
    next_regular_date = now.date() + timedelta(days=frequency)

    outlook = predict_rain_incoming(forecast, plant.rain_threshold_mm)
    if outlook.will_rain and not overdue:
        result = Recommendation(
            should_water=False,
            water_amount_ml=0,
            confidence=outlook.confidence,
            reason=(
                f"Rain expected in {outlook.days_until_rain} day(s) - "
                f"{_fmt(outlook.expected_rain)}mm"
            ),
            next_watering_date=outlook.rain_date,
            rule="rain_forecast",
        )
    elif current.is_rainy_day(plant.rain_threshold_mm) and not overdue:
        result = Recommendation(
            should_water=False,
            water_amount_ml=0,
            confidence=RAIN_TODAY_CONFIDENCE,
            reason=f"Rain today: {_fmt(current.precipitation_mm)}mm",
            next_watering_date=next_regular_date,
            rule="rain_today",
        )
    elif days_since > frequency + MAX_SKIP_DAYS:
        result = Recommendation(
            should_water=True,
            water_amount_ml=_round_ml(plant.base_water_amount_ml * seasonal * EMERGENCY_MULTIPLIER),
            confidence=EMERGENCY_CONFIDENCE,
            reason=f"Urgent watering - {days_since} days without water",
            next_watering_date=next_regular_date,
            rule="emergency",
        )
    else:
        factors = calculate_factors(plant, current, days_since, last_watering is None, season)
        water = should_recommend_watering(days_since, frequency, factors, current)
        result = Recommendation(
            should_water=water,
            water_amount_ml=_round_ml(adjusted_amount(plant.base_water_amount_ml, factors)) if water else 0,
            confidence=calculate_confidence(current, plant, days_since),
            reason=generate_reason(factors, current, days_since, plant),
            next_watering_date=next_regular_date if water else None,
            rule="scored",
        )

    logger.debug(
        f"Recommendation via {result.rule}: water={result.should_water} "
        f"amount={result.water_amount_ml}ml confidence={result.confidence:.2f} "
        f"days_since={days_since} season={season.value}"
    )
    return result
