"""
Weather-aware watering recommendations and schedule planning.
"""

from .engine import recommend
from .planner import WateringPlanner
from .weather import WeatherService, check_forecast_order, parse_onecall

__all__ = [
    'recommend',
    'WateringPlanner',
    'WeatherService',
    'check_forecast_order',
    'parse_onecall',
]
