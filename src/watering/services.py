"""
Wiring of repositories, weather provider and planner for one database.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from common.config import Settings
from common.database import (
    PlantRepository,
    ScheduleRepository,
    WateringHistoryRepository,
    WeatherRepository,
    get_engine,
    init_db,
)

from .planner import WateringPlanner
from .weather import WeatherService, build_weather_client

logger = logging.getLogger(__name__)


@dataclass
class Services:
    engine: Engine
    settings: Settings
    plants: PlantRepository
    schedules: ScheduleRepository
    history: WateringHistoryRepository
    weather: WeatherService
    planner: WateringPlanner


def build_services(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    weather_client=None,
    create_tables: bool = True,
) -> Services:
    settings = settings or Settings.from_env()
    engine = engine or get_engine(settings.database_url)
    if create_tables:
        init_db(engine)

    plants = PlantRepository(engine)
    schedules = ScheduleRepository(engine)
    history = WateringHistoryRepository(engine)
    weather = WeatherService(
        WeatherRepository(engine),
        weather_client or build_weather_client(settings),
        settings.weather_lat,
        settings.weather_lon,
    )
    planner = WateringPlanner(plants, schedules, history, weather, settings)

    logger.info(f"Services ready (weather mode: {settings.weather_mode})")
    return Services(engine, settings, plants, schedules, history, weather, planner)
