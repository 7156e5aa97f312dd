#!/usr/bin/env python3
"""
Seed the database with demo plants, simulated weather and a little
watering history so the API has something to show right away.
"""

import logging
import random
from datetime import date, datetime, timedelta

from common.config import Settings
from common.models import PlantRecord, PlantType, WateringEvent
from common.weather_simulation import generate_weather_sample
from watering.services import build_services
from watering.weather import SimulatedWeatherClient

logging.basicConfig(level=logging.INFO)

DEMO_PLANTS = [
    PlantRecord(name="Aloe Vera", type=PlantType.SUCCULENT, base_water_amount_ml=100,
                base_frequency_days=14, ideal_humidity=35, rain_threshold_mm=3),
    PlantRecord(name="Monstera", type=PlantType.TROPICAL, base_water_amount_ml=400,
                base_frequency_days=5, ideal_humidity=70, min_temperature=18),
    PlantRecord(name="Rosemary", type=PlantType.MEDITERRANEAN, base_water_amount_ml=200,
                base_frequency_days=8, ideal_humidity=40, max_temperature=35),
    PlantRecord(name="Hydrangea", type=PlantType.TEMPERATE, base_water_amount_ml=500,
                base_frequency_days=3, summer_multiplier=1.5),
    PlantRecord(name="Barrel Cactus", type=PlantType.DESERT, base_water_amount_ml=80,
                base_frequency_days=21, ideal_humidity=25, max_temperature=40),
]


def seed_weather(services, location_id, days_back=30):
    """Insert simulated observations for the last `days_back` days plus the forecast."""
    rng = random.Random(42)
    today = date.today()
    count = 0

    for offset in range(days_back, 0, -1):
        day = today - timedelta(days=offset)
        services.weather.repository.upsert(
            generate_weather_sample(location_id, day, is_forecast=False, rng=rng)
        )
        count += 1

    count += len(services.weather.fetch_and_store(today=today))
    print(f"Inserted {count} weather samples")
    return count


def seed_history(services, plant):
    """A past watering roughly one frequency ago."""
    days_ago = random.randint(1, plant.base_frequency_days + 2)
    services.history.record(
        WateringEvent(
            plant_id=plant.id,
            watered_at=datetime.now() - timedelta(days=days_ago),
            water_amount_ml=plant.base_water_amount_ml,
            notes="Seed data",
        )
    )


def main():
    print("🌱 Seeding smart watering database...")

    settings = Settings.from_env()
    services = build_services(settings, weather_client=SimulatedWeatherClient(seed=42))
    print(f"Database: {settings.database_url}")

    existing = {plant.name for plant in services.plants.list_active()}
    for template in DEMO_PLANTS:
        if template.name in existing:
            print(f"Skipping {template.name}, already present")
            continue
        plant = services.plants.create(template)
        seed_history(services, plant)
        print(f"Created {plant.name} ({plant.id})")

    seed_weather(services, f"{settings.weather_lat:.2f},{settings.weather_lon:.2f}")

    schedules = services.planner.generate_daily_schedules(datetime.now())
    print(f"✅ Seed complete, {len(schedules)} schedules generated for today")


if __name__ == "__main__":
    main()
