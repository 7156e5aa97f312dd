"""
Daily watering planner.

Feeds every active plant through the recommendation engine and persists a
pending schedule when watering is warranted. Also owns the rest of the
schedule lifecycle: completion (which records watering history), skipping,
summaries and periodic cleanup.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from common.config import Settings
from common.database import PlantRepository, ScheduleRepository, WateringHistoryRepository
from common.errors import (
    InvalidInputError,
    PlantNotFoundError,
    ScheduleNotFoundError,
    ScheduleStateError,
    WeatherFetchError,
)
from common.models import (
    PlantRecord,
    Recommendation,
    ScheduleStatus,
    WateringEvent,
    WateringSchedule,
)

from .engine import recommend
from .weather import WeatherService

logger = logging.getLogger(__name__)

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
WEATHER_RETENTION_DAYS = 30
SCHEDULE_RETENTION_DAYS = 90


class WateringPlanner:
    """Generates and manages watering schedules for registered plants."""

    def __init__(
        self,
        plants: PlantRepository,
        schedules: ScheduleRepository,
        history: WateringHistoryRepository,
        weather: WeatherService,
        settings: Optional[Settings] = None,
    ):
        self.plants = plants
        self.schedules = schedules
        self.history = history
        self.weather = weather
        self.settings = settings or Settings(database_url="")

    def _recommend_for(self, plant: PlantRecord, weather_data, now: datetime) -> Recommendation:
        last_watering = self.history.get_last_watering(plant.id)
        return recommend(
            plant.to_profile(),
            weather_data,
            last_watering,
            self.settings.forecast_lookahead_days,
            now=now,
        )

    def generate_daily_schedules(self, now: Optional[datetime] = None) -> List[WateringSchedule]:
        """
        Create today's pending schedules for every active plant that needs water.

        A plant is skipped when it already has a pending schedule today. A
        failure for one plant is logged and does not stop the batch.
        """
        now = now or datetime.now()
        today = now.date()
        logger.info(f"Starting daily watering schedule generation for {today}")

        try:
            self.weather.fetch_and_store(today=today)
        except WeatherFetchError as e:
            logger.warning(f"Weather refresh failed, using stored data: {e}")

        weather_data = self.weather.get_forecast(self.settings.forecast_days, today)
        created = []

        for plant in self.plants.list_active():
            try:
                if self.schedules.find_pending_for(plant.id, today):
                    logger.info(f"Schedule already exists for plant {plant.name}")
                    continue

                recommendation = self._recommend_for(plant, weather_data, now)

                if (
                    recommendation.should_water
                    and recommendation.confidence >= self.settings.batch_confidence_threshold
                ):
                    schedule = self.schedules.save(
                        WateringSchedule(
                            plant_id=plant.id,
                            scheduled_date=today,
                            water_amount_ml=recommendation.water_amount_ml,
                            reason=recommendation.reason,
                        )
                    )
                    created.append(schedule)
                    logger.info(
                        f"Schedule created for {plant.name}: "
                        f"{recommendation.water_amount_ml}ml - {recommendation.reason}"
                    )
                else:
                    logger.info(f"No watering needed for {plant.name}: {recommendation.reason}")

            except IntegrityError:
                logger.warning(f"Schedule for {plant.name} on {today} was created concurrently")
            except (InvalidInputError, SQLAlchemyError) as e:
                logger.error(f"Error processing plant {plant.name}: {e}")
            except Exception as e:
                logger.error(f"Unexpected error processing plant {plant.name}: {e}")

        logger.info(f"Generated {len(created)} watering schedules")
        return created

    def generate_schedule_for_plant(
        self,
        plant_id: str,
        target_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> Optional[WateringSchedule]:
        """On-demand generation for one plant; returns None when no watering is warranted."""
        now = now or datetime.now()
        plant = self.plants.get(plant_id)
        if plant is None or not plant.is_active:
            raise PlantNotFoundError(plant_id)

        schedule_date = target_date or now.date()
        weather_data = self.weather.get_forecast(self.settings.forecast_days, now.date())
        recommendation = self._recommend_for(plant, weather_data, now)

        if (
            not recommendation.should_water
            or recommendation.confidence < self.settings.on_demand_confidence_threshold
        ):
            return None

        existing = self.schedules.find_for(plant_id, schedule_date)
        if existing and existing.status != ScheduleStatus.PENDING:
            raise ScheduleStateError(
                f"A {existing.status.value} schedule already exists for {schedule_date}"
            )
        if existing:
            existing.water_amount_ml = recommendation.water_amount_ml
            existing.reason = recommendation.reason
            return self.schedules.save(existing)

        try:
            return self.schedules.save(
                WateringSchedule(
                    plant_id=plant_id,
                    scheduled_date=schedule_date,
                    water_amount_ml=recommendation.water_amount_ml,
                    reason=recommendation.reason,
                )
            )
        except IntegrityError as e:
            raise ScheduleStateError(
                f"A schedule already exists for {schedule_date}"
            ) from e

    def preview(self, plant_id: str, now: Optional[datetime] = None) -> Recommendation:
        """The engine's recommendation for one plant, without persisting anything."""
        now = now or datetime.now()
        plant = self.plants.get(plant_id)
        if plant is None:
            raise PlantNotFoundError(plant_id, "Plant not found")

        weather_data = self.weather.get_forecast(self.settings.forecast_days, now.date())
        return self._recommend_for(plant, weather_data, now)

    def get_schedules_for_date(self, day: date) -> List[WateringSchedule]:
        return self.schedules.for_date(day)

    def get_pending_schedules(self) -> List[WateringSchedule]:
        return self.schedules.pending()

    def get_overdue_schedules(self, today: Optional[date] = None) -> List[WateringSchedule]:
        return self.schedules.overdue(today or date.today())

    def _get_schedule(self, schedule_id: str) -> WateringSchedule:
        schedule = self.schedules.get(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)
        return schedule

    def complete_schedule(
        self,
        schedule_id: str,
        actual_amount: Optional[float] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WateringSchedule:
        now = now or datetime.now()
        schedule = self._get_schedule(schedule_id)
        if schedule.status != ScheduleStatus.PENDING:
            raise ScheduleStateError(f"Cannot complete a {schedule.status.value} schedule")

        schedule.mark_completed(actual_amount, notes, at=now)
        saved = self.schedules.save(schedule)

        self.history.record(
            WateringEvent(
                plant_id=schedule.plant_id,
                watered_at=now,
                water_amount_ml=saved.actual_water_amount_ml,
                was_scheduled=True,
                schedule_id=schedule_id,
                notes=notes,
            )
        )

        logger.info(f"Schedule {schedule_id} completed for plant {schedule.plant_id}")
        return saved

    def skip_schedule(self, schedule_id: str, reason: Optional[str] = None) -> WateringSchedule:
        schedule = self._get_schedule(schedule_id)
        if schedule.status != ScheduleStatus.PENDING:
            raise ScheduleStateError(f"Cannot skip a {schedule.status.value} schedule")

        schedule.mark_skipped(reason)
        saved = self.schedules.save(schedule)
        logger.info(f"Schedule {schedule_id} skipped for plant {schedule.plant_id}: {reason}")
        return saved

    def record_manual_watering(
        self,
        plant_id: str,
        water_amount_ml: float,
        notes: Optional[str] = None,
        watered_at: Optional[datetime] = None,
        soil_moisture_level: Optional[float] = None,
    ) -> WateringEvent:
        if self.plants.get(plant_id) is None:
            raise PlantNotFoundError(plant_id, "Plant not found")

        event = self.history.record(
            WateringEvent(
                plant_id=plant_id,
                watered_at=watered_at or datetime.now(),
                water_amount_ml=water_amount_ml,
                was_scheduled=False,
                notes=notes,
                soil_moisture_level=soil_moisture_level,
            )
        )
        logger.info(f"Manual watering recorded for plant {plant_id}: {water_amount_ml}ml")
        return event

    def get_weekly_summary(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Totals for the Sunday-to-Saturday week containing `today`."""
        today = today or date.today()
        start_of_week = today - timedelta(days=(today.weekday() + 1) % 7)
        end_of_week = start_of_week + timedelta(days=6)

        schedules = self.schedules.between(start_of_week, end_of_week)
        by_day = {
            WEEKDAYS[(start_of_week + timedelta(days=i)).weekday()]: [] for i in range(7)
        }
        for schedule in schedules:
            by_day[WEEKDAYS[schedule.scheduled_date.weekday()]].append(schedule)

        df = pd.DataFrame(
            [
                {
                    "status": s.status.value,
                    "water": (
                        s.water_amount_ml
                        if s.actual_water_amount_ml is None
                        else s.actual_water_amount_ml
                    ),
                }
                for s in schedules
            ],
            columns=["status", "water"],
        )
        counts = df["status"].value_counts()
        completed = df[df["status"] == ScheduleStatus.COMPLETED.value]

        return {
            "week_start": start_of_week,
            "week_end": end_of_week,
            "total_schedules": len(df),
            "completed_schedules": int(counts.get(ScheduleStatus.COMPLETED.value, 0)),
            "pending_schedules": int(counts.get(ScheduleStatus.PENDING.value, 0)),
            "skipped_schedules": int(counts.get(ScheduleStatus.SKIPPED.value, 0)),
            "total_water_used": float(completed["water"].sum()),
            "schedules_by_day": by_day,
        }

    def weekly_cleanup(self, today: Optional[date] = None) -> Dict[str, int]:
        today = today or date.today()
        weather_removed = self.weather.cleanup_old_data(WEATHER_RETENTION_DAYS, today)
        schedules_removed = self.schedules.delete_finished_before(
            today - timedelta(days=SCHEDULE_RETENTION_DAYS)
        )
        logger.info(f"Cleaned up {schedules_removed} old schedules")
        return {"weather_removed": weather_removed, "schedules_removed": schedules_removed}
