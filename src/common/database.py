"""
SQLAlchemy persistence for plants, schedules, watering history and weather.

Repositories take an Engine and return the dataclasses from common.models;
nothing outside this module touches SQL.
"""

import logging
import uuid
from datetime import date, datetime
from typing import List, Optional, Tuple

import pandas as pd
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    and_,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from .config import get_database_url
from .models import (
    PlantRecord,
    PlantType,
    ScheduleStatus,
    WateringEvent,
    WateringSchedule,
    WeatherSample,
)

logger = logging.getLogger(__name__)

metadata = MetaData()

plants = Table(
    "plants",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("type", String(32), nullable=False),
    Column("description", Text),
    Column("base_water_amount_ml", Float, nullable=False, default=250.0),
    Column("base_frequency_days", Integer, nullable=False, default=7),
    Column("spring_multiplier", Float, nullable=False, default=1.0),
    Column("summer_multiplier", Float, nullable=False, default=1.2),
    Column("autumn_multiplier", Float, nullable=False, default=0.8),
    Column("winter_multiplier", Float, nullable=False, default=0.5),
    Column("min_temperature", Float, nullable=False, default=15.0),
    Column("max_temperature", Float, nullable=False, default=30.0),
    Column("ideal_humidity", Float, nullable=False, default=50.0),
    Column("rain_threshold_mm", Float, nullable=False, default=5.0),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

watering_schedules = Table(
    "watering_schedules",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "plant_id",
        String(36),
        ForeignKey("plants.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("scheduled_date", Date, nullable=False),
    Column("water_amount_ml", Float, nullable=False),
    Column("status", String(16), nullable=False, default="pending"),
    Column("reason", Text),
    Column("actual_water_amount_ml", Float),
    Column("completed_at", DateTime),
    Column("notes", Text),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
    # Guards the check-then-save race between concurrent planner runs
    UniqueConstraint("plant_id", "scheduled_date", name="uq_schedule_plant_date"),
)

watering_history = Table(
    "watering_history",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "plant_id",
        String(36),
        ForeignKey("plants.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("watered_at", DateTime, nullable=False),
    Column("water_amount_ml", Float, nullable=False),
    Column("was_scheduled", Boolean, nullable=False, default=False),
    Column("schedule_id", String(36)),
    Column("notes", Text),
    Column("soil_moisture_level", Float),
    Column("created_at", DateTime),
)

weather_data = Table(
    "weather_data",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("date", Date, nullable=False),
    Column("temperature_min", Float, nullable=False),
    Column("temperature_max", Float, nullable=False),
    Column("temperature_avg", Float, nullable=False),
    Column("humidity", Float, nullable=False),
    Column("precipitation_mm", Float, nullable=False, default=0.0),
    Column("wind_speed", Float),
    Column("uv_index", Float),
    Column("condition", String(100)),
    Column("is_forecast", Boolean, nullable=False, default=False),
    Column("created_at", DateTime),
    UniqueConstraint("date", "is_forecast", name="uq_weather_date_kind"),
)


def get_engine(url: Optional[str] = None) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    url = url or get_database_url()

    if url.startswith("sqlite") and (url in ("sqlite://", "sqlite:///") or ":memory:" in url):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(url, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    metadata.create_all(engine)
    logger.info("Database tables ensured")


def _new_id() -> str:
    return str(uuid.uuid4())


def _paginate(stmt, page: int, limit: int):
    return stmt.offset((page - 1) * limit).limit(limit)


def _row_to_plant(row) -> PlantRecord:
    data = dict(row._mapping)
    data["type"] = PlantType(data["type"])
    return PlantRecord(**data)


def _row_to_schedule(row) -> WateringSchedule:
    data = dict(row._mapping)
    data["status"] = ScheduleStatus(data["status"])
    return WateringSchedule(**data)


def _row_to_event(row) -> WateringEvent:
    return WateringEvent(**dict(row._mapping))


def _row_to_weather(row) -> WeatherSample:
    return WeatherSample(**dict(row._mapping))


class PlantRepository:
    """CRUD access to registered plants."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create(self, plant: PlantRecord) -> PlantRecord:
        now = datetime.now()
        values = {
            column.name: getattr(plant, column.name)
            for column in plants.columns
            if column.name not in ("id", "created_at", "updated_at")
        }
        values["type"] = PlantType(values["type"]).value
        values.update(id=_new_id(), created_at=now, updated_at=now)

        with self.engine.begin() as conn:
            conn.execute(insert(plants).values(**values))

        logger.info(f"Created plant {values['name']} ({values['id']})")
        return self.get(values["id"])

    def get(self, plant_id: str) -> Optional[PlantRecord]:
        with self.engine.connect() as conn:
            row = conn.execute(select(plants).where(plants.c.id == plant_id)).first()
        return _row_to_plant(row) if row else None

    def list(
        self,
        page: int = 1,
        limit: int = 10,
        plant_type: Optional[PlantType] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[PlantRecord], int]:
        conditions = []
        if plant_type is not None:
            conditions.append(plants.c.type == PlantType(plant_type).value)
        if is_active is not None:
            conditions.append(plants.c.is_active == is_active)
        where = and_(*conditions) if conditions else None

        count_stmt = select(func.count()).select_from(plants)
        stmt = select(plants).order_by(plants.c.created_at.desc())
        if where is not None:
            count_stmt = count_stmt.where(where)
            stmt = stmt.where(where)

        with self.engine.connect() as conn:
            total = conn.execute(count_stmt).scalar_one()
            rows = conn.execute(_paginate(stmt, page, limit)).all()
        return [_row_to_plant(row) for row in rows], total

    def list_active(self) -> List[PlantRecord]:
        stmt = select(plants).where(plants.c.is_active.is_(True)).order_by(plants.c.name)
        with self.engine.connect() as conn:
            return [_row_to_plant(row) for row in conn.execute(stmt)]

    def update(self, plant_id: str, changes: dict) -> Optional[PlantRecord]:
        allowed = {c.name for c in plants.columns} - {"id", "created_at", "updated_at"}
        values = {key: value for key, value in changes.items() if key in allowed}
        if "type" in values:
            values["type"] = PlantType(values["type"]).value
        values["updated_at"] = datetime.now()

        with self.engine.begin() as conn:
            result = conn.execute(
                update(plants).where(plants.c.id == plant_id).values(**values)
            )
        if result.rowcount == 0:
            return None
        return self.get(plant_id)

    def delete(self, plant_id: str) -> bool:
        # Explicit cascade: SQLite does not enforce ON DELETE without a pragma
        with self.engine.begin() as conn:
            conn.execute(
                delete(watering_schedules).where(watering_schedules.c.plant_id == plant_id)
            )
            conn.execute(
                delete(watering_history).where(watering_history.c.plant_id == plant_id)
            )
            result = conn.execute(delete(plants).where(plants.c.id == plant_id))
        return result.rowcount > 0


class ScheduleRepository:
    """Persistence of watering schedules."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, schedule_id: str) -> Optional[WateringSchedule]:
        stmt = select(watering_schedules).where(watering_schedules.c.id == schedule_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return _row_to_schedule(row) if row else None

    def find_for(self, plant_id: str, day: date) -> Optional[WateringSchedule]:
        """The schedule for a plant on a day, whatever its status."""
        stmt = select(watering_schedules).where(
            watering_schedules.c.plant_id == plant_id,
            watering_schedules.c.scheduled_date == day,
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return _row_to_schedule(row) if row else None

    def find_pending_for(self, plant_id: str, day: date) -> Optional[WateringSchedule]:
        stmt = select(watering_schedules).where(
            watering_schedules.c.plant_id == plant_id,
            watering_schedules.c.scheduled_date == day,
            watering_schedules.c.status == ScheduleStatus.PENDING.value,
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return _row_to_schedule(row) if row else None

    def save(self, schedule: WateringSchedule) -> WateringSchedule:
        """Insert a new schedule or update an existing one.

        Raises sqlalchemy.exc.IntegrityError when another schedule already
        exists for the same plant and date.
        """
        now = datetime.now()
        values = {
            column.name: getattr(schedule, column.name)
            for column in watering_schedules.columns
            if column.name not in ("id", "created_at")
        }
        values["status"] = ScheduleStatus(values["status"]).value
        values["updated_at"] = now

        with self.engine.begin() as conn:
            if schedule.id is None:
                schedule_id = _new_id()
                conn.execute(
                    insert(watering_schedules).values(id=schedule_id, created_at=now, **values)
                )
            else:
                schedule_id = schedule.id
                conn.execute(
                    update(watering_schedules)
                    .where(watering_schedules.c.id == schedule_id)
                    .values(**values)
                )
        return self.get(schedule_id)

    def delete(self, schedule_id: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(watering_schedules).where(watering_schedules.c.id == schedule_id)
            )
        return result.rowcount > 0

    def query(
        self,
        status: Optional[ScheduleStatus] = None,
        plant_id: Optional[str] = None,
        day: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[WateringSchedule], int]:
        c = watering_schedules.c
        conditions = []
        if status is not None:
            conditions.append(c.status == ScheduleStatus(status).value)
        if plant_id is not None:
            conditions.append(c.plant_id == plant_id)
        if day is not None:
            conditions.append(c.scheduled_date == day)
        if start is not None:
            conditions.append(c.scheduled_date >= start)
        if end is not None:
            conditions.append(c.scheduled_date <= end)

        count_stmt = select(func.count()).select_from(watering_schedules)
        stmt = select(watering_schedules).order_by(
            c.scheduled_date.desc(), c.created_at.desc()
        )
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))

        with self.engine.connect() as conn:
            total = conn.execute(count_stmt).scalar_one()
            rows = conn.execute(_paginate(stmt, page, limit)).all()
        return [_row_to_schedule(row) for row in rows], total

    def for_date(self, day: date) -> List[WateringSchedule]:
        stmt = (
            select(watering_schedules)
            .where(watering_schedules.c.scheduled_date == day)
            .order_by(watering_schedules.c.created_at)
        )
        with self.engine.connect() as conn:
            return [_row_to_schedule(row) for row in conn.execute(stmt)]

    def pending(self) -> List[WateringSchedule]:
        stmt = (
            select(watering_schedules)
            .where(watering_schedules.c.status == ScheduleStatus.PENDING.value)
            .order_by(watering_schedules.c.scheduled_date)
        )
        with self.engine.connect() as conn:
            return [_row_to_schedule(row) for row in conn.execute(stmt)]

    def overdue(self, today: date) -> List[WateringSchedule]:
        stmt = (
            select(watering_schedules)
            .where(
                watering_schedules.c.status == ScheduleStatus.PENDING.value,
                watering_schedules.c.scheduled_date < today,
            )
            .order_by(watering_schedules.c.scheduled_date)
        )
        with self.engine.connect() as conn:
            return [_row_to_schedule(row) for row in conn.execute(stmt)]

    def between(self, start: date, end: date) -> List[WateringSchedule]:
        stmt = (
            select(watering_schedules)
            .where(watering_schedules.c.scheduled_date.between(start, end))
            .order_by(watering_schedules.c.scheduled_date)
        )
        with self.engine.connect() as conn:
            return [_row_to_schedule(row) for row in conn.execute(stmt)]

    def delete_finished_before(self, cutoff: date) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(watering_schedules).where(
                    watering_schedules.c.scheduled_date < cutoff,
                    watering_schedules.c.status != ScheduleStatus.PENDING.value,
                )
            )
        return result.rowcount


class WateringHistoryRepository:
    """Log of waterings that actually happened."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_last_watering(self, plant_id: str) -> Optional[WateringEvent]:
        stmt = (
            select(watering_history)
            .where(watering_history.c.plant_id == plant_id)
            .order_by(watering_history.c.watered_at.desc())
            .limit(1)
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return _row_to_event(row) if row else None

    def record(self, event: WateringEvent) -> WateringEvent:
        event_id = _new_id()
        values = {
            column.name: getattr(event, column.name)
            for column in watering_history.columns
            if column.name not in ("id", "created_at")
        }
        with self.engine.begin() as conn:
            conn.execute(
                insert(watering_history).values(
                    id=event_id, created_at=datetime.now(), **values
                )
            )

        with self.engine.connect() as conn:
            row = conn.execute(
                select(watering_history).where(watering_history.c.id == event_id)
            ).first()
        return _row_to_event(row)

    def for_plant(
        self,
        plant_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[WateringEvent], int]:
        c = watering_history.c
        conditions = [c.plant_id == plant_id]
        if start is not None:
            conditions.append(c.watered_at >= start)
        if end is not None:
            conditions.append(c.watered_at <= end)

        count_stmt = select(func.count()).select_from(watering_history).where(*conditions)
        stmt = select(watering_history).where(*conditions).order_by(c.watered_at.desc())

        with self.engine.connect() as conn:
            total = conn.execute(count_stmt).scalar_one()
            rows = conn.execute(_paginate(stmt, page, limit)).all()
        return [_row_to_event(row) for row in rows], total


class WeatherRepository:
    """Stored observations and forecasts, one row per (date, is_forecast)."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def upsert(self, sample: WeatherSample) -> None:
        values = {
            column.name: getattr(sample, column.name)
            for column in weather_data.columns
            if column.name not in ("id", "created_at")
        }
        c = weather_data.c
        with self.engine.begin() as conn:
            existing = conn.execute(
                select(c.id).where(
                    c.date == sample.date, c.is_forecast == sample.is_forecast
                )
            ).scalar()
            if existing is None:
                conn.execute(
                    insert(weather_data).values(created_at=datetime.now(), **values)
                )
            else:
                conn.execute(
                    update(weather_data).where(c.id == existing).values(**values)
                )

    def between(self, start: date, end: date) -> List[WeatherSample]:
        c = weather_data.c
        stmt = (
            select(weather_data)
            .where(c.date.between(start, end))
            .order_by(c.date, c.is_forecast)
        )
        with self.engine.connect() as conn:
            return [_row_to_weather(row) for row in conn.execute(stmt)]

    def for_date(self, day: date, is_forecast: Optional[bool] = None) -> Optional[WeatherSample]:
        c = weather_data.c
        stmt = select(weather_data).where(c.date == day)
        if is_forecast is not None:
            stmt = stmt.where(c.is_forecast == is_forecast)
        # Observations win over forecasts for the same day
        stmt = stmt.order_by(c.is_forecast).limit(1)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return _row_to_weather(row) if row else None

    def delete_observations_before(self, cutoff: date) -> int:
        c = weather_data.c
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(weather_data).where(c.date < cutoff, c.is_forecast.is_(False))
            )
        return result.rowcount

    def observations_frame(self, start: date, end: date) -> pd.DataFrame:
        c = weather_data.c
        stmt = select(weather_data).where(
            c.date.between(start, end), c.is_forecast.is_(False)
        )
        with self.engine.connect() as conn:
            return pd.read_sql(stmt, conn)
