#!/usr/bin/env python3
"""
FastAPI service for the smart watering system.
Exposes plants, watering schedules and weather as a REST API.
"""

import logging
import math
import os
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from common.config import Settings
from common.errors import (
    InvalidInputError,
    NotFoundError,
    ScheduleStateError,
    WateringError,
    WeatherFetchError,
)
from common.models import PlantRecord, PlantType, ScheduleStatus

from .services import Services, build_services

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = Settings.from_env()

# FastAPI app
app = FastAPI(
    title="Smart Watering API",
    description="Weather-aware watering schedules for houseplants",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_services() -> Services:
    """Repositories and planner for the configured database, built once per process."""
    return build_services(settings)


# Pydantic models for API requests and responses
class PlantPayload(BaseModel):
    """Request model for creating or replacing a plant."""

    name: str = Field(..., min_length=1, max_length=255)
    type: PlantType
    description: Optional[str] = Field(None, max_length=1000)
    base_frequency_days: int = Field(7, ge=1, le=30)
    base_water_amount_ml: float = Field(250.0, gt=0, le=2000)
    spring_multiplier: float = Field(1.0, gt=0, le=3)
    summer_multiplier: float = Field(1.2, gt=0, le=3)
    autumn_multiplier: float = Field(0.8, gt=0, le=3)
    winter_multiplier: float = Field(0.5, gt=0, le=3)
    min_temperature: float = Field(15.0, ge=-10, le=50)
    max_temperature: float = Field(30.0, ge=0, le=60)
    ideal_humidity: float = Field(50.0, ge=10, le=100)
    rain_threshold_mm: float = Field(5.0, ge=0, le=50)
    is_active: bool = True

    @model_validator(mode="after")
    def check_temperature_range(self):
        if self.min_temperature >= self.max_temperature:
            raise ValueError("min_temperature must be less than max_temperature")
        return self


class CompleteScheduleRequest(BaseModel):
    actual_amount: Optional[float] = Field(None, gt=0, le=2000)
    notes: Optional[str] = Field(None, max_length=1000)


class SkipScheduleRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class GenerateScheduleRequest(BaseModel):
    target_date: Optional[date] = None


class WateringRequest(BaseModel):
    """Manual watering entry."""

    water_amount_ml: float = Field(..., gt=0, le=2000)
    notes: Optional[str] = Field(None, max_length=1000)
    watered_at: Optional[datetime] = None
    soil_moisture_level: Optional[float] = Field(None, ge=0, le=100)


class WeatherUpdateRequest(BaseModel):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lon: Optional[float] = Field(None, ge=-180, le=180)


class HealthCheck(BaseModel):
    status: str
    timestamp: datetime
    database_connected: bool
    active_plants: int


def envelope(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    """Standard success response body."""
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body["data"] = data
    body.update(extra)
    return body


def pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total_items": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def _require_plant(services: Services, plant_id: str) -> PlantRecord:
    plant = services.plants.get(plant_id)
    if plant is None:
        raise HTTPException(status_code=404, detail="Plant not found")
    return plant


# Error translation


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code, content={"success": False, "message": exc.detail}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"][1:])
        errors.append(f"{location}: {error['msg']}" if location else error["msg"])
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation error", "errors": errors},
    )


@app.exception_handler(WateringError)
async def watering_exception_handler(request, exc):
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, (ScheduleStateError, InvalidInputError)):
        status_code = 400
    elif isinstance(exc, WeatherFetchError):
        status_code = 502
    else:
        status_code = 500
    return JSONResponse(status_code=status_code, content={"success": False, "message": str(exc)})


# API Endpoints


@app.get("/", response_model=Dict[str, str])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Smart Watering API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health", response_model=HealthCheck)
def health_check(services: Services = Depends(get_services)):
    """Health check endpoint."""
    try:
        active_plants = len(services.plants.list_active())
        return HealthCheck(
            status="healthy",
            timestamp=datetime.now(),
            database_connected=True,
            active_plants=active_plants,
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return HealthCheck(
            status="unhealthy",
            timestamp=datetime.now(),
            database_connected=False,
            active_plants=0,
        )


plants_router = APIRouter(prefix="/api/plants", tags=["plants"])


@plants_router.post("", status_code=201)
def create_plant(payload: PlantPayload, services: Services = Depends(get_services)):
    plant = services.plants.create(PlantRecord(**payload.model_dump()))
    return envelope(plant, "Plant created successfully")


@plants_router.get("")
def list_plants(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    plant_type: Optional[PlantType] = Query(None, alias="type"),
    is_active: Optional[bool] = None,
    services: Services = Depends(get_services),
):
    plants, total = services.plants.list(page, limit, plant_type, is_active)
    return envelope(plants, pagination=pagination(page, limit, total))


@plants_router.get("/{plant_id}")
def get_plant(plant_id: str, services: Services = Depends(get_services)):
    return envelope(_require_plant(services, plant_id))


@plants_router.put("/{plant_id}")
def update_plant(plant_id: str, payload: PlantPayload, services: Services = Depends(get_services)):
    _require_plant(services, plant_id)
    plant = services.plants.update(plant_id, payload.model_dump())
    return envelope(plant, "Plant updated successfully")


@plants_router.delete("/{plant_id}")
def delete_plant(plant_id: str, services: Services = Depends(get_services)):
    if not services.plants.delete(plant_id):
        raise HTTPException(status_code=404, detail="Plant not found")
    return envelope(message="Plant deleted successfully")


@plants_router.patch("/{plant_id}/toggle-active")
def toggle_plant_active(plant_id: str, services: Services = Depends(get_services)):
    plant = _require_plant(services, plant_id)
    updated = services.plants.update(plant_id, {"is_active": not plant.is_active})
    state = "activated" if updated.is_active else "deactivated"
    return envelope(updated, f"Plant {state} successfully")


@plants_router.get("/{plant_id}/history")
def get_plant_history(
    plant_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    services: Services = Depends(get_services),
):
    _require_plant(services, plant_id)
    events, total = services.history.for_plant(plant_id, start_date, end_date, page, limit)
    return envelope(events, pagination=pagination(page, limit, total))


@plants_router.post("/{plant_id}/history", status_code=201)
def record_watering(
    plant_id: str, payload: WateringRequest, services: Services = Depends(get_services)
):
    event = services.planner.record_manual_watering(
        plant_id,
        payload.water_amount_ml,
        notes=payload.notes,
        watered_at=payload.watered_at,
        soil_moisture_level=payload.soil_moisture_level,
    )
    return envelope(event, "Watering recorded successfully")


@plants_router.get("/{plant_id}/schedules")
def get_plant_schedules(
    plant_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[ScheduleStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    services: Services = Depends(get_services),
):
    _require_plant(services, plant_id)
    schedules, total = services.schedules.query(
        status=status, plant_id=plant_id, start=start_date, end=end_date, page=page, limit=limit
    )
    return envelope(schedules, pagination=pagination(page, limit, total))


@plants_router.get("/{plant_id}/recommendation")
def get_plant_recommendation(plant_id: str, services: Services = Depends(get_services)):
    """Current recommendation for a plant; nothing is persisted."""
    recommendation = services.planner.preview(plant_id, datetime.now())
    return envelope(recommendation)


schedules_router = APIRouter(prefix="/api/schedules", tags=["schedules"])


@schedules_router.get("")
def list_schedules(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[ScheduleStatus] = None,
    plant_id: Optional[str] = None,
    day: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    services: Services = Depends(get_services),
):
    schedules, total = services.schedules.query(
        status=status,
        plant_id=plant_id,
        day=day,
        start=start_date,
        end=end_date,
        page=page,
        limit=limit,
    )
    return envelope(schedules, pagination=pagination(page, limit, total))


@schedules_router.get("/pending")
def pending_schedules(services: Services = Depends(get_services)):
    schedules = services.planner.get_pending_schedules()
    return envelope(schedules, count=len(schedules))


@schedules_router.get("/overdue")
def overdue_schedules(services: Services = Depends(get_services)):
    schedules = services.planner.get_overdue_schedules(date.today())
    return envelope(schedules, count=len(schedules))


@schedules_router.get("/today")
def today_schedules(services: Services = Depends(get_services)):
    schedules = services.planner.get_schedules_for_date(date.today())
    return envelope(schedules, count=len(schedules))


@schedules_router.get("/week-summary")
def week_summary(services: Services = Depends(get_services)):
    return envelope(services.planner.get_weekly_summary(date.today()))


@schedules_router.post("/generate")
def generate_daily(services: Services = Depends(get_services)):
    """Run the daily batch now."""
    try:
        schedules = services.planner.generate_daily_schedules(datetime.now())
        return envelope(schedules, f"Generated {len(schedules)} watering schedules")
    except (HTTPException, WateringError):
        raise
    except Exception as e:
        logger.error(f"Failed to generate daily schedules: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@schedules_router.post("/plant/{plant_id}/generate")
def generate_for_plant(
    plant_id: str,
    request: Optional[GenerateScheduleRequest] = Body(None),
    services: Services = Depends(get_services),
):
    target_date = request.target_date if request else None
    schedule = services.planner.generate_schedule_for_plant(plant_id, target_date, datetime.now())

    if schedule is None:
        return envelope(None, "No watering needed for this plant at this time")

    return JSONResponse(
        status_code=201,
        content=jsonable_encoder(envelope(schedule, "Schedule generated successfully")),
    )


@schedules_router.get("/date/{day}")
def schedules_for_date(day: date, services: Services = Depends(get_services)):
    schedules = services.planner.get_schedules_for_date(day)
    return envelope(schedules, count=len(schedules), date=day.isoformat())


@schedules_router.get("/{schedule_id}")
def get_schedule(schedule_id: str, services: Services = Depends(get_services)):
    schedule = services.schedules.get(schedule_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return envelope(schedule)


@schedules_router.patch("/{schedule_id}/complete")
def complete_schedule(
    schedule_id: str,
    request: Optional[CompleteScheduleRequest] = Body(None),
    services: Services = Depends(get_services),
):
    request = request or CompleteScheduleRequest()
    schedule = services.planner.complete_schedule(
        schedule_id, request.actual_amount, request.notes, datetime.now()
    )
    return envelope(schedule, "Schedule completed successfully")


@schedules_router.patch("/{schedule_id}/skip")
def skip_schedule(
    schedule_id: str, request: SkipScheduleRequest, services: Services = Depends(get_services)
):
    schedule = services.planner.skip_schedule(schedule_id, request.reason)
    return envelope(schedule, "Schedule skipped successfully")


@schedules_router.delete("/{schedule_id}")
def delete_schedule(schedule_id: str, services: Services = Depends(get_services)):
    schedule = services.schedules.get(schedule_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="Schedule not found")
    if schedule.status == ScheduleStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Cannot delete completed schedule")

    services.schedules.delete(schedule_id)
    return envelope(message="Schedule deleted successfully")


weather_router = APIRouter(prefix="/api/weather", tags=["weather"])


@weather_router.get("/current")
def current_weather(services: Services = Depends(get_services)):
    sample = services.weather.get_current(date.today())
    if sample is None:
        raise HTTPException(status_code=404, detail="No weather data available for today")
    return envelope(sample)


@weather_router.get("/forecast")
def weather_forecast(days: int = Query(5, ge=1, le=7), services: Services = Depends(get_services)):
    samples = services.weather.get_forecast(days, date.today())
    return envelope(samples, count=len(samples))


@weather_router.get("/recent")
def recent_weather(days: int = Query(7, ge=1, le=90), services: Services = Depends(get_services)):
    samples = services.weather.get_recent(days, date.today())
    return envelope(samples, count=len(samples))


@weather_router.get("/stats")
def weather_stats(
    start_date: date = Query(...),
    end_date: date = Query(...),
    services: Services = Depends(get_services),
):
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must be after start_date")

    stats = services.weather.get_stats(start_date, end_date)
    return envelope(
        stats,
        period={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
    )


@weather_router.get("/health")
def weather_health(services: Services = Depends(get_services)):
    try:
        return envelope(services.weather.health(date.today()))
    except Exception as e:
        logger.error(f"Weather health check failed: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Weather service health check failed",
                "data": {
                    "has_current_weather": False,
                    "forecast_days_available": 0,
                    "last_updated": None,
                    "api_status": "error",
                },
            },
        )


@weather_router.get("/date/{day}")
def weather_for_date(day: date, services: Services = Depends(get_services)):
    sample = services.weather.get_for_date(day)
    if sample is None:
        raise HTTPException(status_code=404, detail=f"No weather data found for {day.isoformat()}")
    return envelope(sample)


@weather_router.post("/update")
def update_weather(
    request: Optional[WeatherUpdateRequest] = Body(None),
    services: Services = Depends(get_services),
):
    request = request or WeatherUpdateRequest()
    samples = services.weather.fetch_and_store(request.lat, request.lon, date.today())
    return envelope(samples, "Weather data updated successfully", count=len(samples))


@weather_router.delete("/cleanup")
def cleanup_weather(
    days_to_keep: int = Query(30, ge=1), services: Services = Depends(get_services)
):
    removed = services.weather.cleanup_old_data(days_to_keep, date.today())
    return envelope(
        {"removed": removed},
        f"Old weather data cleaned up (kept last {days_to_keep} days)",
    )


app.include_router(plants_router)
app.include_router(schedules_router)
app.include_router(weather_router)


if __name__ == "__main__":
    import uvicorn

    # Get port from environment (for Cloud Run compatibility)
    port = int(os.getenv("PORT", 8000))

    uvicorn.run("watering.api:app", host="0.0.0.0", port=port, reload=True, log_level="info")
