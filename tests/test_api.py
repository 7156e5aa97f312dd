#!/usr/bin/env python3
"""
Tests for the FastAPI watering service.
"""

import pytest
import sys
import os
from datetime import date, timedelta

from fastapi.testclient import TestClient

# Add src to path for imports
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from common.config import Settings
from common.errors import WeatherFetchError
from common.models import ScheduleStatus, WateringSchedule
from watering.api import HealthCheck, PlantPayload, app, get_services
from watering.services import build_services
from watering.weather import SimulatedWeatherClient


class FailingWeatherClient:
    def fetch(self, lat, lon, today):
        raise WeatherFetchError("Failed to fetch weather data from OpenWeatherMap")


class APITestCase:
    """Wires the app to a fresh in-memory database for every test."""

    def setup_method(self):
        settings = Settings(database_url="sqlite://", weather_mode="simulated")
        self.services = build_services(settings, weather_client=SimulatedWeatherClient(seed=11))
        app.dependency_overrides[get_services] = lambda: self.services
        self.client = TestClient(app)

    def teardown_method(self):
        app.dependency_overrides.clear()

    def create_plant(self, **overrides):
        payload = {"name": "Monstera", "type": "tropical", "base_frequency_days": 5}
        payload.update(overrides)
        response = self.client.post("/api/plants", json=payload)
        assert response.status_code == 201
        return response.json()["data"]

    def add_schedule(self, plant_id, day=None, status=ScheduleStatus.PENDING):
        return self.services.schedules.save(
            WateringSchedule(
                plant_id=plant_id,
                scheduled_date=day or date.today(),
                water_amount_ml=250,
                status=status,
            )
        )


class TestAppBasics(APITestCase):
    """Root, health and models."""

    def test_app_creation(self):
        assert app.title == "Smart Watering API"

    def test_root(self):
        response = self.client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "Smart Watering API"

    def test_health(self):
        self.create_plant()

        response = self.client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database_connected"] is True
        assert data["active_plants"] == 1

    def test_plant_payload_defaults(self):
        payload = PlantPayload(name="Basil", type="temperate")

        assert payload.base_water_amount_ml == 250.0
        assert payload.base_frequency_days == 7
        assert payload.is_active is True

    def test_health_model(self):
        check = HealthCheck(status="healthy", timestamp="2025-06-01T10:00:00", database_connected=True, active_plants=3)
        assert check.active_plants == 3


class TestPlantEndpoints(APITestCase):
    """Plant CRUD."""

    def test_create_plant(self):
        response = self.client.post("/api/plants", json={"name": "Aloe", "type": "succulent"})

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Plant created successfully"
        assert body["data"]["type"] == "succulent"
        assert body["data"]["id"]

    def test_create_plant_validation(self):
        response = self.client.post(
            "/api/plants",
            json={"name": "Aloe", "type": "succulent", "min_temperature": 30, "max_temperature": 20},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation error"
        assert body["errors"]

    @pytest.mark.parametrize(
        "field, value",
        [
            ("name", ""),
            ("type", "cactus"),
            ("base_frequency_days", 0),
            ("base_frequency_days", 31),
            ("base_water_amount_ml", 2500),
            ("summer_multiplier", 0),
            ("ideal_humidity", 5),
            ("rain_threshold_mm", 60),
        ],
    )
    def test_create_plant_out_of_range(self, field, value):
        payload = {"name": "Aloe", "type": "succulent", field: value}
        response = self.client.post("/api/plants", json=payload)
        assert response.status_code == 400

    def test_list_plants(self):
        for i in range(3):
            self.create_plant(name=f"Cactus {i}", type="desert")
        self.create_plant(name="Rosemary", type="mediterranean")

        response = self.client.get("/api/plants", params={"type": "desert", "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 2
        assert body["pagination"] == {"page": 1, "limit": 2, "total_items": 3, "total_pages": 2}

    def test_get_missing_plant(self):
        response = self.client.get("/api/plants/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Plant not found"}

    def test_update_plant(self):
        plant = self.create_plant()

        response = self.client.put(
            f"/api/plants/{plant['id']}",
            json={"name": "Monstera deliciosa", "type": "tropical", "base_water_amount_ml": 450},
        )

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Monstera deliciosa"
        assert response.json()["data"]["base_water_amount_ml"] == 450

    def test_toggle_active(self):
        plant = self.create_plant()

        response = self.client.patch(f"/api/plants/{plant['id']}/toggle-active")

        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False
        assert response.json()["message"] == "Plant deactivated successfully"

    def test_delete_plant(self):
        plant = self.create_plant()

        assert self.client.delete(f"/api/plants/{plant['id']}").status_code == 200
        assert self.client.get(f"/api/plants/{plant['id']}").status_code == 404
        assert self.client.delete(f"/api/plants/{plant['id']}").status_code == 404

    def test_manual_watering_and_history(self):
        plant = self.create_plant()

        response = self.client.post(
            f"/api/plants/{plant['id']}/history",
            json={"water_amount_ml": 300, "notes": "Weekend", "soil_moisture_level": 40},
        )
        assert response.status_code == 201
        assert response.json()["data"]["was_scheduled"] is False

        history = self.client.get(f"/api/plants/{plant['id']}/history").json()
        assert history["pagination"]["total_items"] == 1
        assert history["data"][0]["water_amount_ml"] == 300

    def test_manual_watering_unknown_plant(self):
        response = self.client.post("/api/plants/nope/history", json={"water_amount_ml": 100})
        assert response.status_code == 404

    def test_recommendation(self):
        plant = self.create_plant()
        self.services.weather.fetch_and_store(today=date.today())

        response = self.client.get(f"/api/plants/{plant['id']}/recommendation")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["should_water"] is True
        assert data["rule"] in ("scored", "emergency")
        assert 0.1 <= data["confidence"] <= 1.0
        assert self.services.schedules.pending() == []

    def test_recommendation_without_weather(self):
        """No stored weather means the engine cannot evaluate."""
        plant = self.create_plant()

        response = self.client.get(f"/api/plants/{plant['id']}/recommendation")

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_plant_schedules(self):
        plant = self.create_plant()
        self.add_schedule(plant["id"])

        body = self.client.get(f"/api/plants/{plant['id']}/schedules", params={"status": "pending"}).json()

        assert body["pagination"]["total_items"] == 1


class TestScheduleEndpoints(APITestCase):
    """Schedule lifecycle over HTTP."""

    def setup_method(self):
        super().setup_method()
        self.plant = self.create_plant()

    def test_generate_daily(self):
        response = self.client.post("/api/schedules/generate")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == f"Generated {len(body['data'])} watering schedules"
        assert len(body["data"]) == 1

    def test_generate_for_plant(self):
        self.services.weather.fetch_and_store(today=date.today())

        response = self.client.post(f"/api/schedules/plant/{self.plant['id']}/generate")

        assert response.status_code == 201
        assert response.json()["data"]["status"] == "pending"

    def test_generate_for_plant_with_target_date(self):
        self.services.weather.fetch_and_store(today=date.today())
        target = (date.today() + timedelta(days=2)).isoformat()

        response = self.client.post(
            f"/api/schedules/plant/{self.plant['id']}/generate", json={"target_date": target}
        )

        assert response.status_code == 201
        assert response.json()["data"]["scheduled_date"] == target

    def test_generate_for_recently_watered_plant(self):
        self.services.weather.fetch_and_store(today=date.today())
        self.client.post(f"/api/plants/{self.plant['id']}/history", json={"water_amount_ml": 200})

        response = self.client.post(f"/api/schedules/plant/{self.plant['id']}/generate")

        assert response.status_code == 200
        assert response.json()["data"] is None

    def test_generate_for_unknown_plant(self):
        response = self.client.post("/api/schedules/plant/missing/generate")

        assert response.status_code == 404
        assert response.json()["message"] == "Plant not found or inactive"

    def test_generate_over_skipped_schedule(self):
        self.services.weather.fetch_and_store(today=date.today())
        schedule = self.add_schedule(self.plant["id"])
        self.client.patch(f"/api/schedules/{schedule.id}/skip", json={"reason": "Away"})

        response = self.client.post(f"/api/schedules/plant/{self.plant['id']}/generate")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == f"A skipped schedule already exists for {date.today()}"

    def test_complete(self):
        schedule = self.add_schedule(self.plant["id"])

        response = self.client.patch(
            f"/api/schedules/{schedule.id}/complete", json={"actual_amount": 220, "notes": "Done"}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["actual_water_amount_ml"] == 220

        again = self.client.patch(f"/api/schedules/{schedule.id}/complete")
        assert again.status_code == 400
        assert again.json()["success"] is False

    def test_complete_without_body(self):
        schedule = self.add_schedule(self.plant["id"])

        response = self.client.patch(f"/api/schedules/{schedule.id}/complete")

        assert response.status_code == 200
        assert response.json()["data"]["actual_water_amount_ml"] == 250

    def test_skip_requires_reason(self):
        schedule = self.add_schedule(self.plant["id"])

        assert self.client.patch(f"/api/schedules/{schedule.id}/skip", json={}).status_code == 400

        response = self.client.patch(f"/api/schedules/{schedule.id}/skip", json={"reason": "Rained overnight"})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "skipped"

    def test_missing_schedule(self):
        assert self.client.get("/api/schedules/missing").status_code == 404
        response = self.client.patch("/api/schedules/missing/complete")
        assert response.status_code == 404
        assert response.json()["message"] == "Schedule not found"

    def test_delete(self):
        pending = self.add_schedule(self.plant["id"])
        done = self.add_schedule(self.plant["id"], date.today() - timedelta(days=1), ScheduleStatus.COMPLETED)

        assert self.client.delete(f"/api/schedules/{done.id}").status_code == 400
        assert self.client.delete(f"/api/schedules/{pending.id}").status_code == 200
        assert self.client.get(f"/api/schedules/{pending.id}").status_code == 404

    def test_collections(self):
        self.add_schedule(self.plant["id"])
        self.add_schedule(self.plant["id"], date.today() - timedelta(days=3))

        assert self.client.get("/api/schedules/pending").json()["count"] == 2
        assert self.client.get("/api/schedules/overdue").json()["count"] == 1
        assert self.client.get("/api/schedules/today").json()["count"] == 1

        earlier = (date.today() - timedelta(days=3)).isoformat()
        by_date = self.client.get(f"/api/schedules/date/{earlier}").json()
        assert by_date["count"] == 1
        assert by_date["date"] == earlier

    def test_list_with_filters(self):
        self.add_schedule(self.plant["id"])
        self.add_schedule(self.plant["id"], date.today() - timedelta(days=1), ScheduleStatus.SKIPPED)

        body = self.client.get("/api/schedules", params={"status": "skipped"}).json()
        assert body["pagination"]["total_items"] == 1

        body = self.client.get("/api/schedules", params={"date": date.today().isoformat()}).json()
        assert body["pagination"]["total_items"] == 1

        assert self.client.get("/api/schedules", params={"status": "bogus"}).status_code == 400

    def test_week_summary(self):
        self.add_schedule(self.plant["id"])

        data = self.client.get("/api/schedules/week-summary").json()["data"]

        assert data["total_schedules"] == 1
        assert data["pending_schedules"] == 1
        assert len(data["schedules_by_day"]) == 7


class TestWeatherEndpoints(APITestCase):
    """Weather storage over HTTP."""

    def test_current_without_data(self):
        response = self.client.get("/api/weather/current")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_update_then_read(self):
        response = self.client.post("/api/weather/update")
        assert response.status_code == 200
        assert response.json()["count"] == 8

        current = self.client.get("/api/weather/current").json()["data"]
        assert current["is_forecast"] is False
        assert current["date"] == date.today().isoformat()

        forecast = self.client.get("/api/weather/forecast", params={"days": 3}).json()
        assert forecast["count"] == 4
        assert [day["is_forecast"] for day in forecast["data"]] == [False, True, True, True]

    def test_update_with_coordinates(self):
        response = self.client.post("/api/weather/update", json={"lat": 40.4, "lon": -3.7})
        assert response.status_code == 200

        bad = self.client.post("/api/weather/update", json={"lat": 120, "lon": 0})
        assert bad.status_code == 400

    def test_update_failure(self):
        self.services.weather.client = FailingWeatherClient()

        response = self.client.post("/api/weather/update")

        assert response.status_code == 502
        assert response.json() == {
            "success": False,
            "message": "Failed to fetch weather data from OpenWeatherMap",
        }

    def test_by_date(self):
        self.client.post("/api/weather/update")
        tomorrow = (date.today() + timedelta(days=1)).isoformat()

        assert self.client.get(f"/api/weather/date/{tomorrow}").json()["data"]["is_forecast"] is True
        assert self.client.get("/api/weather/date/2001-01-01").status_code == 404

    def test_stats_requires_range(self):
        assert self.client.get("/api/weather/stats").status_code == 400

        response = self.client.get(
            "/api/weather/stats", params={"start_date": "2025-06-10", "end_date": "2025-06-01"}
        )
        assert response.status_code == 400

    def test_stats(self):
        self.client.post("/api/weather/update")
        today = date.today().isoformat()

        body = self.client.get("/api/weather/stats", params={"start_date": today, "end_date": today}).json()

        assert body["data"]["total_days"] == 1
        assert body["period"] == {"start_date": today, "end_date": today}

    def test_recent_and_cleanup(self):
        self.client.post("/api/weather/update")

        assert self.client.get("/api/weather/recent").json()["count"] >= 1

        response = self.client.delete("/api/weather/cleanup", params={"days_to_keep": 10})
        assert response.status_code == 200
        assert response.json()["data"] == {"removed": 0}

    def test_health(self):
        self.client.post("/api/weather/update")

        data = self.client.get("/api/weather/health").json()["data"]

        assert data["has_current_weather"] is True
        assert data["forecast_days_available"] == 6
        assert data["api_status"] == "connected"


if __name__ == "__main__":
    pytest.main([__file__])
