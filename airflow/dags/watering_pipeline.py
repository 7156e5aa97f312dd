from datetime import date, datetime, timedelta
import logging

from airflow import DAG
from airflow.operators.python import PythonOperator

from watering.services import build_services

logger = logging.getLogger(__name__)


def generate_daily_schedules(**context):
    """Run the daily planner batch for every active plant."""
    services = build_services()
    schedules = services.planner.generate_daily_schedules(datetime.now())
    logger.info(f"Daily batch created {len(schedules)} schedules")
    return len(schedules)


def refresh_weather(**context):
    """Pull current weather and forecast into weather_data."""
    services = build_services()
    samples = services.weather.fetch_and_store(today=date.today())
    logger.info(f"Stored {len(samples)} weather samples")
    return len(samples)


def weekly_cleanup(**context):
    """Drop old weather observations and finished schedules."""
    services = build_services()
    removed = services.planner.weekly_cleanup(date.today())
    logger.info(
        f"Cleanup removed {removed['weather_removed']} weather rows "
        f"and {removed['schedules_removed']} schedules"
    )
    return removed


default_args = {
    "owner": "airflow",
    "retries": 1,
    "retry_delay": timedelta(minutes=2),
}

with DAG(
    dag_id="watering_daily_schedules",
    default_args=default_args,
    start_date=datetime(2025, 1, 1),
    schedule="0 6 * * *",
    catchup=False,
    doc_md="Generates today's watering schedules for all active plants.",
):
    PythonOperator(task_id="generate_daily_schedules", python_callable=generate_daily_schedules)

with DAG(
    dag_id="watering_weather_refresh",
    default_args=default_args,
    start_date=datetime(2025, 1, 1),
    schedule="0 8,20 * * *",
    catchup=False,
    doc_md="Refreshes stored weather twice a day.",
):
    PythonOperator(task_id="refresh_weather", python_callable=refresh_weather)

with DAG(
    dag_id="watering_weekly_cleanup",
    default_args=default_args,
    start_date=datetime(2025, 1, 1),
    schedule="0 2 * * 0",
    catchup=False,
    doc_md="Removes weather older than 30 days and finished schedules older than 90 days.",
):
    PythonOperator(task_id="weekly_cleanup", python_callable=weekly_cleanup)
