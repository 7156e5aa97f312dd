"""
Exception hierarchy shared by the engine, planner, storage and API layers.
"""


class WateringError(Exception):
    """Base class for every error raised by the watering system."""


class InvalidInputError(WateringError, ValueError):
    """Raised when a caller supplies data the engine cannot evaluate."""


class NotFoundError(WateringError, LookupError):
    """Raised when a requested record does not exist."""


class PlantNotFoundError(NotFoundError):
    def __init__(self, plant_id, reason="Plant not found or inactive"):
        super().__init__(reason)
        self.plant_id = plant_id


class ScheduleNotFoundError(NotFoundError):
    def __init__(self, schedule_id):
        super().__init__("Schedule not found")
        self.schedule_id = schedule_id


class ScheduleStateError(WateringError):
    """Raised when a schedule transition is not allowed from its current status."""


class WeatherFetchError(WateringError):
    """Raised when the weather provider cannot be reached or returns garbage."""
