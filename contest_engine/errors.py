"""Domain errors raised by the contest engine and its collaborators."""

from datetime import date


class ContestError(Exception):
    """Base class for contest errors."""


class InvalidReading(ContestError):
    """Raw station reading is missing a field or holds a non-finite number."""

    def __init__(self, field: str, value=None):
        self.field = field
        self.value = value
        super().__init__(f"Invalid reading field {field!r}: {value!r}")


class NoStationScheduled(ContestError):
    def __init__(self, target_date: date):
        self.target_date = target_date
        super().__init__(f"No station scheduled for {target_date.isoformat()}")


class DuplicateForecast(ContestError):
    def __init__(self, user_id: int, forecast_date: date, existing_id: int | None = None):
        self.user_id = user_id
        self.forecast_date = forecast_date
        self.existing_id = existing_id
        super().__init__(
            f"User {user_id} already submitted a forecast for {forecast_date.isoformat()}"
        )


class AlreadyScored(ContestError):
    def __init__(self, forecast_id: int):
        self.forecast_id = forecast_id
        super().__init__(f"Forecast {forecast_id} already has a score")


class SubmissionClosed(ContestError):
    def __init__(self, message: str = "Submission window is closed"):
        super().__init__(message)
