from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator


class Station(BaseModel):
    id: str
    name: str
    location_desc: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    wunderground_url: str | None = None


class ForecastSubmission(BaseModel):
    max_temp: int = Field(ge=50, le=120, description="Max temperature, °F")
    min_temp: int = Field(ge=40, le=100, description="Min temperature, °F")
    wind_gust: int = Field(ge=0, le=200, description="Peak wind gust, mph")
    precip_range: int = Field(ge=1, le=7, description="Precipitation bucket 1-7")

    @model_validator(mode="after")
    def _min_below_max(self):
        if self.min_temp >= self.max_temp:
            raise ValueError("Minimum temperature must be less than maximum temperature")
        return self


class ForecastRecord(BaseModel):
    id: int
    forecast_date: date
    station_id: str
    station: str | None = None
    max_temp: int
    min_temp: int
    wind_gust: int
    precip_range: int
    precip_range_desc: str
    submitted_at: datetime


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=32, pattern=r"^[A-Za-z0-9_.-]+$")


class ScheduleRequest(BaseModel):
    station_id: str
    week_of: date
    announced: bool = False
