"""
Data models of the consuming weather service.

Field names are snake_case in Python and camelCase on the wire, matching the
payloads the weather tools return, so tool results can be validated straight
into these models and re-serialized with ``model_dump(by_alias=True)``.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TemperatureInfo(ApiModel):
    current: int = 0
    unit: str = "°F"
    feels_like: int = 0
    high: int | None = None
    low: int | None = None


class WeatherConditionsInfo(ApiModel):
    description: str = ""
    humidity: int = 0
    wind_speed: int = 0
    wind_direction: str = ""
    visibility: int = 0
    precipitation_chance: int = 0


class CurrentWeatherInfo(ApiModel):
    location: str = ""
    temperature: TemperatureInfo = Field(default_factory=TemperatureInfo)
    conditions: WeatherConditionsInfo = Field(default_factory=WeatherConditionsInfo)
    timestamp: datetime = Field(default_factory=_utcnow)


class WeatherForecastInfo(ApiModel):
    date: str = ""
    day_of_week: str = ""
    temperature: TemperatureInfo = Field(default_factory=TemperatureInfo)
    conditions: str = ""
    precipitation_chance: int = 0
    wind_speed: int = 0


class WeatherAlertInfo(ApiModel):
    id: str = ""
    alert_type: str = ""
    severity: str = ""
    description: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None
    areas: list[str] = Field(default_factory=list)


class WeatherRequest(ApiModel):
    city: str = Field(min_length=1)
    state: str | None = None
    days: int = Field(default=5, ge=1, le=7)


class WeatherResponse(ApiModel):
    city: str
    state: str
    current_weather: CurrentWeatherInfo | None = None
    forecast: list[WeatherForecastInfo] | None = None
    alerts: list[WeatherAlertInfo] | None = None
    retrieved_at: datetime = Field(default_factory=_utcnow)

    @property
    def has_data(self) -> bool:
        return any(
            part is not None for part in (self.current_weather, self.forecast, self.alerts)
        )
