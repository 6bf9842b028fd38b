"""
Weather lookup orchestration for one city.

Resolves the state (from the request or a fixed table of major US cities),
fetches current conditions, forecast and alerts concurrently, and returns
whatever could be retrieved. A part whose call failed is None in the
response; the failure is logged rather than failing the whole lookup.
"""

import asyncio
import logging
import time
from typing import Awaitable, TypeVar

from weather_mcp.models import (
    CurrentWeatherInfo,
    WeatherAlertInfo,
    WeatherForecastInfo,
    WeatherRequest,
    WeatherResponse,
)

logger = logging.getLogger("weather-mcp.service")

T = TypeVar("T")

DEFAULT_STATE = "CA"

CITY_TO_STATE = {
    "new york": "NY", "los angeles": "CA", "chicago": "IL", "houston": "TX",
    "phoenix": "AZ", "philadelphia": "PA", "san antonio": "TX", "san diego": "CA",
    "dallas": "TX", "san jose": "CA", "austin": "TX", "jacksonville": "FL",
    "fort worth": "TX", "columbus": "OH", "charlotte": "NC", "san francisco": "CA",
    "indianapolis": "IN", "seattle": "WA", "denver": "CO", "washington": "DC",
    "boston": "MA", "el paso": "TX", "detroit": "MI", "nashville": "TN",
    "portland": "OR", "memphis": "TN", "oklahoma city": "OK", "las vegas": "NV",
    "louisville": "KY", "baltimore": "MD", "milwaukee": "WI", "albuquerque": "NM",
    "tucson": "AZ", "fresno": "CA", "sacramento": "CA", "mesa": "AZ",
    "kansas city": "MO", "atlanta": "GA", "long beach": "CA", "colorado springs": "CO",
    "raleigh": "NC", "miami": "FL", "virginia beach": "VA", "omaha": "NE",
    "oakland": "CA", "minneapolis": "MN", "tulsa": "OK", "arlington": "TX",
    "tampa": "FL", "new orleans": "LA", "wichita": "KS", "cleveland": "OH",
    "bakersfield": "CA", "aurora": "CO", "anaheim": "CA", "honolulu": "HI",
    "santa ana": "CA", "riverside": "CA", "corpus christi": "TX", "lexington": "KY",
    "stockton": "CA", "henderson": "NV", "saint paul": "MN", "st. paul": "MN",
    "cincinnati": "OH", "pittsburgh": "PA",
}


def resolve_state(city: str) -> str:
    return CITY_TO_STATE.get(city.strip().lower(), DEFAULT_STATE)


class WeatherService:
    """Combines the three weather tool calls behind one lookup."""

    def __init__(self, client) -> None:
        self._client = client

    async def _optional(self, operation: str, awaitable: Awaitable[T]) -> T | None:
        try:
            return await awaitable
        except Exception:
            logger.exception(
                "Weather data unavailable",
                extra={"log_data": {"operation": operation}},
            )
            return None

    async def get_current(self, city: str, state: str | None = None) -> CurrentWeatherInfo | None:
        state = state or resolve_state(city)
        return await self._optional(
            "current_weather", self._client.get_current_weather(state, city)
        )

    async def get_forecast(
        self, city: str, state: str | None = None, days: int = 5
    ) -> list[WeatherForecastInfo] | None:
        state = state or resolve_state(city)
        return await self._optional(
            "forecast", self._client.get_weather_forecast(state, days)
        )

    async def get_alerts(self, city: str, state: str | None = None) -> list[WeatherAlertInfo] | None:
        state = state or resolve_state(city)
        return await self._optional("alerts", self._client.get_weather_alerts(state))

    async def get_weather(self, request: WeatherRequest) -> WeatherResponse:
        start = time.perf_counter()
        state = request.state or resolve_state(request.city)
        logger.info(
            "Processing weather request",
            extra={"log_data": {"city": request.city, "state": state, "days": request.days}},
        )

        current, forecast, alerts = await asyncio.gather(
            self.get_current(request.city, state),
            self.get_forecast(request.city, state, request.days),
            self.get_alerts(request.city, state),
        )

        response = WeatherResponse(
            city=request.city,
            state=state,
            current_weather=current,
            forecast=forecast,
            alerts=alerts,
        )
        logger.info(
            "Weather request processed",
            extra={
                "log_data": {
                    "city": request.city,
                    "state": state,
                    "has_data": response.has_data,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 1),
                }
            },
        )
        return response
