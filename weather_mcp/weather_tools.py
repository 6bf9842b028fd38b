"""
Mock weather tools.

Three tools with randomized but plausible payloads for a US state:

- getweatheralerts(state)
- getcurrentweather(state, city=None)
- getweatherforecast(state, days=5)

Each body sleeps for ``settings.tool_latency_seconds`` to stand in for an
upstream weather API, and uses its own random.Random so concurrent calls
share no RNG state.
"""

import asyncio
import random
import uuid
from datetime import datetime, timedelta, timezone

from weather_mcp.config import settings
from weather_mcp.errors import ToolArgumentError
from weather_mcp.registry import ParameterDescriptor, ToolDescriptor, ToolRegistry

STATE_NAMES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
    "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
    "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi",
    "MO": "Missouri", "MT": "Montana", "NE": "Nebraska", "NV": "Nevada",
    "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico", "NY": "New York",
    "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma",
    "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VT": "Vermont", "VA": "Virginia", "WA": "Washington", "WV": "West Virginia",
    "WI": "Wisconsin", "WY": "Wyoming",
}

CONDITIONS = [
    "Sunny", "Partly Cloudy", "Cloudy", "Light Rain",
    "Heavy Rain", "Thunderstorms", "Clear", "Overcast",
]

WIND_DIRECTIONS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]

MIN_FORECAST_DAYS = 1
MAX_FORECAST_DAYS = 7

STATE_DESCRIPTION = "The US state code (e.g., 'CA', 'TX', 'NY')"


def state_name(state_code: str) -> str:
    """Full state name for a two-letter code; unknown codes come back upper-cased."""
    return STATE_NAMES.get(state_code.upper(), state_code.upper())


def _timestamp(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


async def _simulate_latency() -> None:
    if settings.tool_latency_seconds > 0:
        await asyncio.sleep(settings.tool_latency_seconds)


async def get_weather_alerts(state: str) -> dict:
    await _simulate_latency()

    now = datetime.now(timezone.utc)
    code = state.upper()
    name = state_name(state)

    alerts = [
        {
            "id": str(uuid.uuid4()),
            "state": code,
            "alertType": "Heat Advisory",
            "severity": "Moderate",
            "description": f"Excessive heat warning for {name}. Temperatures may reach above 95°F.",
            "startTime": _timestamp(now),
            "endTime": _timestamp(now + timedelta(hours=24)),
            "areas": ["Metro Area", "Central Region"],
        },
        {
            "id": str(uuid.uuid4()),
            "state": code,
            "alertType": "Thunderstorm Watch",
            "severity": "Minor",
            "description": f"Possible thunderstorms in {name} this evening.",
            "startTime": _timestamp(now + timedelta(hours=6)),
            "endTime": _timestamp(now + timedelta(hours=12)),
            "areas": ["Northern Region"],
        },
    ]

    return {
        "state": code,
        "stateName": name,
        "alertCount": len(alerts),
        "alerts": alerts,
        "retrievedAt": _timestamp(now),
    }


async def get_current_weather(state: str, city: str | None = None) -> dict:
    await _simulate_latency()

    rng = random.Random()
    name = state_name(state)
    location = f"{city}, {name}" if city else name

    return {
        "location": location,
        "state": state.upper(),
        "temperature": {
            "current": rng.randint(60, 94),
            "unit": "°F",
            "feelsLike": rng.randint(65, 99),
        },
        "conditions": {
            "description": rng.choice(CONDITIONS),
            "humidity": rng.randint(30, 79),
            "windSpeed": rng.randint(5, 24),
            "windDirection": rng.choice(WIND_DIRECTIONS),
            "visibility": rng.randint(5, 14),
        },
        "timestamp": _timestamp(datetime.now(timezone.utc)),
    }


async def get_weather_forecast(state: str, days: int = 5) -> dict:
    await _simulate_latency()

    if not MIN_FORECAST_DAYS <= days <= MAX_FORECAST_DAYS:
        raise ToolArgumentError(
            f"Days must be between {MIN_FORECAST_DAYS} and {MAX_FORECAST_DAYS}"
        )

    rng = random.Random()
    now = datetime.now(timezone.utc)

    forecast = []
    for offset in range(1, days + 1):
        day = now + timedelta(days=offset)
        forecast.append(
            {
                "date": day.strftime("%Y-%m-%d"),
                "dayOfWeek": day.strftime("%A"),
                "temperature": {
                    "high": rng.randint(75, 94),
                    "low": rng.randint(55, 74),
                    "unit": "°F",
                },
                "conditions": rng.choice(CONDITIONS),
                "precipitationChance": rng.randint(0, 99),
                "windSpeed": rng.randint(5, 19),
            }
        )

    return {
        "state": state.upper(),
        "stateName": state_name(state),
        "forecastDays": days,
        "forecast": forecast,
        "retrievedAt": _timestamp(now),
    }


WEATHER_TOOLS = (
    ToolDescriptor(
        name="getweatheralerts",
        description="Get weather alerts for a US state.",
        parameters=(
            ParameterDescriptor("state", "string", STATE_DESCRIPTION),
        ),
        fn=get_weather_alerts,
    ),
    ToolDescriptor(
        name="getcurrentweather",
        description="Get current weather conditions for a US state.",
        parameters=(
            ParameterDescriptor("state", "string", STATE_DESCRIPTION),
            ParameterDescriptor("city", "optional-string", "The city name (optional)", default=None),
        ),
        fn=get_current_weather,
    ),
    ToolDescriptor(
        name="getweatherforecast",
        description="Get weather forecast for a US state.",
        parameters=(
            ParameterDescriptor("state", "string", STATE_DESCRIPTION),
            ParameterDescriptor("days", "integer", "Number of days to forecast (1-7)", default=5),
        ),
        fn=get_weather_forecast,
    ),
)


def register_tools(registry: ToolRegistry) -> None:
    for descriptor in WEATHER_TOOLS:
        registry.register(descriptor)
