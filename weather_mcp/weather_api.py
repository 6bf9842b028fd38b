"""
Weather API: the HTTP service that consumes the weather tool server.

Endpoints:
    GET  /api/weather/{city}?state=TX&days=5   combined weather for a city
    POST /api/weather                          same, from a JSON body
    GET  /api/weather/{city}/current           current conditions only
    GET  /api/weather/{city}/forecast?days=3   forecast only
    GET  /api/weather/{city}/alerts            alerts only
    GET  /api/diagnostics/config               configuration check
    GET  /health                               liveness

Invalid input answers 400; data that could not be fetched from the tool
server answers 503.

Running the service:
    python -m weather_mcp.weather_api
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from weather_mcp.client import McpClient
from weather_mcp.config import ClientSettings, client_settings
from weather_mcp.correlation import CorrelationIdMiddleware
from weather_mcp.log_config import configure_logging
from weather_mcp.models import WeatherRequest
from weather_mcp.resilience import RetryingMcpClient, RetryPolicy
from weather_mcp.weather_service import WeatherService

logger = logging.getLogger("weather-mcp.api")


def _dump(value) -> object:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


def _problem(status_code: int, title: str, detail: str | None = None, **extra) -> JSONResponse:
    body = {"title": title, "status": status_code}
    if detail:
        body["detail"] = detail
    body.update(extra)
    return JSONResponse(body, status_code=status_code)


def _validation_problem(error: ValidationError) -> JSONResponse:
    return _problem(
        400,
        "Invalid request",
        errors=json.loads(error.json(include_url=False)),
    )


def _request_from_query(request: Request) -> WeatherRequest:
    """Build a WeatherRequest from the path and query string; raises ValidationError."""
    data = {"city": request.path_params["city"]}
    if "state" in request.query_params:
        data["state"] = request.query_params["state"]
    if "days" in request.query_params:
        data["days"] = request.query_params["days"]
    return WeatherRequest.model_validate(data)


def _service(request: Request) -> WeatherService:
    return request.app.state.weather_service


def _location(weather_request: WeatherRequest) -> str:
    if weather_request.state:
        return f"{weather_request.city}, {weather_request.state}"
    return weather_request.city


async def _combined_weather(request: Request, weather_request: WeatherRequest) -> Response:
    response = await _service(request).get_weather(weather_request)
    if not response.has_data:
        logger.warning(
            "No weather data available",
            extra={"log_data": {"city": weather_request.city, "state": weather_request.state}},
        )
        return _problem(
            503,
            "Weather data unavailable",
            f"Unable to retrieve weather data for {_location(weather_request)}",
        )
    return JSONResponse(_dump(response))


async def get_weather(request: Request) -> Response:
    try:
        weather_request = _request_from_query(request)
    except ValidationError as e:
        return _validation_problem(e)
    return await _combined_weather(request, weather_request)


async def post_weather(request: Request) -> Response:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _problem(400, "Invalid request", "Request body must be valid JSON")
    try:
        weather_request = WeatherRequest.model_validate(payload)
    except ValidationError as e:
        return _validation_problem(e)
    return await _combined_weather(request, weather_request)


async def get_current_weather(request: Request) -> Response:
    try:
        weather_request = _request_from_query(request)
    except ValidationError as e:
        return _validation_problem(e)

    current = await _service(request).get_current(weather_request.city, weather_request.state)
    if current is None:
        return _problem(
            503,
            "Current weather unavailable",
            f"Unable to retrieve current weather for {_location(weather_request)}",
        )
    return JSONResponse(_dump(current))


async def get_weather_forecast(request: Request) -> Response:
    try:
        weather_request = _request_from_query(request)
    except ValidationError as e:
        return _validation_problem(e)

    forecast = await _service(request).get_forecast(
        weather_request.city, weather_request.state, weather_request.days
    )
    if forecast is None:
        return _problem(
            503,
            "Weather forecast unavailable",
            f"Unable to retrieve the forecast for {_location(weather_request)}",
        )
    return JSONResponse(_dump(forecast))


async def get_weather_alerts(request: Request) -> Response:
    try:
        weather_request = _request_from_query(request)
    except ValidationError as e:
        return _validation_problem(e)

    alerts = await _service(request).get_alerts(weather_request.city, weather_request.state)
    if alerts is None:
        return _problem(
            503,
            "Weather alerts unavailable",
            f"Unable to retrieve weather alerts for {_location(weather_request)}",
        )
    return JSONResponse(_dump(alerts))


async def configuration_status(request: Request) -> Response:
    errors = request.app.state.config.validation_errors()
    if errors:
        logger.error("Configuration validation failed", extra={"log_data": {"errors": errors}})
        return JSONResponse({"valid": False, "errors": errors}, status_code=400)
    return JSONResponse({"valid": True, "errors": []})


async def health(request: Request) -> Response:
    return JSONResponse(
        {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
    )


routes = [
    Route("/api/weather", post_weather, methods=["POST"]),
    Route("/api/weather/{city}", get_weather, methods=["GET"]),
    Route("/api/weather/{city}/current", get_current_weather, methods=["GET"]),
    Route("/api/weather/{city}/forecast", get_weather_forecast, methods=["GET"]),
    Route("/api/weather/{city}/alerts", get_weather_alerts, methods=["GET"]),
    Route("/api/diagnostics/config", configuration_status, methods=["GET"]),
    Route("/health", health, methods=["GET"]),
]


def create_app(
    service: WeatherService | None = None,
    config: ClientSettings = client_settings,
) -> Starlette:
    """
    Build the weather API.

    With no `service`, the app creates a retrying McpClient on startup and
    closes it on shutdown. Passing a service (tests) skips that.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette):
        problems = config.validation_errors()
        if problems:
            logger.warning(
                "Configuration problems detected",
                extra={"log_data": {"errors": problems}},
            )
        client = McpClient(config)
        app.state.weather_service = WeatherService(
            RetryingMcpClient(client, RetryPolicy.from_settings(config))
        )
        try:
            yield
        finally:
            await client.aclose()

    app = Starlette(
        routes=routes,
        middleware=[Middleware(CorrelationIdMiddleware)],
        lifespan=lifespan if service is None else None,
    )
    app.state.config = config
    if service is not None:
        app.state.weather_service = service
    return app


if __name__ == "__main__":
    configure_logging(client_settings.log_level)
    logger.info(
        "Starting weather API on %s:%d (tool server: %s)",
        client_settings.host,
        client_settings.port,
        client_settings.mcp_base_url,
    )
    uvicorn.run(
        create_app(),
        host=client_settings.host,
        port=client_settings.port,
        log_level=client_settings.log_level,
    )
