"""
Integration tests for the consuming weather API (weather_mcp/weather_api.py).

The app is built with a WeatherService over an in-process fake client, and
called through httpx.ASGITransport.
"""

import httpx
import pytest

from weather_mcp.config import ClientSettings
from weather_mcp.weather_api import create_app
from weather_mcp.weather_service import WeatherService


def make_api_client(fake_client, config=None) -> httpx.AsyncClient:
    app = create_app(
        WeatherService(fake_client),
        config or ClientSettings(mcp_auth_required=False),
    )
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.fixture
async def api_client(make_weather_client):
    async with make_api_client(make_weather_client()) as client:
        yield client


class TestCombinedWeather:
    async def test_get_weather(self, api_client):
        response = await api_client.get("/api/weather/Chicago", params={"days": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["city"] == "Chicago"
        assert body["state"] == "IL"
        assert body["currentWeather"]["location"] == "Chicago, IL"
        assert len(body["forecast"]) == 2
        assert body["alerts"][0]["alertType"] == "Heat Advisory"
        assert "retrievedAt" in body

    async def test_post_weather(self, api_client):
        response = await api_client.post("/api/weather", json={"city": "Reno", "state": "NV", "days": 1})

        assert response.status_code == 200
        assert response.json()["state"] == "NV"

    async def test_days_out_of_range_is_400(self, api_client):
        response = await api_client.get("/api/weather/Chicago", params={"days": 9})

        assert response.status_code == 400
        body = response.json()
        assert body["title"] == "Invalid request"
        assert body["errors"][0]["loc"] == ["days"]

    async def test_post_without_city_is_400(self, api_client):
        response = await api_client.post("/api/weather", json={"state": "NV"})

        assert response.status_code == 400

    async def test_post_invalid_json_is_400(self, api_client):
        response = await api_client.post("/api/weather", content=b"not json")

        assert response.status_code == 400
        assert response.json()["detail"] == "Request body must be valid JSON"

    async def test_partial_data_is_still_200(self, make_weather_client):
        async with make_api_client(make_weather_client(fail={"alerts", "forecast"})) as client:
            response = await client.get("/api/weather/Boston")

        assert response.status_code == 200
        assert response.json()["alerts"] is None

    async def test_no_data_is_503(self, make_weather_client):
        async with make_api_client(make_weather_client(fail={"current", "forecast", "alerts"})) as client:
            response = await client.get("/api/weather/Boston")

        assert response.status_code == 503
        assert response.json()["detail"] == "Unable to retrieve weather data for Boston"


class TestSinglePartEndpoints:
    async def test_current(self, api_client):
        response = await api_client.get("/api/weather/Austin/current", params={"state": "TX"})

        assert response.status_code == 200
        assert response.json()["location"] == "Austin, TX"

    async def test_forecast(self, api_client):
        response = await api_client.get("/api/weather/Austin/forecast", params={"days": 4})

        assert response.status_code == 200
        assert len(response.json()) == 4

    async def test_alerts(self, api_client):
        response = await api_client.get("/api/weather/Austin/alerts")

        assert response.status_code == 200
        assert response.json()[0]["alertType"] == "Heat Advisory"

    async def test_failed_part_is_503(self, make_weather_client):
        async with make_api_client(make_weather_client(fail={"current"})) as client:
            response = await client.get("/api/weather/Austin/current", params={"state": "TX"})

        assert response.status_code == 503
        assert response.json()["detail"] == "Unable to retrieve current weather for Austin, TX"


class TestDiagnostics:
    async def test_valid_configuration(self, api_client):
        response = await api_client.get("/api/diagnostics/config")

        assert response.status_code == 200
        assert response.json() == {"valid": True, "errors": []}

    async def test_invalid_configuration(self, make_weather_client):
        config = ClientSettings(mcp_auth_required=True, mcp_client_id="", mcp_scope="x")
        async with make_api_client(make_weather_client(), config=config) as client:
            response = await client.get("/api/diagnostics/config")

        assert response.status_code == 400
        errors = response.json()["errors"]
        assert "WEATHER_MCP_CLIENT_ID is required when authentication is enabled" in errors
        assert not any("SCOPE" in error for error in errors)

    async def test_health(self, api_client):
        response = await api_client.get("/health")

        assert response.json()["status"] == "healthy"

    async def test_correlation_id_is_echoed(self, api_client):
        response = await api_client.get("/health", headers={"x-correlation-id": "weather-1"})

        assert response.headers["x-correlation-id"] == "weather-1"
