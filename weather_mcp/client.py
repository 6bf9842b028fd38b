"""
Async HTTP client for the weather tool server.

Calls ``POST {base_url}/tools/{name}`` with the tool parameters as a JSON
object and maps the results into the pydantic models of models.py.

When authentication is required, an OAuth2 client-credentials token is
obtained from the configured token endpoint and cached until shortly before
it expires. The current correlation ID (if any) is forwarded on every call.

Errors are not swallowed here: transport failures raise httpx.TransportError,
non-2xx answers raise httpx.HTTPStatusError. Retrying is the job of
resilience.RetryingMcpClient, degrading to partial results the job of
WeatherService.
"""

import asyncio
import logging
import time
from typing import Any

import httpx

from weather_mcp.config import ClientSettings, client_settings
from weather_mcp.correlation import CORRELATION_HEADER, get_correlation_id
from weather_mcp.models import CurrentWeatherInfo, WeatherAlertInfo, WeatherForecastInfo

logger = logging.getLogger("weather-mcp.client")

# Tokens are refreshed this many seconds before they actually expire.
TOKEN_REFRESH_MARGIN_SECONDS = 60


class ClientConfigurationError(Exception):
    """Authentication is required but a client-credentials setting is missing."""


class McpClient:
    """Client for the tool server's REST surface."""

    def __init__(
        self,
        config: ClientSettings = client_settings,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._config = config
        self._http = http_client or httpx.AsyncClient(timeout=config.mcp_timeout_seconds)
        self._owns_http_client = http_client is None
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "McpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def _token_endpoint(self) -> str:
        endpoint = self._config.mcp_token_endpoint
        if self._config.mcp_tenant_id and "{tenant-id}" in endpoint:
            endpoint = endpoint.replace("{tenant-id}", self._config.mcp_tenant_id)
        return endpoint

    def _check_credentials(self) -> None:
        required = {
            "ClientId": self._config.mcp_client_id,
            "ClientSecret": self._config.mcp_client_secret,
            "TokenEndpoint": self._config.mcp_token_endpoint,
            "Scope": self._config.mcp_scope,
        }
        for name, value in required.items():
            if not value:
                raise ClientConfigurationError(
                    f"{name} is required for authentication but not configured"
                )

    async def get_access_token(self) -> str | None:
        """Return a cached or freshly requested access token; None when auth is off."""
        if not self._config.mcp_auth_required:
            return None

        async with self._token_lock:
            if self._access_token and time.monotonic() < self._token_expires_at:
                return self._access_token

            self._check_credentials()
            endpoint = self._token_endpoint()
            logger.debug(
                "Requesting OAuth token",
                extra={
                    "log_data": {
                        "token_endpoint": endpoint,
                        "client_id": self._config.mcp_client_id,
                        "scope": self._config.mcp_scope,
                    }
                },
            )

            response = await self._http.post(
                endpoint,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._config.mcp_client_id,
                    "client_secret": self._config.mcp_client_secret,
                    "scope": self._config.mcp_scope,
                },
            )
            if response.is_error:
                logger.error(
                    "OAuth token request failed",
                    extra={
                        "log_data": {
                            "token_endpoint": endpoint,
                            "status_code": response.status_code,
                            "response": response.text[:500],
                        }
                    },
                )
                response.raise_for_status()

            payload = response.json()
            expires_in = int(payload.get("expires_in", 3600))
            self._access_token = payload["access_token"]
            self._token_expires_at = (
                time.monotonic() + expires_in - TOKEN_REFRESH_MARGIN_SECONDS
            )
            logger.info(
                "Obtained access token",
                extra={"log_data": {"expires_in": expires_in}},
            )
            return self._access_token

    async def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = await self.get_access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        correlation_id = get_correlation_id()
        if correlation_id:
            headers[CORRELATION_HEADER] = correlation_id
        return headers

    def _url(self, path: str) -> str:
        return f"{self._config.mcp_base_url.rstrip('/')}/{path.lstrip('/')}"

    # ------------------------------------------------------------------
    # Raw tool access
    # ------------------------------------------------------------------

    async def list_tools(self) -> list[dict[str, Any]]:
        response = await self._http.get(self._url("tools"), headers=await self._headers())
        response.raise_for_status()
        return response.json()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        response = await self._http.post(
            self._url(f"tools/{name}"),
            json=arguments,
            headers=await self._headers(),
        )
        if response.is_error:
            logger.warning(
                "Tool call failed",
                extra={
                    "log_data": {
                        "tool": name,
                        "status_code": response.status_code,
                        "response": response.text[:500],
                    }
                },
            )
        response.raise_for_status()
        return response.json()

    # ------------------------------------------------------------------
    # Typed weather calls
    # ------------------------------------------------------------------

    async def get_current_weather(self, state: str, city: str | None = None) -> CurrentWeatherInfo:
        data = await self.call_tool("getcurrentweather", {"state": state, "city": city})
        return CurrentWeatherInfo.model_validate(data)

    async def get_weather_forecast(self, state: str, days: int = 5) -> list[WeatherForecastInfo]:
        data = await self.call_tool("getweatherforecast", {"state": state, "days": days})
        items = data.get("forecast") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []
        return [WeatherForecastInfo.model_validate(item) for item in items]

    async def get_weather_alerts(self, state: str) -> list[WeatherAlertInfo]:
        data = await self.call_tool("getweatheralerts", {"state": state})
        items = data.get("alerts") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []
        return [WeatherAlertInfo.model_validate(item) for item in items]
