"""
Shared test fixtures for the weather tool server and weather service test suites.

Key fixtures:
- make_token: A factory function to generate JWT tokens with any claims
- make_auth_header: Same, returning a full "Bearer <token>" header value
- server_client: An httpx.AsyncClient wired to the tool server's ASGI app

Testing approach:
- test_auth.py / test_coercion.py / test_registry.py: unit tests of the
  authentication, coercion and dispatch layers in isolation.
- test_http_api.py: the REST surface end to end, in-memory through
  httpx.ASGITransport (no real server process needed).
- test_mcp_protocol.py: the MCP-side authorization middleware.
- test_client.py / test_weather_service.py / test_weather_api.py: the
  consuming weather service against httpx.MockTransport and fakes.
"""

import datetime
import os

# The mock tools sleep to simulate an upstream API; not in tests.
os.environ.setdefault("MCP_TOOL_LATENCY_SECONDS", "0")

import httpx
import jwt
import pytest

from weather_mcp.config import settings
from weather_mcp.models import CurrentWeatherInfo, WeatherAlertInfo, WeatherForecastInfo

# ---------------------------------------------------------------------------
# Known test secret
# ---------------------------------------------------------------------------
# This must match settings.jwt_secret_key so that tokens generated in tests
# are accepted by validate_token(). The default is "dev-secret-change-me".
TEST_SECRET = settings.jwt_secret_key
TEST_ALGORITHM = settings.jwt_algorithm
REQUIRED_ROLE = settings.required_role


# ---------------------------------------------------------------------------
# Token factory fixture
# ---------------------------------------------------------------------------
@pytest.fixture
def make_token():
    """
    Factory fixture to generate JWT tokens for testing.

    Usage in tests:
        def test_something(make_token):
            token = make_token(sub="weather-api", roles=["GetAlerts"])
            # token is a raw JWT string (not "Bearer ..." prefixed)
    """

    def _make_token(
        sub: str = "test-user",
        roles: list[str] | None = None,
        role_claim: str = "roles",
        scopes: list[str] | None = None,
        secret: str = TEST_SECRET,
        algorithm: str = TEST_ALGORITHM,
        exp_hours: float = 1.0,
        extra_claims: dict | None = None,
        include_exp: bool = True,
        include_sub: bool = True,
    ) -> str:
        """
        Generate a signed JWT token with the given claims.

        Args:
            sub: Subject claim (who the token identifies)
            roles: Role values (None means omit the claim entirely)
            role_claim: Claim type the roles are written under
            scopes: List of scopes (None means omit the claim entirely)
            secret: Signing key
            algorithm: JWT algorithm
            exp_hours: Hours until expiration (negative = already expired)
            extra_claims: Additional claims to include in the payload
            include_exp: Whether to include the exp claim
            include_sub: Whether to include the sub claim
        """
        now = datetime.datetime.now(datetime.timezone.utc)
        payload: dict = {}

        if include_sub:
            payload["sub"] = sub

        if roles is not None:
            payload[role_claim] = roles

        if scopes is not None:
            payload["scope"] = scopes

        if include_exp:
            payload["exp"] = now + datetime.timedelta(hours=exp_hours)

        payload["iat"] = now

        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(payload, secret, algorithm=algorithm)

    return _make_token


# ---------------------------------------------------------------------------
# Authorization header helper fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def make_auth_header(make_token):
    """Convenience fixture that returns a full "Bearer <token>" string."""

    def _make_auth_header(**kwargs) -> str:
        return f"Bearer {make_token(**kwargs)}"

    return _make_auth_header


@pytest.fixture
def authorized_headers(make_auth_header):
    """Headers of a caller that carries the required role."""
    return {"Authorization": make_auth_header(sub="weather-api", roles=[REQUIRED_ROLE])}


# ---------------------------------------------------------------------------
# Tool server client
# ---------------------------------------------------------------------------
@pytest.fixture
async def server_client():
    """
    httpx.AsyncClient bound to the tool server app.

    The REST routes don't need the MCP session manager, so the ASGI lifespan
    is not started here.
    """
    from weather_mcp.server import create_app

    transport = httpx.ASGITransport(app=create_app())
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


# ---------------------------------------------------------------------------
# Weather service fakes
# ---------------------------------------------------------------------------
class FakeWeatherClient:
    """Stands in for McpClient / RetryingMcpClient; records calls, fails on demand."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []

    def _maybe_fail(self, operation):
        if operation in self.fail:
            request = httpx.Request("POST", f"http://tools.test/mcp/tools/{operation}")
            raise httpx.ConnectError("connection refused", request=request)

    async def get_current_weather(self, state, city=None):
        self.calls.append(("current", state, city))
        self._maybe_fail("current")
        return CurrentWeatherInfo(location=f"{city}, {state}")

    async def get_weather_forecast(self, state, days=5):
        self.calls.append(("forecast", state, days))
        self._maybe_fail("forecast")
        return [WeatherForecastInfo(date=f"day-{i}") for i in range(days)]

    async def get_weather_alerts(self, state):
        self.calls.append(("alerts", state))
        self._maybe_fail("alerts")
        return [WeatherAlertInfo(alert_type="Heat Advisory")]


@pytest.fixture
def make_weather_client():
    """
    Factory fixture for FakeWeatherClient.

    Usage in tests:
        client = make_weather_client(fail={"forecast"})
        # get_weather_forecast() raises httpx.ConnectError
    """

    def _make(fail=()):
        return FakeWeatherClient(fail)

    return _make
