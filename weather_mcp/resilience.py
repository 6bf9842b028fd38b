"""
Retry wrapper for outbound calls to the tool server.

Only transient failures are retried: transport errors (connection refused,
timeouts, ...) and 5xx / 429 answers. Client errors such as 400 or 403 will
not get better by asking again, so they are raised immediately, as is
anything that is not an HTTP failure at all.

Delay before retry n (1-based):

    fixed:        delay_ms
    exponential:  delay_ms * 2**(n-1) + jitter(0..10%), capped at max_delay_ms
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx

from weather_mcp.config import ClientSettings
from weather_mcp.models import CurrentWeatherInfo, WeatherAlertInfo, WeatherForecastInfo

logger = logging.getLogger("weather-mcp.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    delay_ms: int = 1000
    exponential_backoff: bool = True
    max_delay_ms: int = 30_000

    @classmethod
    def from_settings(cls, config: ClientSettings) -> "RetryPolicy":
        return cls(
            max_retries=config.retry_max_retries,
            delay_ms=config.retry_delay_ms,
            exponential_backoff=config.retry_exponential_backoff,
        )

    def delay_seconds(self, attempt: int, rng: random.Random | None = None) -> float:
        if not self.exponential_backoff:
            return self.delay_ms / 1000

        exponential = self.delay_ms * 2 ** (attempt - 1)
        jitter = (rng or random).uniform(0, exponential * 0.1)
        return min(exponential + jitter, self.max_delay_ms) / 1000


def is_transient(error: BaseException) -> bool:
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status >= 500 or status == 429
    return False


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    operation_name: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run `operation`, retrying transient failures according to `policy`."""
    attempt = 0
    while True:
        try:
            logger.debug(
                "Executing operation",
                extra={"log_data": {"operation": operation_name, "attempt": attempt + 1}},
            )
            return await operation()
        except Exception as e:
            if not is_transient(e):
                logger.error(
                    "Non-retryable error during %s: %s",
                    operation_name,
                    e,
                    extra={"log_data": {"operation": operation_name, "attempt": attempt + 1}},
                )
                raise

            attempt += 1
            if attempt > policy.max_retries:
                logger.error(
                    "All retry attempts failed for %s",
                    operation_name,
                    extra={"log_data": {"operation": operation_name, "attempts": attempt}},
                )
                raise

            delay = policy.delay_seconds(attempt)
            logger.warning(
                "Transient error during %s, retrying: %s",
                operation_name,
                e,
                extra={
                    "log_data": {
                        "operation": operation_name,
                        "attempt": attempt,
                        "max_attempts": policy.max_retries + 1,
                        "delay_ms": round(delay * 1000),
                    }
                },
            )
            await sleep(delay)


class RetryingMcpClient:
    """Same weather calls as McpClient, each wrapped in retry_async."""

    def __init__(self, inner, policy: RetryPolicy, sleep=asyncio.sleep):
        self._inner = inner
        self._policy = policy
        self._sleep = sleep

    async def get_current_weather(self, state: str, city: str | None = None) -> CurrentWeatherInfo:
        return await retry_async(
            lambda: self._inner.get_current_weather(state, city),
            self._policy,
            f"get_current_weather(state={state}, city={city})",
            self._sleep,
        )

    async def get_weather_forecast(self, state: str, days: int = 5) -> list[WeatherForecastInfo]:
        return await retry_async(
            lambda: self._inner.get_weather_forecast(state, days),
            self._policy,
            f"get_weather_forecast(state={state}, days={days})",
            self._sleep,
        )

    async def get_weather_alerts(self, state: str) -> list[WeatherAlertInfo]:
        return await retry_async(
            lambda: self._inner.get_weather_alerts(state),
            self._policy,
            f"get_weather_alerts(state={state})",
            self._sleep,
        )
