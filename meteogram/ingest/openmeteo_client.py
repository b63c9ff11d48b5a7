"""Open-Meteo forecast API client with retry and rate limit handling."""

import logging
import time

import httpx

from meteogram.ingest.series_parser import ParseError

logger = logging.getLogger(__name__)

OPENMETEO_BASE_URL = "https://api.open-meteo.com/v1/forecast"
HOURLY_VARIABLES = "temperature_2m,precipitation,cloud_cover"
DEFAULT_USER_AGENT = "meteogram/0.1.0"


class OpenMeteoClient:
    def __init__(
        self,
        base_url: str = OPENMETEO_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_base_delay: float = 2.0,
        past_hours: int = 6,
        forecast_days: int = 2,
    ):
        self.base_url = base_url
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.past_hours = past_hours
        self.forecast_days = forecast_days

    def build_params(self, latitude: float, longitude: float) -> dict[str, str]:
        return {
            "latitude": str(latitude),
            "longitude": str(longitude),
            "hourly": HOURLY_VARIABLES,
            "timezone": "UTC",
            "past_hours": str(self.past_hours),
            "forecast_days": str(self.forecast_days),
        }

    def get_forecast(self, latitude: float, longitude: float) -> dict:
        """Fetch the hourly forecast for a coordinate.

        Retries on 503/429 with exponential backoff. A 200 response whose body
        is not JSON (captive portal, proxy error page) raises ParseError.
        """
        params = self.build_params(latitude, longitude)
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                resp = httpx.get(
                    self.base_url, params=params, headers=headers, timeout=self.timeout
                )
                if resp.status_code in (503, 429) and attempt < self.max_retries:
                    delay = self.retry_base_delay * (2**attempt)
                    logger.warning(
                        "Open-Meteo returned %d, retrying in %.1fs (attempt %d/%d)",
                        resp.status_code, delay, attempt + 1, self.max_retries,
                    )
                    time.sleep(delay)
                    continue
                resp.raise_for_status()
                try:
                    return resp.json()
                except ValueError as e:
                    content_type = resp.headers.get("content-type", "unknown")
                    raise ParseError(f"Response is not JSON ({content_type}): {e}") from e
            except httpx.RequestError as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = self.retry_base_delay * (2**attempt)
                    logger.warning(
                        "Open-Meteo request error, retrying in %.1fs: %s", delay, e
                    )
                    time.sleep(delay)
                    continue
                raise

        assert last_error is not None
        raise last_error
