"""Shared plumbing for the provider HTTP clients."""
import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import structlog

from tokenradar.models import MarketPair

logger = structlog.get_logger()

# "Wed Oct 10 20:19:24 +0000 2018"
TWITTER_TIME_FORMAT = "%a %b %d %H:%M:%S %z %Y"


class FetchParams:
    """Parameters of one logical fetch."""

    def __init__(self, limit: int = 50, min_liquidity: float = 0.0, max_age_minutes: Optional[float] = None):
        self.limit = limit
        self.min_liquidity = min_liquidity
        self.max_age_minutes = max_age_minutes


class BaseClient:
    """httpx-backed client, used as an async context manager or with an injected client."""

    name = "base"

    def __init__(self, timeout: float = 15.0, http_client: Optional[httpx.AsyncClient] = None,
                 request_delay: float = 0.0):
        self.timeout = timeout
        self.request_delay = request_delay
        self._client: Optional[httpx.AsyncClient] = http_client
        self._owns_client = http_client is None

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    async def pause(self):
        """Fixed spacing between sequential sub-requests to one provider."""
        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)

    async def _get_json(self, url: str, **kwargs) -> Optional[Any]:
        try:
            response = await self.client.get(url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.warning("http_request_failed", source=self.name, url=url, error=str(e))
        except ValueError as e:
            logger.warning("invalid_json_response", source=self.name, url=url, error=str(e))
        return None

    async def _post_json(self, url: str, **kwargs) -> Optional[Any]:
        try:
            response = await self.client.post(url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.warning("http_request_failed", source=self.name, url=url, error=str(e))
        except ValueError as e:
            logger.warning("invalid_json_response", source=self.name, url=url, error=str(e))
        return None


class SourceAdapter(BaseClient):
    """Market-data source. A capability the provider lacks returns an empty list."""

    async def list_new(self, params: FetchParams) -> list[MarketPair]:
        return []

    async def list_trending(self, params: FetchParams) -> list[MarketPair]:
        return []

    async def lookup(self, address: str) -> list[MarketPair]:
        return []


def to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Aware UTC datetime from epoch seconds/milliseconds, an ISO string or Twitter's created_at format."""
    if value is None or value == "":
        return None
    try:
        if isinstance(value, (int, float)):
            seconds = value / 1000 if value > 10_000_000_000 else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None

    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.strptime(text, TWITTER_TIME_FORMAT)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
