"""
Shared plumbing for provider fetchers: HTTP with retries, rate limiting and
result truncation.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from typing import Optional, List, Any
import logging

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from listseerr.core.config import settings
from listseerr.core.errors import ProviderApiError, RateLimitError
from listseerr.models.media_item import MediaItem

logger = logging.getLogger(__name__)


class RateLimiter:
    """Minimum delay between consecutive requests to one provider, shared process-wide."""

    def __init__(self, min_interval: float):
        self.min_interval = min_interval
        self._last_request = 0.0
        self._lock: Optional[asyncio.Lock] = None
        self._loop = None

    def _get_lock(self) -> asyncio.Lock:
        # Celery tasks run each job in a fresh event loop
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock

    async def wait(self):
        async with self._get_lock():
            elapsed = time.monotonic() - self._last_request
            if elapsed < self.min_interval:
                delay = self.min_interval - elapsed
                logger.debug(f"Rate limiting: waiting {delay:.3f}s")
                await asyncio.sleep(delay)
            self._last_request = time.monotonic()


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return max(0, int(float(value)))
    except ValueError:
        return None


def truncate_items(items: List[MediaItem], max_items: Optional[int]) -> List[MediaItem]:
    if max_items and max_items > 0:
        return items[:max_items]
    return items


class MediaFetcher(ABC):
    """Fetches a provider list and normalizes it to MediaItems."""

    provider: str = "provider"
    rate_limiter: Optional[RateLimiter] = None

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.timeout = timeout or settings.PROVIDER_TIMEOUT
        self.transport = transport
        if rate_limiter is not None:
            self.rate_limiter = rate_limiter

    async def fetch_items(self, locator: str, max_items: Optional[int] = None) -> List[MediaItem]:
        items = await self._fetch(locator, max_items)
        truncated = truncate_items(items, max_items)
        logger.info(f"{self.provider}: fetched {len(items)} items, returning {len(truncated)}")
        return truncated

    @abstractmethod
    async def _fetch(self, locator: str, max_items: Optional[int]) -> List[MediaItem]:
        ...

    def _redact(self, url: str) -> str:
        return url

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self.rate_limiter is not None:
            await self.rate_limiter.wait()
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, transport=self.transport) as client:
            return await client.request(method, url, **kwargs)

    async def _request_json(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._send(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"{self.provider} connection error for {self._redact(url)}: {e}")
            raise ProviderApiError(self.provider, f"connection failed: {e}") from e

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(f"{self.provider} rate limit hit, retry after {retry_after}")
            raise RateLimitError(self.provider, retry_after)

        if response.is_error:
            logger.error(
                f"{self.provider} HTTP error {response.status_code} for {self._redact(url)}: {response.text[:200]}"
            )
            raise ProviderApiError(
                self.provider,
                f"HTTP {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderApiError(self.provider, "invalid JSON in response") from e
