from typing import Optional, List
import logging

import httpx

from listseerr.core.config import settings
from listseerr.models.media_item import MediaItem, MediaType
from listseerr.services.fetchers.base import MediaFetcher, RateLimiter

logger = logging.getLogger(__name__)

STEVENLU_URL = "https://s3.amazonaws.com/popular-movies/movies.json"
CACHE_KEY = "stevenlu"


class StevenLuFetcher(MediaFetcher):
    """
    StevenLu popular movies. A single public JSON file regenerated daily,
    so the raw payload is kept in provider_cache and reused while fresh.
    """

    provider = "stevenlu"

    def __init__(self, cache=None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 rate_limiter: Optional[RateLimiter] = None):
        super().__init__(timeout=timeout, transport=transport, rate_limiter=rate_limiter)
        self.cache = cache
        self.cache_ttl = settings.PROVIDER_CACHE_TTL_HOURS * 3600

    async def _load(self) -> list:
        if self.cache is not None:
            cached = self.cache.get_fresh(CACHE_KEY, self.cache_ttl)
            if cached:
                logger.info(f"Using cached StevenLu data ({len(cached)} entries)")
                return cached

        data = await self._request_json("GET", STEVENLU_URL)
        data = data if isinstance(data, list) else []
        if self.cache is not None and data:
            self.cache.put(CACHE_KEY, data)
        return data

    async def _fetch(self, locator: str, max_items: Optional[int]) -> List[MediaItem]:
        # The locator is ignored: there is only one StevenLu list
        raw = await self._load()
        items = []
        for entry in raw:
            tmdb_id = entry.get("tmdb_id")
            if not tmdb_id:
                continue
            items.append(MediaItem(tmdb_id=int(tmdb_id), media_type=MediaType.MOVIE, title=entry.get("title") or ""))
        return items
