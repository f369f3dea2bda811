from dataclasses import dataclass
from typing import Optional, List, Dict, Any
from urllib.parse import urlparse, urlencode
import logging

import httpx

from listseerr.core.errors import InvalidListUrlError
from listseerr.models.media_item import MediaItem, MediaType
from listseerr.services.fetchers.base import MediaFetcher, RateLimiter

logger = logging.getLogger(__name__)

MDBLIST_API_URL = "https://api.mdblist.com"
DEFAULT_LIMIT = 100


@dataclass
class MdbListUrl:
    username: str
    list_slug: str


def parse_mdblist_url(url: str) -> MdbListUrl:
    """https://mdblist.com/lists/{username}/{list-slug}"""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc.lower().endswith("mdblist.com"):
        raise InvalidListUrlError(url, "expected an mdblist.com URL")
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 3 or parts[0] != "lists":
        raise InvalidListUrlError(url, "expected https://mdblist.com/lists/{username}/{list}")
    return MdbListUrl(username=parts[1], list_slug=parts[2])


def build_mdblist_api_url(parts: MdbListUrl, limit: int, api_key: str) -> str:
    params = {"limit": limit, "apikey": api_key, "unified": "true"}
    return f"{MDBLIST_API_URL}/lists/{parts.username}/{parts.list_slug}/items/?{urlencode(params)}"


def to_media_item(entry: Dict[str, Any]) -> Optional[MediaItem]:
    tmdb_id = entry.get("tmdb_id") or entry.get("id")
    if not tmdb_id:
        return None
    try:
        tmdb_id = int(tmdb_id)
    except (TypeError, ValueError):
        return None
    media_type = MediaType.TV if entry.get("mediatype") in ("show", "tv") else MediaType.MOVIE
    return MediaItem(
        tmdb_id=tmdb_id,
        media_type=media_type,
        title=entry.get("title") or "",
        year=entry.get("release_year"),
    )


class MdbListFetcher(MediaFetcher):
    provider = "mdblist"

    def __init__(self, api_key: str, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 rate_limiter: Optional[RateLimiter] = None):
        super().__init__(timeout=timeout, transport=transport, rate_limiter=rate_limiter)
        self.api_key = api_key

    def _redact(self, url: str) -> str:
        return url.replace(self.api_key, "REDACTED") if self.api_key else url

    async def _fetch(self, locator: str, max_items: Optional[int]) -> List[MediaItem]:
        parts = parse_mdblist_url(locator)
        api_url = build_mdblist_api_url(parts, max_items or DEFAULT_LIMIT, self.api_key)
        data = await self._request_json("GET", api_url)

        # Unified responses are a flat array; older ones split movies and shows
        if isinstance(data, dict):
            raw = list(data.get("movies") or []) + list(data.get("shows") or [])
        else:
            raw = list(data or [])

        items = [item for item in (to_media_item(entry) for entry in raw) if item]
        if len(raw) != len(items):
            logger.warning(f"Skipped {len(raw) - len(items)} MDBList items without TMDB ids")
        return items
