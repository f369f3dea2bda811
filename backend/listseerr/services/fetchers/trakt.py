"""
Trakt user lists and Trakt charts (trending, popular, ...).
"""
import re
from dataclasses import dataclass
from typing import Optional, List, Dict, Any
from urllib.parse import urlparse, parse_qs, urlencode
import logging

import httpx

from listseerr.core.errors import InvalidListUrlError
from listseerr.models.media_item import MediaItem, MediaType
from listseerr.services.fetchers.base import MediaFetcher, RateLimiter

logger = logging.getLogger(__name__)

TRAKT_API_URL = "https://api.trakt.tv"
DEFAULT_LIMIT = 100

CHART_TYPES = ("trending", "popular", "favorited", "played", "watched", "collected", "anticipated")
# Charts whose entries wrap the movie/show object with counters
WRAPPED_CHART_TYPES = {"trending", "anticipated", "collected", "played", "watched", "favorited"}

CHART_URL_PATTERN = re.compile(
    r"^https?://(www\.)?(api\.)?trakt\.tv/(movies|shows)/(" + "|".join(CHART_TYPES) + r")/?$",
    re.IGNORECASE,
)

# One limiter for every Trakt call in the process
TRAKT_RATE_LIMITER = RateLimiter(0.2)


@dataclass
class TraktListUrl:
    username: str
    list_slug: str
    sort_field: Optional[str] = None
    sort_order: Optional[str] = None
    media_filter: Optional[str] = None


def parse_trakt_list_url(url: str) -> TraktListUrl:
    """
    Parse a display URL (https://trakt.tv/users/{u}/lists/{slug}?sort=added,asc&display=movie)
    or an API URL (https://api.trakt.tv/users/{u}/lists/{slug}/items/movie/added/asc).
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc.lower().endswith("trakt.tv"):
        raise InvalidListUrlError(url, "expected a trakt.tv URL")

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 4 or parts[0] != "users" or parts[2] != "lists":
        raise InvalidListUrlError(url, "expected https://trakt.tv/users/{username}/lists/{list}")

    result = TraktListUrl(username=parts[1], list_slug=parts[3])

    # API form carries filter and sort in the path
    if len(parts) > 4 and parts[4] == "items":
        if len(parts) > 5 and parts[5] in ("movie", "show"):
            result.media_filter = parts[5]
        if len(parts) > 7:
            result.sort_field, result.sort_order = parts[6], parts[7]
        return result

    query = parse_qs(parsed.query)
    display = (query.get("display") or [None])[0]
    if display in ("movie", "show"):
        result.media_filter = display
    sort = (query.get("sort") or [None])[0]
    if sort:
        sort_parts = sort.split(",")
        if len(sort_parts) == 2:
            result.sort_field, result.sort_order = sort_parts
    return result


def build_trakt_list_api_url(parts: TraktListUrl, page: int = 1, limit: Optional[int] = None) -> str:
    api_url = f"{TRAKT_API_URL}/users/{parts.username}/lists/{parts.list_slug}/items"
    media_filter = parts.media_filter or "all"

    if parts.sort_field and parts.sort_order:
        api_url += f"/{media_filter}/{parts.sort_field}/{parts.sort_order}"
    elif media_filter != "all":
        api_url += f"/{media_filter}"

    params = {"page": page}
    if limit:
        params["limit"] = limit
    return f"{api_url}?{urlencode(params)}"


def parse_trakt_chart_url(url: str):
    """Return (media_type, chart_type) for e.g. https://trakt.tv/movies/trending."""
    match = CHART_URL_PATTERN.match(url.strip())
    if not match:
        raise InvalidListUrlError(url, "expected https://trakt.tv/{movies|shows}/{chart}")
    return match.group(3).lower(), match.group(4).lower()


def build_trakt_chart_api_url(media_type: str, chart_type: str, page: int = 1, limit: Optional[int] = None) -> str:
    params = {"page": page}
    if limit:
        params["limit"] = limit
    return f"{TRAKT_API_URL}/{media_type}/{chart_type}?{urlencode(params)}"


def to_media_item(obj: Optional[Dict[str, Any]], media_type: MediaType) -> Optional[MediaItem]:
    """Map a Trakt movie/show object; None when it carries no TMDB id."""
    if not obj:
        return None
    tmdb_id = (obj.get("ids") or {}).get("tmdb")
    if not tmdb_id:
        logger.debug(f"Skipping {obj.get('title')} ({obj.get('year')}): no TMDB id")
        return None
    return MediaItem(tmdb_id=int(tmdb_id), media_type=media_type, title=obj.get("title") or "", year=obj.get("year"))


class TraktFetcherBase(MediaFetcher):
    provider = "trakt"
    rate_limiter = TRAKT_RATE_LIMITER

    def __init__(self, client_id: str, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 rate_limiter: Optional[RateLimiter] = None):
        super().__init__(timeout=timeout, transport=transport, rate_limiter=rate_limiter)
        self.client_id = client_id
        self.headers = {
            "Content-Type": "application/json",
            "Trakt-Api-Version": "2",
            "Trakt-Api-Key": client_id,
        }

    @staticmethod
    def _log_skipped(raw_count: int, items: List[MediaItem]):
        skipped = raw_count - len(items)
        if skipped > 0:
            logger.warning(f"Skipped {skipped} Trakt items without TMDB ids")


class TraktListFetcher(TraktFetcherBase):
    async def _fetch(self, locator: str, max_items: Optional[int]) -> List[MediaItem]:
        parts = parse_trakt_list_url(locator)
        api_url = build_trakt_list_api_url(parts, page=1, limit=max_items or DEFAULT_LIMIT)
        logger.debug(f"Fetching Trakt list {parts.username}/{parts.list_slug}")

        raw_items = await self._request_json("GET", api_url, headers=self.headers)
        items = []
        for entry in raw_items or []:
            kind = entry.get("type")
            if kind == "movie":
                item = to_media_item(entry.get("movie"), MediaType.MOVIE)
            elif kind == "show":
                item = to_media_item(entry.get("show"), MediaType.TV)
            else:
                logger.debug(f"Skipping Trakt entry of type {kind}")
                item = None
            if item:
                items.append(item)

        self._log_skipped(len(raw_items or []), items)
        return items


class TraktChartFetcher(TraktFetcherBase):
    provider = "traktChart"

    async def _fetch(self, locator: str, max_items: Optional[int]) -> List[MediaItem]:
        chart_media, chart_type = parse_trakt_chart_url(locator)
        api_url = build_trakt_chart_api_url(chart_media, chart_type, page=1, limit=max_items or DEFAULT_LIMIT)
        media_type = MediaType.MOVIE if chart_media == "movies" else MediaType.TV
        wrapper_key = "movie" if media_type == MediaType.MOVIE else "show"
        wrapped = chart_type in WRAPPED_CHART_TYPES

        raw_items = await self._request_json("GET", api_url, headers=self.headers)
        items = []
        for entry in raw_items or []:
            obj = entry.get(wrapper_key) if wrapped else entry
            item = to_media_item(obj, media_type)
            if item:
                items.append(item)

        self._log_skipped(len(raw_items or []), items)
        return items
