"""
AniList user anime lists, translated to TMDB ids through the anime id cache.
"""
import re
from dataclasses import dataclass
from typing import Optional, List, Dict, Any
from urllib.parse import urlparse
import logging

import httpx

from listseerr.core.errors import InvalidListUrlError, ProviderApiError
from listseerr.models.media_item import MediaItem, MediaType
from listseerr.services.anime_ids import AnimeIdCache
from listseerr.services.fetchers.base import MediaFetcher, RateLimiter

logger = logging.getLogger(__name__)

ANILIST_GRAPHQL_URL = "https://graphql.anilist.co"
LIST_STATUSES = ("CURRENT", "PLANNING", "COMPLETED", "DROPPED", "PAUSED", "REPEATING")

LOCATOR_PATTERN = re.compile(r"^anilist:([^:]+):(" + "|".join(LIST_STATUSES) + r")$", re.IGNORECASE)

MOVIE_FORMATS = {"MOVIE"}
SKIP_FORMATS = {"MUSIC"}

# ~85 requests per minute, shared by every AniList call in the process
ANILIST_RATE_LIMITER = RateLimiter(0.7)

MEDIA_LIST_QUERY = """
query ($userName: String, $status: MediaListStatus) {
  MediaListCollection(userName: $userName, type: ANIME, status: $status) {
    lists {
      name
      status
      entries {
        mediaId
        status
        media {
          id
          idMal
          title {
            romaji
            english
          }
          format
          episodes
          seasonYear
        }
      }
    }
  }
}
"""


@dataclass
class AniListLocator:
    username: str
    status: str


def parse_anilist_locator(locator: str) -> AniListLocator:
    """
    Accept ``anilist:{username}:{STATUS}`` or a profile URL such as
    ``https://anilist.co/user/{username}/animelist/Planning``.
    """
    locator = locator.strip()
    match = LOCATOR_PATTERN.match(locator)
    if match:
        return AniListLocator(username=match.group(1), status=match.group(2).upper())

    parsed = urlparse(locator)
    if parsed.netloc.lower().endswith("anilist.co"):
        parts = [p for p in parsed.path.split("/") if p]
        if len(parts) >= 4 and parts[0] == "user" and parts[2] == "animelist":
            status = parts[3].upper().replace(" ", "")
            if status == "WATCHING":
                status = "CURRENT"
            if status in LIST_STATUSES:
                return AniListLocator(username=parts[1], status=status)

    raise InvalidListUrlError(locator, "expected anilist:{username}:{status}")


def media_type_for_format(media_format: Optional[str]) -> Optional[MediaType]:
    """MUSIC is not requestable; unknown formats are treated as series."""
    if not media_format:
        return MediaType.TV
    normalized = media_format.upper()
    if normalized in SKIP_FORMATS:
        return None
    if normalized in MOVIE_FORMATS:
        return MediaType.MOVIE
    return MediaType.TV


class AniListFetcher(MediaFetcher):
    provider = "anilist"
    rate_limiter = ANILIST_RATE_LIMITER

    def __init__(self, id_cache: AnimeIdCache, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 rate_limiter: Optional[RateLimiter] = None):
        super().__init__(timeout=timeout, transport=transport, rate_limiter=rate_limiter)
        self.id_cache = id_cache

    async def _fetch_entries(self, locator: AniListLocator) -> List[Dict[str, Any]]:
        payload = {
            "query": MEDIA_LIST_QUERY,
            "variables": {"userName": locator.username, "status": locator.status},
        }
        data = await self._request_json(
            "POST",
            ANILIST_GRAPHQL_URL,
            json=payload,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

        errors = data.get("errors") if isinstance(data, dict) else None
        if errors:
            messages = ", ".join(e.get("message", "unknown error") for e in errors)
            raise ProviderApiError(self.provider, f"GraphQL errors: {messages}")

        collection = ((data or {}).get("data") or {}).get("MediaListCollection")
        if not collection:
            logger.info(f"AniList list {locator.username}/{locator.status} is empty")
            return []

        entries = []
        for media_list in collection.get("lists") or []:
            entries.extend(media_list.get("entries") or [])
        return entries

    async def _fetch(self, locator: str, max_items: Optional[int]) -> List[MediaItem]:
        parsed = parse_anilist_locator(locator)
        await self.id_cache.initialize()

        entries = await self._fetch_entries(parsed)
        items = []
        skipped_format = 0
        skipped_no_tmdb = 0

        for entry in entries:
            media = entry.get("media") or {}
            if media_type_for_format(media.get("format")) is None:
                skipped_format += 1
                continue

            anilist_id = media.get("id") or entry.get("mediaId")
            mapping = self.id_cache.tmdb_from_anilist(anilist_id) if anilist_id else None
            if mapping is None and media.get("idMal"):
                mapping = self.id_cache.tmdb_from_mal(media["idMal"])
            if mapping is None:
                skipped_no_tmdb += 1
                continue

            title = media.get("title") or {}
            items.append(MediaItem(
                tmdb_id=mapping.tmdb_id,
                media_type=mapping.media_type,
                title=title.get("english") or title.get("romaji") or "",
                year=media.get("seasonYear"),
            ))
            if max_items and len(items) >= max_items:
                break

        if skipped_format or skipped_no_tmdb:
            logger.info(
                f"AniList {parsed.username}/{parsed.status}: skipped {skipped_format} by format, "
                f"{skipped_no_tmdb} without TMDB mapping"
            )
        return items
