"""
AniList / MyAnimeList to TMDB id translation.

Backed by the community anime-lists dataset. The mapping is held in memory,
persisted to provider_cache between restarts and reloaded once it is older
than the configured TTL.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Optional, Dict, List, Any, Callable
import logging

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from listseerr.core.config import settings
from listseerr.core.errors import AnimeIdCacheError
from listseerr.db.repositories import ProviderCacheRepository
from listseerr.db.session import SessionLocal
from listseerr.models.media_item import MediaType

logger = logging.getLogger(__name__)

ANIME_LIST_URL = "https://raw.githubusercontent.com/Fribb/anime-lists/master/anime-list-full.json"
CACHE_KEY = "anime-ids"
MAX_INIT_ATTEMPTS = 3


@dataclass(frozen=True)
class AnimeIdEntry:
    tmdb_id: int
    media_type: MediaType


def _to_int(value) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


class AnimeIdCache:
    def __init__(
        self,
        session_factory: Optional[Callable] = None,
        ttl_seconds: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_factory = session_factory
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.PROVIDER_CACHE_TTL_HOURS * 3600
        self.timeout = timeout or settings.ANIME_IDS_TIMEOUT
        self.transport = transport
        self._by_anilist: Dict[int, AnimeIdEntry] = {}
        self._by_mal: Dict[int, AnimeIdEntry] = {}
        self._loaded_at: Optional[float] = None
        self._init_task: Optional[asyncio.Future] = None

    # State

    def is_loaded(self) -> bool:
        return self._loaded_at is not None

    def is_stale(self) -> bool:
        if self._loaded_at is None:
            return True
        return time.monotonic() - self._loaded_at >= self.ttl_seconds

    @property
    def size(self) -> int:
        return len(self._by_anilist)

    # Loading

    async def initialize(self):
        """Load the mapping if missing or stale. Concurrent callers share one load."""
        if self.is_loaded() and not self.is_stale():
            return
        await self._run_load(force=False)

    async def refresh(self):
        """Download the dataset again regardless of age."""
        await self._run_load(force=True)

    async def _run_load(self, force: bool):
        if self._init_task is None or self._init_task.done():
            self._init_task = asyncio.ensure_future(self._load(force))
        task = self._init_task
        try:
            await asyncio.shield(task)
        finally:
            if task.done() and self._init_task is task:
                self._init_task = None

    async def _load(self, force: bool):
        if not force:
            cached, age = self._read_persisted()
            if cached:
                self._build(cached, age)
                logger.info(f"Anime id mapping loaded from cache ({self.size} entries)")
                return

        try:
            data = await self._download()
        except (httpx.HTTPError, AnimeIdCacheError) as e:
            if self.is_loaded():
                logger.warning(f"Anime id mapping refresh failed, keeping previous data: {e}")
                return
            logger.error(f"Failed to load anime id mapping after {MAX_INIT_ATTEMPTS} attempts: {e}")
            raise AnimeIdCacheError(f"Anime id mapping unavailable: {e}") from e

        self._build(data)
        self._persist(data)
        logger.info(f"Anime id mapping downloaded ({self.size} entries)")

    @retry(
        stop=stop_after_attempt(MAX_INIT_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.HTTPError, AnimeIdCacheError)),
        reraise=True,
    )
    async def _download(self) -> List[Dict[str, Any]]:
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, transport=self.transport) as client:
            response = await client.get(ANIME_LIST_URL)
            response.raise_for_status()
            data = response.json()
        if not isinstance(data, list):
            raise AnimeIdCacheError("Unexpected anime id dataset format")
        return data

    def _build(self, data: List[Dict[str, Any]], age: float = 0.0):
        by_anilist: Dict[int, AnimeIdEntry] = {}
        by_mal: Dict[int, AnimeIdEntry] = {}
        for row in data:
            tmdb_id = _to_int(row.get("themoviedb_id"))
            if not tmdb_id:
                continue
            media_type = MediaType.MOVIE if str(row.get("type", "")).upper() == "MOVIE" else MediaType.TV
            entry = AnimeIdEntry(tmdb_id=tmdb_id, media_type=media_type)
            anilist_id = _to_int(row.get("anilist_id"))
            mal_id = _to_int(row.get("mal_id"))
            if anilist_id:
                by_anilist[anilist_id] = entry
            if mal_id:
                by_mal[mal_id] = entry
        # Swap whole maps so readers never see a half-built table
        self._by_anilist = by_anilist
        self._by_mal = by_mal
        # Staleness counts from when the data was downloaded, not when it was read back
        self._loaded_at = time.monotonic() - age

    # provider_cache persistence

    def _read_persisted(self):
        """(payload, age in seconds) of a fresh persisted mapping, or (None, None)."""
        if self.session_factory is None:
            return None, None
        db = self.session_factory()
        try:
            repo = ProviderCacheRepository(db)
            data = repo.get_fresh(CACHE_KEY, self.ttl_seconds)
            if not data:
                return None, None
            return data, repo.age_seconds(CACHE_KEY) or 0.0
        finally:
            db.close()

    def _persist(self, data):
        if self.session_factory is None:
            return
        db = self.session_factory()
        try:
            ProviderCacheRepository(db).put(CACHE_KEY, data)
        except Exception:
            logger.exception("Could not persist anime id mapping")
            db.rollback()
        finally:
            db.close()

    # Lookups

    def tmdb_from_anilist(self, anilist_id: int) -> Optional[AnimeIdEntry]:
        return self._by_anilist.get(anilist_id)

    def tmdb_from_mal(self, mal_id: int) -> Optional[AnimeIdEntry]:
        return self._by_mal.get(mal_id)


anime_id_cache = AnimeIdCache(session_factory=SessionLocal)
