from typing import Optional
import logging

from listseerr.models.media_list import ProviderType
from listseerr.services.anime_ids import AnimeIdCache, anime_id_cache
from listseerr.services.fetchers.anilist import AniListFetcher
from listseerr.services.fetchers.base import MediaFetcher
from listseerr.services.fetchers.mdblist import MdbListFetcher
from listseerr.services.fetchers.stevenlu import StevenLuFetcher
from listseerr.services.fetchers.trakt import TraktChartFetcher, TraktListFetcher

logger = logging.getLogger(__name__)


class MediaFetcherFactory:
    """
    Builds the fetcher for a list's provider.
    Returns None when a credentialed provider has no configuration for the user.
    """

    def __init__(self, provider_configs, provider_cache=None, id_cache: Optional[AnimeIdCache] = None, **fetcher_kwargs):
        self.provider_configs = provider_configs
        self.provider_cache = provider_cache
        self.id_cache = id_cache or anime_id_cache
        # Passed to every fetcher (timeout, transport); used by tests
        self.fetcher_kwargs = fetcher_kwargs

    def get_fetcher(self, provider: ProviderType, user_id: int) -> Optional[MediaFetcher]:
        provider = ProviderType(provider)

        if provider == ProviderType.STEVENLU:
            return StevenLuFetcher(cache=self.provider_cache, **self.fetcher_kwargs)

        if provider == ProviderType.ANILIST:
            return AniListFetcher(self.id_cache, **self.fetcher_kwargs)

        if provider in (ProviderType.TRAKT, ProviderType.TRAKT_CHART):
            # Charts reuse the Trakt client id
            config = self.provider_configs.find_by_user_and_provider(user_id, ProviderType.TRAKT)
            if not config or not config.client_id:
                logger.debug(f"Trakt not configured for user {user_id}")
                return None
            if provider == ProviderType.TRAKT:
                return TraktListFetcher(config.client_id, **self.fetcher_kwargs)
            return TraktChartFetcher(config.client_id, **self.fetcher_kwargs)

        if provider == ProviderType.MDBLIST:
            config = self.provider_configs.find_by_user_and_provider(user_id, ProviderType.MDBLIST)
            if not config or not config.api_key:
                logger.debug(f"MDBList not configured for user {user_id}")
                return None
            return MdbListFetcher(config.api_key, **self.fetcher_kwargs)

        return None
