import json
from functools import partial

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from listseerr.db.base import Base
from listseerr.models.jellyseerr_config import JellyseerrConfig
from listseerr.models.media_list import MediaList, ProviderType
from listseerr.models.provider_config import ProviderConfig
from listseerr.services.fetchers.base import truncate_items
from listseerr.services.jellyseerr import get_jellyseerr_client_from_config

USER_ID = 1
JELLYSEERR_URL = "http://jellyseerr.local"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_list(db, name="Watchlist", provider=ProviderType.TRAKT, url=None, enabled=True, max_items=50, user_id=USER_ID):
    media_list = MediaList(
        user_id=user_id,
        name=name,
        url=url or "https://trakt.tv/users/alice/lists/watchlist",
        provider=provider,
        enabled=enabled,
        max_items=max_items,
    )
    db.add(media_list)
    db.commit()
    db.refresh(media_list)
    return media_list


def configure_jellyseerr(db, user_id=USER_ID):
    config = JellyseerrConfig(user_id=user_id, url=JELLYSEERR_URL, api_key="js-key", jellyseerr_user_id=7)
    db.add(config)
    db.commit()
    return config


def configure_trakt(db, user_id=USER_ID):
    config = ProviderConfig(user_id=user_id, provider=ProviderType.TRAKT, client_id="trakt-client")
    db.add(config)
    db.commit()
    return config


class FakeJellyseerr:
    """
    In-memory Jellyseerr behind an httpx.MockTransport.

    media_info maps (kind, tmdb_id) to a mediaInfo dict; lookup_errors and
    request_errors hold tmdb ids whose calls fail.
    """

    def __init__(self, media_info=None, lookup_errors=(), request_errors=(), unreachable=False, pending=0):
        self.media_info = media_info or {}
        self.lookup_errors = set(lookup_errors)
        self.request_errors = set(request_errors)
        self.unreachable = unreachable
        self.pending = pending
        self.requested = []
        self.lookups = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)

        parts = [p for p in request.url.path.split("/") if p]
        if request.method == "GET" and len(parts) == 4 and parts[2] in ("movie", "tv"):
            kind, tmdb_id = parts[2], int(parts[3])
            self.lookups.append((kind, tmdb_id))
            if tmdb_id in self.lookup_errors:
                return httpx.Response(500, text="lookup exploded")
            info = self.media_info.get((kind, tmdb_id))
            if info is None:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, json={"id": tmdb_id, "mediaInfo": info})

        if request.method == "POST" and request.url.path == "/api/v1/request":
            payload = json.loads(request.content)
            tmdb_id = payload["mediaId"]
            if tmdb_id in self.request_errors:
                return httpx.Response(500, text="request exploded")
            self.requested.append(payload)
            return httpx.Response(201, json={"id": len(self.requested), "status": 1, "media": {"tmdbId": tmdb_id}})

        if request.method == "GET" and request.url.path == "/api/v1/request":
            return httpx.Response(200, json={"pageInfo": {"results": self.pending}, "results": []})

        if request.method == "GET" and request.url.path == "/api/v1/status":
            return httpx.Response(200, json={"version": "2.1.0"})

        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client_factory(self):
        return partial(get_jellyseerr_client_from_config, transport=self.transport)


class StaticFetcher:
    def __init__(self, items=None, error=None):
        self.items = items or []
        self.error = error
        self.calls = []

    async def fetch_items(self, locator, max_items=None):
        self.calls.append((locator, max_items))
        if self.error:
            raise self.error
        return truncate_items(self.items, max_items)


class StaticFetcherFactory:
    def __init__(self, fetchers=None, default=None):
        self.fetchers = fetchers or {}
        self.default = default

    def get_fetcher(self, provider, user_id):
        return self.fetchers.get(ProviderType(provider), self.default)
