import asyncio
import json

import httpx
import pytest

from listseerr.core.errors import JellyseerrError, JellyseerrUnreachableError
from listseerr.models.media_item import MediaItem, MediaType
from listseerr.services.jellyseerr import JellyseerrClient, get_jellyseerr_client_from_config

MOVIE = MediaItem(tmdb_id=550, media_type=MediaType.MOVIE, title="Fight Club", year=1999)
SHOW = MediaItem(tmdb_id=1396, media_type=MediaType.TV, title="Breaking Bad", year=2008)


def _client(handler):
    return JellyseerrClient("http://js.local/", "secret", 7, transport=httpx.MockTransport(handler))


def test_headers_and_status_lookup():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["language"] = request.url.params.get("language")
        seen["api_key"] = request.headers["X-Api-Key"]
        seen["user"] = request.headers["X-Api-User"]
        return httpx.Response(200, json={"mediaInfo": {"status": 5}})

    info = asyncio.run(_client(handler).get_media_info(1396, MediaType.TV))

    assert info == {"status": 5}
    assert seen == {"path": "/api/v1/tv/1396", "language": "en", "api_key": "secret", "user": "7"}


def test_status_lookup_not_found_returns_none():
    info = asyncio.run(_client(lambda r: httpx.Response(404)).get_media_info(550, MediaType.MOVIE))
    assert info is None


def test_status_lookup_server_error_raises():
    with pytest.raises(JellyseerrError):
        asyncio.run(_client(lambda r: httpx.Response(503)).get_media_info(550, MediaType.MOVIE))


def test_request_payload_for_tv_asks_first_season():
    payloads = []

    def handler(request):
        payload = json.loads(request.content)
        payloads.append(payload)
        return httpx.Response(201, json={"id": 1, "media": {"tmdbId": payload["mediaId"]}})

    asyncio.run(_client(handler).request_item(SHOW))
    asyncio.run(_client(handler).request_item(MOVIE))

    assert payloads[0] == {"mediaType": "tv", "mediaId": 1396, "seasons": [1]}
    assert payloads[1] == {"mediaType": "movie", "mediaId": 550}


@pytest.mark.parametrize("response", [
    httpx.Response(202),
    httpx.Response(400, json={"message": "Request for this media ALREADY exists"}),
    httpx.Response(200, json={"id": 9, "media": {"tmdbId": 550}}),
])
def test_request_outcomes_treated_as_success(response):
    asyncio.run(_client(lambda r: response).request_item(MOVIE))


@pytest.mark.parametrize("response", [
    httpx.Response(400, json={"message": "Invalid seasons"}),
    httpx.Response(500, text="oops"),
    httpx.Response(201, json={"id": 9, "media": {"tmdbId": 999}}),
    httpx.Response(403, text="forbidden"),
])
def test_request_outcomes_treated_as_failure(response):
    with pytest.raises(JellyseerrError):
        asyncio.run(_client(lambda r: response).request_item(MOVIE))


def test_request_items_collects_failures_per_item():
    def handler(request):
        payload = json.loads(request.content)
        if payload["mediaId"] == 1396:
            return httpx.Response(500)
        return httpx.Response(201, json={"media": {"tmdbId": payload["mediaId"]}})

    results = asyncio.run(_client(handler).request_items([MOVIE, SHOW]))

    assert results.successful == [MOVIE]
    assert [f.item for f in results.failed] == [SHOW]
    assert "500" in results.failed[0].error
    assert results.failed[0].unreachable is False


def test_connection_errors_are_marked_unreachable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(JellyseerrUnreachableError):
        asyncio.run(client.get_media_info(550, MediaType.MOVIE))

    results = asyncio.run(client.request_items([MOVIE]))
    assert results.failed[0].unreachable is True


def test_pending_requests_count():
    def handler(request):
        assert request.url.params["filter"] == "pending"
        assert request.url.params["take"] == "1000"
        return httpx.Response(200, json={"pageInfo": {"results": 12}, "results": []})

    assert asyncio.run(_client(handler).get_pending_requests_count()) == 12


def test_test_connection_reports_bad_key():
    result = asyncio.run(_client(lambda r: httpx.Response(401)).test_connection())
    assert result["success"] is False
    assert result["message"] == "Invalid API key"


def test_test_connection_reports_version():
    def handler(request):
        assert request.url.path == "/api/v1/status"
        return httpx.Response(200, json={"version": "2.1.0"})

    result = asyncio.run(_client(handler).test_connection())
    assert result == {"success": True, "version": "2.1.0", "message": "Connected to Jellyseerr (v2.1.0)"}


def test_test_connection_tolerates_a_non_json_status_page():
    result = asyncio.run(_client(lambda r: httpx.Response(200, text="<html>login</html>")).test_connection())
    assert result["success"] is True
    assert result["version"] is None


def test_factory_returns_none_without_config():
    assert get_jellyseerr_client_from_config(None) is None


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>bad gateway</html>"),
    httpx.Response(201, json=[{"media": {"tmdbId": 550}}]),
    httpx.Response(201),
])
def test_unreadable_success_body_is_a_failed_request(response):
    with pytest.raises(JellyseerrError, match="Unreadable response body"):
        asyncio.run(_client(lambda r: response).request_item(MOVIE))


def test_unreadable_bodies_fail_per_item_without_stopping_the_batch():
    def handler(request):
        return httpx.Response(200, text="<html>bad gateway</html>")

    results = asyncio.run(_client(handler).request_items([MOVIE, SHOW]))

    assert results.successful == []
    assert [f.item for f in results.failed] == [MOVIE, SHOW]


def test_unexpected_errors_are_collected_per_item(monkeypatch):
    client = _client(lambda r: httpx.Response(202))
    calls = []

    async def flaky_request_item(item):
        calls.append(item)
        if item == MOVIE:
            raise KeyError("media")

    monkeypatch.setattr(client, "request_item", flaky_request_item)
    results = asyncio.run(client.request_items([MOVIE, SHOW]))

    assert calls == [MOVIE, SHOW]
    assert results.successful == [SHOW]
    assert [f.item for f in results.failed] == [MOVIE]
    assert results.failed[0].unreachable is False
