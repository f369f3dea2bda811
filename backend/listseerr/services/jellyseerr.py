"""
Jellyseerr API client: media status lookups and request submission.
"""
import httpx
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import logging

from listseerr.core.config import settings
from listseerr.core.errors import JellyseerrError, JellyseerrUnreachableError
from listseerr.models.media_item import MediaItem, MediaType

logger = logging.getLogger(__name__)

# TV requests only ask for the first season
TV_REQUEST_SEASONS = [1]
PENDING_REQUESTS_PAGE_SIZE = 1000


@dataclass
class FailedRequest:
    item: MediaItem
    error: str
    unreachable: bool = False


@dataclass
class RequestResults:
    successful: List[MediaItem] = field(default_factory=list)
    failed: List[FailedRequest] = field(default_factory=list)


class JellyseerrClient:
    """Client for interacting with Jellyseerr (or Overseerr) API."""

    def __init__(
        self,
        url: str,
        api_key: str,
        user_id: int,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = url.rstrip("/")
        self.timeout = timeout or settings.JELLYSEERR_TIMEOUT
        self.transport = transport
        self.headers = {
            "X-Api-Key": api_key,
            "X-Api-User": str(user_id),
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers=self.headers,
            transport=self.transport,
        )

    async def _send(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}{endpoint}"
        async with self._client() as client:
            try:
                return await client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                logger.error(f"Jellyseerr connection error for {method} {endpoint}: {e}")
                raise JellyseerrUnreachableError(f"Cannot reach Jellyseerr: {e}") from e

    @staticmethod
    def _json_object(response: httpx.Response) -> Optional[Dict[str, Any]]:
        """Decoded JSON object body, or None when the body is empty, not JSON or not an object."""
        if not response.content:
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    async def get_media_info(self, tmdb_id: int, media_type: MediaType) -> Optional[Dict[str, Any]]:
        """
        Return the `mediaInfo` block for an item, or None when Jellyseerr
        has no record of it. Non-404 HTTP errors raise JellyseerrError.
        """
        kind = "tv" if MediaType(media_type) == MediaType.TV else "movie"
        response = await self._send("GET", f"/api/v1/{kind}/{tmdb_id}", params={"language": "en"})
        if response.status_code == 404:
            return None
        if response.is_error:
            raise JellyseerrError(
                f"Status lookup for {kind} {tmdb_id} failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        data = self._json_object(response) or {}
        return data.get("mediaInfo") or None

    async def request_item(self, item: MediaItem) -> None:
        """Create a request for one item. Raises JellyseerrError when it was not accepted."""
        payload: Dict[str, Any] = {
            "mediaType": "tv" if item.media_type == MediaType.TV else "movie",
            "mediaId": item.tmdb_id,
        }
        if item.media_type == MediaType.TV:
            payload["seasons"] = TV_REQUEST_SEASONS

        response = await self._send("POST", "/api/v1/request", json=payload)
        status = response.status_code

        if status in (200, 201):
            data = self._json_object(response)
            if data is None:
                raise JellyseerrError(f"Unreadable response body (HTTP {status})", status_code=status)
            returned_id = (data.get("media") or {}).get("tmdbId")
            if returned_id == item.tmdb_id:
                logger.info(f"Requested {item} (request id {data.get('id')})")
                return
            raise JellyseerrError(
                f"Jellyseerr answered for TMDB {returned_id} instead of {item.tmdb_id}",
                status_code=status,
            )

        if status == 202:
            # Accepted without anything to request (e.g. no seasons released yet)
            logger.info(f"Jellyseerr accepted {item} without creating a request")
            return

        if status == 400:
            data = self._json_object(response) or {}
            message = str(data.get("message", ""))
            if "already" in message.lower():
                logger.info(f"{item} was already requested in Jellyseerr")
                return
            logger.error(f"Jellyseerr rejected {item}: {message or response.text}")
            raise JellyseerrError(f"Validation error: {message or 'bad request'}", status_code=status)

        body = response.text
        logger.error(f"Jellyseerr request for {item} failed: HTTP {status} {body[:200]}")
        raise JellyseerrError(f"HTTP {status}", status_code=status)

    async def request_items(self, items: List[MediaItem]) -> RequestResults:
        """Submit items one after another, collecting per-item failures."""
        results = RequestResults()
        for item in items:
            try:
                await self.request_item(item)
                results.successful.append(item)
            except JellyseerrUnreachableError as e:
                results.failed.append(FailedRequest(item=item, error=str(e), unreachable=True))
            except JellyseerrError as e:
                results.failed.append(FailedRequest(item=item, error=str(e)))
            except Exception as e:
                logger.exception(f"Unexpected error requesting {item}")
                results.failed.append(FailedRequest(item=item, error=str(e) or e.__class__.__name__))
        return results

    async def get_pending_requests_count(self) -> int:
        response = await self._send(
            "GET",
            "/api/v1/request",
            params={"filter": "pending", "take": PENDING_REQUESTS_PAGE_SIZE},
        )
        if response.is_error:
            raise JellyseerrError(
                f"Pending requests lookup failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        data = response.json()
        return int((data.get("pageInfo") or {}).get("results", 0))

    async def test_connection(self) -> Dict[str, Any]:
        """Test connection and return server status."""
        try:
            response = await self._send("GET", "/api/v1/status")
        except JellyseerrUnreachableError:
            return {"success": False, "message": "Cannot connect to Jellyseerr server"}
        if response.status_code in (401, 403):
            return {"success": False, "message": "Invalid API key"}
        if response.is_error:
            return {"success": False, "message": f"HTTP error: {response.status_code}"}
        version = (self._json_object(response) or {}).get("version")
        return {"success": True, "version": version, "message": f"Connected to Jellyseerr (v{version})"}


def get_jellyseerr_client_from_config(config, **kwargs) -> Optional[JellyseerrClient]:
    """
    Create a JellyseerrClient from a stored JellyseerrConfig row.
    Returns None if not configured.
    """
    if not config or not config.url or not config.api_key:
        return None
    return JellyseerrClient(
        url=config.url,
        api_key=config.api_key,
        user_id=config.jellyseerr_user_id,
        **kwargs,
    )
