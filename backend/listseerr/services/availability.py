"""
Availability checks against Jellyseerr.

Every item lands in exactly one bucket: available, previously requested or
to be requested. Lookups run through a bounded pool of workers, one batch at a
time, and a failed lookup fails open (the item is requested anyway).
"""
import asyncio
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import enum
import logging

from listseerr.core.config import settings
from listseerr.models.media_item import MediaItem

logger = logging.getLogger(__name__)

# Jellyseerr MediaStatus codes
STATUS_UNKNOWN = 1
STATUS_PENDING = 2
STATUS_PROCESSING = 3
STATUS_PARTIALLY_AVAILABLE = 4
STATUS_AVAILABLE = 5
STATUS_DELETED = 6

AVAILABLE_STATUSES = {STATUS_PARTIALLY_AVAILABLE, STATUS_AVAILABLE}
REQUESTED_STATUSES = {STATUS_UNKNOWN, STATUS_PENDING, STATUS_PROCESSING, STATUS_DELETED}


class MediaAvailability(str, enum.Enum):
    AVAILABLE = "available"
    PREVIOUSLY_REQUESTED = "previously_requested"
    TO_BE_REQUESTED = "to_be_requested"


def availability_from_status(status: Optional[int], has_requests: bool = False) -> MediaAvailability:
    if status is None:
        return MediaAvailability.TO_BE_REQUESTED
    if status in AVAILABLE_STATUSES:
        return MediaAvailability.AVAILABLE
    if status in REQUESTED_STATUSES:
        return MediaAvailability.PREVIOUSLY_REQUESTED
    # Codes added after this mapping was written
    if has_requests:
        return MediaAvailability.PREVIOUSLY_REQUESTED
    return MediaAvailability.TO_BE_REQUESTED


def availability_from_media_info(media_info: Optional[Dict[str, Any]]) -> MediaAvailability:
    """Combine regular and 4K status; only request when both say so."""
    if not media_info:
        return MediaAvailability.TO_BE_REQUESTED

    has_requests = bool(media_info.get("requests"))
    regular = availability_from_status(media_info.get("status"), has_requests)
    uhd = availability_from_status(media_info.get("status4k"), has_requests)

    if regular == MediaAvailability.TO_BE_REQUESTED and uhd == MediaAvailability.TO_BE_REQUESTED:
        return MediaAvailability.TO_BE_REQUESTED
    if MediaAvailability.AVAILABLE in (regular, uhd):
        return MediaAvailability.AVAILABLE
    return MediaAvailability.PREVIOUSLY_REQUESTED


@dataclass
class AvailabilityResult:
    available: List[MediaItem] = field(default_factory=list)
    previously_requested: List[MediaItem] = field(default_factory=list)
    to_be_requested: List[MediaItem] = field(default_factory=list)
    lookup_failures: int = 0

    @property
    def total(self) -> int:
        return len(self.available) + len(self.previously_requested) + len(self.to_be_requested)


class AvailabilityChecker:
    def __init__(self, client, concurrency: Optional[int] = None, batch_size: Optional[int] = None):
        self.client = client
        self.concurrency = max(1, concurrency or settings.AVAILABILITY_CONCURRENCY)
        self.batch_size = max(1, batch_size or settings.AVAILABILITY_BATCH_SIZE)

    async def _lookup(self, item: MediaItem) -> MediaAvailability:
        media_info = await self.client.get_media_info(item.tmdb_id, item.media_type)
        return availability_from_media_info(media_info)

    async def _run_batch(self, batch: List[MediaItem]) -> list:
        """Check one batch with at most `concurrency` lookups in flight; waits for all of them."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def check_single(item: MediaItem):
            async with semaphore:
                return await self._lookup(item)

        return await asyncio.gather(*[check_single(item) for item in batch], return_exceptions=True)

    async def check(self, items: List[MediaItem]) -> AvailabilityResult:
        result = AvailabilityResult()
        total_batches = (len(items) + self.batch_size - 1) // self.batch_size

        for index in range(0, len(items), self.batch_size):
            batch = items[index:index + self.batch_size]
            outcomes = await self._run_batch(batch)

            for item, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    # Fail open: a duplicate request beats a silently dropped item
                    result.lookup_failures += 1
                    logger.warning(
                        f"Availability lookup failed for {item} (tmdb {item.tmdb_id}), "
                        f"treating as to be requested: {outcome}"
                    )
                    result.to_be_requested.append(item)
                elif outcome == MediaAvailability.AVAILABLE:
                    result.available.append(item)
                elif outcome == MediaAvailability.PREVIOUSLY_REQUESTED:
                    result.previously_requested.append(item)
                else:
                    result.to_be_requested.append(item)

            logger.debug(f"Availability batch {index // self.batch_size + 1}/{total_batches} done")

        logger.info(
            f"Availability check: {len(result.available)} available, "
            f"{len(result.previously_requested)} previously requested, "
            f"{len(result.to_be_requested)} to request ({result.lookup_failures} lookup failures)"
        )
        return result
