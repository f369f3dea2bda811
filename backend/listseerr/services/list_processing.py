from dataclasses import dataclass, field
from typing import List, Optional
import logging

from listseerr.core.errors import JellyseerrUnreachableError
from listseerr.models.media_item import MediaItem
from listseerr.services.availability import AvailabilityChecker
from listseerr.services.jellyseerr import FailedRequest, JellyseerrClient

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    successful: List[MediaItem] = field(default_factory=list)
    failed: List[FailedRequest] = field(default_factory=list)
    available: List[MediaItem] = field(default_factory=list)
    previously_requested: List[MediaItem] = field(default_factory=list)


class ListProcessingService:
    """Categorize items, then request only the ones Jellyseerr does not know about."""

    def __init__(self, client: JellyseerrClient, checker: Optional[AvailabilityChecker] = None):
        self.client = client
        self.checker = checker or AvailabilityChecker(client)

    async def process_items(self, items: List[MediaItem]) -> ProcessingResult:
        availability = await self.checker.check(items)

        result = ProcessingResult(
            available=availability.available,
            previously_requested=availability.previously_requested,
        )
        if not availability.to_be_requested:
            logger.info("Nothing to request, every item is available or already requested")
            return result

        submitted = await self.client.request_items(availability.to_be_requested)
        result.successful = submitted.successful
        result.failed = submitted.failed

        if not submitted.successful and submitted.failed and all(f.unreachable for f in submitted.failed):
            raise JellyseerrUnreachableError(
                f"Jellyseerr unreachable for all {len(submitted.failed)} requests: {submitted.failed[0].error}"
            )

        for failure in submitted.failed:
            logger.warning(f"Request failed for {failure.item}: {failure.error}")
        logger.info(f"Requested {len(result.successful)} items, {len(result.failed)} failed")
        return result
