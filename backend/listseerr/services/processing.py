"""
List processing use cases.

Manual API calls, queued Celery tasks and the scheduler all end up in
ProcessListUseCase; there is no separate code path per trigger below it.
"""
from datetime import timedelta
from typing import Callable, List, Optional, Dict, Any
import logging

from sqlalchemy.orm import Session

from listseerr.core.errors import (
    JellyseerrNotConfiguredError,
    MediaListNotFoundError,
    ProviderNotConfiguredError,
)
from listseerr.db.repositories import (
    ExecutionHistoryRepository,
    JellyseerrConfigRepository,
    MediaListRepository,
    ProviderCacheRepository,
    ProviderConfigRepository,
)
from listseerr.models.processing_execution import BatchId, ProcessingExecution, TriggerType, utcnow
from listseerr.services.jellyseerr import get_jellyseerr_client_from_config
from listseerr.services.list_processing import ListProcessingService, ProcessingResult
from listseerr.services.fetchers.factory import MediaFetcherFactory

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_WINDOW = timedelta(hours=24)


class ExecutionRecorder:
    """Writes the running record up front and its single terminal update."""

    def __init__(self, history: ExecutionHistoryRepository):
        self.history = history

    def start(self, list_id: int, batch_id: BatchId, trigger_type: TriggerType) -> ProcessingExecution:
        execution = ProcessingExecution.start(list_id, batch_id, trigger_type)
        return self.history.save(execution)

    def succeed(self, execution: ProcessingExecution, items_found: int, result: ProcessingResult) -> ProcessingExecution:
        execution.mark_as_success(
            items_found=items_found,
            items_requested=len(result.successful),
            items_failed=len(result.failed),
            items_skipped_available=len(result.available),
            items_skipped_previously_requested=len(result.previously_requested),
        )
        return self.history.save(execution)

    def fail(self, execution: ProcessingExecution, error: BaseException) -> ProcessingExecution:
        # A database error during the run leaves the session unusable until rolled back
        self.history.db.rollback()
        execution.mark_as_error(str(error) or error.__class__.__name__)
        return self.history.save(execution)


class ProcessListUseCase:
    def __init__(
        self,
        lists: MediaListRepository,
        jellyseerr_configs: JellyseerrConfigRepository,
        fetcher_factory: MediaFetcherFactory,
        recorder: ExecutionRecorder,
        client_factory: Callable = get_jellyseerr_client_from_config,
        processing_service_factory: Callable = ListProcessingService,
    ):
        self.lists = lists
        self.jellyseerr_configs = jellyseerr_configs
        self.fetcher_factory = fetcher_factory
        self.recorder = recorder
        self.client_factory = client_factory
        self.processing_service_factory = processing_service_factory

    async def execute(
        self,
        list_id: int,
        user_id: int,
        trigger_type: TriggerType = TriggerType.MANUAL,
        batch_id: Optional[BatchId] = None,
    ) -> ProcessingExecution:
        trigger_type = TriggerType(trigger_type)

        media_list = self.lists.find_by_id(list_id, user_id)
        if not media_list:
            raise MediaListNotFoundError(list_id)

        # Configuration problems must not leave error rows in the history
        fetcher = self.fetcher_factory.get_fetcher(media_list.provider, user_id)
        if fetcher is None:
            raise ProviderNotConfiguredError(media_list.provider.value)

        client = self.client_factory(self.jellyseerr_configs.find_by_user(user_id))
        if client is None:
            raise JellyseerrNotConfiguredError()

        batch_id = batch_id or BatchId.generate(trigger_type)
        execution = self.recorder.start(media_list.id, batch_id, trigger_type)
        logger.info(
            f"Processing list '{media_list.name}' ({media_list.provider.value}), "
            f"execution {execution.id}, batch {batch_id}"
        )

        try:
            items = await fetcher.fetch_items(media_list.url, media_list.max_items)
            service = self.processing_service_factory(client)
            result = await service.process_items(items)
        except Exception as e:
            logger.exception(f"Processing list '{media_list.name}' failed")
            self.recorder.fail(execution, e)
            raise

        execution = self.recorder.succeed(execution, len(items), result)
        logger.info(
            f"List '{media_list.name}' done: {execution.items_found} found, "
            f"{execution.items_requested} requested, {execution.items_failed} failed, "
            f"{execution.items_skipped_available} available, "
            f"{execution.items_skipped_previously_requested} previously requested"
        )
        return execution


class ProcessAllListsUseCase:
    """Run every enabled list one after another under a shared batch id."""

    def __init__(
        self,
        process_list: ProcessListUseCase,
        lists: MediaListRepository,
        jellyseerr_configs: JellyseerrConfigRepository,
        history: ExecutionHistoryRepository,
    ):
        self.process_list = process_list
        self.lists = lists
        self.jellyseerr_configs = jellyseerr_configs
        self.history = history

    async def execute(self, user_id: int, trigger_type: TriggerType = TriggerType.MANUAL) -> List[ProcessingExecution]:
        trigger_type = TriggerType(trigger_type)
        media_lists = self.lists.find_enabled_by_user(user_id)
        if not media_lists:
            logger.info(f"No enabled lists for user {user_id}")
            return []

        if self.process_list.client_factory(self.jellyseerr_configs.find_by_user(user_id)) is None:
            raise JellyseerrNotConfiguredError()

        batch_id = BatchId.generate(trigger_type)
        logger.info(f"Processing {len(media_lists)} lists ({trigger_type.value}), batch {batch_id}")

        for media_list in media_lists:
            try:
                await self.process_list.execute(media_list.id, user_id, trigger_type, batch_id=batch_id)
            except ProviderNotConfiguredError as e:
                logger.warning(f"Skipping list '{media_list.name}': {e}")
            except Exception:
                # Already recorded as an error execution; carry on with the next list
                logger.exception(f"List '{media_list.name}' failed during batch {batch_id}")

        return self.history.find_by_batch(str(batch_id))


class GetPendingRequestsUseCase:
    """Pending request count for the dashboard. Never raises."""

    def __init__(self, jellyseerr_configs: JellyseerrConfigRepository,
                 client_factory: Callable = get_jellyseerr_client_from_config):
        self.jellyseerr_configs = jellyseerr_configs
        self.client_factory = client_factory

    async def execute(self, user_id: int) -> Dict[str, Any]:
        try:
            client = self.client_factory(self.jellyseerr_configs.find_by_user(user_id))
        except Exception:
            logger.exception("Could not load Jellyseerr configuration")
            return {"count": 0, "configured": False, "error": True}

        if client is None:
            return {"count": 0, "configured": False, "error": False}

        try:
            count = await client.get_pending_requests_count()
        except Exception as e:
            logger.warning(f"Could not fetch pending requests from Jellyseerr: {e}")
            return {"count": 0, "configured": True, "error": True}
        return {"count": count, "configured": True, "error": False}


class GetDashboardStatsUseCase:
    def __init__(self, history: ExecutionHistoryRepository, scheduler=None):
        self.history = history
        self.scheduler = scheduler

    def execute(self, user_id: int) -> Dict[str, Any]:
        next_run = None
        if self.scheduler is not None:
            next_run = self.scheduler.get_next_run()
        return {
            "total_requested_items": self.history.total_requested(user_id),
            "last_scheduled_processing": self.history.last_scheduled_success(user_id),
            "next_scheduled_processing": next_run,
        }


class GetRecentActivityUseCase:
    """
    Executions of the last 24 hours grouped by batch id.

    Groups are ordered by their most recent execution, newest first, and
    so are the executions inside each group. A "process all" run therefore
    shows up as one group holding every list it touched.
    """

    def __init__(self, history: ExecutionHistoryRepository, clock: Callable = utcnow):
        self.history = history
        self.clock = clock

    def execute(self, user_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        since = self.clock() - RECENT_ACTIVITY_WINDOW
        groups: Dict[str, Dict[str, Any]] = {}
        for execution in self.history.find_recent(user_id, since, limit):
            group = groups.get(execution.batch_id)
            if group is None:
                group = groups[execution.batch_id] = {
                    "batch_id": execution.batch_id,
                    "trigger_type": execution.trigger_type,
                    "timestamp": execution.started_at,
                    "executions": [],
                }
            group["executions"].append(execution)
        return list(groups.values())

def build_process_list_use_case(db: Session, **fetcher_kwargs) -> ProcessListUseCase:
    return ProcessListUseCase(
        lists=MediaListRepository(db),
        jellyseerr_configs=JellyseerrConfigRepository(db),
        fetcher_factory=MediaFetcherFactory(
            ProviderConfigRepository(db),
            provider_cache=ProviderCacheRepository(db),
            **fetcher_kwargs,
        ),
        recorder=ExecutionRecorder(ExecutionHistoryRepository(db)),
    )


def build_process_all_use_case(db: Session) -> ProcessAllListsUseCase:
    return ProcessAllListsUseCase(
        process_list=build_process_list_use_case(db),
        lists=MediaListRepository(db),
        jellyseerr_configs=JellyseerrConfigRepository(db),
        history=ExecutionHistoryRepository(db),
    )
