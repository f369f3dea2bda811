import asyncio
import logging

from listseerr.core.celery_app import celery_app
from listseerr.core.config import settings
from listseerr.db.repositories import SettingsRepository
from listseerr.db.session import SessionLocal
from listseerr.models.processing_execution import TriggerType
from listseerr.services.anime_ids import anime_id_cache
from listseerr.services.processing import build_process_all_use_case, build_process_list_use_case

logger = logging.getLogger(__name__)


def execution_to_dict(execution) -> dict:
    return {
        "id": execution.id,
        "list_id": execution.list_id,
        "batch_id": execution.batch_id,
        "status": execution.status.value,
        "trigger_type": execution.trigger_type.value,
        "items_found": execution.items_found,
        "items_requested": execution.items_requested,
        "items_failed": execution.items_failed,
        "error_message": execution.error_message,
    }


def read_automatic_processing_settings():
    """Settings reader handed to the scheduler."""
    db = SessionLocal()
    try:
        return SettingsRepository(db).get_automatic_processing()
    finally:
        db.close()


async def run_scheduled_processing():
    """Scheduler callback: process every enabled list of the default user."""
    db = SessionLocal()
    try:
        use_case = build_process_all_use_case(db)
        executions = await use_case.execute(settings.DEFAULT_USER_ID, TriggerType.SCHEDULED)
        logger.info(f"Scheduled processing finished, {len(executions)} executions recorded")
    finally:
        db.close()


@celery_app.task
def process_list_task(list_id: int, user_id: int = None, trigger_type: str = TriggerType.MANUAL.value):
    db = SessionLocal()
    try:
        use_case = build_process_list_use_case(db)
        execution = asyncio.run(
            use_case.execute(list_id, user_id or settings.DEFAULT_USER_ID, TriggerType(trigger_type))
        )
        return execution_to_dict(execution)
    finally:
        db.close()


@celery_app.task
def process_all_lists_task(user_id: int = None, trigger_type: str = TriggerType.MANUAL.value):
    db = SessionLocal()
    try:
        use_case = build_process_all_use_case(db)
        executions = asyncio.run(use_case.execute(user_id or settings.DEFAULT_USER_ID, TriggerType(trigger_type)))
        return [execution_to_dict(e) for e in executions]
    finally:
        db.close()


@celery_app.task
def refresh_anime_ids_task():
    asyncio.run(anime_id_cache.refresh())
    return f"Anime id mapping refreshed ({anime_id_cache.size} entries)"
