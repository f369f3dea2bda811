from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List
from listseerr.api import deps
from listseerr.core.errors import ListseerrError
from listseerr.db.repositories import ExecutionHistoryRepository, MediaListRepository
from listseerr.db.session import get_db
from listseerr.models.processing_execution import TriggerType
from listseerr.schemas import ExecutionSummary, ProcessingTriggerResponse
from listseerr.services.processing import build_process_all_use_case, build_process_list_use_case
from listseerr.tasks.processing import process_all_lists_task, process_list_task

router = APIRouter()


@router.post("/lists/{list_id}", response_model=ExecutionSummary)
async def trigger_processing(
    list_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id)
):
    """Process one list now and return its execution record"""
    use_case = build_process_list_use_case(db)
    try:
        return await use_case.execute(list_id, user_id, TriggerType.MANUAL)
    except ListseerrError as e:
        raise deps.to_http_exception(e)


@router.post("/lists/{list_id}/queue", response_model=ProcessingTriggerResponse)
def queue_processing(
    list_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id)
):
    if not MediaListRepository(db).find_by_id(list_id, user_id):
        raise HTTPException(status_code=404, detail=f"Media list {list_id} not found")
    task = process_list_task.delay(list_id, user_id, TriggerType.MANUAL.value)
    return ProcessingTriggerResponse(message="List processing started", task_id=task.id)


@router.post("/run-all", response_model=List[ExecutionSummary])
async def trigger_all(
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id)
):
    """Process every enabled list sequentially under one batch id"""
    use_case = build_process_all_use_case(db)
    try:
        return await use_case.execute(user_id, TriggerType.MANUAL)
    except ListseerrError as e:
        raise deps.to_http_exception(e)


@router.post("/run-all/queue", response_model=ProcessingTriggerResponse)
def queue_all(user_id: int = Depends(deps.get_current_user_id)):
    task = process_all_lists_task.delay(user_id, TriggerType.MANUAL.value)
    return ProcessingTriggerResponse(message="Processing of all lists started", task_id=task.id)


@router.get("/lists/{list_id}/executions", response_model=List[ExecutionSummary])
def get_list_executions(
    list_id: int,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id)
):
    if not MediaListRepository(db).find_by_id(list_id, user_id):
        raise HTTPException(status_code=404, detail=f"Media list {list_id} not found")
    return ExecutionHistoryRepository(db).find_by_list(list_id, user_id, limit)


@router.get("/batches/{batch_id}", response_model=List[ExecutionSummary])
def get_batch_executions(batch_id: str, db: Session = Depends(get_db)):
    return ExecutionHistoryRepository(db).find_by_batch(batch_id)
