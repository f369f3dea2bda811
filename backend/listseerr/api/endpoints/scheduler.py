from fastapi import APIRouter, Depends
from typing import List
from listseerr.api import deps
from listseerr.schemas import ScheduledJobResponse

router = APIRouter()


@router.get("/jobs", response_model=List[ScheduledJobResponse])
def list_scheduled_jobs(scheduler=Depends(deps.get_scheduler)):
    return scheduler.list_active_jobs()


@router.post("/reload", response_model=List[ScheduledJobResponse])
async def reload_schedule(scheduler=Depends(deps.get_scheduler)):
    await scheduler.reload()
    return scheduler.list_active_jobs()
