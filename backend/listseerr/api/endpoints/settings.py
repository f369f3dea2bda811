from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from listseerr.api import deps
from listseerr.core.errors import InvalidCronExpressionError
from listseerr.db.repositories import SettingsRepository
from listseerr.db.session import get_db
from listseerr.schemas import AutomaticProcessingConfig
from listseerr.services.cron import CronExpression

router = APIRouter()


@router.get("/automatic-processing", response_model=AutomaticProcessingConfig)
def get_automatic_processing(db: Session = Depends(get_db)):
    stored = SettingsRepository(db).get_automatic_processing()
    return AutomaticProcessingConfig(enabled=stored.enabled, schedule=stored.schedule, timezone=stored.timezone)


@router.put("/automatic-processing", response_model=AutomaticProcessingConfig)
async def update_automatic_processing(
    body: AutomaticProcessingConfig,
    db: Session = Depends(get_db),
    scheduler=Depends(deps.get_scheduler)
):
    repo = SettingsRepository(db)
    current = repo.get_automatic_processing()
    timezone = body.timezone or current.timezone

    # Reject bad expressions here rather than letting reload() skip them silently
    if body.enabled or body.schedule:
        if not body.schedule:
            raise HTTPException(status_code=422, detail="A schedule is required to enable automatic processing")
        try:
            CronExpression(body.schedule, timezone)
        except InvalidCronExpressionError as e:
            raise HTTPException(status_code=422, detail=str(e))

    stored = repo.save_automatic_processing(body.enabled, body.schedule, timezone)
    await scheduler.reload()
    return AutomaticProcessingConfig(enabled=stored.enabled, schedule=stored.schedule, timezone=stored.timezone)
