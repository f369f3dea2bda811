from fastapi import HTTPException, Request
from listseerr.core.config import settings
from listseerr.core.errors import (
    ConfigurationError,
    ListseerrError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)


def get_current_user_id() -> int:
    # Authentication lives outside this service; every call acts as the default user
    return settings.DEFAULT_USER_ID


def get_scheduler(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not running")
    return scheduler


def to_http_exception(exc: ListseerrError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, UpstreamError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
