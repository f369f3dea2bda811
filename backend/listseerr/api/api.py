from fastapi import APIRouter
from listseerr.api.endpoints import dashboard, lists, processing, scheduler, settings

api_router = APIRouter()
api_router.include_router(lists.router, prefix="/lists", tags=["lists"])
api_router.include_router(processing.router, prefix="/processing", tags=["processing"])
api_router.include_router(scheduler.router, prefix="/scheduler", tags=["scheduler"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
