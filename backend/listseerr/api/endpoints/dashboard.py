from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from listseerr.api import deps
from listseerr.db.repositories import ExecutionHistoryRepository, JellyseerrConfigRepository
from listseerr.db.session import get_db
from listseerr.schemas import (
    DashboardStatsResponse,
    JellyseerrTestResponse,
    PendingRequestsResponse,
    RecentActivityResponse,
)
from listseerr.services.jellyseerr import get_jellyseerr_client_from_config
from listseerr.services.processing import (
    GetDashboardStatsUseCase,
    GetPendingRequestsUseCase,
    GetRecentActivityUseCase,
)

router = APIRouter()


@router.get("/pending-requests", response_model=PendingRequestsResponse)
async def get_pending_requests(db: Session = Depends(get_db), user_id: int = Depends(deps.get_current_user_id)):
    """Pending Jellyseerr requests; reports errors in the body instead of failing"""
    use_case = GetPendingRequestsUseCase(JellyseerrConfigRepository(db))
    return await use_case.execute(user_id)


@router.get("/stats", response_model=DashboardStatsResponse)
def get_dashboard_stats(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id)
):
    scheduler = getattr(request.app.state, "scheduler", None)
    return GetDashboardStatsUseCase(ExecutionHistoryRepository(db), scheduler).execute(user_id)


@router.get("/recent-activity", response_model=RecentActivityResponse)
def get_recent_activity(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    user_id: int = Depends(deps.get_current_user_id)
):
    """Last 24 hours of executions, one group per batch"""
    groups = GetRecentActivityUseCase(ExecutionHistoryRepository(db)).execute(user_id, limit)
    return RecentActivityResponse(groups=groups)


@router.post("/jellyseerr/test", response_model=JellyseerrTestResponse)
async def test_jellyseerr_connection(db: Session = Depends(get_db), user_id: int = Depends(deps.get_current_user_id)):
    """Test connection to the configured Jellyseerr server."""
    client = get_jellyseerr_client_from_config(JellyseerrConfigRepository(db).find_by_user(user_id))
    if client is None:
        return JellyseerrTestResponse(success=False, message="Jellyseerr is not configured")

    result = await client.test_connection()
    return JellyseerrTestResponse(
        success=result.get("success", False),
        message=result.get("message", "Unknown error"),
        version=result.get("version")
    )
