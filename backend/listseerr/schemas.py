from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from listseerr.models.media_list import ProviderType
from listseerr.models.processing_execution import ExecutionStatus, TriggerType


class ExecutionSummary(BaseModel):
    id: int
    list_id: int
    batch_id: str
    trigger_type: TriggerType
    status: ExecutionStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    items_found: int = 0
    items_requested: int = 0
    items_failed: int = 0
    items_skipped_available: int = 0
    items_skipped_previously_requested: int = 0
    error_message: Optional[str] = None

    class Config:
        from_attributes = True


class ProcessingTriggerResponse(BaseModel):
    message: str
    task_id: str


class MediaListResponse(BaseModel):
    id: int
    name: str
    url: str
    display_url: Optional[str] = None
    provider: ProviderType
    enabled: bool
    max_items: int
    processing_schedule: Optional[str] = None

    class Config:
        from_attributes = True


class MaxItemsUpdate(BaseModel):
    max_items: int


class ScheduledJobResponse(BaseModel):
    job_id: int
    next_run: Optional[datetime] = None
    state: str


class AutomaticProcessingConfig(BaseModel):
    enabled: bool
    schedule: Optional[str] = None
    timezone: Optional[str] = None


class PendingRequestsResponse(BaseModel):
    count: int
    configured: bool
    error: bool


class DashboardStatsResponse(BaseModel):
    total_requested_items: int
    last_scheduled_processing: Optional[datetime] = None
    next_scheduled_processing: Optional[datetime] = None


class RecentExecution(ExecutionSummary):
    list_name: Optional[str] = None


class ActivityGroup(BaseModel):
    batch_id: str
    trigger_type: TriggerType
    timestamp: datetime
    executions: List[RecentExecution]


class RecentActivityResponse(BaseModel):
    groups: List[ActivityGroup]


class JellyseerrTestResponse(BaseModel):
    success: bool
    message: str
    version: Optional[str] = None
