from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime, timedelta, timezone
from typing import Optional
from listseerr.db.base_class import Base
from listseerr.core.errors import InvalidBatchIdError, InvalidExecutionStatusTransitionError
import enum
import secrets
import string
import time

_BASE36 = string.digits + string.ascii_lowercase


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite DateTime columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ExecutionStatus(str, enum.Enum):
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class TriggerType(str, enum.Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class BatchId:
    """
    Correlation id shared by every execution written for one trigger event.

    Format: ``{trigger_type}-{timestamp_ms}-{random}``, e.g.
    ``scheduled-1718000000000-k3j9x0a``.
    """

    RANDOM_LENGTH = 7

    def __init__(self, value: str):
        self.value = value

    @classmethod
    def generate(cls, trigger_type: TriggerType) -> "BatchId":
        trigger_type = TriggerType(trigger_type)
        timestamp = int(time.time() * 1000)
        suffix = "".join(secrets.choice(_BASE36) for _ in range(cls.RANDOM_LENGTH))
        return cls(f"{trigger_type.value}-{timestamp}-{suffix}")

    @classmethod
    def from_string(cls, value: str) -> "BatchId":
        if not value:
            raise InvalidBatchIdError(value)
        parts = value.split("-")
        if len(parts) != 3:
            raise InvalidBatchIdError(value)
        trigger, timestamp, suffix = parts
        if trigger not in {t.value for t in TriggerType}:
            raise InvalidBatchIdError(value)
        if not timestamp.isdigit():
            raise InvalidBatchIdError(value)
        if not suffix:
            raise InvalidBatchIdError(value)
        return cls(value)

    @property
    def trigger_type(self) -> TriggerType:
        return TriggerType(self.value.split("-")[0])

    @property
    def timestamp(self) -> datetime:
        millis = int(self.value.split("-")[1])
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)

    def __eq__(self, other):
        return isinstance(other, BatchId) and other.value == self.value

    def __hash__(self):
        return hash(self.value)

    def __str__(self):
        return self.value

    def __repr__(self):
        return f"BatchId({self.value!r})"


class ProcessingExecution(Base):
    __tablename__ = "processing_executions"

    id = Column(Integer, primary_key=True, index=True)
    list_id = Column(Integer, ForeignKey("media_lists.id"), nullable=False, index=True)
    batch_id = Column(String, nullable=False, index=True)
    trigger_type = Column(SQLEnum(TriggerType), nullable=False, default=TriggerType.MANUAL)
    status = Column(SQLEnum(ExecutionStatus), nullable=False, default=ExecutionStatus.RUNNING)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    items_found = Column(Integer, default=0)
    items_requested = Column(Integer, default=0)
    items_failed = Column(Integer, default=0)
    items_skipped_available = Column(Integer, default=0)
    items_skipped_previously_requested = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)

    media_list = relationship("MediaList", back_populates="executions")

    @property
    def list_name(self) -> Optional[str]:
        return self.media_list.name if self.media_list is not None else None

    @classmethod
    def start(cls, list_id: int, batch_id: BatchId, trigger_type: TriggerType) -> "ProcessingExecution":
        """New execution in the running state, not yet persisted."""
        return cls(
            list_id=list_id,
            batch_id=str(batch_id),
            trigger_type=TriggerType(trigger_type),
            status=ExecutionStatus.RUNNING,
            started_at=utcnow(),
            items_found=0,
            items_requested=0,
            items_failed=0,
            items_skipped_available=0,
            items_skipped_previously_requested=0,
        )

    def _ensure_running(self, target: ExecutionStatus):
        if self.status != ExecutionStatus.RUNNING:
            current = self.status.value if hasattr(self.status, "value") else str(self.status)
            raise InvalidExecutionStatusTransitionError(current, target.value)

    def mark_as_success(
        self,
        items_found: int,
        items_requested: int,
        items_failed: int,
        items_skipped_available: int,
        items_skipped_previously_requested: int,
    ):
        self._ensure_running(ExecutionStatus.SUCCESS)
        self.status = ExecutionStatus.SUCCESS
        self.completed_at = utcnow()
        self.items_found = items_found
        self.items_requested = items_requested
        self.items_failed = items_failed
        self.items_skipped_available = items_skipped_available
        self.items_skipped_previously_requested = items_skipped_previously_requested
        self.error_message = None

    def mark_as_error(self, error_message: str):
        self._ensure_running(ExecutionStatus.ERROR)
        self.status = ExecutionStatus.ERROR
        self.completed_at = utcnow()
        self.error_message = error_message
        self.items_found = 0
        self.items_requested = 0
        self.items_failed = 0
        self.items_skipped_available = 0
        self.items_skipped_previously_requested = 0

    def is_running(self) -> bool:
        return self.status == ExecutionStatus.RUNNING

    def duration(self) -> Optional[timedelta]:
        if self.started_at and self.completed_at:
            return self.completed_at - self.started_at
        return None
