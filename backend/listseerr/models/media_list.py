from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from typing import Optional
from listseerr.db.base_class import Base
from listseerr.core.errors import InvalidMaxItemsError
import enum

MIN_MAX_ITEMS = 1
MAX_MAX_ITEMS = 50


class ProviderType(str, enum.Enum):
    TRAKT = "trakt"
    TRAKT_CHART = "traktChart"
    MDBLIST = "mdblist"
    STEVENLU = "stevenlu"
    ANILIST = "anilist"


class MediaList(Base):
    __tablename__ = "media_lists"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)  # API-resolvable locator
    display_url = Column(String, nullable=True)  # What the user pasted, shown in the UI
    provider = Column(SQLEnum(ProviderType), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    max_items = Column(Integer, default=MAX_MAX_ITEMS, nullable=False)
    processing_schedule = Column(String, nullable=True)  # Cron expression
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    executions = relationship(
        "ProcessingExecution",
        back_populates="media_list",
        cascade="all, delete-orphan",
        order_by="ProcessingExecution.started_at",
    )

    def change_max_items(self, value: int):
        """Set the item cap; values outside [1, 50] are rejected, not clamped."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidMaxItemsError(value)
        if value < MIN_MAX_ITEMS or value > MAX_MAX_ITEMS:
            raise InvalidMaxItemsError(value)
        self.max_items = value

    def change_name(self, name: str):
        if not name or not name.strip():
            raise ValueError("List name cannot be empty")
        self.name = name.strip()

    def change_schedule(self, schedule: Optional[str]):
        self.processing_schedule = schedule or None

    def enable(self):
        self.enabled = True

    def disable(self):
        self.enabled = False

    def toggle(self):
        self.enabled = not self.enabled

    def is_processable(self) -> bool:
        return bool(self.enabled)

    def has_schedule(self) -> bool:
        return bool(self.processing_schedule)
