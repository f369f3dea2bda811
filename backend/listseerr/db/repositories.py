"""
Thin query wrappers around the SQLAlchemy session.

The processing use cases only talk to these classes so they can be exercised
against any session (in-memory SQLite in tests).
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
import json
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from listseerr.core.config import settings as app_settings
from listseerr.models.cache import ProviderCache
from listseerr.models.jellyseerr_config import JellyseerrConfig
from listseerr.models.media_list import MediaList, ProviderType
from listseerr.models.processing_execution import (
    ExecutionStatus,
    ProcessingExecution,
    TriggerType,
    utcnow,
)
from listseerr.models.provider_config import ProviderConfig
from listseerr.models.settings import SettingsModel

logger = logging.getLogger(__name__)

TIMEZONE_KEY = "TIMEZONE"
AUTOMATIC_PROCESSING_ENABLED_KEY = "AUTOMATIC_PROCESSING_ENABLED"
AUTOMATIC_PROCESSING_SCHEDULE_KEY = "AUTOMATIC_PROCESSING_SCHEDULE"


@dataclass
class AutomaticProcessingSettings:
    enabled: bool
    schedule: Optional[str]
    timezone: str


class MediaListRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, list_id: int, user_id: int) -> Optional[MediaList]:
        return self.db.query(MediaList).filter(
            MediaList.id == list_id,
            MediaList.user_id == user_id
        ).first()

    def find_by_user(self, user_id: int) -> List[MediaList]:
        return self.db.query(MediaList).filter(
            MediaList.user_id == user_id
        ).order_by(MediaList.id).all()

    def find_enabled_by_user(self, user_id: int) -> List[MediaList]:
        return self.db.query(MediaList).filter(
            MediaList.user_id == user_id,
            MediaList.enabled == True
        ).order_by(MediaList.id).all()

    def save(self, media_list: MediaList) -> MediaList:
        self.db.add(media_list)
        self.db.commit()
        self.db.refresh(media_list)
        return media_list

    def delete(self, media_list: MediaList):
        self.db.delete(media_list)
        self.db.commit()


class ProviderConfigRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_user_and_provider(self, user_id: int, provider: ProviderType) -> Optional[ProviderConfig]:
        return self.db.query(ProviderConfig).filter(
            ProviderConfig.user_id == user_id,
            ProviderConfig.provider == ProviderType(provider)
        ).first()

    def find_by_user(self, user_id: int) -> List[ProviderConfig]:
        return self.db.query(ProviderConfig).filter(ProviderConfig.user_id == user_id).all()

    def save(self, config: ProviderConfig) -> ProviderConfig:
        self.db.add(config)
        self.db.commit()
        self.db.refresh(config)
        return config

    def delete(self, config: ProviderConfig):
        self.db.delete(config)
        self.db.commit()


class JellyseerrConfigRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_user(self, user_id: int) -> Optional[JellyseerrConfig]:
        return self.db.query(JellyseerrConfig).filter(JellyseerrConfig.user_id == user_id).first()

    def save(self, config: JellyseerrConfig) -> JellyseerrConfig:
        self.db.add(config)
        self.db.commit()
        self.db.refresh(config)
        return config


class ExecutionHistoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def save(self, execution: ProcessingExecution) -> ProcessingExecution:
        """Insert unsaved executions, update existing ones."""
        if execution.id is None:
            self.db.add(execution)
        self.db.commit()
        self.db.refresh(execution)
        return execution

    def find_by_list(self, list_id: int, user_id: int, limit: int = 10) -> List[ProcessingExecution]:
        return self.db.query(ProcessingExecution).join(MediaList).filter(
            ProcessingExecution.list_id == list_id,
            MediaList.user_id == user_id
        ).order_by(
            ProcessingExecution.started_at.desc(),
            ProcessingExecution.id.desc()
        ).limit(limit).all()

    def find_by_batch(self, batch_id: str) -> List[ProcessingExecution]:
        return self.db.query(ProcessingExecution).filter(
            ProcessingExecution.batch_id == batch_id
        ).order_by(ProcessingExecution.started_at, ProcessingExecution.id).all()

    def find_recent(self, user_id: int, since: datetime, limit: int = 50) -> List[ProcessingExecution]:
        """Executions started at or after `since`, newest first."""
        return self.db.query(ProcessingExecution).join(MediaList).filter(
            MediaList.user_id == user_id,
            ProcessingExecution.started_at >= since
        ).order_by(
            ProcessingExecution.started_at.desc(),
            ProcessingExecution.id.desc()
        ).limit(limit).all()

    def count_by_list(self, list_id: int) -> int:
        return self.db.query(ProcessingExecution).filter(ProcessingExecution.list_id == list_id).count()

    def last_scheduled_success(self, user_id: int) -> Optional[datetime]:
        execution = self.db.query(ProcessingExecution).join(MediaList).filter(
            MediaList.user_id == user_id,
            ProcessingExecution.trigger_type == TriggerType.SCHEDULED,
            ProcessingExecution.status == ExecutionStatus.SUCCESS
        ).order_by(ProcessingExecution.completed_at.desc()).first()
        return execution.completed_at if execution else None

    def total_requested(self, user_id: int) -> int:
        total = self.db.query(func.sum(ProcessingExecution.items_requested)).join(MediaList).filter(
            MediaList.user_id == user_id,
            ProcessingExecution.status == ExecutionStatus.SUCCESS
        ).scalar()
        return int(total or 0)


class SettingsRepository:
    def __init__(self, db: Session):
        self.db = db

    def _all(self) -> dict:
        return {s.key: s.value for s in self.db.query(SettingsModel).all()}

    def _set(self, key: str, value: Optional[str]):
        setting = self.db.query(SettingsModel).filter(SettingsModel.key == key).first()
        if not setting:
            setting = SettingsModel(key=key, value=value)
            self.db.add(setting)
        else:
            setting.value = value

    def get_automatic_processing(self) -> AutomaticProcessingSettings:
        stored = self._all()
        enabled = str(stored.get(AUTOMATIC_PROCESSING_ENABLED_KEY, "false")).lower() == "true"
        schedule = stored.get(AUTOMATIC_PROCESSING_SCHEDULE_KEY) or None
        timezone = stored.get(TIMEZONE_KEY) or app_settings.TIMEZONE
        return AutomaticProcessingSettings(enabled=enabled, schedule=schedule, timezone=timezone)

    def save_automatic_processing(self, enabled: bool, schedule: Optional[str], timezone: Optional[str] = None):
        self._set(AUTOMATIC_PROCESSING_ENABLED_KEY, "true" if enabled else "false")
        self._set(AUTOMATIC_PROCESSING_SCHEDULE_KEY, schedule or None)
        if timezone:
            self._set(TIMEZONE_KEY, timezone)
        self.db.commit()
        return self.get_automatic_processing()


class ProviderCacheRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, provider: str) -> Optional[ProviderCache]:
        return self.db.query(ProviderCache).filter(ProviderCache.provider == provider).first()

    @staticmethod
    def _age(cached: ProviderCache) -> float:
        return max(0.0, (utcnow() - cached.cached_at).total_seconds())

    def age_seconds(self, provider: str) -> Optional[float]:
        """Seconds since the entry was written, or None when there is no entry."""
        cached = self.get(provider)
        return self._age(cached) if cached else None

    def get_fresh(self, provider: str, max_age_seconds: float):
        """Decoded payload if cached less than `max_age_seconds` ago, else None."""
        cached = self.get(provider)
        if not cached:
            return None
        age = self._age(cached)
        if age >= max_age_seconds:
            logger.info(f"Cache for {provider} expired ({int(age // 60)} minutes old)")
            return None
        try:
            return json.loads(cached.data)
        except ValueError:
            logger.warning(f"Discarding unreadable cache entry for {provider}")
            return None

    def put(self, provider: str, payload) -> ProviderCache:
        cached = self.get(provider)
        if not cached:
            cached = ProviderCache(provider=provider)
            self.db.add(cached)
        cached.data = json.dumps(payload)
        cached.cached_at = utcnow()
        self.db.commit()
        return cached
