from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Listseerr"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Database
    DATABASE_URL: str = "sqlite:////db/listseerr.db"

    # Redis / Celery
    REDIS_URL: str = "redis://localhost:6379/0"

    # Fallback when no timezone is stored in the settings table
    TIMEZONE: str = "UTC"

    # Owner of scheduled runs (single user install)
    DEFAULT_USER_ID: int = 1

    LOG_LEVEL: str = "INFO"

    # Availability checks against Jellyseerr
    AVAILABILITY_CONCURRENCY: int = 5
    AVAILABILITY_BATCH_SIZE: int = 5

    # Outbound HTTP timeouts (seconds)
    JELLYSEERR_TIMEOUT: float = 30.0
    PROVIDER_TIMEOUT: float = 30.0
    ANIME_IDS_TIMEOUT: float = 60.0

    # provider_cache freshness
    PROVIDER_CACHE_TTL_HOURS: int = 24

    class Config:
        env_file = ".env"


settings = Settings()
