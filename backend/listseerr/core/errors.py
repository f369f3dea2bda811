"""
Error taxonomy for list processing.

Endpoints translate these into HTTP status codes; tasks and the scheduler log
them. Per-item failures never surface as exceptions, they are aggregated into
processing tallies instead.
"""
from typing import Optional


class ListseerrError(Exception):
    """Base exception for all listseerr errors."""
    pass


# Configuration errors: raised before any side effect happens

class ConfigurationError(ListseerrError):
    pass


class ProviderNotConfiguredError(ConfigurationError):
    def __init__(self, provider: str):
        super().__init__(f"Provider '{provider}' is not configured")
        self.provider = provider


class JellyseerrNotConfiguredError(ConfigurationError):
    def __init__(self):
        super().__init__("Jellyseerr is not configured")


# Not found

class NotFoundError(ListseerrError):
    pass


class MediaListNotFoundError(NotFoundError):
    def __init__(self, list_id: int):
        super().__init__(f"Media list {list_id} not found")
        self.list_id = list_id


# Validation

class ValidationError(ListseerrError):
    pass


class InvalidMaxItemsError(ValidationError):
    def __init__(self, value):
        super().__init__(f"Max items must be between 1 and 50, got {value}")
        self.value = value


class InvalidListUrlError(ValidationError):
    def __init__(self, url: str, reason: Optional[str] = None):
        message = f"Invalid list URL: {url}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.url = url


class InvalidBatchIdError(ValidationError):
    def __init__(self, value: str):
        super().__init__(f"Invalid batch id: {value}")
        self.value = value


class InvalidCronExpressionError(ValidationError):
    def __init__(self, expression: str, reason: str):
        super().__init__(f"Invalid cron expression '{expression}': {reason}")
        self.expression = expression
        self.reason = reason


# Upstream (provider / destination) failures

class UpstreamError(ListseerrError):
    pass


class ProviderApiError(UpstreamError):
    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider} API error: {message}")
        self.provider = provider
        self.status_code = status_code


class RateLimitError(ProviderApiError):
    """Raised on HTTP 429. `retry_after` is the server hint in seconds, if any."""

    def __init__(self, provider: str, retry_after: Optional[int] = None):
        hint = retry_after if retry_after is not None else "unknown"
        super().__init__(provider, f"rate limit exceeded, retry after {hint} seconds", status_code=429)
        self.retry_after = retry_after


class JellyseerrError(UpstreamError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class JellyseerrUnreachableError(JellyseerrError):
    pass


class AnimeIdCacheError(UpstreamError):
    pass


# State machine

class InvalidExecutionStatusTransitionError(ListseerrError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot transition execution from '{current}' to '{target}'")
        self.current = current
        self.target = target
