"""Error taxonomy for BookStack book synchronization."""

from typing import Any, Optional


class BookStackSyncError(Exception):
    """Base exception for all sync-related errors."""

    kind = 'error'

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ApiError(BookStackSyncError):
    """Non-2xx response from a BookStack instance."""

    kind = 'api'

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
        response_text: Optional[str] = None
    ):
        """
        Initialize API error.

        Args:
            message: Human-readable error message
            status_code: HTTP status code returned by the instance
            method: HTTP method of the failed request
            url: Full URL of the failed request
            response_text: Raw response body (truncated for logging)
        """
        self.status_code = status_code
        self.method = method
        self.url = url
        self.response_text = response_text
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"[{self.status_code}] {self.message}"


class AuthError(ApiError):
    """Token pair rejected by the instance (HTTP 401)."""

    kind = 'auth'


class NotFoundError(ApiError):
    """Requested entity does not exist (HTTP 404)."""

    kind = 'not_found'


class ValidationError(ApiError):
    """Create payload rejected by the instance (HTTP 4xx other than 401/404)."""

    kind = 'validation'


class ServerError(ApiError):
    """Server-side failure (HTTP 5xx) or unexpected response status."""

    kind = 'server'


class TransportError(BookStackSyncError):
    """Network, timeout, or connection failure."""

    kind = 'transport'


class DownloadError(BookStackSyncError):
    """Binary download (cover image) failed."""

    kind = 'download'

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


class UnsupportedContentError(BookStackSyncError):
    """Book content item with an unrecognized type discriminator."""

    kind = 'unsupported_content'

    def __init__(self, content_id: Any, content_type: Optional[str]):
        self.content_id = content_id
        self.content_type = content_type
        super().__init__(
            f"Unsupported content type '{content_type}' for content item {content_id}"
        )


class SyncError(BookStackSyncError):
    """
    A sync run aborted.

    Wraps the underlying error together with where the run stopped, so the
    operator can decide between re-running and cleaning up the destination.
    """

    kind = 'sync'

    def __init__(
        self,
        message: str,
        cause: BookStackSyncError,
        step: Any,
        last_completed_step: Any,
        source_id: Any = None,
        entity_type: Optional[str] = None,
        report: Any = None
    ):
        self.cause = cause
        self.error_kind = getattr(cause, 'kind', 'error')
        self.step = step
        self.last_completed_step = last_completed_step
        self.source_id = source_id
        self.entity_type = entity_type
        self.report = report
        super().__init__(message)


__all__ = [
    'BookStackSyncError',
    'ApiError',
    'AuthError',
    'NotFoundError',
    'ValidationError',
    'ServerError',
    'TransportError',
    'DownloadError',
    'UnsupportedContentError',
    'SyncError'
]
