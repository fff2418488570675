"""Exception hierarchy shared by the sync and query paths."""
from typing import Optional


class TrendingError(Exception):
    """Base class for all errors raised by this package."""
    pass


class ConfigurationError(TrendingError):
    """A required credential or setting is missing."""
    pass


class SourceUnavailable(TrendingError):
    """The upstream repository source did not answer successfully."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.message = message
        self.status = status
        if status is not None:
            message = f"GitHub API error: {status} - {message}"
        else:
            message = f"GitHub API error: {message}"
        super().__init__(message)


class PerRecordError(TrendingError):
    """Syncing a single repository failed.

    ``created`` tells whether the repository row was created (True), updated
    (False) or not written at all (None) before the failure.
    """

    def __init__(
        self,
        full_name: str,
        stage: str,
        cause: BaseException,
        created: Optional[bool] = None
    ):
        self.full_name = full_name
        self.stage = stage
        self.cause = cause
        self.created = created
        super().__init__(f"Error processing repo {full_name} during {stage}: {cause}")


class InternalError(TrendingError):
    """A store failure on the query path; the cause is chained."""
    pass


class InvalidQuery(TrendingError, ValueError):
    """Query parameters failed validation."""
    pass
