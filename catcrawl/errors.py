"""Exception types raised by the crawler."""

from typing import Any, Optional

__all__ = ["CrawlError", "ExtractionError", "ValidationError", "UsageError"]


class CrawlError(Exception):
    """Base class for crawler errors."""


class ExtractionError(CrawlError):
    """Raised when a fetched page cannot be turned into records.

    The fetch engine treats it like any other request failure and retries.
    """

    def __init__(self, message: str, url: Optional[str] = None, cause: Optional[str] = None):
        super().__init__(message)
        self.url = url
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base}: {self.cause}" if self.cause else base


class ValidationError(CrawlError):
    """Raised when a raw record is missing required fields."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class UsageError(CrawlError):
    """Conflicting or invalid command-line options."""
