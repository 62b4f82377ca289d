"""Crawl progress counters with a synchronous observer hook."""

from typing import List, Optional, Protocol

from catcrawl.logging_config import get_logger
from catcrawl.models import CrawlProgress

__all__ = ["ProgressObserver", "ProgressTracker", "LoggingProgressObserver"]

logger = get_logger("progress")


class ProgressObserver(Protocol):
    def on_progress(self, progress: CrawlProgress) -> None:
        """Called right after every counter change, on the mutating thread."""


class ProgressTracker:
    """Monotonic crawl counters plus the list of failed URLs.

    The observer, if any, is notified synchronously after each mutation with
    an immutable snapshot. It runs inside the page handler, so it must be
    quick.
    """

    def __init__(self, observer: Optional[ProgressObserver] = None) -> None:
        self.observer = observer
        self._total_categories = 0
        self._processed_categories = 0
        self._total_subcategories = 0
        self._failed_requests: List[str] = []

    def add_categories(self, count: int) -> None:
        self._total_categories += count
        self._notify()

    def add_subcategories(self, count: int) -> None:
        self._total_subcategories += count
        self._notify()

    def mark_category_processed(self) -> None:
        self._processed_categories += 1
        self._notify()

    def record_failure(self, url: str) -> None:
        self._failed_requests.append(url)
        self._notify()

    def snapshot(self) -> CrawlProgress:
        return CrawlProgress(
            total_categories=self._total_categories,
            processed_categories=self._processed_categories,
            total_subcategories=self._total_subcategories,
            failed_requests=tuple(self._failed_requests),
        )

    def _notify(self) -> None:
        if self.observer is not None:
            self.observer.on_progress(self.snapshot())


class LoggingProgressObserver:
    """Reports progress through the logger (used by ``--progress``)."""

    def __init__(self, every: int = 1) -> None:
        self.every = max(1, every)
        self._last_processed = -1

    def on_progress(self, progress: CrawlProgress) -> None:
        processed = progress.processed_categories
        if processed == self._last_processed or processed % self.every:
            return
        self._last_processed = processed
        logger.info(
            f"Progress: {processed}/{progress.total_categories} categories, "
            f"{progress.total_subcategories} subcategories, "
            f"{len(progress.failed_requests)} failed"
        )
