"""Tests for crawl progress counters and observers."""

from unittest.mock import MagicMock

from catcrawl.models import CrawlProgress
from catcrawl.progress import LoggingProgressObserver, ProgressTracker


class TestProgressTracker:

    def test_initial_snapshot(self):
        assert ProgressTracker().snapshot() == CrawlProgress(0, 0, 0, ())

    def test_counters(self):
        tracker = ProgressTracker()
        tracker.add_categories(3)
        tracker.add_categories(2)
        tracker.add_subcategories(7)
        tracker.mark_category_processed()
        tracker.record_failure("https://www.thomann.de/de/broken.html")

        progress = tracker.snapshot()
        assert progress.total_categories == 5
        assert progress.total_subcategories == 7
        assert progress.processed_categories == 1
        assert progress.failed_requests == ("https://www.thomann.de/de/broken.html",)

    def test_observer_notified_after_each_mutation(self):
        observer = MagicMock()
        tracker = ProgressTracker(observer)

        tracker.add_categories(2)
        tracker.mark_category_processed()

        assert observer.on_progress.call_count == 2
        last = observer.on_progress.call_args[0][0]
        assert last.total_categories == 2
        assert last.processed_categories == 1

    def test_snapshot_is_detached(self):
        tracker = ProgressTracker()
        before = tracker.snapshot()
        tracker.record_failure("https://www.thomann.de/de/a.html")

        assert before.failed_requests == ()
        assert tracker.snapshot().to_dict()["failed_requests"] == ["https://www.thomann.de/de/a.html"]


class TestLoggingProgressObserver:

    def test_logs_only_when_processed_changes(self, caplog):
        observer = LoggingProgressObserver()
        tracker = ProgressTracker(observer)

        with caplog.at_level("INFO", logger="catcrawl.progress"):
            tracker.add_categories(2)
            tracker.mark_category_processed()
            tracker.add_subcategories(4)
            tracker.mark_category_processed()

        messages = [r.getMessage() for r in caplog.records if r.name == "catcrawl.progress"]
        assert messages == [
            "Progress: 0/2 categories, 0 subcategories, 0 failed",
            "Progress: 1/2 categories, 0 subcategories, 0 failed",
            "Progress: 2/2 categories, 4 subcategories, 0 failed",
        ]
