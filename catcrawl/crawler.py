"""Crawl orchestration: seed main pages, drain the queue, collect results."""

import json
import os
import time
from typing import Any, AbstractSet, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import requests  # type: ignore[import-untyped]

from catcrawl.config import (
    DELAY_MAX,
    DELAY_MIN,
    MAX_CONCURRENCY,
    MAX_REQUESTS_PER_CRAWL,
    MAX_RETRIES,
    OUTPUT_DIR,
    REQUEST_TIMEOUT,
    RETRY_BACKOFF_BASE,
)
from catcrawl.datasets import Dataset
from catcrawl.dispatcher import Dispatcher
from catcrawl.fetcher import FetchEngine
from catcrawl.html_utils import Extractor, ThomannExtractor
from catcrawl.logging_config import get_logger, log_crawl_event
from catcrawl.models import Category, CategoryTree, CrawlProgress, CrawlRequest, MainPage, Subcategory
from catcrawl.progress import ProgressObserver, ProgressTracker
from catcrawl.stores import CategoryStore, SubcategoryStore
from catcrawl.tree import build_category_tree, subcategory_node, tree_to_dict
from catcrawl.url_validation import ALLOWED_DOMAINS

__all__ = ["CategoryCrawler", "CATEGORIES_DATASET", "SUBCATEGORIES_DATASET"]

logger = get_logger("crawler")

CATEGORIES_DATASET = "categories"
SUBCATEGORIES_DATASET = "subcategories"


class CategoryCrawler:
    """Discovers a catalog's category hierarchy in one crawl run.

    Owns the stores, the progress tracker and the datasets for the run.
    ``run()`` seeds the main pages, lets the fetch engine drain the queue
    through the dispatcher, then pushes the accumulated records into the
    ``categories`` and ``subcategories`` datasets. Failed requests never
    abort the run; partial results are always available.
    """

    def __init__(
        self,
        extractor: Optional[Extractor] = None,
        extract_subcategories: bool = True,
        max_requests_per_crawl: Optional[int] = MAX_REQUESTS_PER_CRAWL,
        max_concurrency: int = MAX_CONCURRENCY,
        max_retries: int = MAX_RETRIES,
        request_timeout: float = REQUEST_TIMEOUT,
        proxy_urls: Optional[List[str]] = None,
        dedupe_urls: bool = False,
        progress_observer: Optional[ProgressObserver] = None,
        output_dir: str = OUTPUT_DIR,
        session: Optional[requests.Session] = None,
        retry_backoff_base: float = RETRY_BACKOFF_BASE,
        delay_min: float = DELAY_MIN,
        delay_max: float = DELAY_MAX,
    ):
        self.extractor = extractor or ThomannExtractor()
        self.output_dir = output_dir

        self.categories = CategoryStore()
        self.subcategories = SubcategoryStore()
        self.progress = ProgressTracker(progress_observer)
        self.dispatcher = Dispatcher(
            self.extractor,
            self.categories,
            self.subcategories,
            self.progress,
            extract_subcategories=extract_subcategories,
            dedupe_urls=dedupe_urls,
        )
        self.datasets: Dict[str, Dataset] = {
            CATEGORIES_DATASET: Dataset(CATEGORIES_DATASET, output_dir),
            SUBCATEGORIES_DATASET: Dataset(SUBCATEGORIES_DATASET, output_dir),
        }

        self._engine_options: Dict[str, Any] = {
            "max_concurrency": max_concurrency,
            "max_requests_per_crawl": max_requests_per_crawl,
            "max_retries": max_retries,
            "request_timeout": request_timeout,
            "proxy_urls": proxy_urls,
            "session": session,
            "retry_backoff_base": retry_backoff_base,
            "delay_min": delay_min,
            "delay_max": delay_max,
        }
        self._has_run = False

    def _allowed_domains(self, urls: Iterable[str]) -> AbstractSet[str]:
        hosts = set(ALLOWED_DOMAINS)
        for url in [self.extractor.base_url, *urls]:
            host = urlparse(url).hostname
            if host:
                hosts.add(host.lower())
        return frozenset(hosts)

    def run(self, start_urls: Optional[List[str]] = None) -> Dict[str, Any]:
        """Crawl from the given main pages (default: the extractor's start URLs).

        Returns:
            Summary dict with record counts, request stats and progress
        """
        if self._has_run:
            raise RuntimeError("A CategoryCrawler runs once; create a new one for another crawl")
        self._has_run = True

        urls = list(start_urls) if start_urls else self.extractor.start_urls()
        engine = FetchEngine(
            self.dispatcher,
            self.dispatcher.handle_failed,
            allowed_domains=self._allowed_domains(urls),
            **self._engine_options,
        )

        log_crawl_event("crawl_start", {
            "message": f"Starting category crawl from {len(urls)} start URL(s)",
            "start_urls": urls,
            "extract_subcategories": self.dispatcher.extract_subcategories,
            "max_requests_per_crawl": engine.max_requests_per_crawl,
        })

        for url in urls:
            engine.enqueue(CrawlRequest(url=url, tag=MainPage()))

        started = time.monotonic()
        stats = engine.run()
        duration = time.monotonic() - started

        categories = self.categories.all()
        subcategories = self.subcategories.all_flattened()
        self.datasets[CATEGORIES_DATASET].push_data(categories)
        self.datasets[SUBCATEGORIES_DATASET].push_data(subcategories)

        progress = self.progress.snapshot()
        summary: Dict[str, Any] = {
            "categories": len(categories),
            "subcategories": len(subcategories),
            "requests_succeeded": stats["requests_finished"],
            "requests_failed": stats["requests_failed"],
            "requests": stats,
            "progress": progress.to_dict(),
            "duration_secs": round(duration, 2),
        }
        log_crawl_event("crawl_complete", {
            "message": (
                f"Category extraction completed. Found {len(categories)} categories "
                f"and {len(subcategories)} subcategories "
                f"({stats['requests_failed']} failed requests)"
            ),
            **summary,
        })
        return summary

    def export(
        self,
        fmt: str = "json",
        include_categories: bool = True,
        include_subcategories: bool = True,
    ) -> List[str]:
        """Export the datasets in ``fmt`` ('json' or 'csv'). Returns written paths."""
        paths: List[str] = []
        if include_categories:
            paths.append(self.datasets[CATEGORIES_DATASET].export(fmt, CATEGORIES_DATASET))
        if include_subcategories:
            paths.append(self.datasets[SUBCATEGORIES_DATASET].export(fmt, SUBCATEGORIES_DATASET))
        return paths

    def build_category_tree(self, include_subcategories: bool = True) -> CategoryTree:
        """Tree of the stored categories.

        With ``include_subcategories`` the subcategory records are attached
        below their parent category as level-1 nodes.
        """
        nodes = self.categories.all()
        if include_subcategories:
            nodes.extend(subcategory_node(sub) for sub in self.subcategories.all_flattened())
        return build_category_tree(nodes)

    def export_tree(self, tree: Optional[CategoryTree] = None, filename: str = "category_tree.json") -> str:
        tree = tree or self.build_category_tree()
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, filename)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(tree_to_dict(tree), f, indent=2, ensure_ascii=False)
        logger.info(f"Category tree saved to {path}")
        return path

    def get_categories(self) -> List[Category]:
        return self.categories.all()

    def get_category_by_code(self, code: str) -> Optional[Category]:
        return self.categories.get(code)

    def get_subcategories(self, parent_code: Optional[str] = None) -> List[Subcategory]:
        if parent_code is None:
            return self.subcategories.all_flattened()
        return self.subcategories.get(parent_code)

    def get_progress(self) -> CrawlProgress:
        return self.progress.snapshot()
