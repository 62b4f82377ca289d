"""Routing of delivered pages to the main-page or category-page handler."""

from typing import List, Set

from bs4 import BeautifulSoup

from catcrawl.errors import ExtractionError, ValidationError
from catcrawl.fetcher import CrawlContext
from catcrawl.html_utils import Extractor
from catcrawl.logging_config import get_logger, log_crawl_event
from catcrawl.models import Category, CategoryPage, CrawlRequest, MainPage, Subcategory
from catcrawl.progress import ProgressTracker
from catcrawl.stores import CategoryStore, SubcategoryStore
from catcrawl.validation import validate_category, validate_subcategory

__all__ = ["Dispatcher"]

logger = get_logger("dispatcher")


class Dispatcher:
    """Turns delivered pages into store updates and derived requests.

    Main pages yield categories; each stored category is followed by one
    category-page request for its subcategories. Any error while handling a
    page is raised as ExtractionError so the fetch engine can retry; URLs
    that exhaust their retries are recorded through ``handle_failed``.

    Args:
        extractor: Site-specific record extraction
        categories: Store for validated categories
        subcategories: Store for validated subcategories
        progress: Counters updated after every page outcome
        extract_subcategories: Enqueue a category-page request per category
        dedupe_urls: Skip derived requests for URLs already enqueued in
            this run (off by default: repeated category links are fetched
            again)
    """

    def __init__(
        self,
        extractor: Extractor,
        categories: CategoryStore,
        subcategories: SubcategoryStore,
        progress: ProgressTracker,
        extract_subcategories: bool = True,
        dedupe_urls: bool = False,
    ):
        self.extractor = extractor
        self.categories = categories
        self.subcategories = subcategories
        self.progress = progress
        self.extract_subcategories = extract_subcategories
        self.dedupe_urls = dedupe_urls
        self._seen_urls: Set[str] = set()

    def __call__(self, context: CrawlContext) -> None:
        self.handle(context)

    def handle(self, context: CrawlContext) -> None:
        request = context.request
        logger.info(f"Processing {request.label} page {request.url}")
        try:
            if isinstance(request.tag, MainPage):
                self._handle_main_page(context)
            elif isinstance(request.tag, CategoryPage):
                self._handle_category_page(context.soup, request.tag)
            else:
                raise TypeError(f"Unknown request tag: {request.tag!r}")
        except Exception as e:
            logger.error(f"Error processing {request.url}: {e}")
            raise ExtractionError(
                f"Failed to extract records from {request.url}", request.url, str(e)
            ) from e

    def handle_failed(self, request: CrawlRequest, error: Exception) -> None:
        """Called by the fetch engine once a request has exhausted its retries."""
        self.progress.record_failure(request.url)

    def _handle_main_page(self, context: CrawlContext) -> None:
        request = context.request
        raw_categories = self.extractor.extract_categories(context.soup)
        next_url = self.extractor.extract_next_page_url(context.soup, request.url)

        stored: List[Category] = []
        for raw in raw_categories:
            try:
                category = validate_category(raw)
            except ValidationError as e:
                logger.warning(f"Skipping invalid category on {request.url}: {e} ({e.field})")
                continue
            self.categories.upsert(category)
            stored.append(category)
            logger.info(f"Found category: {category.name} ({category.code})")
            log_crawl_event("category_found", {
                "code": category.code,
                "name": category.name,
                "url": category.url,
                "level": category.level,
            })

        self.progress.add_categories(len(stored))

        if self.extract_subcategories:
            for category in stored:
                self._enqueue(context, CrawlRequest(
                    url=category.url,
                    tag=CategoryPage(parent_name=category.name, parent_code=category.code),
                ))

        if next_url and next_url != request.url:
            self._enqueue(context, CrawlRequest(url=next_url, tag=MainPage()))

    def _handle_category_page(self, soup: BeautifulSoup, tag: CategoryPage) -> None:
        validated: List[Subcategory] = []
        for raw in self.extractor.extract_subcategories(soup, tag.parent_name, tag.parent_code):
            try:
                validated.append(validate_subcategory(raw))
            except ValidationError as e:
                logger.warning(f"Skipping invalid subcategory of {tag.parent_code}: {e}")

        if validated:
            self.subcategories.append(tag.parent_code, validated)
        logger.info(f"Found {len(validated)} subcategories for {tag.parent_name} ({tag.parent_code})")

        self.progress.add_subcategories(len(validated))
        self.progress.mark_category_processed()

    def _enqueue(self, context: CrawlContext, request: CrawlRequest) -> None:
        if self.dedupe_urls:
            if request.url in self._seen_urls:
                logger.debug(f"Skipping already enqueued URL {request.url}")
                return
            self._seen_urls.add(request.url)
        if not context.enqueue(request):
            logger.debug(f"Request for {request.url} was not enqueued")
