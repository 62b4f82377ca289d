"""Fetch engine: a request queue drained by a bounded pool of fetch workers.

Only the HTTP fetch runs on worker threads. Parsing and the page handler
run on the thread that called ``run()``, one page at a time, so everything
a handler touches has a single writer. ``enqueue`` is meant to be called
from that same thread (before ``run()`` or from inside a handler).
"""

import logging
import random
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from itertools import cycle
from typing import AbstractSet, Callable, Deque, Dict, Iterator, List, Optional

import requests  # type: ignore[import-untyped]
from bs4 import BeautifulSoup

from catcrawl.config import (
    DELAY_MAX,
    DELAY_MIN,
    HEADERS,
    MAX_CONCURRENCY,
    MAX_REQUESTS_PER_CRAWL,
    MAX_RETRIES,
    MAX_RETRY_BACKOFF,
    REQUEST_TIMEOUT,
    RETRY_BACKOFF_BASE,
    RETRY_STATUS_CODES,
)
from catcrawl.logging_config import get_logger, log_crawl_event
from catcrawl.models import CrawlRequest
from catcrawl.shutdown import shutdown_requested
from catcrawl.url_validation import URLValidationError, validate_url

__all__ = ["CrawlContext", "FetchEngine", "create_session"]

logger = get_logger("fetcher")


@dataclass
class CrawlContext:
    """What a page handler receives for one delivered page."""

    request: CrawlRequest
    soup: BeautifulSoup
    enqueue: Callable[[CrawlRequest], bool]


RequestHandler = Callable[[CrawlContext], None]
FailedRequestHandler = Callable[[CrawlRequest, Exception], None]


def create_session() -> requests.Session:
    """Create a requests Session with connection pooling and crawl headers."""
    session = requests.Session()
    session.headers.update(HEADERS)
    session.headers.setdefault("Accept-Encoding", "gzip, deflate")
    return session


class FetchEngine:
    """Fetches queued requests and hands parsed pages to a handler.

    Failed fetches and handler exceptions are retried with exponential
    backoff up to ``max_retries`` times (HTTP errors only for the status
    codes in RETRY_STATUS_CODES). Terminal failures go to
    ``failed_request_handler`` and never stop the run.
    """

    def __init__(
        self,
        request_handler: RequestHandler,
        failed_request_handler: Optional[FailedRequestHandler] = None,
        max_concurrency: int = MAX_CONCURRENCY,
        max_requests_per_crawl: Optional[int] = MAX_REQUESTS_PER_CRAWL,
        max_retries: int = MAX_RETRIES,
        request_timeout: float = REQUEST_TIMEOUT,
        proxy_urls: Optional[List[str]] = None,
        session: Optional[requests.Session] = None,
        allowed_domains: Optional[AbstractSet[str]] = None,
        retry_backoff_base: float = RETRY_BACKOFF_BASE,
        delay_min: float = DELAY_MIN,
        delay_max: float = DELAY_MAX,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.request_handler = request_handler
        self.failed_request_handler = failed_request_handler
        self.max_concurrency = max_concurrency
        self.max_requests_per_crawl = max_requests_per_crawl
        self.max_retries = max_retries
        self.request_timeout = request_timeout
        self.session = session or create_session()
        self.allowed_domains = allowed_domains
        self.retry_backoff_base = retry_backoff_base
        self.delay_min = delay_min
        self.delay_max = delay_max

        self._proxies: Optional[Iterator[str]] = cycle(proxy_urls) if proxy_urls else None
        self._queue: Deque[CrawlRequest] = deque()
        self._enqueued = 0
        self._budget_exhausted = False
        self.stats: Dict[str, int] = {
            "requests_enqueued": 0,
            "requests_refused": 0,
            "requests_finished": 0,
            "requests_retried": 0,
            "requests_failed": 0,
        }

    @property
    def pending(self) -> int:
        return len(self._queue)

    def enqueue(self, request: CrawlRequest) -> bool:
        """Queue a request. Returns False if it was refused.

        Requests are refused when the URL fails validation or the per-run
        request budget is used up.
        """
        try:
            request.url = validate_url(request.url, allowed_domains=self.allowed_domains)
        except URLValidationError as e:
            logger.warning(f"Refusing request {request.url!r}: {e}")
            self.stats["requests_refused"] += 1
            return False

        if self.max_requests_per_crawl and self._enqueued >= self.max_requests_per_crawl:
            if not self._budget_exhausted:
                logger.warning(
                    f"Request budget of {self.max_requests_per_crawl} reached, "
                    "not enqueueing further requests"
                )
                self._budget_exhausted = True
            self.stats["requests_refused"] += 1
            return False

        self._enqueued += 1
        self.stats["requests_enqueued"] += 1
        self._queue.append(request)
        return True

    def run(self) -> Dict[str, int]:
        """Drain the queue. Returns request statistics."""
        with ThreadPoolExecutor(
            max_workers=self.max_concurrency, thread_name_prefix="catcrawl-fetch"
        ) as pool:
            in_flight: Dict[Future, CrawlRequest] = {}

            while self._queue or in_flight:
                while self._queue and len(in_flight) < self.max_concurrency:
                    if shutdown_requested():
                        logger.info(
                            f"Shutdown requested, dropping {len(self._queue)} queued requests"
                        )
                        self._queue.clear()
                        break
                    request = self._queue.popleft()
                    future = pool.submit(self._fetch, request, self._next_proxy())
                    in_flight[future] = request

                if not in_flight:
                    break

                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    self._process(in_flight.pop(future), future)

        return dict(self.stats)

    def _next_proxy(self) -> Optional[str]:
        return next(self._proxies) if self._proxies is not None else None

    def _fetch(self, request: CrawlRequest, proxy: Optional[str]) -> str:
        """Worker-thread part: backoff for retries, GET, polite delay."""
        if request.retry_count:
            backoff = min(self.retry_backoff_base ** request.retry_count, MAX_RETRY_BACKOFF)
            if backoff > 0:
                time.sleep(backoff + random.uniform(0, 1))

        proxies = {"http": proxy, "https": proxy} if proxy else None
        resp = self.session.get(request.url, timeout=self.request_timeout, proxies=proxies)
        resp.raise_for_status()

        if self.delay_max > 0:
            time.sleep(random.uniform(self.delay_min, self.delay_max))
        return str(resp.text)

    def _process(self, request: CrawlRequest, future: Future) -> None:
        try:
            html = future.result()
            soup = BeautifulSoup(html, "html.parser")
            self.request_handler(CrawlContext(request=request, soup=soup, enqueue=self.enqueue))
        except Exception as e:
            self._handle_error(request, e)
            return
        self.stats["requests_finished"] += 1

    @staticmethod
    def _is_retryable(error: Exception) -> bool:
        if isinstance(error, requests.exceptions.HTTPError):
            status = error.response.status_code if error.response is not None else None
            return status in RETRY_STATUS_CODES
        return True

    def _handle_error(self, request: CrawlRequest, error: Exception) -> None:
        if self._is_retryable(error) and request.retry_count < self.max_retries:
            request.retry_count += 1
            self.stats["requests_retried"] += 1
            logger.warning(
                f"Error on {request.url}, retrying "
                f"(attempt {request.retry_count}/{self.max_retries}): {error}"
            )
            self._queue.append(request)
            return

        self.stats["requests_failed"] += 1
        logger.error(f"Request {request.url} failed after {request.retry_count} retries: {error}")
        log_crawl_event("request_failed", {
            "url": request.url,
            "label": request.label,
            "retries": request.retry_count,
            "error": str(error),
        }, level=logging.ERROR)

        if self.failed_request_handler is not None:
            self.failed_request_handler(request, error)
