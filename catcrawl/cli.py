"""Command-line interface for category extraction."""

import argparse
import logging
import sys
from typing import List, Optional

__all__ = ["main", "parse_args", "validate_args"]

from catcrawl.config import (
    MAX_CONCURRENCY,
    MAX_REQUESTS_PER_CRAWL,
    MAX_RETRIES,
    OUTPUT_DIR,
    OUTPUT_FORMATS,
    REQUEST_TIMEOUT,
)
from catcrawl.crawler import CategoryCrawler
from catcrawl.errors import UsageError
from catcrawl.html_utils import ThomannExtractor
from catcrawl.logging_config import get_logger, setup_logging
from catcrawl.progress import LoggingProgressObserver
from catcrawl.shutdown import get_shutdown_handler
from catcrawl.tree import print_tree

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catcrawl",
        description="Extract the category hierarchy of an e-commerce catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Categories and subcategories from the default main page, as JSON
  python -m catcrawl.cli

  # Build and print the category tree, export CSV
  python -m catcrawl.cli --tree --format csv

  # Only top-level categories, at most 10 requests
  python -m catcrawl.cli --categories-only --max 10

  # Start from a specific page through two proxies
  python -m catcrawl.cli --url https://www.thomann.de/de/index.html \\
      --proxy http://proxy-1:8080 --proxy http://proxy-2:8080
        """,
    )

    parser.add_argument(
        "-u", "--url",
        dest="urls",
        action="append",
        metavar="URL",
        help="Main page to extract categories from (repeatable; default: site start page)",
    )
    parser.add_argument(
        "-f", "--format",
        choices=OUTPUT_FORMATS,
        default="json",
        help="Output format for the datasets (default: json)",
    )
    parser.add_argument(
        "-t", "--tree",
        action="store_true",
        help="Build the category tree, print it and save it as JSON",
    )
    parser.add_argument(
        "-m", "--max",
        type=int,
        default=MAX_REQUESTS_PER_CRAWL,
        help=f"Maximum requests per crawl (default: {MAX_REQUESTS_PER_CRAWL})",
    )

    scope = parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--categories-only",
        action="store_true",
        help="Only extract categories from the main pages (no category page requests)",
    )
    scope.add_argument(
        "--subcategories-only",
        action="store_true",
        help="Only export subcategories (categories are still crawled to find them)",
    )

    parser.add_argument(
        "--concurrency",
        type=int,
        default=MAX_CONCURRENCY,
        help=f"Concurrent in-flight requests (default: {MAX_CONCURRENCY})",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=MAX_RETRIES,
        help=f"Retries per failed request (default: {MAX_RETRIES})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=REQUEST_TIMEOUT,
        help=f"Per-request timeout in seconds (default: {REQUEST_TIMEOUT})",
    )
    parser.add_argument(
        "--proxy",
        dest="proxies",
        action="append",
        metavar="PROXY_URL",
        help="Proxy URL to rotate through (repeatable)",
    )
    parser.add_argument(
        "--dedupe-urls",
        action="store_true",
        help="Fetch each category URL at most once even if linked repeatedly",
    )
    parser.add_argument(
        "-o", "--output-dir",
        default=OUTPUT_DIR,
        help=f"Directory for exported datasets (default: {OUTPUT_DIR})",
    )
    parser.add_argument(
        "-p", "--progress",
        action="store_true",
        help="Report crawl progress after every category page",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Don't write the JSONL log file",
    )

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def validate_args(args: argparse.Namespace) -> None:
    """Check option values argparse cannot express.

    Raises:
        UsageError: On out-of-range options
    """
    if args.max is not None and args.max < 1:
        raise UsageError("--max must be at least 1")
    if args.concurrency < 1:
        raise UsageError("--concurrency must be at least 1")
    if args.retries < 0:
        raise UsageError("--retries must not be negative")
    if args.timeout <= 0:
        raise UsageError("--timeout must be positive")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        validate_args(args)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_to_file=not args.no_log_file,
    )

    crawler = CategoryCrawler(
        extractor=ThomannExtractor(),
        extract_subcategories=not args.categories_only,
        max_requests_per_crawl=args.max,
        max_concurrency=args.concurrency,
        max_retries=args.retries,
        request_timeout=args.timeout,
        proxy_urls=args.proxies,
        dedupe_urls=args.dedupe_urls,
        progress_observer=LoggingProgressObserver() if args.progress else None,
        output_dir=args.output_dir,
    )

    shutdown_handler = get_shutdown_handler().install()
    try:
        logger.info("Starting category extraction...")
        summary = crawler.run(args.urls)
    except Exception:
        logger.exception("Category extraction failed")
        return 1
    finally:
        shutdown_handler.uninstall()

    if args.tree:
        tree = crawler.build_category_tree(include_subcategories=not args.categories_only)
        logger.info(
            f"Built category tree with {len(crawler.get_categories())} categories "
            f"({tree.total_categories} nodes)"
        )
        logger.info(f"Root categories: {', '.join(node.name for node in tree.root)}")
        print_tree(tree.root, max_depth=3)
        crawler.export_tree(tree)

    paths = crawler.export(
        args.format,
        include_categories=not args.subcategories_only,
        include_subcategories=not args.categories_only,
    )

    print()
    print("=" * 60)
    print("CATEGORY EXTRACTION RESULTS")
    print("=" * 60)
    print(f"Categories:          {summary['categories']}")
    print(f"Subcategories:       {summary['subcategories']}")
    print(f"Requests succeeded:  {summary['requests_succeeded']}")
    print(f"Requests failed:     {summary['requests_failed']}")
    for url in summary["progress"]["failed_requests"]:
        print(f"  failed: {url}")
    for path in paths:
        print(f"Saved: {path}")

    sample = crawler.get_categories()[:5]
    if sample:
        print("\nSample categories:")
        for category in sample:
            print(f"  - {category.name} ({category.code}) - Level: {category.level}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
