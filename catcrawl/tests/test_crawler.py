"""End-to-end crawl tests against a fake catalog."""

import csv
import json
from unittest.mock import MagicMock

import pytest

from catcrawl.crawler import CategoryCrawler
from catcrawl.html_utils import ThomannExtractor
from catcrawl.tests.conftest import (
    BASE,
    DRUMS_URL,
    GUITARS_URL,
    MAIN_URL,
    FakeSession,
    main_page_html,
)


class FlakyExtractor(ThomannExtractor):
    """Fails the first subcategory extraction for one parent code."""

    def __init__(self, base_url, fail_once_for):
        super().__init__(base_url=base_url)
        self.fail_once_for = fail_once_for
        self.failures = 0

    def extract_subcategories(self, soup, parent_name, parent_code):
        if parent_code == self.fail_once_for and not self.failures:
            self.failures += 1
            raise RuntimeError("grid not rendered yet")
        return super().extract_subcategories(soup, parent_name, parent_code)


def make_crawler(pages, tmp_path, **kwargs):
    options = {
        "extractor": ThomannExtractor(base_url=BASE),
        "session": FakeSession(pages),
        "retry_backoff_base": 0,
        "max_concurrency": 1,
        "output_dir": str(tmp_path),
    }
    options.update(kwargs)
    return CategoryCrawler(**options)


class TestCategoryCrawler:

    def test_end_to_end(self, guitars_and_drums_pages, tmp_path):
        crawler = make_crawler(guitars_and_drums_pages, tmp_path)

        summary = crawler.run([MAIN_URL])

        assert [c.code for c in crawler.get_categories()] == ["GI", "DR"]
        assert crawler.subcategories.as_dict().keys() == {"GI", "DR"}
        assert [s.name for s in crawler.get_subcategories("GI")] == ["E-Gitarren"]
        assert [s.name for s in crawler.get_subcategories("DR")] == ["Akustik-Drums"]
        assert crawler.get_progress().to_dict() == {
            "total_categories": 2,
            "processed_categories": 2,
            "total_subcategories": 2,
            "failed_requests": [],
        }

        tree = crawler.build_category_tree()
        assert [n.code for n in tree.root] == ["GI", "DR"]
        assert [len(n.subcategories) for n in tree.root] == [1, 1]
        assert tree.root[0].subcategories[0].name == "E-Gitarren"

        assert summary["categories"] == 2
        assert summary["subcategories"] == 2
        assert summary["requests_succeeded"] == 3
        assert summary["requests_failed"] == 0
        assert len(crawler.datasets["categories"]) == 2
        assert len(crawler.datasets["subcategories"]) == 2

    def test_failed_category_page_recorded_once(self, guitars_and_drums_pages, tmp_path):
        pages = dict(guitars_and_drums_pages)
        pages[DRUMS_URL] = 500
        session = FakeSession(pages)
        crawler = make_crawler(pages, tmp_path, session=session, max_retries=2)

        summary = crawler.run([MAIN_URL])

        progress = crawler.get_progress()
        assert progress.failed_requests == (DRUMS_URL,)
        assert progress.processed_categories == 1
        assert progress.total_subcategories == 1
        assert len(crawler.get_categories()) == 2
        assert summary["requests_failed"] == 1
        assert session.urls_fetched().count(DRUMS_URL) == 3

    def test_failed_main_page(self, tmp_path):
        crawler = make_crawler({MAIN_URL: "<html><body>Wartung</body></html>"}, tmp_path, max_retries=1)

        summary = crawler.run([MAIN_URL])

        assert summary["categories"] == 0
        assert crawler.get_progress().failed_requests == (MAIN_URL,)

    def test_categories_only(self, guitars_and_drums_pages, tmp_path):
        session = FakeSession(guitars_and_drums_pages)
        crawler = make_crawler(guitars_and_drums_pages, tmp_path, session=session, extract_subcategories=False)

        crawler.run([MAIN_URL])

        assert session.urls_fetched() == [MAIN_URL]
        assert len(crawler.get_categories()) == 2
        assert crawler.get_subcategories() == []
        assert crawler.get_progress().processed_categories == 0

    def test_request_budget_limits_crawl(self, guitars_and_drums_pages, tmp_path):
        session = FakeSession(guitars_and_drums_pages)
        crawler = make_crawler(guitars_and_drums_pages, tmp_path, session=session, max_requests_per_crawl=2)

        crawler.run([MAIN_URL])

        assert session.urls_fetched() == [MAIN_URL, GUITARS_URL]
        assert crawler.get_progress().processed_categories == 1
        assert crawler.get_progress().failed_requests == ()

    def test_progress_observer(self, guitars_and_drums_pages, tmp_path):
        observer = MagicMock()
        crawler = make_crawler(guitars_and_drums_pages, tmp_path, progress_observer=observer)

        crawler.run([MAIN_URL])

        last = observer.on_progress.call_args.args[0]
        assert last.processed_categories == 2

    def test_runs_once(self, guitars_and_drums_pages, tmp_path):
        crawler = make_crawler(guitars_and_drums_pages, tmp_path)
        crawler.run([MAIN_URL])

        with pytest.raises(RuntimeError):
            crawler.run([MAIN_URL])

    def test_flyout_children_nest_below_titled_parent(self, tmp_path):
        pages = {
            MAIN_URL: main_page_html([{
                "href": "/de/gitarren_und_baesse.html",
                "name": "Gitarren",
                "title": "Gitarren und Bässe",
                "code": "GI",
                "children": [("/de/e-gitarren.html", "E-Gitarren", "12 Artikel")],
            }]),
        }
        crawler = make_crawler(pages, tmp_path, extract_subcategories=False)

        crawler.run([MAIN_URL])

        tree = crawler.build_category_tree(include_subcategories=False)
        assert [n.code for n in tree.root] == ["GI"]
        assert [n.name for n in tree.root[0].subcategories] == ["E-Gitarren"]

    def test_progress_independent_of_completion_order(self, guitars_and_drums_pages, tmp_path):
        pages = dict(guitars_and_drums_pages)
        pages[DRUMS_URL] = [503, guitars_and_drums_pages[DRUMS_URL]]
        crawler = make_crawler(
            pages, tmp_path, extractor=FlakyExtractor(base_url=BASE, fail_once_for="GI"), max_concurrency=3
        )

        crawler.run([MAIN_URL])

        progress = crawler.get_progress()
        assert (progress.processed_categories, progress.total_subcategories, progress.failed_requests) == (2, 2, ())
        assert progress.total_categories == 2
        assert [s.name for s in crawler.get_subcategories("GI")] == ["E-Gitarren"]
        assert [s.name for s in crawler.get_subcategories("DR")] == ["Akustik-Drums"]

    def test_get_category_by_code(self, guitars_and_drums_pages, tmp_path):
        crawler = make_crawler(guitars_and_drums_pages, tmp_path)
        crawler.run([MAIN_URL])

        assert crawler.get_category_by_code("DR").name == "Drums"
        assert crawler.get_category_by_code("XX") is None


class TestExport:

    @pytest.fixture
    def crawled(self, guitars_and_drums_pages, tmp_path):
        crawler = make_crawler(guitars_and_drums_pages, tmp_path)
        crawler.run([MAIN_URL])
        return crawler

    def test_json(self, crawled, tmp_path):
        paths = crawled.export("json")

        assert paths == [str(tmp_path / "categories.json"), str(tmp_path / "subcategories.json")]
        categories = json.loads((tmp_path / "categories.json").read_text(encoding="utf-8"))
        assert [c["code"] for c in categories] == ["GI", "DR"]
        assert "subcategories" not in categories[0]
        subcategories = json.loads((tmp_path / "subcategories.json").read_text(encoding="utf-8"))
        assert subcategories[0]["parent_category_code"] == "GI"

    def test_csv_subcategories_only(self, crawled, tmp_path):
        paths = crawled.export("csv", include_categories=False)

        assert paths == [str(tmp_path / "subcategories.csv")]
        with open(paths[0], newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [row["name"] for row in rows] == ["E-Gitarren", "Akustik-Drums"]
        assert rows[0]["product_count"] == "4321"

    def test_tree(self, crawled, tmp_path):
        path = crawled.export_tree()

        data = json.loads(open(path, encoding="utf-8").read())
        assert data["total_categories"] == 4
        assert [node["code"] for node in data["root"]] == ["GI", "DR"]
        assert data["root"][1]["subcategories"][0]["name"] == "Akustik-Drums"
