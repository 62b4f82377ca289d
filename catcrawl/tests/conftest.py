"""Shared fixtures: inline catalog pages and a fake HTTP session."""

from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest
import requests  # type: ignore[import-untyped]

from catcrawl.shutdown import get_shutdown_handler

BASE = "https://www.thomann.de"
MAIN_URL = f"{BASE}/de/index.html"
GUITARS_URL = f"{BASE}/de/gitarren_und_baesse.html"
DRUMS_URL = f"{BASE}/de/drums_und_percussion.html"


def main_page_html(items: Sequence[dict], next_href: Optional[str] = None) -> str:
    """Render a main navigation.

    Each item: ``href``, ``name``, optional ``code``, ``title``, ``count`` and
    ``children`` (list of (href, name, count) tuples).
    """
    parts = ['<html><body><nav class="fx-nav-main"><ul>']
    for item in items:
        code_attr = f' data-category-code="{item["code"]}"' if item.get("code") else ""
        title_attr = f' title="{item["title"]}"' if item.get("title") else ""
        parts.append(f'<li class="fx-nav-main__item"{code_attr}>')
        parts.append(f'<a class="fx-nav-main__link" href="{item["href"]}"{title_attr}>{item["name"]}</a>')
        if item.get("count"):
            parts.append(f'<span class="fx-nav-main__count">{item["count"]}</span>')
        children = item.get("children") or []
        if children:
            parts.append('<div class="fx-nav-main__flyout"><ul>')
            for href, name, count in children:
                parts.append(f'<li><a href="{href}">{name}</a>')
                if count:
                    parts.append(f'<span class="fx-nav-main__count">{count}</span>')
                parts.append("</li>")
            parts.append("</ul></div>")
        parts.append("</li>")
    parts.append("</ul></nav>")
    if next_href:
        parts.append(f'<div class="pagination"><span class="next"><a href="{next_href}">Weiter</a></span></div>')
    parts.append("</body></html>")
    return "".join(parts)


def category_page_html(tiles: Sequence[Tuple[str, str, str]], image_host: str = "https://thumbs.static-thomann.de") -> str:
    """Render a category grid from (href, name, count) tiles."""
    parts = ['<html><body><div class="fx-category-grid">']
    for index, (href, name, count) in enumerate(tiles):
        parts.append(
            f'<a class="fx-category-grid__item" href="{href}">'
            f'<picture><source type="image/webp" srcset="{image_host}/pics/{index}.webp 1x">'
            f'<img src="{image_host}/pics/{index}.jpg" alt="{name}"></picture>'
            f'<span class="fx-category-grid__title">{name}</span>'
            f'<span class="fx-category-grid__count">{count}</span>'
            "</a>"
        )
    parts.append("</div></body></html>")
    return "".join(parts)


class FakeResponse:
    def __init__(self, url: str, text: str = "", status_code: int = 200):
        self.url = url
        self.text = text
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(
                f"{self.status_code} Error for url: {self.url}", response=self
            )


PageResult = Union[str, int, Exception, List[Union[str, int, Exception]]]


class FakeSession:
    """Stands in for requests.Session.

    ``pages`` maps a URL to HTML, an HTTP status code, an exception to raise,
    or a list of those consumed one per request. Unknown URLs answer 404.
    """

    def __init__(self, pages: Dict[str, PageResult]):
        self.pages = dict(pages)
        self.headers: Dict[str, str] = {}
        self.calls: List[Tuple[str, Optional[dict]]] = []

    def get(self, url, timeout=None, proxies=None):
        self.calls.append((url, proxies))
        result = self.pages.get(url, 404)
        if isinstance(result, list):
            result = result.pop(0) if len(result) > 1 else result[0]
        if isinstance(result, Exception):
            raise result
        if isinstance(result, int):
            return FakeResponse(url, "", result)
        return FakeResponse(url, result)

    def urls_fetched(self) -> List[str]:
        return [url for url, _ in self.calls]


@pytest.fixture
def guitars_and_drums_pages():
    """A main page with two categories and one subcategory tile each."""
    return {
        MAIN_URL: main_page_html([
            {"href": "/de/gitarren_und_baesse.html", "name": "Gitarren", "code": "GI"},
            {"href": "/de/drums_und_percussion.html", "name": "Drums", "code": "DR"},
        ]),
        GUITARS_URL: category_page_html([("/de/e-gitarren.html", "E-Gitarren", "4.321 Artikel")]),
        DRUMS_URL: category_page_html([("/de/akustik-drums.html", "Akustik-Drums", "987 Artikel")]),
    }


@pytest.fixture(autouse=True)
def reset_shutdown():
    """Every test starts (and ends) without a pending shutdown request."""
    handler = get_shutdown_handler()
    handler.reset()
    yield handler
    handler.reset()
