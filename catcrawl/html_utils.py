"""HTML extraction of category and subcategory records.

The crawler only talks to the ``Extractor`` interface; ``ThomannExtractor``
is the implementation for thomann.de. Extractors return raw dicts which are
validated by ``catcrawl.validation`` before they reach a store.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from catcrawl.config import BASE_URL, DEFAULT_START_URLS, SOURCE_NAME
from catcrawl.errors import ExtractionError
from catcrawl.logging_config import get_logger
from catcrawl.url_validation import URLValidationError, absolute_url, validate_image_url

__all__ = [
    "Extractor",
    "ThomannExtractor",
    "infer_code_from_url",
    "parse_product_count",
]

logger = get_logger("html_utils")

RawRecord = Dict[str, Any]

# Site-provided codes in URLs look like /de/GI_guitars.html or /de/cat_GF_guitars.html
CODE_URL_RE = re.compile(r"([A-Z]{2,3})_\w+\.html?$")
WORD_SPLIT_RE = re.compile(r"[_\-\s]+")
EXTENSION_RE = re.compile(r"\.[^.]*$")
FALLBACK_CODE = "XX"


def infer_code_from_url(url: str) -> str:
    """Derive a short category code from a category URL.

    Used only when the page carries no explicit code:
    1. an uppercase prefix like ``GI_`` in the file name
    2. the initials of the first two words of the slug
    3. the first two characters of the slug, or "XX"

    Codes are not guaranteed to be unique.
    """
    path = urlparse(url).path if url else ""
    match = CODE_URL_RE.search(path)
    if match:
        return match.group(1)

    segment = path.rstrip("/").rsplit("/", 1)[-1]
    segment = EXTENSION_RE.sub("", segment)
    words = [word for word in WORD_SPLIT_RE.split(segment) if word]
    if len(words) >= 2:
        return (words[0][0] + words[1][0]).upper()

    cleaned = "".join(words)
    return cleaned[:2].upper() or FALLBACK_CODE


def parse_product_count(text: Optional[str]) -> Optional[int]:
    """Parse counts like '142 Artikel', '(1.234)' or '2,345 products'."""
    if not text:
        return None
    digits = re.sub(r"\D", "", text)
    return int(digits) if digits else None


def _text(element: Optional[Tag]) -> str:
    return element.get_text(" ", strip=True) if element is not None else ""


class Extractor(ABC):
    """Per-site extraction of records from a parsed page. No I/O, no state."""

    source: str = "unknown"
    base_url: str = ""

    @abstractmethod
    def extract_categories(self, soup: BeautifulSoup) -> List[RawRecord]:
        """Return raw category records found on a main page."""

    @abstractmethod
    def extract_subcategories(
        self, soup: BeautifulSoup, parent_name: str, parent_code: str
    ) -> List[RawRecord]:
        """Return raw subcategory records found on a category page."""

    def extract_next_page_url(self, soup: BeautifulSoup, current_url: str) -> Optional[str]:
        """URL of the next main listing page, if the site paginates it."""
        return None

    def start_urls(self) -> List[str]:
        return [self.base_url]


class ThomannExtractor(Extractor):
    """Extractor for thomann.de navigation and category grid markup."""

    source = SOURCE_NAME

    # Main navigation: one item per top-level category with a flyout of
    # second-level links
    NAV_SELECTORS = ("nav.fx-nav-main", "nav.main-navigation", "#main-navigation")
    NAV_ITEM_SELECTOR = "li.fx-nav-main__item"
    NAV_LINK_SELECTOR = "a.fx-nav-main__link"
    FLYOUT_LINK_SELECTOR = ".fx-nav-main__flyout a[href]"
    NAV_COUNT_SELECTOR = ".fx-nav-main__count"

    # Category pages: a grid of subcategory tiles
    GRID_ITEM_SELECTOR = ".fx-category-grid a.fx-category-grid__item"
    GRID_TITLE_SELECTOR = ".fx-category-grid__title"
    GRID_COUNT_SELECTOR = ".fx-category-grid__count"

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url

    def start_urls(self) -> List[str]:
        if self.base_url == BASE_URL:
            return list(DEFAULT_START_URLS)
        return [f"{self.base_url}/de/index.html"]

    def extract_categories(self, soup: BeautifulSoup) -> List[RawRecord]:
        nav = None
        for selector in self.NAV_SELECTORS:
            nav = soup.select_one(selector)
            if nav:
                break
        if nav is None:
            raise ExtractionError("Main navigation not found")

        scraped_at = datetime.now()
        records: List[RawRecord] = []

        for item in nav.select(self.NAV_ITEM_SELECTOR):
            link = item.select_one(self.NAV_LINK_SELECTOR)
            if link is None:
                continue
            url = absolute_url(link.get("href"), self.base_url)
            name = _text(link)
            code = item.get("data-category-code") or infer_code_from_url(url)

            records.append({
                "code": code,
                "name": name,
                "url": url,
                "parent_category": None,
                "level": 0,
                "product_count": parse_product_count(_text(item.select_one(self.NAV_COUNT_SELECTOR))),
                "scraped_at": scraped_at,
                "source": self.source,
            })

            for child in item.select(self.FLYOUT_LINK_SELECTOR):
                child_url = absolute_url(child.get("href"), self.base_url)
                count_el = child.find_next_sibling(class_="fx-nav-main__count")
                records.append({
                    "code": child.get("data-category-code") or infer_code_from_url(child_url),
                    "name": _text(child),
                    "url": child_url,
                    "parent_category": code,
                    "level": 1,
                    "product_count": parse_product_count(_text(count_el)),
                    "scraped_at": scraped_at,
                    "source": self.source,
                })

        logger.debug(f"Extracted {len(records)} raw categories")
        return records

    def extract_subcategories(
        self, soup: BeautifulSoup, parent_name: str, parent_code: str
    ) -> List[RawRecord]:
        scraped_at = datetime.now()
        records: List[RawRecord] = []
        seen_names = set()

        for tile in soup.select(self.GRID_ITEM_SELECTOR):
            name = _text(tile.select_one(self.GRID_TITLE_SELECTOR))
            if not name:
                img = tile.find("img")
                name = (img.get("alt") or "").strip() if img else ""
            if name in seen_names:
                continue
            seen_names.add(name)

            image_url, image_url_webp = self._tile_images(tile)
            records.append({
                "name": name,
                "url": absolute_url(tile.get("href"), self.base_url),
                "image_url": image_url,
                "image_url_webp": image_url_webp,
                "parent_category": parent_name,
                "parent_category_code": parent_code,
                "product_count": parse_product_count(_text(tile.select_one(self.GRID_COUNT_SELECTOR))),
                "scraped_at": scraped_at,
                "source": self.source,
            })

        if not records:
            logger.debug(f"No subcategory tiles found for {parent_name} ({parent_code})")
        return records

    def extract_next_page_url(self, soup: BeautifulSoup, current_url: str) -> Optional[str]:
        next_link = soup.select_one(".pagination .next a[href]")
        if next_link is None:
            return None
        return absolute_url(next_link.get("href"), current_url) or None

    def _tile_images(self, tile: Tag):
        """Return (jpg, webp) image URLs of a grid tile; invalid ones become ""."""
        img = tile.find("img")
        raw_jpg = (img.get("src") or img.get("data-src")) if img else None

        raw_webp = None
        source = tile.find("source", attrs={"type": "image/webp"})
        if source is not None:
            srcset = source.get("srcset") or source.get("data-srcset") or ""
            raw_webp = srcset.split(",")[0].strip().split(" ")[0] or None

        images = []
        for raw in (raw_jpg, raw_webp):
            try:
                images.append(validate_image_url(absolute_url(raw, self.base_url)))
            except URLValidationError as e:
                logger.warning(f"Skipping invalid image URL {raw}: {e}")
                images.append("")
        return images[0], images[1]
