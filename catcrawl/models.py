"""Data models for categories, subcategories and crawl requests."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

__all__ = [
    "Category",
    "Subcategory",
    "CrawlProgress",
    "CategoryTree",
    "MainPage",
    "CategoryPage",
    "RequestTag",
    "CrawlRequest",
]


def _isoformat(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


@dataclass
class Category:
    """A catalog category discovered on a main page.

    ``code`` is the primary key. ``parent_category`` holds the free-form name
    or code of the parent as printed on the site, or None for top-level
    entries. ``subcategories`` stays None for stored records and is only
    populated on tree nodes.
    """

    # Required fields
    code: str
    name: str
    url: str

    parent_category: Optional[str] = None
    level: int = 0
    product_count: Optional[int] = None
    scraped_at: datetime = field(default_factory=datetime.now)
    source: str = "unknown"

    subcategories: Optional[List["Category"]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Flat, JSON-ready representation (tree children included if set)."""
        data = {
            "code": self.code,
            "name": self.name,
            "url": self.url,
            "parent_category": self.parent_category,
            "level": self.level,
            "product_count": self.product_count,
            "scraped_at": _isoformat(self.scraped_at),
            "source": self.source,
        }
        if self.subcategories is not None:
            data["subcategories"] = [child.to_dict() for child in self.subcategories]
        return data


@dataclass
class Subcategory:
    """A subcategory tile found on a category page."""

    name: str
    url: str
    parent_category: str
    parent_category_code: str

    image_url: str = ""
    image_url_webp: str = ""
    product_count: Optional[int] = None
    scraped_at: datetime = field(default_factory=datetime.now)
    source: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["scraped_at"] = _isoformat(self.scraped_at)
        return data


@dataclass(frozen=True)
class CrawlProgress:
    """Immutable snapshot of crawl counters."""

    total_categories: int = 0
    processed_categories: int = 0
    total_subcategories: int = 0
    failed_requests: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["failed_requests"] = list(self.failed_requests)
        return data


@dataclass
class CategoryTree:
    """Categories reassembled into a forest."""

    root: List[Category]
    total_categories: int


# =============================================================================
# Request tags
# =============================================================================

@dataclass(frozen=True)
class MainPage:
    """A page listing top-level categories."""


@dataclass(frozen=True)
class CategoryPage:
    """A category page listing the subcategories of one parent."""

    parent_name: str
    parent_code: str


RequestTag = Union[MainPage, CategoryPage]


@dataclass
class CrawlRequest:
    """A URL travelling through the fetch engine with its tag."""

    url: str
    tag: RequestTag
    retry_count: int = 0

    @property
    def label(self) -> str:
        return "main" if isinstance(self.tag, MainPage) else "category"
