"""Category hierarchy crawler for e-commerce catalogs."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from catcrawl.crawler import CategoryCrawler
from catcrawl.errors import ExtractionError, UsageError, ValidationError
from catcrawl.html_utils import Extractor, ThomannExtractor, infer_code_from_url
from catcrawl.models import (
    Category,
    CategoryPage,
    CategoryTree,
    CrawlProgress,
    CrawlRequest,
    MainPage,
    Subcategory,
)
from catcrawl.tree import build_category_tree
from catcrawl.validation import (
    sanitize_category,
    sanitize_subcategory,
    validate_category,
    validate_subcategory,
)

__all__ = [
    # Version
    "__version__",
    # Models
    "Category",
    "Subcategory",
    "CrawlProgress",
    "CategoryTree",
    "MainPage",
    "CategoryPage",
    "CrawlRequest",
    # Errors
    "ExtractionError",
    "ValidationError",
    "UsageError",
    # Core
    "CategoryCrawler",
    "Extractor",
    "ThomannExtractor",
    "infer_code_from_url",
    "build_category_tree",
    "validate_category",
    "sanitize_category",
    "validate_subcategory",
    "sanitize_subcategory",
]
