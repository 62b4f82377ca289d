"""Normalization and validation of raw extractor records.

Raw records are plain dicts (as produced by the extractor) or already built
``Category``/``Subcategory`` objects, so validating a validated record
returns an equal record.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional, Tuple

from catcrawl.errors import ValidationError
from catcrawl.models import Category, Subcategory

__all__ = [
    "validate_category",
    "sanitize_category",
    "is_valid_category",
    "validate_subcategory",
    "sanitize_subcategory",
    "is_valid_subcategory",
]

CATEGORY_REQUIRED_FIELDS: Tuple[str, ...] = ("name", "url", "code")
SUBCATEGORY_REQUIRED_FIELDS: Tuple[str, ...] = (
    "name",
    "url",
    "parent_category",
    "parent_category_code",
)


def _get(raw: Any, key: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(key)
    return getattr(raw, key, None)


def _clean(value: Any) -> Optional[str]:
    """Trim string values; anything that is not a string counts as missing."""
    if not isinstance(value, str):
        return None
    return value.strip()


def _require(raw: Any, fields: Tuple[str, ...], kind: str) -> dict:
    if raw is None:
        raise ValidationError(f"Missing {kind} record", ", ".join(fields), raw)
    cleaned = {}
    for key in fields:
        value = _clean(_get(raw, key))
        if not value:
            raise ValidationError(
                f"Missing required {kind} field '{key}'", key, _get(raw, key)
            )
        cleaned[key] = value
    return cleaned


def _product_count(raw: Any) -> Optional[int]:
    value = _get(raw, "product_count")
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("Invalid product count", "product_count", value) from e


def validate_category(raw: Any) -> Category:
    """Validate and normalize a raw category.

    Raises:
        ValidationError: If name, url or code is missing or blank
    """
    required = _require(raw, CATEGORY_REQUIRED_FIELDS, "category")

    level = _get(raw, "level")
    source = _clean(_get(raw, "source"))

    return Category(
        code=required["code"],
        name=required["name"],
        url=required["url"],
        parent_category=_clean(_get(raw, "parent_category")) or None,
        level=level if isinstance(level, int) and not isinstance(level, bool) else 0,
        product_count=_product_count(raw),
        scraped_at=_get(raw, "scraped_at") or datetime.now(),
        source=source or "unknown",
    )


def sanitize_category(raw: Any) -> Optional[Category]:
    """Like validate_category, but returns None for invalid records."""
    try:
        return validate_category(raw)
    except ValidationError:
        return None


def is_valid_category(raw: Any) -> bool:
    return sanitize_category(raw) is not None


def validate_subcategory(raw: Any) -> Subcategory:
    """Validate and normalize a raw subcategory.

    Raises:
        ValidationError: If name, url or the parent linkage is missing
    """
    required = _require(raw, SUBCATEGORY_REQUIRED_FIELDS, "subcategory")
    source = _clean(_get(raw, "source"))

    return Subcategory(
        name=required["name"],
        url=required["url"],
        parent_category=required["parent_category"],
        parent_category_code=required["parent_category_code"],
        image_url=_clean(_get(raw, "image_url")) or "",
        image_url_webp=_clean(_get(raw, "image_url_webp")) or "",
        product_count=_product_count(raw),
        scraped_at=_get(raw, "scraped_at") or datetime.now(),
        source=source or "unknown",
    )


def sanitize_subcategory(raw: Any) -> Optional[Subcategory]:
    """Like validate_subcategory, but returns None for invalid records."""
    try:
        return validate_subcategory(raw)
    except ValidationError:
        return None


def is_valid_subcategory(raw: Any) -> bool:
    return sanitize_subcategory(raw) is not None
