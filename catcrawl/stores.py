"""In-memory stores for the records accumulated during one crawl run."""

from dataclasses import replace
from typing import Dict, List, Optional

from catcrawl.models import Category, Subcategory

__all__ = ["CategoryStore", "SubcategoryStore"]


class CategoryStore:
    """Categories keyed by code. A repeated code overwrites the earlier record."""

    def __init__(self) -> None:
        self._categories: Dict[str, Category] = {}

    def upsert(self, category: Category) -> None:
        self._categories[category.code] = category

    def get(self, code: str) -> Optional[Category]:
        return self._categories.get(code)

    def all(self) -> List[Category]:
        """Snapshot of all categories in insertion order.

        Returns copies, so callers may mutate the list and its items freely.
        """
        return [replace(category) for category in self._categories.values()]

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, code: object) -> bool:
        return code in self._categories


class SubcategoryStore:
    """Subcategory lists grouped by parent category code."""

    def __init__(self) -> None:
        self._by_parent: Dict[str, List[Subcategory]] = {}

    def append(self, parent_code: str, subcategories: List[Subcategory]) -> None:
        # Replaces any earlier bucket for the same parent
        self._by_parent[parent_code] = list(subcategories)

    def get(self, parent_code: str) -> List[Subcategory]:
        return list(self._by_parent.get(parent_code, []))

    def all_flattened(self) -> List[Subcategory]:
        flattened: List[Subcategory] = []
        for bucket in self._by_parent.values():
            flattened.extend(bucket)
        return flattened

    def as_dict(self) -> Dict[str, List[Subcategory]]:
        return {code: list(bucket) for code, bucket in self._by_parent.items()}

    def __len__(self) -> int:
        return len(self._by_parent)

    def __contains__(self, parent_code: object) -> bool:
        return parent_code in self._by_parent
