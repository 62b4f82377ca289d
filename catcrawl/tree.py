"""Reassembly of the flat category list into a forest."""

from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from catcrawl.html_utils import infer_code_from_url
from catcrawl.models import Category, CategoryTree, Subcategory

__all__ = [
    "build_category_tree",
    "find_parent",
    "subcategory_node",
    "tree_to_dict",
    "print_tree",
]


def find_parent(
    reference: str,
    candidates: Sequence[Category],
    exclude: Optional[Category] = None,
) -> Optional[Category]:
    """First candidate whose name or code equals ``reference`` exactly."""
    for candidate in candidates:
        if candidate is exclude:
            continue
        if candidate.name == reference or candidate.code == reference:
            return candidate
    return None


def subcategory_node(subcategory: Subcategory) -> Category:
    """Represent a subcategory as a level-1 category referencing its parent by code."""
    return Category(
        code=infer_code_from_url(subcategory.url),
        name=subcategory.name,
        url=subcategory.url,
        parent_category=subcategory.parent_category_code,
        level=1,
        product_count=subcategory.product_count,
        scraped_at=subcategory.scraped_at,
        source=subcategory.source,
    )


def build_category_tree(categories: Sequence[Category]) -> CategoryTree:
    """Build a tree from flat categories by resolving ``parent_category``.

    Parents are matched by exact name or code, first match in input order.
    A category whose parent cannot be found is placed at the root. Every
    input record becomes exactly one node; the input is not modified.
    """
    # First pass: clone with empty child lists
    nodes: List[Category] = [replace(category, subcategories=[]) for category in categories]

    # Second pass: attach to parents
    root: List[Category] = []
    for node in nodes:
        if not node.parent_category:
            root.append(node)
            continue
        parent = find_parent(node.parent_category, nodes, exclude=node)
        if parent is not None:
            parent.subcategories.append(node)
        else:
            root.append(node)

    return CategoryTree(root=root, total_categories=len(categories))


def tree_to_dict(tree: CategoryTree) -> Dict[str, Any]:
    return {
        "total_categories": tree.total_categories,
        "root": [node.to_dict() for node in tree.root],
    }


def print_tree(nodes: Sequence[Category], indent: int = 0, max_depth: int = 4) -> None:
    """Pretty print a category forest."""
    for node in nodes:
        children = node.subcategories or []
        prefix = "  " * indent
        if children:
            print(f"{prefix}+ {node.name} [{node.code}] ({len(children)} subcategories)")
        else:
            print(f"{prefix}- {node.name} [{node.code}]")
        if indent < max_depth - 1:
            print_tree(children, indent + 1, max_depth)
