# Import all repository functions to maintain compatibility
from taxonomy.repositories.categories import (
    get_category_by_id,
    get_category_by_hex_id,
    get_category_by_slug,
    slug_exists,
    list_categories,
    list_children_of,
    count_children,
    list_categories_filtered,
    add_category,
    remove_category,
)

__all__ = [
    "get_category_by_id",
    "get_category_by_hex_id",
    "get_category_by_slug",
    "slug_exists",
    "list_categories",
    "list_children_of",
    "count_children",
    "list_categories_filtered",
    "add_category",
    "remove_category",
]
