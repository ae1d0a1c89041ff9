from __future__ import annotations

# Re-export common schema classes for convenient imports
from .categories import (  # noqa: F401
    CategoryCreate,
    CategoryUpdate,
    CategoryListQuery,
    first_error_message,
)

__all__ = [
    "CategoryCreate",
    "CategoryUpdate",
    "CategoryListQuery",
    "first_error_message",
]
