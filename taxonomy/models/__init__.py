from __future__ import annotations

# Import all models to maintain compatibility
from taxonomy.models.category import Category, generate_hex_id

__all__ = [
    "generate_hex_id",
    "Category",
]
