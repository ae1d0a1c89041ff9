"""Error kinds raised by the category hierarchy engine.

Every expected failure is a ``CategoryError`` subclass so callers can map it to
a structured ``{"error": kind, "message": message}`` payload without seeing
raw store exceptions.
"""
from __future__ import annotations


class CategoryError(Exception):
    """Base exception for category operations"""

    kind: str = "category_error"
    status_code: int = 400
    default_message: str = "category operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class CategoryValidationError(CategoryError):
    """Malformed input (empty name or slug, bad query parameters)"""

    kind = "validation_error"
    status_code = 400
    default_message = "invalid input"


class DuplicateSlug(CategoryError):
    kind = "duplicate_slug"
    status_code = 409
    default_message = "slug is already used by another category"


class CategoryNotFound(CategoryError):
    kind = "category_not_found"
    status_code = 404
    default_message = "category not found"


class ParentNotFound(CategoryError):
    kind = "parent_not_found"
    status_code = 404
    default_message = "parent category not found"


class InvalidParent(CategoryError):
    """Self-parenting or a parent that would close a cycle"""

    kind = "invalid_parent"
    status_code = 400
    default_message = "invalid parent"


class HasChildren(CategoryError):
    kind = "has_children"
    status_code = 409
    default_message = "remove or move subcategories first"


class CorruptHierarchy(CategoryError):
    """Stored data already violates acyclicity or the depth bound"""

    kind = "corrupt_hierarchy"
    status_code = 500
    default_message = "category hierarchy is corrupt"


class PersistenceError(CategoryError):
    """Store-level failure; the transaction was rolled back and may be retried"""

    kind = "persistence_error"
    status_code = 503
    default_message = "could not save changes, please retry"
