from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from taxonomy.utils.slug import normalize_slug


def _strip(v: Any) -> Any:
    return v.strip() if isinstance(v, str) else v


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def first_error_message(exc: ValidationError) -> str:
    """Flatten the first pydantic error into ``"field: message"``."""
    errors = exc.errors()
    if not errors:
        return "invalid input"
    err = errors[0]
    loc = ".".join(str(part) for part in err.get("loc", ()) if part != "__root__")
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    slug: str = Field(min_length=1, max_length=120)
    description: str | None = None
    # Public hex id of the parent; blank means root
    parent_id: str | None = None

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _strip(v)

    @field_validator("slug", mode="before")
    @classmethod
    def slug_lower(cls, v: Any) -> Any:
        return normalize_slug(v) if isinstance(v, str) else v

    @field_validator("parent_id", mode="before")
    @classmethod
    def parent_blank(cls, v: Any) -> Any:
        return _blank_to_none(v)


class CategoryUpdate(BaseModel):
    """Partial update. Only fields present in the payload are applied.

    ``parent_id`` is tri-state: absent leaves the tree untouched, ``None`` or
    ``""`` moves the category to the root, anything else re-parents it.
    """

    name: str | None = Field(default=None, min_length=1, max_length=80)
    slug: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    parent_id: str | None = None

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _strip(v)

    @field_validator("slug", mode="before")
    @classmethod
    def slug_lower(cls, v: Any) -> Any:
        return normalize_slug(v) if isinstance(v, str) else v

    @field_validator("parent_id", mode="before")
    @classmethod
    def parent_blank(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @property
    def moves_parent(self) -> bool:
        return "parent_id" in self.model_fields_set

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CategoryListQuery(BaseModel):
    q: str | None = None
    parent_id: str | None = None
    has_parent: Literal["yes", "no"] | None = None
    depth_min: int | None = Field(default=None, ge=0)
    depth_max: int | None = Field(default=None, ge=0)
    created_from: date | None = None
    created_to: date | None = None
    sort_by: Literal["created_at", "updated_at", "name", "slug", "depth"] = "created_at"
    sort_dir: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @field_validator("q", "parent_id", "has_parent", mode="before")
    @classmethod
    def blank_params(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("sort_dir", mode="before")
    @classmethod
    def sort_dir_lower(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def depth_range(self) -> "CategoryListQuery":
        if self.depth_min is not None and self.depth_max is not None and self.depth_min > self.depth_max:
            raise ValueError("depth_min must not exceed depth_max")
        return self
