"""Category store access.

These helpers never commit; the service layer owns the transaction so that a
mutation and its depth cascade succeed or fail together.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload

from taxonomy.extensions import db
from taxonomy.models.category import Category


SORT_COLUMNS = {
    "created_at": Category.created_at,
    "updated_at": Category.updated_at,
    "name": Category.name,
    "slug": Category.slug,
    "depth": Category.depth,
}


def get_category_by_id(category_id: int, *, for_update: bool = False) -> Optional[Category]:
    stmt = db.select(Category).filter_by(id=category_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return db.session.execute(stmt).scalar_one_or_none()


def get_category_by_hex_id(hex_id: str, *, for_update: bool = False) -> Optional[Category]:
    stmt = db.select(Category).filter_by(hex_id=hex_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return db.session.execute(stmt).scalar_one_or_none()


def get_category_by_slug(slug: str) -> Optional[Category]:
    return db.session.execute(db.select(Category).filter_by(slug=slug)).scalar_one_or_none()


def slug_exists(slug: str, *, excluding_id: int | None = None) -> bool:
    stmt = db.select(Category.id).filter_by(slug=slug)
    if excluding_id is not None:
        stmt = stmt.where(Category.id != excluding_id)
    return db.session.execute(stmt.limit(1)).first() is not None


def list_categories() -> list[Category]:
    stmt = (
        db.select(Category)
        .options(selectinload(Category.parent))
        .order_by(Category.depth, Category.name)
    )
    return list(db.session.execute(stmt).scalars())


def list_children_of(parent_ids: Iterable[int], *, for_update: bool = False) -> list[Category]:
    """Return the direct children of every id in ``parent_ids`` in one query."""
    ids = list(parent_ids)
    if not ids:
        return []
    stmt = db.select(Category).where(Category.parent_id.in_(ids)).order_by(Category.id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return list(db.session.execute(stmt).scalars())


def count_children(category_id: int) -> int:
    stmt = db.select(func.count(Category.id)).where(Category.parent_id == category_id)
    return db.session.execute(stmt).scalar_one()


def list_categories_filtered(
    *,
    q: str | None = None,
    parent_id: int | None = None,
    has_parent: bool | None = None,
    depth_min: int | None = None,
    depth_max: int | None = None,
    created_from: date | None = None,
    created_to: date | None = None,
    sort_by: str = "created_at",
    sort_dir: str = "desc",
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Category], int]:
    stmt = db.select(Category).options(selectinload(Category.parent))

    if q:
        pattern = f"%{q}%"
        stmt = stmt.where(
            or_(
                Category.name.ilike(pattern),
                Category.slug.ilike(pattern),
                Category.description.ilike(pattern),
            )
        )
    if parent_id is not None:
        stmt = stmt.where(Category.parent_id == parent_id)
    if has_parent is True:
        stmt = stmt.where(Category.parent_id.is_not(None))
    elif has_parent is False:
        stmt = stmt.where(Category.parent_id.is_(None))
    if depth_min is not None:
        stmt = stmt.where(Category.depth >= depth_min)
    if depth_max is not None:
        stmt = stmt.where(Category.depth <= depth_max)
    if created_from is not None:
        stmt = stmt.where(Category.created_at >= datetime.combine(created_from, time.min))
    if created_to is not None:
        stmt = stmt.where(Category.created_at < datetime.combine(created_to + timedelta(days=1), time.min))

    column = SORT_COLUMNS.get(sort_by, Category.created_at)
    order = column.asc() if sort_dir == "asc" else column.desc()
    stmt = stmt.order_by(order, Category.id)

    pag = db.paginate(stmt, page=page, per_page=per_page, error_out=False)
    return list(pag.items), pag.total or 0


def add_category(cat: Category) -> Category:
    db.session.add(cat)
    db.session.flush()
    return cat


def remove_category(cat: Category) -> None:
    db.session.delete(cat)
    db.session.flush()
