"""Category hierarchy engine.

Keeps the category tree acyclic, keeps every cached ``depth`` equal to the
number of parent hops to a root, and keeps slugs unique. Each public mutation
runs in a single transaction (see :func:`atomic`): the row write and the whole
descendant depth cascade commit together or not at all.
"""
from __future__ import annotations

import math
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from taxonomy.exceptions import (
    CategoryError,
    CategoryNotFound,
    CategoryValidationError,
    CorruptHierarchy,
    DuplicateSlug,
    HasChildren,
    InvalidParent,
    ParentNotFound,
    PersistenceError,
)
from taxonomy.extensions import db
from taxonomy.models.category import NAME_MAX_LENGTH, SLUG_MAX_LENGTH, Category
from taxonomy.repositories.categories import (
    add_category,
    count_children,
    get_category_by_hex_id,
    get_category_by_id,
    list_categories as _list_categories,
    list_categories_filtered,
    list_children_of,
    remove_category,
    slug_exists,
)
from taxonomy.schemas.categories import CategoryListQuery
from taxonomy.utils.slug import normalize_slug

log = structlog.get_logger(__name__)

_PATCHABLE = frozenset({"name", "slug", "description", "parent_id"})


# Transactions

@contextmanager
def atomic() -> Iterator[None]:
    """Run the block as one unit of work: commit on success, roll back on any error."""
    try:
        yield
        db.session.commit()
    except CategoryError as e:
        db.session.rollback()
        log.warning("category_mutation_rejected", kind=e.kind, message=e.message)
        raise
    except IntegrityError as e:
        db.session.rollback()
        if "slug" in str(e.orig).lower():
            raise DuplicateSlug() from e
        log.error("category_integrity_error", error=str(e.orig))
        raise PersistenceError() from e
    except SQLAlchemyError as e:
        db.session.rollback()
        log.error("category_store_error", error=str(e))
        raise PersistenceError() from e
    except Exception:
        db.session.rollback()
        raise


def _lock_rows() -> bool:
    return bool(current_app.config.get("CATEGORY_LOCK_ANCESTORS", True))


# Slug uniqueness guard

def ensure_unique_slug(slug: str, excluding_id: int | None = None) -> str:
    """Return the normalized slug, or raise ``DuplicateSlug`` if another row holds it."""
    normalized = normalize_slug(slug)
    if not normalized:
        raise CategoryValidationError("slug is required")
    if len(normalized) > SLUG_MAX_LENGTH:
        raise CategoryValidationError(f"slug must be at most {SLUG_MAX_LENGTH} characters")
    if slug_exists(normalized, excluding_id=excluding_id):
        raise DuplicateSlug(f'slug "{normalized}" is already used by another category')
    return normalized


# Ancestor chain walker and cycle detector

def ancestors_of(category_id: int, *, lock: bool = False) -> list[Category]:
    """Return the ancestors of ``category_id``, nearest first.

    The walk is bounded by ``CATEGORY_MAX_DEPTH`` and refuses to revisit a
    node, so a stored cycle surfaces as ``CorruptHierarchy`` instead of an
    endless loop.
    """
    max_depth = _max_depth()
    current = get_category_by_id(category_id, for_update=lock)
    if current is None:
        raise CategoryNotFound()

    chain: list[Category] = []
    seen = {current.id}
    while current.parent_id is not None:
        if current.parent_id in seen or len(chain) >= max_depth:
            log.critical(
                "category_hierarchy_corrupt",
                category_id=category_id,
                at=current.id,
                hops=len(chain),
                reason="cycle" if current.parent_id in seen else "depth_bound",
            )
            raise CorruptHierarchy(
                f"ancestor chain of category {category_id} loops or exceeds {max_depth} levels"
            )
        parent = get_category_by_id(current.parent_id, for_update=lock)
        if parent is None:
            log.critical("category_hierarchy_corrupt", category_id=category_id, at=current.id, reason="dangling_parent")
            raise CorruptHierarchy(f"category {current.id} references a missing parent")
        chain.append(parent)
        seen.add(parent.id)
        current = parent
    return chain


def would_cycle(moving_id: int, candidate_parent_id: int, *, lock: bool = False) -> bool:
    if moving_id == candidate_parent_id:
        return True
    return any(a.id == moving_id for a in ancestors_of(candidate_parent_id, lock=lock))


# Depth

def compute_depth(parent: Category | None) -> int:
    return 0 if parent is None else (parent.depth or 0) + 1


def _max_depth() -> int:
    return int(current_app.config.get("CATEGORY_MAX_DEPTH", 256))


def _subtree_levels(root: Category, *, lock: bool = False) -> Iterator[list[Category]]:
    """Yield the descendants of ``root`` one level at a time, nearest level first."""
    seen = {root.id}
    frontier = [root.id]
    while frontier:
        level = list_children_of(frontier, for_update=lock)
        for child in level:
            if child.id in seen:
                log.critical("category_hierarchy_corrupt", category_id=root.id, at=child.id, reason="cycle")
                raise CorruptHierarchy(f"subtree of category {root.id} contains a cycle")
            seen.add(child.id)
        if level:
            yield level
        frontier = [child.id for child in level]


def subtree_height(root: Category, *, lock: bool = False) -> int:
    """Number of levels below ``root``; 0 for a leaf."""
    return sum(1 for _ in _subtree_levels(root, lock=lock))


def cascade_depth(root: Category, delta: int, *, lock: bool = False) -> int:
    """Shift the depth of every descendant of ``root`` by ``delta``.

    Must run after ``root.depth`` has been updated, inside the caller's
    transaction. Walks the subtree breadth-first, one query per level, and
    touches each descendant exactly once. With ``lock`` every descendant row is
    read ``FOR UPDATE`` before it is rewritten. Returns the number of rows updated.
    """
    if delta == 0:
        return 0

    db.session.flush()
    updated = 0
    for level in _subtree_levels(root, lock=lock):
        for child in level:
            child.depth = (child.depth or 0) + delta
        updated += len(level)
        db.session.flush()
    return updated


# Projections

def _summary(cat: Category) -> dict[str, Any]:
    return {"id": cat.hex_id, "name": cat.name}


def to_dto(cat: Category, *, include_children: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": cat.hex_id,
        "name": cat.name,
        "slug": cat.slug,
        "description": cat.description,
        "depth": cat.depth,
        "parent": _summary(cat.parent) if cat.parent is not None else None,
        "created_at": cat.created_at.isoformat() if cat.created_at else None,
        "updated_at": cat.updated_at.isoformat() if cat.updated_at else None,
    }
    if include_children:
        data["children"] = [_summary(c) for c in cat.children]
    return data


def get_category(hex_id: str) -> dict[str, Any] | None:
    cat = get_category_by_hex_id(hex_id)
    if cat is None:
        return None
    return to_dto(cat, include_children=True)


def list_categories() -> list[dict[str, Any]]:
    """All categories ordered by depth then name, for rendering an indented tree."""
    return [to_dto(c) for c in _list_categories()]


def list_categories_page(query: CategoryListQuery) -> dict[str, Any]:
    parent_pk = None
    if query.parent_id:
        parent = get_category_by_hex_id(query.parent_id)
        if parent is None:
            return {"items": [], "total": 0, "page": query.page, "page_size": query.page_size, "pages": 0}
        parent_pk = parent.id

    page_size = min(query.page_size, int(current_app.config.get("CATEGORY_PAGE_SIZE_MAX", 100)))
    items, total = list_categories_filtered(
        q=query.q,
        parent_id=parent_pk,
        has_parent=None if query.has_parent is None else query.has_parent == "yes",
        depth_min=query.depth_min,
        depth_max=query.depth_max,
        created_from=query.created_from,
        created_to=query.created_to,
        sort_by=query.sort_by,
        sort_dir=query.sort_dir,
        page=query.page,
        per_page=page_size,
    )
    return {
        "items": [to_dto(c) for c in items],
        "total": total,
        "page": query.page,
        "page_size": page_size,
        "pages": math.ceil(total / page_size),
    }


def get_ancestors(hex_id: str) -> list[dict[str, Any]]:
    """Breadcrumb trail for a category, nearest ancestor first."""
    cat = get_category_by_hex_id(hex_id)
    if cat is None:
        raise CategoryNotFound()
    return [
        {"id": a.hex_id, "name": a.name, "slug": a.slug, "depth": a.depth}
        for a in ancestors_of(cat.id)
    ]


# Mutations

def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise CategoryValidationError("name is required")
    if len(cleaned) > NAME_MAX_LENGTH:
        raise CategoryValidationError(f"name must be at most {NAME_MAX_LENGTH} characters")
    return cleaned


def _clean_description(description: str | None) -> str | None:
    if description is None:
        return None
    return description.strip()


def _parent_ref(parent_id: str | None) -> str | None:
    if parent_id is None:
        return None
    return str(parent_id).strip() or None


def create_category(
    *,
    name: str,
    slug: str,
    description: str | None = None,
    parent_id: str | None = None,
) -> dict[str, Any]:
    """Create a category under ``parent_id`` (a public hex id) or at the root."""
    parent_ref = _parent_ref(parent_id)

    with atomic():
        clean_name = _clean_name(name)
        clean_slug = ensure_unique_slug(slug)
        parent = None
        if parent_ref is not None:
            parent = get_category_by_hex_id(parent_ref, for_update=_lock_rows())
            if parent is None:
                raise ParentNotFound(f"parent category {parent_ref} not found")
            if compute_depth(parent) > _max_depth():
                raise InvalidParent(f"categories cannot be nested deeper than {_max_depth()} levels")

        cat = Category(
            name=clean_name,
            slug=clean_slug,
            description=_clean_description(description),
            parent=parent,
            depth=compute_depth(parent),
        )
        add_category(cat)
        dto = to_dto(cat, include_children=True)

    log.info("category_created", category=cat.hex_id, slug=clean_slug, depth=cat.depth,
             parent=parent.hex_id if parent else None)
    return dto


def _reparent(cat: Category, parent_ref: str | None) -> tuple[int, int]:
    """Point ``cat`` at a new parent and cascade the depth change. Returns (delta, cascaded)."""
    lock = _lock_rows()
    new_parent = None
    if parent_ref is not None:
        if parent_ref == cat.hex_id:
            raise InvalidParent("a category cannot be its own parent")
        new_parent = get_category_by_hex_id(parent_ref, for_update=lock)
        if new_parent is None:
            raise ParentNotFound(f"parent category {parent_ref} not found")
        if would_cycle(cat.id, new_parent.id, lock=lock):
            raise InvalidParent("a category cannot be moved under one of its own descendants")

    old_depth = cat.depth or 0
    new_depth = compute_depth(new_parent)
    delta = new_depth - old_depth
    if delta > 0 and new_depth + subtree_height(cat, lock=lock) > _max_depth():
        raise InvalidParent(f"categories cannot be nested deeper than {_max_depth()} levels")

    cat.parent = new_parent
    cat.depth = new_depth
    db.session.flush()

    cascaded = cascade_depth(cat, delta, lock=lock) if delta != 0 else 0
    return delta, cascaded


def update_category(hex_id: str, **changes: Any) -> dict[str, Any]:
    """Apply a partial update.

    Only keys present in ``changes`` are touched. ``parent_id`` present with
    ``None`` or ``""`` moves the category to the root; absent, the tree shape
    and every depth are left alone.
    """
    unknown = set(changes) - _PATCHABLE
    if unknown:
        raise CategoryValidationError(f"unknown fields: {', '.join(sorted(unknown))}")

    moved = "parent_id" in changes
    delta = cascaded = 0
    with atomic():
        cat = get_category_by_hex_id(hex_id, for_update=_lock_rows())
        if cat is None:
            raise CategoryNotFound()

        if changes.get("slug") is not None:
            next_slug = normalize_slug(changes["slug"])
            if not next_slug:
                raise CategoryValidationError("slug is required")
            if next_slug != cat.slug:
                cat.slug = ensure_unique_slug(next_slug, excluding_id=cat.id)

        if changes.get("name") is not None:
            cat.name = _clean_name(changes["name"])
        if "description" in changes:
            cat.description = _clean_description(changes["description"])

        if moved:
            delta, cascaded = _reparent(cat, _parent_ref(changes["parent_id"]))

        db.session.flush()
        dto = to_dto(cat, include_children=True)

    if moved:
        log.info("category_moved", category=hex_id, parent=dto["parent"]["id"] if dto["parent"] else None,
                 depth=dto["depth"], delta=delta, cascaded=cascaded)
    else:
        log.info("category_updated", category=hex_id, fields=sorted(changes))
    return dto


def delete_category(hex_id: str) -> dict[str, bool]:
    """Delete a leaf category. Categories with children are refused."""
    with atomic():
        cat = get_category_by_hex_id(hex_id, for_update=_lock_rows())
        if cat is None:
            raise CategoryNotFound()
        if count_children(cat.id) > 0:
            raise HasChildren()
        remove_category(cat)

    log.info("category_deleted", category=hex_id)
    return {"ok": True}


# Audit

def verify_hierarchy() -> list[dict[str, Any]]:
    """Report stored rows that break a tree invariant. Read-only; never repairs."""
    rows = list(db.session.execute(db.select(Category).order_by(Category.id)).scalars())
    by_id = {c.id: c for c in rows}
    problems: list[dict[str, Any]] = []

    def report(cat: Category, problem: str, detail: str) -> None:
        problems.append({"category": cat.hex_id, "slug": cat.slug, "problem": problem, "detail": detail})

    for cat in rows:
        if cat.slug != normalize_slug(cat.slug):
            report(cat, "slug_not_normalized", f"expected {normalize_slug(cat.slug)!r}")

        hops = 0
        seen = {cat.id}
        current = cat
        broken = False
        while current.parent_id is not None:
            parent = by_id.get(current.parent_id)
            if parent is None:
                report(cat, "dangling_parent", f"parent row {current.parent_id} is missing")
                broken = True
                break
            if parent.id in seen:
                report(cat, "cycle", f"row {parent.id} is its own ancestor")
                broken = True
                break
            seen.add(parent.id)
            hops += 1
            current = parent

        if not broken and cat.depth != hops:
            report(cat, "depth_mismatch", f"cached depth {cat.depth}, actual {hops}")

    if problems:
        log.error("category_hierarchy_problems", count=len(problems))
    return problems
