"""Shared assertions for hierarchy tests."""

from taxonomy.extensions import db
from taxonomy.models import Category
from taxonomy.repositories.categories import get_category_by_hex_id


def load(dto: dict) -> Category:
    """Fresh model instance for a category DTO."""
    cat = get_category_by_hex_id(dto['id'])
    assert cat is not None
    return cat


def all_depths() -> dict[str, int]:
    return {c.slug: c.depth for c in db.session.execute(db.select(Category)).scalars()}


def assert_tree_consistent() -> None:
    """Every cached depth matches the parent chain and slugs are unique."""
    rows = list(db.session.execute(db.select(Category)).scalars())
    by_id = {c.id: c for c in rows}
    for cat in rows:
        hops, current, seen = 0, cat, {cat.id}
        while current.parent_id is not None:
            current = by_id[current.parent_id]
            assert current.id not in seen, f"cycle through {cat.slug}"
            seen.add(current.id)
            hops += 1
        assert cat.depth == hops, f"{cat.slug}: cached {cat.depth}, actual {hops}"
    slugs = [c.slug.strip().lower() for c in rows]
    assert len(slugs) == len(set(slugs))
