from __future__ import annotations

import secrets
from datetime import datetime

from sqlalchemy import CheckConstraint, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taxonomy.extensions import db

NAME_MAX_LENGTH = 80
SLUG_MAX_LENGTH = 120


def generate_hex_id(length: int = 32) -> str:
    """Generate a secure random hex string of specified length."""
    return secrets.token_hex(length // 2)


class Category(db.Model):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    hex_id: Mapped[str] = mapped_column(db.String(32), unique=True, nullable=False, index=True, default=generate_hex_id)
    name: Mapped[str] = mapped_column(db.String(NAME_MAX_LENGTH), nullable=False)
    slug: Mapped[str] = mapped_column(db.String(SLUG_MAX_LENGTH), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    parent_id: Mapped[int | None] = mapped_column(
        db.ForeignKey("categories.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    # Cached distance to a root; kept in step with the parent chain by the service layer
    depth: Mapped[int] = mapped_column(db.Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), onupdate=func.now())

    parent: Mapped[Category | None] = relationship(
        back_populates="children", remote_side=[id]
    )
    children: Mapped[list[Category]] = relationship(
        back_populates="parent", order_by="Category.name", passive_deletes="all"
    )

    __table_args__ = (
        CheckConstraint("depth >= 0", name="ck_categories_depth_non_negative"),
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="ck_categories_not_own_parent"),
        Index("ix_categories_depth_name", "depth", "name"),
    )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def __repr__(self) -> str:
        return f"<Category {self.hex_id} slug={self.slug!r} depth={self.depth}>"
