"""
Blog API — Post Model
=======================

What:  One blog article.
How:   `slug` is the public identifier (unique, URL-safe); `status` is either
       `draft` or `published`; `pub_date` is set the first time a post is
       published and kept on later unpublish/republish cycles.

Tags are a JSON array of strings. On PostgreSQL the column is JSONB so tag
filters can use containment (`tags @> '["python"]'`); other databases store
plain JSON text (see `services/tag_query.py`).

Indexes:
    (status, pub_date DESC)   public listing, newest first
    slug                      unique lookup for /api/posts/{slug}
"""

from datetime import datetime
from typing import List

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from blogapi.database import Base
from blogapi.models.mixins import TimestampMixin

POST_STATUSES = ("draft", "published")

TagList = JSON().with_variant(JSONB(), "postgresql")


class Post(TimestampMixin, Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    author: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # ── Featured image ────────────────────────────────────────────────────
    image_src: Mapped[str | None] = mapped_column(String(500), nullable=True)
    image_alt: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # CSS object-position values, e.g. "50%" / "top"
    image_position_x: Mapped[str | None] = mapped_column(String(20), nullable=True)
    image_position_y: Mapped[str | None] = mapped_column(String(20), nullable=True)

    tags: Mapped[List[str]] = mapped_column(TagList, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="draft", server_default=text("'draft'")
    )
    pub_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_posts_status_pub_date", "status", "pub_date"),
    )

    @property
    def is_published(self) -> bool:
        return self.status == "published"

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, slug='{self.slug}', status='{self.status}')>"
