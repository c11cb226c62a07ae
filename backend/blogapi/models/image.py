"""
Blog API — Image Model
========================

What:  Metadata for one stored upload (the bytes live under the upload root).
How:   `filename` is the generated storage name and is unique; `path` and
       `thumbnail_path` are public URL paths (`/uploads/...`).

An image may belong to a post (`post_id`) and play one role in it:

    featured   the article's header image
    content    inline image in the body
    gallery    part of an image gallery
    step       numbered tutorial step (`step_number`, `caption`)

Deleting a post leaves its images in place with `post_id` set to NULL; they
then show up in the orphaned-images report.
"""

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from blogapi.database import Base
from blogapi.models.mixins import TimestampMixin

IMAGE_TYPES = ("featured", "content", "gallery", "step")


class Image(TimestampMixin, Base):
    __tablename__ = "images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thumbnail_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    image_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="content", server_default=text("'content'")
    )
    sort_order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    step_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)

    # No ORM relationship: a post id may point at a row that no longer
    # exists on databases without enforced foreign keys, and the orphan
    # report has to see those.
    post_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="SET NULL"), nullable=True
    )
    alt_text: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_images_post_sort", "post_id", "sort_order"),
        Index("idx_images_type", "image_type"),
    )

    def __repr__(self) -> str:
        return f"<Image(id={self.id}, filename='{self.filename}', post_id={self.post_id})>"
