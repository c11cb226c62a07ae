"""Create users, posts and images tables

Revision ID: 001
Revises: None
Create Date: 2024-06-03 00:00:00.000000+00:00

What:  Initial schema for the blog: admin accounts, posts, uploaded images.
How:   Tags are JSONB on PostgreSQL and JSON elsewhere. images.post_id is
       SET NULL when its post is deleted, so images survive as orphans.

Rollback: downgrade() drops all three tables (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(50), server_default=sa.text("'admin'"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("author", sa.String(100), nullable=True),
        sa.Column("image_src", sa.String(500), nullable=True),
        sa.Column("image_alt", sa.String(255), nullable=True),
        # CSS object-position values for the featured image
        sa.Column("image_position_x", sa.String(20), nullable=True),
        sa.Column("image_position_y", sa.String(20), nullable=True),
        sa.Column(
            "tags",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), server_default=sa.text("'draft'"), nullable=False),
        sa.Column("pub_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_posts"),
        sa.UniqueConstraint("slug", name="uq_posts_slug"),
        sa.CheckConstraint("status IN ('draft', 'published')", name="ck_posts_status"),
    )
    op.create_index("idx_posts_status_pub_date", "posts", ["status", "pub_date"])

    op.create_table(
        "images",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("original_name", sa.String(255), nullable=False),
        sa.Column("path", sa.String(500), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("thumbnail_path", sa.String(500), nullable=True),
        sa.Column("image_type", sa.String(20), server_default=sa.text("'content'"), nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("step_number", sa.Integer(), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("post_id", sa.Integer(), nullable=True),
        sa.Column("alt_text", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_images"),
        sa.UniqueConstraint("filename", name="uq_images_filename"),
        sa.ForeignKeyConstraint(["post_id"], ["posts.id"], name="fk_images_post_id", ondelete="SET NULL"),
        sa.CheckConstraint(
            "image_type IN ('featured', 'content', 'gallery', 'step')",
            name="ck_images_image_type",
        ),
    )
    op.create_index("idx_images_post_sort", "images", ["post_id", "sort_order"])
    op.create_index("idx_images_type", "images", ["image_type"])


def downgrade() -> None:
    op.drop_index("idx_images_type", table_name="images")
    op.drop_index("idx_images_post_sort", table_name="images")
    op.drop_table("images")
    op.drop_index("idx_posts_status_pub_date", table_name="posts")
    op.drop_table("posts")
    op.drop_table("users")
