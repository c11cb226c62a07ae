"""
Blog API — Post Service
=========================

What:  Business rules for blog posts: listing, search, tags, CRUD, publishing.
How:   Each method opens its own session scope; lookups that find nothing
       raise NotFoundError, input problems raise ValidationError, and
       SQLAlchemy failures surface as DatabaseError (see `database.session_scope`).

Slugs:
    Derived from the title when not supplied: lowercase, every run of
    characters outside [a-z0-9] becomes one hyphen, edge hyphens trimmed,
    at most 100 characters ("Hello, World!" → "hello-world"). A generated
    slug that is taken gets a counter suffix (-1, -2, ...); an explicitly
    requested slug that is taken is a validation error.

Publishing:
    `pub_date` is stamped the first time a post becomes published and is not
    cleared when it is unpublished again.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.database import SessionFactory, paginate, session_scope
from blogapi.exceptions import NotFoundError, ValidationError
from blogapi.models.post import Post
from blogapi.schemas.post import PostInput
from blogapi.services.tag_query import TagQueryStrategy

logger = logging.getLogger(__name__)

MAX_SLUG_LENGTH = 100

EDITABLE_FIELDS = (
    "title",
    "content",
    "description",
    "author",
    "image_src",
    "image_alt",
    "image_position_x",
    "image_position_y",
    "tags",
    "status",
    "pub_date",
    "updated_date",
)

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def generate_slug(title: str) -> str:
    slug = _NON_SLUG_CHARS.sub("-", title.lower()).strip("-")
    return slug[:MAX_SLUG_LENGTH].strip("-") or "post"


def _like_pattern(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PostService:
    def __init__(self, sessions: SessionFactory, tag_query: TagQueryStrategy):
        self.sessions = sessions
        self.tag_query = tag_query

    # ── Public reads ──────────────────────────────────────────────────────

    async def list_published(self, page: int, limit: int, search: Optional[str] = None) -> Tuple[List[Post], int]:
        stmt = self._published()
        if search:
            pattern = _like_pattern(search)
            stmt = stmt.where(
                or_(
                    func.lower(Post.title).like(pattern, escape="\\"),
                    func.lower(Post.content).like(pattern, escape="\\"),
                    func.lower(Post.description).like(pattern, escape="\\"),
                )
            )
        async with session_scope(self.sessions, "list posts") as session:
            return await paginate(session, stmt, page, limit)

    async def get_published_by_slug(self, slug: str) -> Post:
        async with session_scope(self.sessions, "get post") as session:
            post = await self._by_slug(session, slug)
        if post is None or not post.is_published:
            raise NotFoundError("Post", slug)
        return post

    async def all_tags(self) -> List[str]:
        async with session_scope(self.sessions, "list tags") as session:
            return await self.tag_query.distinct_tags(session)

    async def by_tag(self, tag: str, page: int, limit: int) -> Tuple[List[Post], int]:
        stmt = self._published().where(self.tag_query.has_tag(tag))
        async with session_scope(self.sessions, "list posts by tag") as session:
            return await paginate(session, stmt, page, limit)

    async def stats(self) -> Dict[str, int]:
        async with session_scope(self.sessions, "post stats") as session:
            rows = (await session.execute(select(Post.status, func.count(Post.id)).group_by(Post.status))).all()
        counts = {status: int(count) for status, count in rows}
        published = counts.get("published", 0)
        drafts = counts.get("draft", 0)
        return {
            "total_posts": published + drafts,
            "published_posts": published,
            "draft_posts": drafts,
        }

    # ── Admin ─────────────────────────────────────────────────────────────

    async def list_admin(self, page: int, limit: int) -> Tuple[List[Post], int]:
        stmt = select(Post).order_by(Post.updated_at.desc(), Post.id.desc())
        async with session_scope(self.sessions, "list admin posts") as session:
            return await paginate(session, stmt, page, limit)

    async def get_for_edit(self, post_id: int) -> Post:
        async with session_scope(self.sessions, "get post") as session:
            post = await session.get(Post, post_id)
        if post is None:
            raise NotFoundError("Post", post_id)
        return post

    async def create(self, data: PostInput) -> Post:
        async with session_scope(self.sessions, "create post") as session:
            slug = await self._resolve_slug(session, data)
            now = _utcnow()
            post = Post(
                slug=slug,
                **{field: getattr(data, field) for field in EDITABLE_FIELDS if field != "tags"},
                tags=data.tags or [],
            )
            if post.status == "published" and post.pub_date is None:
                post.pub_date = now
            post.updated_date = now
            session.add(post)
            await session.flush()
            await session.refresh(post)
        logger.info("Created post %d (%s, %s)", post.id, post.slug, post.status)
        return post

    async def update(self, post_id: int, data: PostInput) -> Post:
        async with session_scope(self.sessions, "update post") as session:
            post = await session.get(Post, post_id)
            if post is None:
                raise NotFoundError("Post", post_id)

            was_published = post.is_published
            post.slug = await self._resolve_slug(session, data, exclude_id=post.id)
            for field in EDITABLE_FIELDS:
                if field not in data.model_fields_set:
                    continue
                value = getattr(data, field)
                if value is None and field in ("tags", "pub_date"):
                    continue
                setattr(post, field, value)

            now = _utcnow()
            if post.is_published and not was_published and post.pub_date is None:
                post.pub_date = now
            post.updated_date = now
            await session.flush()
            await session.refresh(post)
        logger.info("Updated post %d (%s)", post.id, post.slug)
        return post

    async def delete(self, post_id: int) -> None:
        async with session_scope(self.sessions, "delete post") as session:
            post = await session.get(Post, post_id)
            if post is None:
                raise NotFoundError("Post", post_id)
            await session.delete(post)
        logger.info("Deleted post %d", post_id)

    async def toggle_publish(self, post_id: int) -> Post:
        async with session_scope(self.sessions, "toggle publish") as session:
            post = await session.get(Post, post_id)
            if post is None:
                raise NotFoundError("Post", post_id)
            now = _utcnow()
            post.status = "draft" if post.is_published else "published"
            if post.is_published and post.pub_date is None:
                post.pub_date = now
            post.updated_date = now
            await session.flush()
            await session.refresh(post)
        logger.info("Post %d is now %s", post.id, post.status)
        return post

    # ── Internals ─────────────────────────────────────────────────────────

    def _published(self):
        return (
            select(Post)
            .where(Post.status == "published")
            .order_by(Post.pub_date.desc(), Post.id.desc())
        )

    async def _by_slug(self, session: AsyncSession, slug: str) -> Optional[Post]:
        result = await session.execute(select(Post).where(Post.slug == slug))
        return result.scalar_one_or_none()

    async def _slug_taken(self, session: AsyncSession, slug: str, exclude_id: Optional[int]) -> bool:
        stmt = select(Post.id).where(Post.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Post.id != exclude_id)
        return (await session.execute(stmt.limit(1))).first() is not None

    async def _resolve_slug(self, session: AsyncSession, data: PostInput, exclude_id: Optional[int] = None) -> str:
        if data.slug:
            if await self._slug_taken(session, data.slug, exclude_id):
                raise ValidationError.single("slug", "Slug already exists")
            return data.slug

        base = generate_slug(data.title or "")
        slug, counter = base, 1
        while await self._slug_taken(session, slug, exclude_id):
            slug = f"{base}-{counter}"
            counter += 1
        return slug
