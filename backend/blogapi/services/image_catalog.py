"""
Blog API — Image Catalog
==========================

What:  Database side of image management: rows for stored uploads, listing
       and search, per-post ordering, storage statistics, and the orphan report.
How:   Same session-scope pattern as PostService. The bytes themselves are
       handled by `ImageIngestor`; this service never touches the disk.

Reordering:
    `reorder(post_id, [7, 3, 5])` sets sort_order 1, 2, 3 on those images in
    one transaction. Every id must belong to the post; the first one that
    does not aborts the whole operation and nothing is changed.

Orphans:
    Images with no post, or whose post id points at a row that no longer
    exists (a LEFT JOIN finds both).
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from blogapi.database import SessionFactory, paginate, session_scope
from blogapi.exceptions import DatabaseError, NotFoundError, ValidationError
from blogapi.models.image import Image
from blogapi.models.post import Post
from blogapi.services.image_service import UploadDescriptor, format_bytes

logger = logging.getLogger(__name__)

METADATA_FIELDS = ("alt_text", "description", "post_id")


class ImageCatalog:
    def __init__(self, sessions: SessionFactory):
        self.sessions = sessions

    # ── Rows ──────────────────────────────────────────────────────────────

    async def ensure_post(self, post_id: Optional[int]) -> None:
        """Raise a 422 when `post_id` is set but names no post. Upload routes call this before writing files."""
        if post_id is None:
            return
        async with session_scope(self.sessions, "check post") as session:
            exists = await session.get(Post, post_id) is not None
        if not exists:
            raise ValidationError.single("post_id", "Post not found")

    async def create_from_upload(self, descriptor: UploadDescriptor, attrs: Mapping[str, Any]) -> Image:
        async with session_scope(self.sessions, "create image") as session:
            post_id = attrs.get("post_id")
            if post_id is not None and await session.get(Post, post_id) is None:
                raise ValidationError.single("post_id", "Post not found")
            image = Image(**descriptor.as_row(), **attrs)
            session.add(image)
            await session.flush()
            await session.refresh(image)
        logger.info("Recorded image %d (%s, post=%s)", image.id, image.filename, image.post_id)
        return image

    async def get(self, image_id: int) -> Image:
        async with session_scope(self.sessions, "get image") as session:
            image = await session.get(Image, image_id)
        if image is None:
            raise NotFoundError("Image", image_id)
        return image

    async def find_by_filename(self, filename: str) -> Optional[Image]:
        async with session_scope(self.sessions, "find image") as session:
            result = await session.execute(select(Image).where(Image.filename == filename).limit(1))
            return result.scalar_one_or_none()

    async def update_metadata(self, image_id: int, changes: Mapping[str, Any]) -> Image:
        async with session_scope(self.sessions, "update image") as session:
            image = await session.get(Image, image_id)
            if image is None:
                raise NotFoundError("Image", image_id)

            post_id = changes.get("post_id")
            if post_id is not None and await session.get(Post, post_id) is None:
                raise ValidationError.single("post_id", "Post not found")

            for field in METADATA_FIELDS:
                if field in changes:
                    setattr(image, field, changes[field])
            await session.flush()
            await session.refresh(image)
        return image

    async def delete(self, image_id: int) -> bool:
        async with session_scope(self.sessions, "delete image") as session:
            image = await session.get(Image, image_id)
            if image is None:
                return False
            await session.delete(image)
        logger.info("Deleted image row %d", image_id)
        return True

    # ── Listings ──────────────────────────────────────────────────────────

    async def list(self, page: int, limit: int, search: Optional[str] = None) -> Tuple[List[Image], int]:
        stmt = select(Image).order_by(Image.created_at.desc(), Image.id.desc())
        if search:
            pattern = "%" + search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
            stmt = stmt.where(
                or_(
                    func.lower(Image.original_name).like(pattern, escape="\\"),
                    func.lower(Image.alt_text).like(pattern, escape="\\"),
                    func.lower(Image.description).like(pattern, escape="\\"),
                    func.lower(Image.caption).like(pattern, escape="\\"),
                )
            )
        async with session_scope(self.sessions, "list images") as session:
            return await paginate(session, stmt, page, limit)

    async def post_images(self, post_id: int, image_type: Optional[str] = None) -> List[Image]:
        stmt = select(Image).where(Image.post_id == post_id)
        if image_type:
            stmt = stmt.where(Image.image_type == image_type)
        stmt = stmt.order_by(Image.sort_order.asc(), Image.id.asc())
        async with session_scope(self.sessions, "list post images") as session:
            return list((await session.execute(stmt)).scalars().all())

    async def tutorial_steps(self, post_id: int) -> List[Image]:
        stmt = (
            select(Image)
            .where(Image.post_id == post_id, Image.image_type == "step")
            .order_by(Image.sort_order.asc(), Image.step_number.asc(), Image.id.asc())
        )
        async with session_scope(self.sessions, "list tutorial steps") as session:
            return list((await session.execute(stmt)).scalars().all())

    async def orphaned(self) -> List[Image]:
        stmt = (
            select(Image)
            .outerjoin(Post, Image.post_id == Post.id)
            .where(or_(Image.post_id.is_(None), Post.id.is_(None)))
            .order_by(Image.created_at.desc(), Image.id.desc())
        )
        async with session_scope(self.sessions, "list orphaned images") as session:
            return list((await session.execute(stmt)).scalars().all())

    # ── Ordering ──────────────────────────────────────────────────────────

    async def reorder(self, post_id: int, image_ids: List[int]) -> None:
        async with self.sessions() as session:
            try:
                async with session.begin():
                    for position, image_id in enumerate(image_ids, start=1):
                        result = await session.execute(
                            update(Image)
                            .where(Image.id == image_id, Image.post_id == post_id)
                            .values(sort_order=position)
                            .execution_options(synchronize_session=False)
                        )
                        if result.rowcount != 1:
                            raise ValidationError.single(
                                "image_ids", f"Image {image_id} does not belong to post {post_id}"
                            )
            except SQLAlchemyError as e:
                logger.error("Reorder of post %d images failed: %s", post_id, e, exc_info=True)
                raise DatabaseError(context={"operation": "reorder images", "error": str(e)}) from e
        logger.info("Reordered %d images of post %d", len(image_ids), post_id)

    # ── Statistics ────────────────────────────────────────────────────────

    async def storage_stats(self) -> Dict[str, Any]:
        async with session_scope(self.sessions, "image stats") as session:
            count, total, average = (
                await session.execute(
                    select(
                        func.count(Image.id),
                        func.coalesce(func.sum(Image.size), 0),
                        func.coalesce(func.avg(Image.size), 0),
                    )
                )
            ).one()
            by_type = (
                await session.execute(
                    select(Image.image_type, func.count(Image.id), func.coalesce(func.sum(Image.size), 0))
                    .group_by(Image.image_type)
                    .order_by(Image.image_type)
                )
            ).all()
            by_mime = (
                await session.execute(
                    select(Image.mime_type, func.count(Image.id), func.coalesce(func.sum(Image.size), 0))
                    .group_by(Image.mime_type)
                    .order_by(Image.mime_type)
                )
            ).all()

        total_size = int(total)
        average_size = int(round(float(average)))
        return {
            "overall": {
                "total_images": int(count),
                "total_size": total_size,
                "average_size": average_size,
                "total_size_formatted": format_bytes(total_size),
                "average_size_formatted": format_bytes(average_size),
            },
            "by_type": [_group_row("image_type", *row) for row in by_type],
            "by_mime_type": [_group_row("mime_type", *row) for row in by_mime],
        }


def _group_row(key: str, value: str, count: int, size: Any) -> Dict[str, Any]:
    return {
        key: value,
        "count": int(count),
        "total_size": int(size),
        "total_size_formatted": format_bytes(int(size)),
    }
