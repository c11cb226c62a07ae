"""
Blog API — Image Catalog Unit Tests
=====================================

What:  Image rows: post ordering, reordering, statistics and the orphan report.
How:   Rows inserted straight from UploadDescriptor values; no files on disk.

Test Strategy:
    ✅ Reorder assigns positions 1..n in request order
    ✅ A foreign id aborts the reorder and leaves every position unchanged
    ✅ Storage stats aggregate overall, per type and per MIME type
    ✅ Orphans include images without a post and images of a deleted post
"""

import pytest

from blogapi.exceptions import NotFoundError, ValidationError
from blogapi.schemas.post import PostInput
from blogapi.services.image_catalog import ImageCatalog
from blogapi.services.image_service import UploadDescriptor
from blogapi.services.post_service import PostService
from blogapi.services.tag_query import JsonTextTagQuery


def descriptor(name: str, size: int = 1000, mime: str = "image/jpeg") -> UploadDescriptor:
    return UploadDescriptor(
        filename=f"1700000000_abcd1234_{name}",
        original_name=name,
        path=f"/uploads/1700000000_abcd1234_{name}",
        size=size,
        mime_type=mime,
        width=10,
        height=10,
    )


@pytest.fixture
def catalog(sessions):
    return ImageCatalog(sessions)


@pytest.fixture
def posts(sessions):
    return PostService(sessions, JsonTextTagQuery())


async def make_post(posts, title="Gallery Post"):
    return await posts.create(PostInput(title=title, content="Body"))


class TestRows:
    @pytest.mark.asyncio
    async def test_create_for_missing_post_rejected(self, catalog):
        with pytest.raises(ValidationError) as exc_info:
            await catalog.create_from_upload(descriptor("a.jpg"), {"post_id": 999})
        assert exc_info.value.errors == {"post_id": ["Post not found"]}

    @pytest.mark.asyncio
    async def test_ensure_post(self, catalog, posts):
        post = await make_post(posts)
        await catalog.ensure_post(post.id)
        await catalog.ensure_post(None)

        with pytest.raises(ValidationError) as exc_info:
            await catalog.ensure_post(999)
        assert exc_info.value.errors == {"post_id": ["Post not found"]}

    @pytest.mark.asyncio
    async def test_get_unknown_image(self, catalog):
        with pytest.raises(NotFoundError, match="Image not found"):
            await catalog.get(12345)

    @pytest.mark.asyncio
    async def test_update_metadata(self, catalog, posts):
        post = await make_post(posts)
        image = await catalog.create_from_upload(descriptor("a.jpg"), {})

        updated = await catalog.update_metadata(image.id, {"alt_text": "A cat", "post_id": post.id})

        assert updated.alt_text == "A cat"
        assert updated.post_id == post.id
        assert updated.description is None

    @pytest.mark.asyncio
    async def test_update_metadata_missing_post(self, catalog):
        image = await catalog.create_from_upload(descriptor("a.jpg"), {})
        with pytest.raises(ValidationError):
            await catalog.update_metadata(image.id, {"post_id": 424242})

    @pytest.mark.asyncio
    async def test_search(self, catalog):
        await catalog.create_from_upload(descriptor("sunset.jpg"), {"alt_text": "Beach at dusk"})
        await catalog.create_from_upload(descriptor("dog.jpg"), {"caption": "100% good boy"})

        rows, total = await catalog.list(1, 20, "BEACH")
        assert total == 1
        assert rows[0].original_name == "sunset.jpg"

        rows, total = await catalog.list(1, 20, "100%")
        assert [r.original_name for r in rows] == ["dog.jpg"]

    @pytest.mark.asyncio
    async def test_delete(self, catalog):
        image = await catalog.create_from_upload(descriptor("a.jpg"), {})
        assert await catalog.delete(image.id) is True
        assert await catalog.delete(image.id) is False


class TestReorder:
    @pytest.mark.asyncio
    async def test_positions_follow_request_order(self, catalog, posts):
        post = await make_post(posts)
        ids = [
            (await catalog.create_from_upload(descriptor(f"{n}.jpg"), {"post_id": post.id})).id
            for n in ("a", "b", "c")
        ]

        await catalog.reorder(post.id, [ids[2], ids[0], ids[1]])

        ordered = await catalog.post_images(post.id)
        assert [image.id for image in ordered] == [ids[2], ids[0], ids[1]]
        assert [image.sort_order for image in ordered] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_foreign_image_rolls_back(self, catalog, posts):
        post = await make_post(posts)
        other = await make_post(posts, "Other Post")
        mine = await catalog.create_from_upload(descriptor("a.jpg"), {"post_id": post.id, "sort_order": 5})
        theirs = await catalog.create_from_upload(descriptor("b.jpg"), {"post_id": other.id})

        with pytest.raises(ValidationError) as exc_info:
            await catalog.reorder(post.id, [mine.id, theirs.id])

        assert exc_info.value.errors == {
            "image_ids": [f"Image {theirs.id} does not belong to post {post.id}"]
        }
        assert (await catalog.get(mine.id)).sort_order == 5

    @pytest.mark.asyncio
    async def test_tutorial_steps_only_steps(self, catalog, posts):
        post = await make_post(posts)
        await catalog.create_from_upload(descriptor("hero.jpg"), {"post_id": post.id, "image_type": "featured"})
        step2 = await catalog.create_from_upload(
            descriptor("s2.jpg"), {"post_id": post.id, "image_type": "step", "sort_order": 2, "step_number": 2}
        )
        step1 = await catalog.create_from_upload(
            descriptor("s1.jpg"), {"post_id": post.id, "image_type": "step", "sort_order": 1, "step_number": 1}
        )

        steps = await catalog.tutorial_steps(post.id)

        assert [image.id for image in steps] == [step1.id, step2.id]


class TestStorageReports:
    @pytest.mark.asyncio
    async def test_empty_stats(self, catalog):
        stats = await catalog.storage_stats()
        assert stats["overall"] == {
            "total_images": 0,
            "total_size": 0,
            "average_size": 0,
            "total_size_formatted": "0 B",
            "average_size_formatted": "0 B",
        }
        assert stats["by_type"] == []

    @pytest.mark.asyncio
    async def test_stats_grouped(self, catalog):
        await catalog.create_from_upload(descriptor("a.jpg", 1024), {"image_type": "gallery"})
        await catalog.create_from_upload(descriptor("b.jpg", 2048), {"image_type": "gallery"})
        await catalog.create_from_upload(descriptor("c.png", 3072, "image/png"), {})

        stats = await catalog.storage_stats()

        assert stats["overall"]["total_images"] == 3
        assert stats["overall"]["total_size"] == 6144
        assert stats["overall"]["average_size"] == 2048
        assert stats["overall"]["total_size_formatted"] == "6 KB"
        assert stats["by_type"] == [
            {"image_type": "content", "count": 1, "total_size": 3072, "total_size_formatted": "3 KB"},
            {"image_type": "gallery", "count": 2, "total_size": 3072, "total_size_formatted": "3 KB"},
        ]
        assert [row["mime_type"] for row in stats["by_mime_type"]] == ["image/jpeg", "image/png"]

    @pytest.mark.asyncio
    async def test_orphans(self, catalog, posts):
        kept = await make_post(posts, "Kept")
        doomed = await make_post(posts, "Doomed")
        attached = await catalog.create_from_upload(descriptor("a.jpg"), {"post_id": kept.id})
        loose = await catalog.create_from_upload(descriptor("b.jpg"), {})
        stranded = await catalog.create_from_upload(descriptor("c.jpg"), {"post_id": doomed.id})

        await posts.delete(doomed.id)

        orphan_ids = {image.id for image in await catalog.orphaned()}
        assert loose.id in orphan_ids
        assert stranded.id in orphan_ids
        assert attached.id not in orphan_ids
