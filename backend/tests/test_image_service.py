"""
Blog API — Image Ingestion Unit Tests
=======================================

What:  ImageIngestor validation, storage, resizing and deletion.
How:   Real images generated with Pillow, written to a per-test upload root.

Test Strategy:
    ✅ Each validation stage rejects with its own error, leaving no file behind
    ✅ Downscaling keeps the aspect ratio and never upscales
    ✅ Thumbnails fit their box
    ✅ Undecodable payloads are removed after the write
    ✅ Deleting tolerates a missing thumbnail or main file
    ✅ Unsafe filenames never resolve
    ✅ Names with inner dot runs stay servable and deletable
"""

import re

import pytest
from PIL import Image as PILImage

from blogapi.exceptions import (
    DecodeError,
    ExtensionNotAllowed,
    FileTooLarge,
    UnsupportedMimeType,
    UploadTransportError,
)
from blogapi.routing.messages import UploadErrorCode
from blogapi.services import image_service
from blogapi.services.image_service import (
    TUTORIAL_OPTIONS,
    ImageIngestor,
    UploadOptions,
    format_bytes,
    generate_filename,
    scale_to_fit,
    thumbnail_name,
    thumbnail_size,
)


def stored_files(ingestor):
    return sorted(p.name for p in ingestor.upload_root.iterdir())


class TestGeometry:
    """Pure size arithmetic."""

    def test_downscale_to_fit_box(self):
        assert scale_to_fit(2000, 1000, 1200, 800) == (1200, 600)

    def test_height_bound_box(self):
        assert scale_to_fit(1000, 2000, 1200, 800) == (400, 800)

    def test_no_upscale(self):
        assert scale_to_fit(640, 480, 1200, 800) is None

    def test_zero_limits_disable_resize(self):
        assert scale_to_fit(5000, 5000, 0, 0) is None

    def test_single_side_limit(self):
        assert scale_to_fit(3000, 1000, 1500, 0) == (1500, 500)

    def test_thumbnail_fits_box(self):
        assert thumbnail_size(1200, 600, 300, 200) == (300, 150)

    def test_thumbnail_may_upscale(self):
        assert thumbnail_size(100, 50, 300, 200) == (300, 150)

    def test_minimum_one_pixel(self):
        assert scale_to_fit(10000, 1, 100, 0) == (100, 1)


class TestNamingAndFormatting:
    def test_generated_filename_shape(self):
        name = generate_filename("jpg", "My Holiday Photo!.JPG")
        assert re.fullmatch(r"\d+_[0-9a-f]{8}_My_Holiday_Photo_\.jpg", name)

    def test_generated_filename_truncates_base(self):
        name = generate_filename("png", "x" * 300 + ".png")
        base = name.split("_", 2)[2].rsplit(".", 1)[0]
        assert len(base) == 100

    def test_generated_filename_collapses_dot_runs(self):
        name = generate_filename("jpg", "summer..trip.jpg")
        assert re.fullmatch(r"\d+_[0-9a-f]{8}_summer\.trip\.jpg", name)
        assert ".." not in name

    def test_thumbnail_name(self):
        assert thumbnail_name("123_abcd1234_cat.png") == "123_abcd1234_cat_thumb.png"

    def test_format_bytes(self):
        assert format_bytes(0) == "0 B"
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(5 * 1024 * 1024) == "5 MB"


class TestProcessUpload:
    """Full pipeline against a temporary upload root."""

    @pytest.mark.asyncio
    async def test_stores_jpeg_with_metadata(self, settings, image_bytes, file_part):
        ingestor = ImageIngestor(settings)
        content = image_bytes("JPEG", (64, 48))

        descriptor = await ingestor.process_upload(file_part(content, "Cat Photo.jpg"))

        assert descriptor.mime_type == "image/jpeg"
        assert (descriptor.width, descriptor.height) == (64, 48)
        assert descriptor.original_name == "Cat Photo.jpg"
        assert descriptor.filename.endswith("_Cat_Photo.jpg")
        assert descriptor.path == "/uploads/" + descriptor.filename
        assert descriptor.thumbnail_path is None
        assert descriptor.size == (ingestor.upload_root / descriptor.filename).stat().st_size
        assert stored_files(ingestor) == [descriptor.filename]

    @pytest.mark.asyncio
    async def test_downscales_and_thumbnails(self, settings, image_bytes, file_part):
        ingestor = ImageIngestor(settings)
        content = image_bytes("PNG", (2000, 1000))

        descriptor = await ingestor.process_upload(file_part(content, "wide.png"), TUTORIAL_OPTIONS)

        assert (descriptor.width, descriptor.height) == (1200, 600)
        with PILImage.open(ingestor.upload_root / descriptor.filename) as img:
            assert img.size == (1200, 600)
        thumb = thumbnail_name(descriptor.filename)
        assert descriptor.thumbnail_path == "/uploads/" + thumb
        with PILImage.open(ingestor.upload_root / thumb) as img:
            assert img.size == (300, 150)

    @pytest.mark.asyncio
    async def test_small_image_not_upscaled(self, settings, image_bytes, file_part):
        ingestor = ImageIngestor(settings)
        options = UploadOptions(max_width=1200, max_height=800)

        descriptor = await ingestor.process_upload(file_part(image_bytes("PNG", (100, 50)), "s.png"), options)

        assert (descriptor.width, descriptor.height) == (100, 50)

    @pytest.mark.asyncio
    async def test_transparent_png_keeps_alpha(self, settings, image_bytes, file_part):
        ingestor = ImageIngestor(settings)
        content = image_bytes("PNG", (400, 400), mode="RGBA")

        descriptor = await ingestor.process_upload(
            file_part(content, "logo.png"), UploadOptions(max_width=100, max_height=100)
        )

        with PILImage.open(ingestor.upload_root / descriptor.filename) as img:
            assert img.mode == "RGBA"
            assert img.size == (100, 100)

    @pytest.mark.asyncio
    async def test_transport_error_rejected(self, settings, image_bytes, file_part):
        ingestor = ImageIngestor(settings)
        part = file_part(image_bytes(), error=UploadErrorCode.PARTIAL)

        with pytest.raises(UploadTransportError, match="partially uploaded"):
            await ingestor.process_upload(part)
        assert stored_files(ingestor) == []

    @pytest.mark.asyncio
    async def test_declared_size_rejected_before_reading(self, make_settings, image_bytes, file_part):
        ingestor = ImageIngestor(make_settings(upload_max_size=1024))
        part = file_part(image_bytes(), size=10_000)

        with pytest.raises(FileTooLarge, match="1 KB"):
            await ingestor.process_upload(part)

    @pytest.mark.asyncio
    async def test_actual_size_rejected(self, make_settings, image_bytes, file_part):
        ingestor = ImageIngestor(make_settings(upload_max_size=1024))
        content = image_bytes("PNG", (300, 300), color=(1, 2, 3))
        big = content + b"\x00" * 2048
        part = file_part(big, "big.png", size=None)

        with pytest.raises(FileTooLarge):
            await ingestor.process_upload(part)
        assert stored_files(ingestor) == []

    @pytest.mark.asyncio
    async def test_extension_not_allowed(self, settings, file_part):
        ingestor = ImageIngestor(settings)

        with pytest.raises(ExtensionNotAllowed, match="pdf"):
            await ingestor.process_upload(file_part(b"%PDF-1.4", "doc.pdf"))
        assert stored_files(ingestor) == []

    @pytest.mark.asyncio
    async def test_disguised_file_rejected_by_content(self, settings, file_part):
        ingestor = ImageIngestor(settings)
        part = file_part(b"just some text pretending to be a photo\n" * 10, "fake.jpg")

        with pytest.raises(UnsupportedMimeType, match="text/plain"):
            await ingestor.process_upload(part)
        assert stored_files(ingestor) == []

    @pytest.mark.asyncio
    async def test_out_of_memory_after_write_removes_file(self, settings, image_bytes, file_part, monkeypatch):
        """Non-upload errors raised after the write still clean up."""
        ingestor = ImageIngestor(settings)

        def exhausted(path):
            raise MemoryError()

        monkeypatch.setattr(image_service, "read_dimensions", exhausted)

        with pytest.raises(MemoryError):
            await ingestor.process_upload(file_part(image_bytes(), "a.jpg"))
        assert stored_files(ingestor) == []

    @pytest.mark.asyncio
    async def test_undecodable_image_removed(self, settings, file_part):
        ingestor = ImageIngestor(settings)
        broken_png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256

        with pytest.raises(DecodeError):
            await ingestor.process_upload(file_part(broken_png, "broken.png"))
        assert stored_files(ingestor) == []


class TestStoredFiles:
    @pytest.mark.asyncio
    async def test_delete_with_missing_thumbnail(self, settings, image_bytes, file_part):
        ingestor = ImageIngestor(settings)
        descriptor = await ingestor.process_upload(file_part(image_bytes(), "a.jpg"))

        result = ingestor.delete_file(descriptor.filename)

        assert result
        assert result.removed == [descriptor.filename]
        assert result.missing == [thumbnail_name(descriptor.filename)]
        assert not result.main_missing
        assert stored_files(ingestor) == []

    @pytest.mark.asyncio
    async def test_delete_removes_thumbnail(self, settings, image_bytes, file_part):
        ingestor = ImageIngestor(settings)
        descriptor = await ingestor.process_upload(
            file_part(image_bytes("PNG", (800, 800)), "b.png"), TUTORIAL_OPTIONS
        )

        result = ingestor.delete_file(descriptor.filename)

        assert sorted(result.removed) == sorted([descriptor.filename, thumbnail_name(descriptor.filename)])
        assert stored_files(ingestor) == []

    def test_delete_missing_file_is_not_a_failure(self, settings):
        result = ImageIngestor(settings).delete_file("123_deadbeef_gone.jpg")
        assert result
        assert result.main_missing

    def test_delete_unsafe_name_fails(self, settings):
        result = ImageIngestor(settings).delete_file("../config.py")
        assert not result

    @pytest.mark.asyncio
    async def test_file_info(self, settings, image_bytes, file_part):
        ingestor = ImageIngestor(settings)
        descriptor = await ingestor.process_upload(file_part(image_bytes("PNG"), "c.png"))

        info = ingestor.get_file_info(descriptor.filename)

        assert info.mime_type == "image/png"
        assert info.size == descriptor.size
        assert info.full_path == ingestor.upload_root / descriptor.filename

    @pytest.mark.parametrize("name", ["../etc/passwd", "a/b.jpg", "..", "", "a\\b.jpg"])
    def test_unsafe_names_resolve_to_none(self, settings, name):
        assert ImageIngestor(settings).get_file_info(name) is None

    def test_inner_dot_run_is_a_valid_name(self, settings, image_bytes):
        """Files stored before dot runs were collapsed stay reachable."""
        ingestor = ImageIngestor(settings)
        name = "123_abcd1234_my..photo.jpg"
        (ingestor.upload_root / name).write_bytes(image_bytes())

        info = ingestor.get_file_info(name)
        assert info is not None
        assert info.full_path == ingestor.upload_root / name

        result = ingestor.delete_file(name)
        assert result
        assert result.removed == [name]
        assert stored_files(ingestor) == []
