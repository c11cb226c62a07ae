"""
Blog API — Image Ingestion Service
====================================

What:  Validates uploaded images, stores them under the upload root, and
       derives resized copies and thumbnails.
How:   `ImageIngestor.process_upload()` runs one file through a fixed pipeline,
       cheapest checks first:

    1. transport status and declared size        → UploadTransportError / FileTooLarge
    2. extension allow-list                      → ExtensionNotAllowed
    3. actual byte length, then libmagic sniff   → FileTooLarge / UnsupportedMimeType
    4. unique filename, exclusive write          → StorageWriteError
    5. read pixel dimensions                     → DecodeError
    6. optional downscale (never upscales)       → EncodeError
    7. optional thumbnail (may upscale)          → EncodeError

Nothing touches the disk before step 4. Once the write has started, any
failure (cancellation included) removes the stored file and any thumbnail
before the error propagates.

Who:   Upload route handlers; `delete_file` and `get_file_info` also back the
       delete endpoint and `/uploads/{filename}`.

Storage layout is flat:

    uploads/
    ├── 1717430000_9f2c1ab0_holiday.jpg
    └── 1717430000_9f2c1ab0_holiday_thumb.jpg

Pillow work is CPU-bound and runs in Starlette's threadpool so the event loop
keeps serving other requests.
"""

import logging
import math
import re
import secrets
import time
from dataclasses import asdict, dataclass, field
from fractions import Fraction
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Mapping, Optional, Tuple

import aiofiles
import magic
from PIL import Image
from starlette.concurrency import run_in_threadpool

from blogapi.config import Settings
from blogapi.exceptions import (
    DecodeError,
    EncodeError,
    ExtensionNotAllowed,
    FileTooLarge,
    StorageWriteError,
    UnsupportedMimeType,
    UploadTransportError,
)
from blogapi.routing.messages import FilePart, UploadErrorCode

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})

# Formats whose encoders keep an alpha channel.
ALPHA_MIME_TYPES = frozenset({"image/png", "image/gif", "image/webp"})

PILLOW_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
}

THUMBNAIL_SUFFIX = "_thumb"
MAX_BASE_LENGTH = 100
MAX_NAME_ATTEMPTS = 5

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_DOT_RUNS = re.compile(r"\.{2,}")


@dataclass(frozen=True)
class UploadOptions:
    """Bounding boxes for the stored image and its thumbnail; 0 disables a side."""

    max_width: int = 0
    max_height: int = 0
    thumb_width: int = 0
    thumb_height: int = 0

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "UploadOptions":
        return cls(
            max_width=_non_negative_int(form.get("max_width")),
            max_height=_non_negative_int(form.get("max_height")),
            thumb_width=_non_negative_int(form.get("thumb_width")),
            thumb_height=_non_negative_int(form.get("thumb_height")),
        )


# Step images in tutorials share one layout.
TUTORIAL_OPTIONS = UploadOptions(max_width=1200, max_height=800, thumb_width=300, thumb_height=200)


@dataclass(frozen=True)
class UploadDescriptor:
    filename: str
    original_name: str
    path: str
    size: int
    mime_type: str
    width: int
    height: int
    thumbnail_path: Optional[str] = None

    def as_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DeleteResult:
    """Outcome of removing a stored file and its thumbnail."""

    filename: str = ""
    removed: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def main_missing(self) -> bool:
        return self.filename in self.missing

    def __bool__(self) -> bool:
        return not self.failed


@dataclass(frozen=True)
class FileInfo:
    full_path: Path
    mime_type: str
    size: int


class ImageIngestor:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.upload_root = Path(settings.upload_root).resolve()
        self.allowed_extensions = frozenset(settings.allowed_extensions)
        self.max_size = settings.upload_max_size
        self.upload_root.mkdir(parents=True, exist_ok=True)
        logger.info("ImageIngestor initialized with upload_root=%s", self.upload_root)

    # ── Pipeline ──────────────────────────────────────────────────────────

    async def process_upload(self, part: FilePart, options: UploadOptions = UploadOptions()) -> UploadDescriptor:
        self._check_transport(part)
        original_name = part.filename or "upload"
        ext = file_extension(original_name)
        if ext not in self.allowed_extensions:
            raise ExtensionNotAllowed(f"File type not allowed: {ext}", context={"filename": original_name})

        content = await run_in_threadpool(_read_all, part.stream)
        if len(content) > self.max_size:
            raise FileTooLarge(
                f"File exceeds max size of {format_bytes(self.max_size)}",
                context={"actual_size": len(content)},
            )

        mime_type = sniff_mime_type(content)
        if mime_type not in SUPPORTED_MIME_TYPES:
            raise UnsupportedMimeType(f"Unsupported file MIME: {mime_type}", context={"filename": original_name})

        stored = await self._write_unique(content, ext, original_name)
        thumb: Optional[Path] = None
        try:
            width, height = await run_in_threadpool(read_dimensions, stored)

            target = scale_to_fit(width, height, options.max_width, options.max_height)
            if target is not None:
                await run_in_threadpool(render_scaled, stored, stored, mime_type, target)
                width, height = target

            thumbnail_path = None
            if options.thumb_width > 0 and options.thumb_height > 0:
                thumb = self.upload_root / thumbnail_name(stored.name)
                size = thumbnail_size(width, height, options.thumb_width, options.thumb_height)
                await run_in_threadpool(render_scaled, stored, thumb, mime_type, size)
                thumbnail_path = self.public_path(thumb.name)

            descriptor = UploadDescriptor(
                filename=stored.name,
                original_name=original_name,
                path=self.public_path(stored.name),
                size=stored.stat().st_size,
                mime_type=mime_type,
                width=width,
                height=height,
                thumbnail_path=thumbnail_path,
            )
        except BaseException:
            # Includes cancellation and MemoryError: nothing half-processed stays on disk.
            self._discard(stored, thumb)
            raise

        logger.info(
            "Stored upload %s (%s, %dx%d, %d bytes)",
            descriptor.filename,
            mime_type,
            width,
            height,
            descriptor.size,
        )
        return descriptor

    def _check_transport(self, part: FilePart) -> None:
        if part.error != UploadErrorCode.OK:
            raise UploadTransportError(part.error.message, context={"error_code": int(part.error)})
        if part.stream is None:
            raise UploadTransportError("Invalid uploaded file")
        if part.size is not None and part.size > self.max_size:
            raise FileTooLarge(
                f"File exceeds max size of {format_bytes(self.max_size)}",
                context={"declared_size": part.size},
            )

    async def _write_unique(self, content: bytes, ext: str, original_name: str) -> Path:
        for _ in range(MAX_NAME_ATTEMPTS):
            target = self.upload_root / generate_filename(ext, original_name)
            try:
                async with aiofiles.open(target, "xb") as f:
                    await f.write(content)
            except FileExistsError:
                logger.debug("Generated filename %s already exists; retrying", target.name)
                continue
            except OSError as e:
                logger.error("Failed to store upload at %s: %s", target, e)
                self._discard(target)
                raise StorageWriteError(
                    "Failed to store uploaded file",
                    context={"path": str(target), "os_error": str(e)},
                ) from e
            except BaseException:
                self._discard(target)
                raise
            return target
        raise StorageWriteError("Failed to generate a unique filename")

    def _discard(self, *paths: Optional[Path]) -> None:
        for path in paths:
            if path is None:
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to clean up %s: %s", path, e)

    # ── Stored files ──────────────────────────────────────────────────────

    def resolve(self, filename: str) -> Optional[Path]:
        """Absolute path for a stored filename, or None if the name is unsafe."""
        if not filename or filename in (".", "..") or "\\" in filename or "\x00" in filename:
            return None
        # Only a bare name is accepted; dots inside it ("a..b.jpg") are fine.
        if Path(filename).name != filename:
            return None
        return self.upload_root / filename

    def public_path(self, filename: str) -> str:
        return self.settings.upload_url.rstrip("/") + "/" + filename.lstrip("/")

    def delete_file(self, filename: str) -> DeleteResult:
        """Remove a stored file and its thumbnail; absent files are reported, not failed."""
        result = DeleteResult(filename=filename)
        main = self.resolve(filename)
        if main is None:
            result.failed.append(filename)
            return result

        for path in (main, self.upload_root / thumbnail_name(filename)):
            if not path.is_file():
                result.missing.append(path.name)
                continue
            try:
                path.unlink()
                result.removed.append(path.name)
            except OSError as e:
                logger.warning("Failed to delete %s: %s", path, e)
                result.failed.append(path.name)
        return result

    def get_file_info(self, filename: str) -> Optional[FileInfo]:
        path = self.resolve(filename)
        if path is None or not path.is_file():
            return None
        return FileInfo(
            full_path=path,
            mime_type=magic.from_file(str(path), mime=True) or "application/octet-stream",
            size=path.stat().st_size,
        )


# ── Helpers ───────────────────────────────────────────────────────────────


def file_extension(name: str) -> str:
    return Path(name).suffix.lower().lstrip(".") or "bin"


def generate_filename(ext: str, original_name: str) -> str:
    """`{unix_ts}_{8 hex}_{sanitized base}.{ext}`"""
    base = _UNSAFE_NAME_CHARS.sub("_", Path(original_name).stem)
    base = _DOT_RUNS.sub(".", base)[:MAX_BASE_LENGTH] or "file"
    return f"{int(time.time())}_{secrets.token_hex(4)}_{base}.{ext}"


def thumbnail_name(filename: str) -> str:
    path = Path(filename)
    return f"{path.stem}{THUMBNAIL_SUFFIX}{path.suffix}"


def sniff_mime_type(content: bytes) -> str:
    return (magic.from_buffer(content, mime=True) or "application/octet-stream").lower()


def format_bytes(size: float, precision: int = 2) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    value = round(size, precision)
    if value == int(value):
        value = int(value)
    return f"{value} {units[i]}"


def scale_to_fit(width: int, height: int, max_width: int, max_height: int) -> Optional[Tuple[int, int]]:
    """
    Downscaled size fitting the box, or None when no resize is needed.

    A side limit of 0 leaves that side unconstrained. The scale factor is
    exact (2000x1000 into 1200x800 → 3/5 → 1200x600).
    """
    if max_width <= 0 and max_height <= 0:
        return None
    scale = min(
        Fraction(max_width, width) if max_width > 0 else Fraction(1),
        Fraction(max_height, height) if max_height > 0 else Fraction(1),
    )
    if scale >= 1:
        return None
    return _apply_scale(width, height, scale)


def thumbnail_size(width: int, height: int, thumb_width: int, thumb_height: int) -> Tuple[int, int]:
    return _apply_scale(width, height, min(Fraction(thumb_width, width), Fraction(thumb_height, height)))


def _apply_scale(width: int, height: int, scale: Fraction) -> Tuple[int, int]:
    return max(1, math.floor(width * scale)), max(1, math.floor(height * scale))


def read_dimensions(path: Path) -> Tuple[int, int]:
    try:
        with Image.open(path) as img:
            return img.size
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError("Failed to read image size", context={"path": str(path), "error": str(e)}) from e


def render_scaled(source: Path, target: Path, mime_type: str, size: Tuple[int, int]) -> None:
    """Resample `source` to `size` and write it to `target` in the same format."""
    fmt = PILLOW_FORMATS[mime_type]
    try:
        with Image.open(source) as img:
            img.load()
            resized = _prepare_mode(img, mime_type).resize(size, Image.Resampling.LANCZOS)
        resized.save(target, format=fmt, **_save_params(fmt))
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise EncodeError(
            "Failed to write resized image",
            context={"path": str(target), "error": str(e)},
        ) from e


def _prepare_mode(img: Image.Image, mime_type: str) -> Image.Image:
    if mime_type in ALPHA_MIME_TYPES:
        if img.mode in ("RGBA", "LA", "RGB", "L"):
            return img
        return img.convert("RGBA")
    if img.mode in ("RGB", "L"):
        return img
    return img.convert("RGB")


def _save_params(fmt: str) -> Dict[str, Any]:
    if fmt == "JPEG":
        return {"quality": 90, "progressive": True}
    if fmt == "WEBP":
        return {"quality": 90}
    return {}


def _read_all(stream: Optional[BinaryIO]) -> bytes:
    if stream is None:
        return b""
    stream.seek(0)
    return stream.read()


def _non_negative_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0
