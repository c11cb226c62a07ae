"""
Blog API — Image Routes
=========================

What:  Upload, catalog, and file-serving endpoints for blog images.
How:   `ImageIngestor` validates and stores the bytes, `ImageCatalog` keeps
       the rows. A `post_id` is checked before anything is written; a row is
       only written after the file is safely on disk, and a failed insert
       removes the stored file again.

Admin (bearer token, admin or editor role), under /api/admin:
    POST   /upload                         `file` and/or `files` parts
    POST   /upload/tutorial                `files` parts → numbered step images
    DELETE /upload/{filename}
    GET    /images                         paginated, optional ?search=
    GET    /images/stats                   storage breakdown
    GET    /images/orphaned                images with no (existing) post
    GET    /images/{id}
    PUT    /images/{id}                    alt_text / description / post_id
    GET    /posts/{postId}/images          optional ?type=
    GET    /posts/{postId}/steps
    PUT    /posts/{postId}/images/reorder  {"image_ids": [...]}

Public:
    GET    /uploads/{filename}             raw bytes, cached for a year

Multi-file uploads are processed one file at a time. A file that fails
validation is listed in `meta.errors` and the rest still go through; only
when nothing succeeds is the request rejected.
"""

import logging
import re
import time
from email.utils import formatdate
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import aiofiles

from blogapi import envelope
from blogapi.config import Settings
from blogapi.exceptions import (
    NotFoundError,
    StorageWriteError,
    UploadError,
    ValidationError,
)
from blogapi.models.image import IMAGE_TYPES, Image
from blogapi.routes.params import page_and_limit, search_term
from blogapi.routing.messages import FilePart, HttpResponse, IncomingRequest, UploadErrorCode
from blogapi.routing.table import Middleware, RouteTable
from blogapi.schemas.common import parse_body
from blogapi.schemas.image import ImageDetailOut, ImageMetadataInput, ImageOut, ReorderInput, build_images
from blogapi.services.image_catalog import ImageCatalog
from blogapi.services.image_service import TUTORIAL_OPTIONS, ImageIngestor, UploadOptions

logger = logging.getLogger(__name__)

IMAGE_LIST_DEFAULT_LIMIT = 20
IMAGE_LIST_MAX_LIMIT = 50

# One year; stored filenames are unique, so the bytes behind a URL never change.
UPLOAD_CACHE_SECONDS = 31_536_000

_UNSAFE_DISPOSITION_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def _form_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip().lstrip("-").isdigit():
        return None
    return int(value.strip())


def _submitted(parts: List[FilePart]) -> List[FilePart]:
    return [p for p in parts if p.error != UploadErrorCode.NO_FILE]


def upload_attributes(request: IncomingRequest) -> Dict[str, Any]:
    """Row attributes for a plain upload, read from the form fields."""
    image_type = request.form_value("image_type") or "content"
    if image_type not in IMAGE_TYPES:
        raise ValidationError.single(
            "image_type", f"Image type must be one of: {', '.join(IMAGE_TYPES)}"
        )
    return {
        "image_type": image_type,
        "sort_order": _form_int(request.form_value("sort_order")) or 0,
        "step_number": _form_int(request.form_value("step_number")),
        "caption": request.form_value("caption"),
        "post_id": _form_int(request.form_value("post_id")),
        "alt_text": request.form_value("alt_text"),
        "description": request.form_value("description"),
    }


def register_image_routes(
    table: RouteTable,
    ingestor: ImageIngestor,
    catalog: ImageCatalog,
    settings: Settings,
    guards: Sequence[Middleware],
) -> None:
    base_url = settings.app_url

    async def store(part: FilePart, options: UploadOptions, attrs: Dict[str, Any]) -> Image:
        descriptor = await ingestor.process_upload(part, options)
        try:
            return await catalog.create_from_upload(descriptor, attrs)
        except BaseException:
            logger.warning("Removing %s after failed database insert", descriptor.filename)
            ingestor.delete_file(descriptor.filename)
            raise

    async def store_batch(parts: List[FilePart], options: UploadOptions, attrs_for) -> Dict[str, Any]:
        stored: List[ImageOut] = []
        errors: List[Dict[str, Any]] = []
        for index, part in enumerate(parts):
            try:
                image = await store(part, options, attrs_for(index))
            except UploadError as exc:
                if len(parts) == 1:
                    raise
                logger.info("Skipping %s in batch upload: %s", part.filename, exc.message)
                errors.append({"file": part.filename, "message": exc.message, "code": exc.code})
                continue
            stored.append(ImageOut.build(image, base_url))
        return {"stored": stored, "errors": errors}

    # ── Uploads ───────────────────────────────────────────────────────────

    async def upload(request: IncomingRequest):
        single = request.files_for("file")
        multiple = request.files_for("files") + request.files_for("files[]")
        if not single and not multiple:
            raise ValidationError.single("file", "No file uploaded")

        attrs = upload_attributes(request)
        await catalog.ensure_post(attrs["post_id"])
        # An explicit `file` part is processed even when empty, so the client
        # sees why it failed; empty entries in `files` are skipped.
        parts = single[:1] + _submitted(multiple)
        if not parts:
            raise ValidationError.single("file", "No valid files uploaded")

        result = await store_batch(parts, UploadOptions.from_form(request.form), lambda _: attrs)
        return upload_response(
            result,
            lambda n: "File uploaded successfully" if n == 1 else f"{n} files uploaded successfully",
        )

    async def upload_tutorial(request: IncomingRequest):
        submitted = request.files_for("files") + request.files_for("files[]")
        if not submitted:
            raise ValidationError.single("files", "No files uploaded for tutorial")

        raw_post_id = request.form_value("post_id")
        post_id = None
        if raw_post_id not in (None, ""):
            post_id = _form_int(raw_post_id)
            if post_id is None:
                raise ValidationError.single("post_id", "Invalid post ID")
        await catalog.ensure_post(post_id)

        captions = request.form.getlist("captions") or request.form.getlist("captions[]")

        # Step numbers follow submission order, including skipped empty parts.
        numbered = [(i, p) for i, p in enumerate(submitted) if p.error != UploadErrorCode.NO_FILE]
        if not numbered:
            raise ValidationError.single("files", "No valid files uploaded")

        def step_attrs(index: int) -> Dict[str, Any]:
            position = numbered[index][0]
            return {
                "post_id": post_id,
                "image_type": "step",
                "sort_order": position + 1,
                "step_number": position + 1,
                "caption": captions[position] if position < len(captions) else None,
            }

        result = await store_batch([p for _, p in numbered], TUTORIAL_OPTIONS, step_attrs)
        return upload_response(
            result,
            lambda n: f"{n} tutorial images uploaded successfully",
            always_list=True,
            field="files",
        )

    async def delete_upload(request: IncomingRequest, filename: str):
        image = await catalog.find_by_filename(filename)
        if image is None:
            raise NotFoundError("Image", filename)

        result = ingestor.delete_file(filename)
        if not result:
            raise StorageWriteError("Failed to delete image file", context={"failed": result.failed})
        await catalog.delete(image.id)

        if result.main_missing:
            return envelope.success(None, "Image removed from database (file was already missing)")
        return envelope.success(None, "Image deleted successfully")

    # ── Catalog ───────────────────────────────────────────────────────────

    async def list_images(request: IncomingRequest):
        page, limit = page_and_limit(request, IMAGE_LIST_DEFAULT_LIMIT, IMAGE_LIST_MAX_LIMIT)
        search = search_term(request)
        rows, total = await catalog.list(page, limit, search)
        message = f"Search results for: {search}" if search else "Images retrieved successfully"
        return envelope.paginated(build_images(rows, base_url), page, limit, total, message)

    async def image_stats(request: IncomingRequest):
        return envelope.success(await catalog.storage_stats(), "Storage statistics retrieved successfully")

    async def orphaned_images(request: IncomingRequest):
        rows = await catalog.orphaned()
        return envelope.success(build_images(rows, base_url), "Orphaned images retrieved successfully")

    async def show_image(request: IncomingRequest, image_id: str):
        image = await catalog.get(int(image_id))
        detail = ImageDetailOut.build(
            image,
            base_url,
            file_exists=ingestor.get_file_info(image.filename) is not None,
        )
        return envelope.success(detail, "Image retrieved successfully")

    async def update_image(request: IncomingRequest, image_id: str):
        data = parse_body(ImageMetadataInput, request.json())
        image = await catalog.update_metadata(int(image_id), data.changes())
        return envelope.success(ImageOut.build(image, base_url), "Image updated successfully")

    async def post_images(request: IncomingRequest, post_id: str):
        image_type = (request.query.get("type") or "").strip() or None
        rows = await catalog.post_images(int(post_id), image_type)
        message = (
            f"{image_type.capitalize()} images for post retrieved successfully"
            if image_type
            else "Post images retrieved successfully"
        )
        return envelope.success(build_images(rows, base_url), message)

    async def tutorial_steps(request: IncomingRequest, post_id: str):
        rows = await catalog.tutorial_steps(int(post_id))
        return envelope.success(build_images(rows, base_url), "Tutorial steps retrieved successfully")

    async def reorder_images(request: IncomingRequest, post_id: str):
        data = parse_body(ReorderInput, request.json())
        await catalog.reorder(int(post_id), data.image_ids)
        return envelope.success(None, "Images reordered successfully")

    def routes(t: RouteTable) -> None:
        t.post("/upload", upload)
        t.post("/upload/tutorial", upload_tutorial)
        t.delete("/upload/{filename}", delete_upload)
        t.get("/images", list_images)
        t.get("/images/stats", image_stats)
        t.get("/images/orphaned", orphaned_images)
        t.get("/images/{id:\\d+}", show_image)
        t.put("/images/{id:\\d+}", update_image)
        t.get("/posts/{postId:\\d+}/images", post_images)
        t.get("/posts/{postId:\\d+}/steps", tutorial_steps)
        t.put("/posts/{postId:\\d+}/images/reorder", reorder_images)

    table.group("/api/admin", list(guards), routes)


def register_upload_serving(table: RouteTable, ingestor: ImageIngestor) -> None:
    async def serve(request: IncomingRequest, filename: str):
        info = ingestor.get_file_info(filename)
        if info is None:
            return HttpResponse(
                status_code=404,
                body=b"File not found",
                headers={"Content-Type": "text/plain; charset=utf-8"},
            )

        async with aiofiles.open(info.full_path, "rb") as f:
            content = await f.read()

        safe_name = _UNSAFE_DISPOSITION_CHARS.sub("", Path(filename).name)
        return HttpResponse(
            status_code=200,
            body=content,
            headers={
                "Content-Type": info.mime_type,
                "Content-Length": str(len(content)),
                "Cache-Control": f"public, max-age={UPLOAD_CACHE_SECONDS}",
                "Expires": formatdate(time.time() + UPLOAD_CACHE_SECONDS, usegmt=True),
                "Content-Disposition": f'inline; filename="{safe_name}"',
            },
        )

    table.get("/uploads/{filename}", serve)


def upload_response(result: Dict[str, Any], message_for, always_list: bool = False, field: str = "file") -> HttpResponse:
    stored: List[ImageOut] = result["stored"]
    errors: List[Dict[str, Any]] = result["errors"]
    if not stored:
        raise ValidationError(
            {field: ["No valid files uploaded"] + [f"{e['file']}: {e['message']}" for e in errors]}
        )
    data: Any = stored if always_list or len(stored) > 1 else stored[0]
    meta = {"errors": errors} if errors else None
    return envelope.success(data, message_for(len(stored)), meta, status_code=201)
