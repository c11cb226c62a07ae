"""Image metadata payloads and views."""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from blogapi.models.image import Image


class ImageMetadataInput(BaseModel):
    """Editable metadata: PUT /api/admin/images/{id}. Absent keys stay unchanged."""

    model_config = ConfigDict(extra="ignore")

    field_messages: ClassVar[Dict[str, str]] = {
        "alt_text": "Alt text must be a string",
        "description": "Description must be a string",
    }

    alt_text: Optional[str] = None
    description: Optional[str] = None
    post_id: Optional[int] = None

    @field_validator("alt_text")
    @classmethod
    def check_alt_text(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > 255:
            raise ValueError("Alt text must be less than 255 characters")
        return v

    @field_validator("description")
    @classmethod
    def check_description(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > 1000:
            raise ValueError("Description must be less than 1000 characters")
        return v

    @field_validator("post_id", mode="before")
    @classmethod
    def check_post_id(cls, v: Any) -> Optional[int]:
        if v is None or v == "":
            return None
        if isinstance(v, bool):
            raise ValueError("Post ID must be a number")
        if isinstance(v, int):
            return v
        if isinstance(v, str) and v.strip().isdigit():
            return int(v.strip())
        raise ValueError("Post ID must be a number")

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(include=self.model_fields_set)


class ReorderInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image_ids: Optional[List[int]] = Field(default=None, validate_default=True)

    @field_validator("image_ids", mode="before")
    @classmethod
    def check_image_ids(cls, v: Any) -> List[int]:
        if not isinstance(v, list):
            raise ValueError("Image IDs array is required")
        ids: List[int] = []
        for item in v:
            if isinstance(item, bool):
                raise ValueError("Image IDs must be integers")
            if isinstance(item, str) and item.strip().isdigit():
                item = int(item.strip())
            if not isinstance(item, int):
                raise ValueError("Image IDs must be integers")
            ids.append(item)
        if len(set(ids)) != len(ids):
            raise ValueError("Image IDs must be unique")
        return ids


class ImageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str
    original_name: str
    path: str
    size: int
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    thumbnail_path: Optional[str] = None
    image_type: str
    sort_order: int
    step_number: Optional[int] = None
    caption: Optional[str] = None
    post_id: Optional[int] = None
    alt_text: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    url: str = ""
    thumbnail_url: Optional[str] = None

    @classmethod
    def build(cls, image: Image, base_url: str, **extra: Any) -> "ImageOut":
        out = cls.model_validate(image)
        out.url = absolute_url(base_url, image.path)
        out.thumbnail_url = absolute_url(base_url, image.thumbnail_path) if image.thumbnail_path else None
        for key, value in extra.items():
            setattr(out, key, value)
        return out


class ImageDetailOut(ImageOut):
    file_exists: bool = False


def absolute_url(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def build_images(images: List[Image], base_url: str) -> List[ImageOut]:
    return [ImageOut.build(image, base_url) for image in images]
