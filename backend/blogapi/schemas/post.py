"""
Post payloads and views.

`PostInput` validates create and update bodies (updates replace the whole
editable field set, as the admin editor always submits the full form).
Error messages here are shown verbatim next to form fields.
"""

import re
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from blogapi.models.post import POST_STATUSES

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


def _max_length(value: Optional[str], limit: int, message: str) -> Optional[str]:
    if value is not None and len(value) > limit:
        raise ValueError(message)
    return value


class PostInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    field_messages: ClassVar[Dict[str, str]] = {
        "pub_date": "Invalid publication date format",
        "updated_date": "Invalid updated date format",
        "description": "Description must be a string",
        "author": "Author must be a string",
    }

    title: Optional[str] = Field(default=None, validate_default=True)
    content: Optional[str] = Field(default=None, validate_default=True)
    slug: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    image_src: Optional[str] = None
    image_alt: Optional[str] = None
    image_position_x: Optional[str] = None
    image_position_y: Optional[str] = None
    tags: Optional[List[str]] = None
    status: str = "draft"
    pub_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v: Any) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("Title is required")
        if not isinstance(v, str):
            raise ValueError("Title must be a string")
        return _max_length(v.strip(), 255, "Title must be less than 255 characters")

    @field_validator("content", mode="before")
    @classmethod
    def check_content(cls, v: Any) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("Content is required")
        if not isinstance(v, str):
            raise ValueError("Content must be a string")
        return v

    @field_validator("slug", mode="before")
    @classmethod
    def check_slug(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        if not isinstance(v, str) or not SLUG_PATTERN.match(v):
            raise ValueError("Slug can only contain lowercase letters, numbers, and hyphens")
        return v

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: Any) -> str:
        if v is None or v == "":
            return "draft"
        if v not in POST_STATUSES:
            raise ValueError("Status must be either draft or published")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def check_tags(cls, v: Any) -> Optional[List[str]]:
        if v is None:
            return None
        if not isinstance(v, list):
            raise ValueError("Tags must be an array")
        tags: List[str] = []
        for tag in v:
            if not isinstance(tag, str):
                raise ValueError("Tags must be strings")
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("author")
    @classmethod
    def check_author(cls, v: Optional[str]) -> Optional[str]:
        return _max_length(v, 100, "Author name must be less than 100 characters")

    @field_validator("description")
    @classmethod
    def check_description(cls, v: Optional[str]) -> Optional[str]:
        return _max_length(v, 500, "Description must be less than 500 characters")

    @field_validator("image_src")
    @classmethod
    def check_image_src(cls, v: Optional[str]) -> Optional[str]:
        return _max_length(v, 500, "Image source path is too long")

    @field_validator("image_alt")
    @classmethod
    def check_image_alt(cls, v: Optional[str]) -> Optional[str]:
        return _max_length(v, 255, "Image alt text is too long")

    @field_validator("image_position_x", "image_position_y")
    @classmethod
    def check_image_position(cls, v: Optional[str]) -> Optional[str]:
        return _max_length(v, 20, "Image position is too long")


class PostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    content: str
    description: Optional[str] = None
    author: Optional[str] = None
    image_src: Optional[str] = None
    image_alt: Optional[str] = None
    image_position_x: Optional[str] = None
    image_position_y: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: str
    pub_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default(cls, v: Any) -> List[str]:
        return list(v or [])
