"""
Request and response values exchanged with the dispatcher.

The dispatcher never sees Starlette objects directly: the ASGI adapter
(`routing/asgi.py`) converts each incoming request into an `IncomingRequest`
and converts the returned `HttpResponse` back. Tests build these values by hand.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, BinaryIO, Dict, List, Optional

from starlette.datastructures import Headers, ImmutableMultiDict, QueryParams

from blogapi.exceptions import ValidationError


class UploadErrorCode(IntEnum):
    """Transport-level outcome of a single uploaded file."""

    OK = 0
    INI_SIZE = 1
    FORM_SIZE = 2
    PARTIAL = 3
    NO_FILE = 4
    NO_TMP_DIR = 6
    CANT_WRITE = 7
    EXTENSION = 8

    @property
    def message(self) -> str:
        return _UPLOAD_ERROR_MESSAGES.get(self, "Unknown upload error")


_UPLOAD_ERROR_MESSAGES = {
    UploadErrorCode.OK: "The file uploaded successfully",
    UploadErrorCode.INI_SIZE: "The uploaded file exceeds the server upload size limit",
    UploadErrorCode.FORM_SIZE: "The uploaded file exceeds the size limit specified by the form",
    UploadErrorCode.PARTIAL: "The uploaded file was only partially uploaded",
    UploadErrorCode.NO_FILE: "No file was uploaded",
    UploadErrorCode.NO_TMP_DIR: "Missing a temporary folder",
    UploadErrorCode.CANT_WRITE: "Failed to write file to disk",
    UploadErrorCode.EXTENSION: "A server extension stopped the file upload",
}


@dataclass
class FilePart:
    """One file from a multipart body, still in temporary storage."""

    field_name: str
    filename: str
    content_type: Optional[str] = None
    stream: Optional[BinaryIO] = None
    size: Optional[int] = None
    error: UploadErrorCode = UploadErrorCode.OK


@dataclass(frozen=True)
class AuthContext:
    """Identity decoded from a verified bearer token, scoped to one request."""

    subject_id: int
    email: str
    display_name: Optional[str]
    role: str
    issued_at: Optional[datetime]
    expires_at: datetime


@dataclass
class IncomingRequest:
    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query_string: str = ""
    body: bytes = b""
    form: ImmutableMultiDict = field(default_factory=ImmutableMultiDict)
    files: Dict[str, List[FilePart]] = field(default_factory=dict)
    auth: Optional[AuthContext] = None
    state: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        # Paths may arrive with their query attached; keep the two apart.
        if "?" in self.path:
            self.path, _, query = self.path.partition("?")
            if not self.query_string:
                self.query_string = query

    @property
    def query(self) -> QueryParams:
        return QueryParams(self.query_string)

    def query_int(self, name: str, default: int) -> int:
        """Integer query parameter; missing or non-numeric values give `default`."""
        raw = self.query.get(name)
        if raw is None or raw.strip() == "":
            return default
        try:
            return int(raw)
        except ValueError:
            return default

    def json(self) -> Dict[str, Any]:
        """
        Decode the body as a JSON object.

        An empty body is `{}`. Anything that is not valid JSON, or not an
        object, is a 422 validation failure.
        """
        if not self.body.strip():
            return {}
        try:
            data = json.loads(self.body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise ValidationError.single("json", "Invalid JSON format")
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValidationError.single("json", "Request body must be a JSON object")
        return data

    def form_value(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.form.get(name)
        return default if value is None else value

    def files_for(self, name: str) -> List[FilePart]:
        return list(self.files.get(name, []))

    def file(self, name: str) -> Optional[FilePart]:
        parts = self.files.get(name)
        return parts[0] if parts else None


@dataclass
class HttpResponse:
    status_code: int = 200
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        """Decoded body; used by tests and the access log."""
        return json.loads(self.body) if self.body else None
