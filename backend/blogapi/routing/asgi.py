"""
Blog API — Starlette Adapter
==============================

What:  ASGI endpoint that hands Starlette requests to the `Dispatcher`.
How:   Reads the raw body, parses multipart forms into `FilePart`s, builds an
       `IncomingRequest`, awaits the dispatcher, and writes the returned
       `HttpResponse` back as a Starlette `Response`.
Who:   Mounted by `create_app()` as a catch-all route after the FastAPI-native
       `/health` check, so every other path goes through the route table.

HEAD is answered by the GET route for the same path: headers and
Content-Length as for GET, empty body.

Multipart parsing uses Starlette's `Request.form()` (python-multipart).
Uploaded files stay in Starlette's spooled temporary files until the
response has been produced; the form is closed afterwards.
"""

import logging
from typing import Dict, List

from starlette.datastructures import FormData, ImmutableMultiDict, UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from blogapi import envelope
from blogapi.routing.dispatcher import Dispatcher
from blogapi.routing.messages import FilePart, HttpResponse, IncomingRequest, UploadErrorCode

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class BlogASGIEndpoint:
    """ASGI application wrapping a `Dispatcher`."""

    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await self.handle(request)
        await response(scope, receive, send)

    async def handle(self, request: Request) -> Response:
        head_only = request.method == "HEAD"
        body = await request.body()
        form: FormData = FormData()
        content_type = request.headers.get("content-type", "")

        if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
            try:
                form = await request.form()
            except (MultiPartException, HTTPException) as exc:
                detail = getattr(exc, "message", None) or getattr(exc, "detail", str(exc))
                logger.warning("Malformed form body on %s %s: %s", request.method, request.url.path, detail)
                return to_starlette(envelope.error("Malformed multipart body", None, 400, "BAD_REQUEST"))

        try:
            fields, files = split_form(form)
            incoming = IncomingRequest(
                method="GET" if head_only else request.method,
                path=request.url.path,
                headers=request.headers,
                query_string=request.url.query,
                body=body,
                form=fields,
                files=files,
            )
            result = await self.dispatcher.dispatch(incoming)
        finally:
            await form.close()

        return to_starlette(result, head_only)


def split_form(form: FormData):
    """Separate plain fields from uploaded files, keyed by form field name."""
    fields = []
    files: Dict[str, List[FilePart]] = {}
    for name, value in form.multi_items():
        if isinstance(value, UploadFile):
            files.setdefault(name, []).append(to_file_part(name, value))
        else:
            fields.append((name, value))
    return ImmutableMultiDict(fields), files


def to_file_part(field_name: str, upload: UploadFile) -> FilePart:
    # Browsers submit an empty part with no filename for an untouched file input.
    if not upload.filename:
        return FilePart(field_name=field_name, filename="", error=UploadErrorCode.NO_FILE)
    return FilePart(
        field_name=field_name,
        filename=upload.filename,
        content_type=upload.content_type,
        stream=upload.file,
        size=upload.size,
    )


def to_starlette(response: HttpResponse, head_only: bool = False) -> Response:
    if head_only:
        headers = dict(response.headers)
        headers.setdefault("Content-Length", str(len(response.body)))
        return Response(content=b"", status_code=response.status_code, headers=headers)
    return Response(
        content=response.body,
        status_code=response.status_code,
        headers=response.headers,
    )
