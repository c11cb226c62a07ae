"""
Blog API — JSON Response Envelope
===================================

What:  Builders for every response the API sends.
How:   Each helper returns an `HttpResponse` whose body is the fixed envelope:

    success:  {"success": true,  "message": "...", "data": ..., "meta": {...}}
    failure:  {"success": false, "error": {"message": "...", "code": "...", "details": ...}}

`data` is omitted when it is None and `meta` when it is empty; `code` and
`details` are omitted when not given. Clients depend on this exact shape.

Encoding matches Starlette's JSONResponse (compact separators, UTF-8, no
ASCII escaping), after `jsonable_encoder` turns datetimes, UUIDs and ORM
schema objects into plain JSON values.
"""

import json
import math
from typing import Any, Dict, Iterable, Mapping, Optional

from fastapi.encoders import jsonable_encoder

from blogapi.routing.messages import HttpResponse

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

CORS_ALLOW_METHODS = "GET, POST, PUT, DELETE, PATCH, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization, X-Requested-With"

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
    "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    "Access-Control-Max-Age": "86400",
}


def encode_json(payload: Any) -> bytes:
    return json.dumps(
        jsonable_encoder(payload),
        ensure_ascii=False,
        allow_nan=False,
        indent=None,
        separators=(",", ":"),
    ).encode("utf-8")


def json_response(
    payload: Mapping[str, Any],
    status_code: int = 200,
    headers: Optional[Mapping[str, str]] = None,
) -> HttpResponse:
    response_headers = {
        "Content-Type": JSON_CONTENT_TYPE,
        "Cache-Control": "no-cache, must-revalidate",
    }
    if headers:
        response_headers.update(headers)
    return HttpResponse(status_code=status_code, body=encode_json(payload), headers=response_headers)


# ── Success ───────────────────────────────────────────────────────────────


def success(
    data: Any = None,
    message: str = "Success",
    meta: Optional[Mapping[str, Any]] = None,
    status_code: int = 200,
) -> HttpResponse:
    payload: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    if meta:
        payload["meta"] = dict(meta)
    return json_response(payload, status_code)


def created(data: Any = None, message: str = "Created successfully") -> HttpResponse:
    return success(data, message, status_code=201)


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
        "has_next": page * limit < total,
        "has_prev": page > 1,
    }


def paginated(
    data: Iterable[Any],
    page: int,
    limit: int,
    total: int,
    message: str = "Success",
) -> HttpResponse:
    return success(list(data), message, pagination_meta(page, limit, total))


# ── Failure ───────────────────────────────────────────────────────────────


def error(
    message: str = "Error",
    details: Any = None,
    status_code: int = 400,
    code: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> HttpResponse:
    body: Dict[str, Any] = {"message": message}
    if code:
        body["code"] = code
    if details is not None:
        body["details"] = details
    return json_response({"success": False, "error": body}, status_code, headers)


def validation_error(errors: Mapping[str, Any], message: str = "Validation failed") -> HttpResponse:
    return error(message, dict(errors), 422, "VALIDATION_ERROR")


def unauthorized(message: str = "Unauthorized", details: Any = None) -> HttpResponse:
    return error(message, details, 401, "UNAUTHORIZED")


def forbidden(message: str = "Forbidden") -> HttpResponse:
    return error(message, None, 403, "FORBIDDEN")


def not_found(message: str = "Resource not found") -> HttpResponse:
    return error(message, None, 404, "NOT_FOUND")


def server_error(message: str = "Internal server error") -> HttpResponse:
    return error(message, None, 500, "SERVER_ERROR")


# ── CORS ──────────────────────────────────────────────────────────────────


def cors_preflight() -> HttpResponse:
    """Fixed answer to every OPTIONS request, independent of the route table."""
    return HttpResponse(status_code=200, headers=dict(PREFLIGHT_HEADERS))


def cors_headers(request_origin: Optional[str], allowed_origins: Iterable[str]) -> Dict[str, str]:
    """
    Headers added to every non-preflight response.

    A wildcard allow-list answers `*`; otherwise the request's own origin is
    echoed back only when it is listed.
    """
    allowed = list(allowed_origins)
    headers = {
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }
    if "*" in allowed:
        headers["Access-Control-Allow-Origin"] = "*"
    elif request_origin and request_origin in allowed:
        headers["Access-Control-Allow-Origin"] = request_origin
        headers["Vary"] = "Origin"
    return headers
