"""Query-string helpers shared by the list endpoints."""

from typing import Optional, Tuple

from blogapi.routing.messages import IncomingRequest


def page_and_limit(request: IncomingRequest, default_limit: int, max_limit: int) -> Tuple[int, int]:
    """`page` is at least 1; `limit` is clamped to 1..max_limit."""
    page = max(1, request.query_int("page", 1))
    limit = min(max_limit, max(1, request.query_int("limit", default_limit)))
    return page, limit


def search_term(request: IncomingRequest) -> Optional[str]:
    term = (request.query.get("search") or "").strip()
    return term or None
