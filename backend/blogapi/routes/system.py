"""
Blog API — System Routes
==========================

    GET /api/health          liveness, no dependency checks
    GET /api/debug/routes    registered routes (development only)
    GET /api/stats           post counts by status

The deeper `/health` check (database + storage) is a FastAPI route; see
`routes/health.py`.
"""

from datetime import datetime, timezone

from blogapi import __version__, envelope
from blogapi.config import Settings
from blogapi.routing.messages import IncomingRequest
from blogapi.routing.table import RouteTable
from blogapi.services.post_service import PostService


def register_health_routes(table: RouteTable, settings: Settings) -> None:
    async def api_health(request: IncomingRequest):
        return envelope.success(
            {
                "status": "OK",
                "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
                "version": __version__,
            },
            "API is running",
        )

    async def debug_routes(request: IncomingRequest):
        return envelope.success([route.describe() for route in table.routes], "Registered routes")

    table.get("/api/health", api_health)
    if settings.is_development:
        table.get("/api/debug/routes", debug_routes)


def register_stats_routes(table: RouteTable, posts: PostService) -> None:
    async def blog_stats(request: IncomingRequest):
        return envelope.success(await posts.stats(), "Statistics retrieved successfully")

    table.get("/api/stats", blog_stats)
