"""
Blog API — FastAPI Application Factory
========================================

What:  Creates and configures the application instance.
How:   Factory pattern: `create_app(settings)` builds the engine, services and
       route table, and returns a FastAPI app that serves everything.
Who:   uvicorn (`uvicorn blogapi.main:create_app --factory`) and the test suite.
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────────┐                   │
    │  │ Req ID   │→│  Access log     │                   │
    │  └──────────┘ └─────────────────┘                   │
    │                                                     │
    │  Routes:                                            │
    │  ┌─────────────────┐ ┌────────────────────────────┐ │
    │  │ GET /health     │ │ /{path} → Dispatcher       │ │
    │  │ (FastAPI)       │ │  RouteTable, CORS, errors  │ │
    │  └─────────────────┘ └────────────────────────────┘ │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   configure logging, ensure the upload root exists
    Shutdown:  dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from blogapi import __version__
from blogapi.config import Settings, load_settings
from blogapi.database import create_engine, create_session_factory, dispose_engine
from blogapi.middleware.auth import require_auth, require_role
from blogapi.middleware.logging import RequestLoggingMiddleware
from blogapi.middleware.request_id import RequestIDMiddleware
from blogapi.models.user import STAFF_ROLES
from blogapi.routes import health
from blogapi.routes.auth import register_auth_routes
from blogapi.routes.images import register_image_routes, register_upload_serving
from blogapi.routes.posts import register_admin_post_routes, register_public_post_routes
from blogapi.routes.system import register_health_routes, register_stats_routes
from blogapi.routing.asgi import ALL_METHODS, BlogASGIEndpoint
from blogapi.routing.dispatcher import Dispatcher
from blogapi.routing.table import RouteTable
from blogapi.services.auth_service import AuthService
from blogapi.services.image_catalog import ImageCatalog
from blogapi.services.image_service import ImageIngestor
from blogapi.services.post_service import PostService
from blogapi.services.tag_query import strategy_for_dialect
from blogapi.services.token_service import TokenService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Settings) -> None:
    """
    Configure the root logger once for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Request IDs are included by the loggers that have one in scope.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    logger.info("=" * 60)
    logger.info("%s starting up (env=%s, debug=%s)", settings.app_name, settings.app_env, settings.app_debug)

    upload_root = Path(settings.upload_root)
    upload_root.mkdir(parents=True, exist_ok=True)
    logger.info("Upload directory: %s", upload_root.resolve())
    logger.info("%d routes registered", len(app.state.route_table))
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("%s shutting down...", settings.app_name)
    await dispose_engine(app.state.engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Route Table
# ══════════════════════════════════════════════════════════════════════════

def build_route_table(
    settings: Settings,
    posts: PostService,
    accounts: AuthService,
    tokens: TokenService,
    ingestor: ImageIngestor,
    catalog: ImageCatalog,
) -> RouteTable:
    """All dispatcher routes, in match order; returned frozen."""
    table = RouteTable()
    auth = require_auth(tokens, settings)
    staff = [auth, require_role(*STAFF_ROLES)]

    register_health_routes(table, settings)
    register_auth_routes(table, accounts, settings, auth)
    register_public_post_routes(table, posts, settings)
    register_admin_post_routes(table, posts, settings, staff)
    register_image_routes(table, ingestor, catalog, settings, staff)
    register_upload_serving(table, ingestor)
    register_stats_routes(table, posts)

    table.freeze()
    return table


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Assemble the application.

    Settings are loaded from the environment when not given; a missing or
    placeholder JWT_SECRET fails here, before the server binds a port.
    """
    settings = settings or load_settings()
    setup_logging(settings)

    engine = create_engine(settings)
    sessions = create_session_factory(engine)
    tokens = TokenService(settings)
    posts = PostService(sessions, strategy_for_dialect(engine.dialect.name))
    accounts = AuthService(sessions, tokens)
    ingestor = ImageIngestor(settings)
    catalog = ImageCatalog(sessions)

    table = build_route_table(settings, posts, accounts, tokens, ingestor, catalog)
    dispatcher = Dispatcher(table, settings)

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessions = sessions
    app.state.route_table = table

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → access log → routes.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Routes ───────────────────────────────────────────────────
    # /health first; everything else falls through to the dispatcher.
    app.include_router(health.router)
    app.add_route("/{path:path}", BlogASGIEndpoint(dispatcher), methods=ALL_METHODS, include_in_schema=False)

    return app
