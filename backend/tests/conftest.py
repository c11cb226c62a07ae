"""
Blog API — Test Configuration (conftest.py)
=============================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own settings, upload directory and SQLite
       database (aiosqlite), so tests never share state.

Fixture Hierarchy:
    settings            Settings with a temp upload root and SQLite file
    ├── engine          async engine with all tables created
    │   └── sessions    async_sessionmaker bound to it
    ├── app             full application from create_app(settings)
    │   ├── client      httpx AsyncClient over ASGITransport
    │   └── admin       an admin account plus its bearer headers
    └── image_bytes     factory for Pillow-generated images
"""

import io
import os
from typing import Any, AsyncGenerator, Callable, Dict

# Before any blogapi import: Settings must never pick up a developer's env.
os.environ["JWT_SECRET"] = "test-secret-key-0123456789abcdefghij"
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image as PILImage

from blogapi.config import Settings, load_settings
from blogapi.database import Base, create_engine, create_session_factory
from blogapi.main import create_app
from blogapi.models import Image, Post, User  # noqa: F401
from blogapi.routing.messages import FilePart
from blogapi.services.auth_service import AuthService
from blogapi.services.token_service import TokenService

ADMIN_EMAIL = "admin@blog.test"
ADMIN_PASSWORD = "correct horse battery staple"


# ══════════════════════════════════════════════════════════════════════════
# Configuration & Database
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def settings(tmp_path) -> Settings:
    return load_settings(
        app_env="testing",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'blog.db'}",
        upload_root=str(tmp_path / "uploads"),
        app_url="http://blog.test",
    )


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    """Settings factory for tests that need a different environment."""

    def build(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "database_url": f"sqlite+aiosqlite:///{tmp_path / 'blog.db'}",
            "upload_root": str(tmp_path / "uploads"),
            "app_url": "http://blog.test",
        }
        values.update(overrides)
        return load_settings(**values)

    return build


@pytest_asyncio.fixture
async def engine(settings):
    engine = create_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions(engine):
    return create_session_factory(engine)


# ══════════════════════════════════════════════════════════════════════════
# Application
# ══════════════════════════════════════════════════════════════════════════

async def _build_app(settings: Settings):
    app = create_app(settings)
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return app


@pytest_asyncio.fixture
async def app(settings):
    app = await _build_app(settings)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to the app in-process.

        async def test_health(client):
            response = await client.get("/api/health")
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def admin(app) -> Dict[str, Any]:
    """An active admin account in the app's database, with its auth headers."""
    accounts = AuthService(app.state.sessions, TokenService(app.state.settings))
    user = await accounts.create_user(ADMIN_EMAIL, ADMIN_PASSWORD, "Site Admin")
    token = TokenService(app.state.settings).issue(user)
    return {"user": user, "token": token, "headers": {"Authorization": f"Bearer {token}"}}


# ══════════════════════════════════════════════════════════════════════════
# Images
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    """
    Real encoded images, generated with Pillow.

        image_bytes("PNG", (2000, 1000))
    """

    def build(fmt: str = "JPEG", size=(64, 48), mode: str = "RGB", color=(200, 30, 30)) -> bytes:
        buffer = io.BytesIO()
        if mode == "RGBA" and len(color) == 3:
            color = (*color, 128)
        PILImage.new(mode, size, color).save(buffer, format=fmt)
        return buffer.getvalue()

    return build


@pytest.fixture
def file_part() -> Callable[..., FilePart]:
    """FilePart over in-memory bytes, as the ASGI adapter would build it."""

    def build(content: bytes, filename: str = "photo.jpg", field_name: str = "file", **kwargs: Any) -> FilePart:
        kwargs.setdefault("size", len(content))
        return FilePart(
            field_name=field_name,
            filename=filename,
            stream=io.BytesIO(content),
            **kwargs,
        )

    return build
