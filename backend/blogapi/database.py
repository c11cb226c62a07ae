"""
Blog API — Database Engine & Sessions
=======================================

What:  Async SQLAlchemy engine, session factory, and declarative base.
How:   `create_engine(settings)` builds the pooled async engine;
       `create_session_factory(engine)` returns the `async_sessionmaker`
       that services open one session per operation from.
Who:   `create_app()` builds both once and hands the factory to services;
       Alembic imports `Base` for its metadata.
When:  Engine at application start, sessions per request.

Connection pooling (server databases only):
    pool_size / max_overflow from settings, pre-ping before checkout so a
    restarted PostgreSQL does not surface as a failed request, and hourly
    recycling. SQLite (used by the test suite) keeps SQLAlchemy's defaults.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Tuple

from sqlalchemy import Select, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from blogapi.config import Settings
from blogapi.exceptions import DatabaseError

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


class Base(DeclarativeBase):
    """Shared metadata for every ORM model (and for Alembic autogenerate)."""


def create_engine(settings: Settings) -> AsyncEngine:
    url = make_url(settings.database_url)
    options = {"echo": settings.log_level == "DEBUG"}
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(url, **options)


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    # expire_on_commit=False: rows are serialized after the session commits.
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope(factory: SessionFactory, operation: str = "query") -> AsyncIterator[AsyncSession]:
    """
    One unit of work: commit on success, roll back on any error.

        async with session_scope(self.sessions, "create post") as session:
            session.add(post)

    SQLAlchemy errors are logged with their full text and re-raised as
    `DatabaseError`, whose client-facing message is generic.
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Database error during %s: %s", operation, e, exc_info=True)
            raise DatabaseError(context={"operation": operation, "error": str(e)}) from e
        except Exception:
            await session.rollback()
            raise


async def ping(engine: AsyncEngine) -> None:
    """Round-trip `SELECT 1`; raises when the database is unreachable."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def dispose_engine(engine: AsyncEngine) -> None:
    await engine.dispose()


async def paginate(session: AsyncSession, stmt: Select, page: int, limit: int) -> Tuple[List[Any], int]:
    """One page of ORM rows from `stmt`, plus the unpaged row count."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await session.execute(count_stmt)).scalar_one()
    rows = (await session.execute(stmt.limit(limit).offset((page - 1) * limit))).scalars().all()
    return list(rows), int(total)
