"""
Blog API — Tag Query Strategies
=================================

What:  How tag filters and the tag list are expressed in SQL.
How:   One strategy is picked from the engine's dialect when the app starts
       and used for every request:

    postgresql   JSONB containment     tags @> '["python"]'
                 jsonb_array_elements_text() for the distinct tag list
    others       JSON text match       CAST(tags AS TEXT) LIKE '%"python"%'
                 tag list aggregated in Python

There is no per-request fallback between the two: a failing query is a
database error, never an empty result.
"""

import json
import logging
from typing import List

from sqlalchemy import String, cast, func, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from blogapi.models.post import Post

logger = logging.getLogger(__name__)


class TagQueryStrategy:
    name = "base"

    def has_tag(self, tag: str) -> ColumnElement[bool]:
        raise NotImplementedError

    async def distinct_tags(self, session: AsyncSession) -> List[str]:
        raise NotImplementedError


class JsonbTagQuery(TagQueryStrategy):
    name = "jsonb"

    def has_tag(self, tag: str) -> ColumnElement[bool]:
        return type_coerce(Post.tags, JSONB).contains([tag])

    async def distinct_tags(self, session: AsyncSession) -> List[str]:
        tag = func.jsonb_array_elements_text(type_coerce(Post.tags, JSONB)).label("tag")
        stmt = (
            select(tag)
            .where(Post.status == "published", Post.tags.is_not(None))
            .distinct()
            .order_by(tag)
        )
        result = await session.execute(stmt)
        return [row for row in result.scalars().all() if row]


class JsonTextTagQuery(TagQueryStrategy):
    name = "json-text"

    def has_tag(self, tag: str) -> ColumnElement[bool]:
        # Tags are stored by the JSON serializer, so match its encoding of the
        # tag (quotes, escapes) inside the array text.
        needle = _escape_like(json.dumps(tag))
        return cast(Post.tags, String).like(f"%{needle}%", escape="\\")

    async def distinct_tags(self, session: AsyncSession) -> List[str]:
        result = await session.execute(
            select(Post.tags).where(Post.status == "published", Post.tags.is_not(None))
        )
        tags = set()
        for row in result.scalars().all():
            tags.update(tag for tag in (row or []) if isinstance(tag, str) and tag)
        return sorted(tags)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def strategy_for_dialect(dialect_name: str) -> TagQueryStrategy:
    strategy: TagQueryStrategy = JsonbTagQuery() if dialect_name == "postgresql" else JsonTextTagQuery()
    logger.info("Tag queries use the %s strategy (dialect=%s)", strategy.name, dialect_name)
    return strategy
