"""
Blog API — Post Routes
========================

What:  Public reading endpoints and the admin post editor API.
How:   Handlers parse input, call `PostService`, and wrap results in the
       envelope. Services raise NotFoundError / ValidationError; the
       dispatcher turns those into responses.

Public (no auth):
    GET /api/posts/tags            distinct tags of published posts
    GET /api/posts/tag/{tag}       published posts carrying a tag (paginated)
    GET /api/posts                 published posts, optional ?search= (paginated)
    GET /api/posts/{slug}          one published post

Admin (bearer token, admin or editor role):
    GET    /api/admin/posts                 all posts, drafts included
    GET    /api/admin/posts/{id}            one post for editing
    POST   /api/admin/posts                 create
    PUT    /api/admin/posts/{id}            update
    DELETE /api/admin/posts/{id}            delete
    PATCH  /api/admin/posts/{id}/publish    toggle draft/published

`/api/posts/tags` is registered before `/api/posts/{slug}`, which would
otherwise capture it.
"""

import logging
from typing import Sequence

from blogapi import envelope
from blogapi.config import Settings
from blogapi.routes.params import page_and_limit, search_term
from blogapi.routing.messages import IncomingRequest
from blogapi.routing.table import Middleware, RouteTable
from blogapi.schemas.common import parse_body
from blogapi.schemas.post import PostInput, PostOut
from blogapi.services.post_service import PostService

logger = logging.getLogger(__name__)


def register_public_post_routes(table: RouteTable, posts: PostService, settings: Settings) -> None:
    def paging(request: IncomingRequest):
        return page_and_limit(request, settings.pagination_default_limit, settings.pagination_max_limit)

    async def list_tags(request: IncomingRequest):
        return envelope.success(await posts.all_tags(), "Tags retrieved successfully")

    async def posts_by_tag(request: IncomingRequest, tag: str):
        page, limit = paging(request)
        rows, total = await posts.by_tag(tag, page, limit)
        return envelope.paginated(
            [PostOut.model_validate(p) for p in rows],
            page,
            limit,
            total,
            f"Posts with tag '{tag}' retrieved successfully",
        )

    async def list_posts(request: IncomingRequest):
        page, limit = paging(request)
        search = search_term(request)
        rows, total = await posts.list_published(page, limit, search)
        message = f"Search results for: {search}" if search else "Posts retrieved successfully"
        return envelope.paginated([PostOut.model_validate(p) for p in rows], page, limit, total, message)

    async def show_post(request: IncomingRequest, slug: str):
        post = await posts.get_published_by_slug(slug)
        return envelope.success(PostOut.model_validate(post), "Post retrieved successfully")

    table.get("/api/posts/tags", list_tags)
    table.get("/api/posts/tag/{tag}", posts_by_tag)
    table.get("/api/posts", list_posts)
    table.get("/api/posts/{slug}", show_post)


def register_admin_post_routes(
    table: RouteTable,
    posts: PostService,
    settings: Settings,
    guards: Sequence[Middleware],
) -> None:
    async def list_all(request: IncomingRequest):
        page, limit = page_and_limit(request, settings.pagination_default_limit, settings.pagination_max_limit)
        rows, total = await posts.list_admin(page, limit)
        return envelope.paginated(
            [PostOut.model_validate(p) for p in rows],
            page,
            limit,
            total,
            "Admin posts retrieved successfully",
        )

    async def show(request: IncomingRequest, post_id: str):
        post = await posts.get_for_edit(int(post_id))
        return envelope.success(PostOut.model_validate(post), "Post retrieved successfully")

    async def create(request: IncomingRequest):
        data = parse_body(PostInput, request.json())
        post = await posts.create(data)
        return envelope.created(PostOut.model_validate(post), "Post created successfully")

    async def update(request: IncomingRequest, post_id: str):
        data = parse_body(PostInput, request.json())
        post = await posts.update(int(post_id), data)
        return envelope.success(PostOut.model_validate(post), "Post updated successfully")

    async def destroy(request: IncomingRequest, post_id: str):
        await posts.delete(int(post_id))
        return envelope.success(None, "Post deleted successfully")

    async def toggle_publish(request: IncomingRequest, post_id: str):
        post = await posts.toggle_publish(int(post_id))
        action = "published" if post.is_published else "unpublished"
        return envelope.success(PostOut.model_validate(post), f"Post {action} successfully")

    def routes(t: RouteTable) -> None:
        t.get("", list_all)
        t.get("/{id:\\d+}", show)
        t.post("", create)
        t.put("/{id:\\d+}", update)
        t.delete("/{id:\\d+}", destroy)
        t.patch("/{id:\\d+}/publish", toggle_publish)

    table.group("/api/admin/posts", list(guards), routes)
