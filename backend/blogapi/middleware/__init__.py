"""
Blog API — Middleware
=======================

Two kinds live here:

Starlette middleware (every request, added in `create_app()`):
    Request → [Request ID] → [Access log] → route handling

    Request ID runs first so the access log line carries the ID.

Route middleware (dispatcher style, attached per route or group):
    - auth.py: `require_auth`, `require_role`
"""
