"""
Blog API — Route Registration
===============================

Each module exposes `register_*` functions that add closures over their
services to a `RouteTable`. `create_app()` calls them in a fixed order,
which is also the match order.

Route Inventory:
    - system.py:  GET /api/health, GET /api/debug/routes, GET /api/stats
    - auth.py:    /api/auth/login, logout, verify, refresh
    - posts.py:   public /api/posts/*, admin /api/admin/posts/*
    - images.py:  /api/admin/upload*, /api/admin/images*, post image
                  listings, GET /uploads/{filename}
    - health.py:  GET /health (FastAPI route, outside the route table)

Routes should be THIN: read the request, call a service, wrap the result.
"""
