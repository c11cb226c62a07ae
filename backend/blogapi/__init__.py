"""
Blog API — Application Package
================================

What: Backend for a personal blog: public post reading, an authenticated
      admin API for posts and images, and image upload processing.

Architecture Note:

    ┌─────────────────────────────────────┐
    │     FastAPI shell (/health, ASGI)   │  ← process lifecycle, access log
    ├─────────────────────────────────────┤
    │   Routing (RouteTable, Dispatcher)  │  ← match, middleware, error envelope
    ├─────────────────────────────────────┤
    │   Routes (handler registration)     │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (business rules)         │  ← posts, images, accounts, tokens
    ├─────────────────────────────────────┤
    │   Models & Schemas (data)           │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database (persistence)            │  ← async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
