"""
Blog API — Routing Package
============================

What:  The request routing engine behind every `/api/*` endpoint.
How:   Three layers, each usable on its own:

    pattern.py     route template → anchored regex + ordered parameter names
    table.py       ordered route registry with prefix/middleware groups
    dispatcher.py  request → matched route → middleware chain → handler → envelope

`asgi.py` is the thin adapter that lets Starlette hand requests to the
dispatcher; `messages.py` holds the request/response values they exchange.

Modules are imported directly (`from blogapi.routing.table import RouteTable`);
this package re-exports nothing.
"""
