"""
Blog API — Request/Response Schemas
=====================================

Pydantic models for the JSON bodies the API accepts and the objects it
returns. Request models carry the user-facing validation messages; response
models are built from ORM rows (`from_attributes`) and serialized by the
envelope.
"""
