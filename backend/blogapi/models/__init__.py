"""
Blog API — ORM Models
=======================

Importing this package registers every table on `Base.metadata`
(Alembic autogenerate and the test suite's `create_all` rely on that).

    users   admin accounts that sign in and receive bearer tokens
    posts   blog articles, draft or published, with JSON tag lists
    images  uploaded files and their metadata, optionally attached to a post
"""

from blogapi.models.image import IMAGE_TYPES, Image
from blogapi.models.post import POST_STATUSES, Post
from blogapi.models.user import User

__all__ = ["IMAGE_TYPES", "Image", "POST_STATUSES", "Post", "User"]
