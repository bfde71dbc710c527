"""Database models for Postimages."""

from postimages.models.base import Base
from postimages.models.post import BUILTIN_POST_TYPES, Attachment, Post

__all__ = ["BUILTIN_POST_TYPES", "Attachment", "Base", "Post"]
