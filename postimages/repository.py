"""Content repository: posts, attachments and their stored files."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from postimages.config import config
from postimages.models import BUILTIN_POST_TYPES, Attachment, Post


@dataclass(frozen=True)
class StoredImage:
    """Location and full-size dimensions of a stored image."""

    item_id: int
    path: Path
    width: int
    height: int
    url: str


class ContentRepository(Protocol):
    """Resolves item identifiers to stored image files."""

    async def resolve_item(self, item_id: int) -> StoredImage | None: ...


class PostRepository(ContentRepository, Protocol):
    """Queries needed to list the images of a post."""

    async def get_post(self, post_id: int) -> Post | None: ...

    async def get_attachment(self, attachment_id: int) -> Attachment | None: ...

    async def get_gallery_attachments(
        self, gallery_id: int, limit: int = -1
    ) -> Sequence[Attachment]: ...

    async def get_posts(
        self,
        *,
        post_type: str = "post",
        category: str | None = None,
        ids: Sequence[int] | None = None,
        limit: int = -1,
    ) -> Sequence[Post]: ...

    async def get_sticky_post_ids(self) -> list[int]: ...

    async def get_custom_post_types(self) -> list[str]: ...

    async def update_post_options(
        self, post: Post, options: dict[str, Any]
    ) -> None: ...


def get_media_url(file_path: str) -> str:
    """Return the public URL of a file stored below the media root."""
    return f"{config.MEDIA_URL}/{file_path.lstrip('/')}"


class SqlContentRepository:
    """Content repository backed by the application database."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def resolve_item(self, item_id: int) -> StoredImage | None:
        attachment = await self.get_attachment(item_id)
        if attachment is None:
            return None
        return StoredImage(
            item_id=attachment.id,
            path=config.MEDIA_ROOT / attachment.file_path,
            width=attachment.width,
            height=attachment.height,
            url=get_media_url(attachment.file_path),
        )

    async def get_post(self, post_id: int) -> Post | None:
        return await self.session.get(Post, post_id)

    async def get_attachment(self, attachment_id: int) -> Attachment | None:
        return await self.session.get(Attachment, attachment_id)

    async def get_gallery_attachments(
        self, gallery_id: int, limit: int = -1
    ) -> Sequence[Attachment]:
        """Return the attachments of a gallery post in gallery order."""
        query = (
            select(Attachment)
            .where(Attachment.post_id == gallery_id)
            .order_by(Attachment.menu_order, Attachment.id)
        )
        if limit > 0:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_posts(
        self,
        *,
        post_type: str = "post",
        category: str | None = None,
        ids: Sequence[int] | None = None,
        limit: int = -1,
    ) -> Sequence[Post]:
        """Return posts, newest first.

        Args:
            post_type: Post type to select
            category: Only posts in this category
            ids: Only posts with these ids; an empty sequence matches nothing
            limit: Maximum number of posts, -1 for all
        """
        if ids is not None and not ids:
            return []

        query = select(Post).where(Post.post_type == post_type)
        if category:
            query = query.where(Post.category == category)
        if ids is not None:
            query = query.where(Post.id.in_(list(ids)))
        query = query.order_by(Post.created_at.desc(), Post.id.desc())
        if limit > 0:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_sticky_post_ids(self) -> list[int]:
        result = await self.session.execute(
            select(Post.id).where(Post.is_sticky.is_(True)).order_by(Post.id)
        )
        return list(result.scalars().all())

    async def get_custom_post_types(self) -> list[str]:
        """Return the post types in use that are not built in."""
        result = await self.session.execute(
            select(Post.post_type)
            .where(Post.post_type.not_in(BUILTIN_POST_TYPES))
            .distinct()
            .order_by(Post.post_type)
        )
        return list(result.scalars().all())

    async def update_post_options(self, post: Post, options: dict[str, Any]) -> None:
        post.options = json.dumps(options)
        await self.session.commit()
