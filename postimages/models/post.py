"""Post and attachment models."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from postimages.models.base import Base

# Post types shipped with the platform; anything else is a custom type.
BUILTIN_POST_TYPES = ("post", "page", "attachment")


class Post(Base):
    """A content item that images are displayed for."""

    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    post_type: Mapped[str] = mapped_column(String(50), default="post", index=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_sticky: Mapped[bool] = mapped_column(Boolean, default=False)
    # Featured image, an attachment id
    thumbnail_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    options: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC), index=True
    )

    attachments: Mapped[list[Attachment]] = relationship(
        "Attachment",
        back_populates="post",
        foreign_keys="Attachment.post_id",
        order_by="Attachment.menu_order",
    )

    def option_dict(self) -> dict[str, Any]:
        """Return the image source options as a dict."""

        if not self.options:
            return {}

        try:
            data = json.loads(self.options)
        except (ValueError, TypeError):
            return {}

        return data if isinstance(data, dict) else {}


class Attachment(Base):
    """An uploaded image file."""

    __tablename__ = "attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    file_path: Mapped[str] = mapped_column(String(1024))
    width: Mapped[int] = mapped_column(Integer)
    height: Mapped[int] = mapped_column(Integer)
    caption: Mapped[str] = mapped_column(Text, default="")
    alt_text: Mapped[str] = mapped_column(String(255), default="")
    link: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    menu_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC)
    )

    post_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("posts.id"), nullable=True, index=True
    )

    post: Mapped[Post | None] = relationship(
        "Post", back_populates="attachments", foreign_keys=[post_id]
    )
