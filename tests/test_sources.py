from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from postimages.config import config
from postimages.hooks import FilterRegistry
from postimages.models import Attachment, Post
from postimages.repository import SqlContentRepository
from postimages.services.feeds import FeedImage, MediaFeedError, MediaFeedProvider
from postimages.services.sources import (
    ImageRecord,
    ImageSources,
    prepare_attachment_link,
    strip_tags,
)
from tests.conftest import write_image


class FakeFeed(MediaFeedProvider):
    def __init__(
        self,
        name: str,
        images: list[FeedImage] | None = None,
        error: Exception | None = None,
    ) -> None:
        super().__init__(name)
        self.images = images or []
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def fetch(
        self,
        method: str,
        param: str | None = None,
        *,
        count: int = 20,
        page: int = 1,
        safe_mode: bool = True,
    ) -> list[FeedImage]:
        self.calls.append(
            {
                "method": method,
                "param": param,
                "count": count,
                "page": page,
                "safe_mode": safe_mode,
            }
        )
        if self.error is not None:
            raise self.error
        return self.images


@pytest.fixture
async def content(
    session_factory: async_sessionmaker[AsyncSession], media_root: Path
) -> dict[str, int]:
    for name in ("a", "b", "c"):
        write_image(media_root / "uploads" / f"{name}.jpg", (600, 300))
    write_image(media_root / "uploads" / "d.jpg", (100, 50))

    async with session_factory() as session:
        gallery = Post(title="Holiday", post_type="page")
        slider = Post(title="Home slider", post_type="page")
        session.add_all([gallery, slider])
        await session.flush()

        first = Attachment(
            file_path="uploads/a.jpg",
            width=600,
            height=300,
            caption="First",
            alt_text="<b>Alt one</b>",
            link="example.com/one",
            menu_order=2,
            post_id=gallery.id,
        )
        second = Attachment(
            file_path="uploads/b.jpg",
            width=600,
            height=300,
            caption="Second",
            menu_order=1,
            post_id=gallery.id,
        )
        third = Attachment(
            file_path="uploads/c.jpg",
            width=600,
            height=300,
            caption="Third",
            link="https://example.org/three",
        )
        small = Attachment(file_path="uploads/d.jpg", width=100, height=50)
        missing = Attachment(file_path="uploads/gone.jpg", width=600, height=300)
        session.add_all([first, second, third, small, missing])
        await session.flush()

        news = Post(
            title="Big news",
            category="news",
            is_sticky=True,
            thumbnail_id=third.id,
            created_at=datetime(2024, 1, 3),
        )
        news_plain = Post(
            title="Text only", category="news", created_at=datetime(2024, 1, 2)
        )
        other = Post(
            title="Elsewhere",
            category="other",
            thumbnail_id=second.id,
            created_at=datetime(2024, 1, 1),
        )
        work = Post(title="Case study", post_type="portfolio", thumbnail_id=first.id)
        session.add_all([news, news_plain, other, work])
        await session.commit()

        return {
            "gallery": gallery.id,
            "slider": slider.id,
            "first": first.id,
            "second": second.id,
            "third": third.id,
            "small": small.id,
            "missing": missing.id,
            "news": news.id,
            "other": other.id,
            "work": work.id,
        }


async def _set_options(
    session_factory: async_sessionmaker[AsyncSession],
    post_id: int,
    options: dict[str, Any],
) -> None:
    async with session_factory() as session:
        post = await session.get(Post, post_id)
        assert post is not None
        post.options = json.dumps(options)
        await session.commit()


@pytest.mark.asyncio
async def test_default_sources_without_custom_types(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    async with session_factory() as session:
        sources = ImageSources(SqlContentRepository(session))

        assert await sources.get_image_sources() == {
            "manual": "Manual",
            "gallery": "Gallery",
            "category": "Category",
            "sticky": "Sticky Posts",
        }


@pytest.mark.asyncio
async def test_custom_source_needs_custom_post_type(
    session_factory: async_sessionmaker[AsyncSession], content: dict[str, int]
) -> None:
    async with session_factory() as session:
        sources = ImageSources(SqlContentRepository(session))

        defaults = await sources.image_sources_defaults()

    assert defaults["custom"] == "Custom Post Type"


@pytest.mark.asyncio
async def test_feeds_are_listed_unless_excluded(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    filters = FilterRegistry()
    filters.add_filter("media_feed_exclude", lambda exclude: [*exclude, "instagram"])
    filters.add_filter(
        "slider_get_image_sources",
        lambda sources: {**sources, "extra": "Extra"},
    )

    async with session_factory() as session:
        sources = ImageSources(
            SqlContentRepository(session),
            filters=filters,
            feeds={"flickr": FakeFeed("flickr"), "instagram": FakeFeed("instagram")},
        )
        available = await sources.get_image_sources()

    assert available["flickr"] == "Flickr Feed"
    assert "instagram" not in available
    assert available["extra"] == "Extra"


@pytest.mark.asyncio
async def test_default_source_can_be_filtered(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    filters = FilterRegistry()
    filters.add_filter("slider_image_source_default", lambda _default: "gallery")

    async with session_factory() as session:
        sources = ImageSources(SqlContentRepository(session), filters=filters)

        assert sources.image_source_default() == "gallery"


@pytest.mark.asyncio
async def test_manual_images_are_saved_and_listed(
    session_factory: async_sessionmaker[AsyncSession], content: dict[str, int]
) -> None:
    image_ids = f"{content['third']}, ,{content['first']}"

    async with session_factory() as session:
        sources = ImageSources(SqlContentRepository(session))
        images = await sources.get_images(content["slider"], image_ids=image_ids)

    assert images == [
        ImageRecord(
            image_src="/media/uploads/c.jpg",
            post_permalink="https://example.org/three",
            post_title="Third",
            alt_text="",
            thumbnail="/media/uploads/c-150x150-crop.jpg",
            attachment_id=content["third"],
        ),
        ImageRecord(
            image_src="/media/uploads/a.jpg",
            post_permalink="http://example.com/one",
            post_title="First",
            alt_text="Alt one",
            thumbnail="/media/uploads/a-150x150-crop.jpg",
            attachment_id=content["first"],
        ),
    ]

    async with session_factory() as session:
        post = await session.get(Post, content["slider"])
        assert post is not None
        assert post.option_dict()["manual_image_ids"] == image_ids

        again = await ImageSources(SqlContentRepository(session)).get_images(
            content["slider"]
        )

    assert again == images


@pytest.mark.asyncio
async def test_manual_images_respect_limit_and_size(
    session_factory: async_sessionmaker[AsyncSession],
    content: dict[str, int],
    media_root: Path,
) -> None:
    await _set_options(
        session_factory,
        content["slider"],
        {
            "source": "manual",
            "manual_image_ids": f"{content['first']},{content['small']}",
            "number_images": "1",
            "wp_image_size": "medium",
        },
    )

    async with session_factory() as session:
        images = await ImageSources(SqlContentRepository(session)).get_images(
            content["slider"]
        )

    assert [image.image_src for image in images] == ["/media/uploads/a-300x150.jpg"]
    assert (media_root / "uploads" / "a-300x150.jpg").is_file()


@pytest.mark.asyncio
async def test_small_images_are_not_resized(
    session_factory: async_sessionmaker[AsyncSession], content: dict[str, int]
) -> None:
    async with session_factory() as session:
        images = await ImageSources(SqlContentRepository(session)).get_images(
            content["slider"], size="medium", image_ids=str(content["small"])
        )

    assert images[0].image_src == "/media/uploads/d.jpg"
    assert images[0].thumbnail == "/media/uploads/d.jpg"


@pytest.mark.asyncio
async def test_unresolvable_images_are_skipped(
    session_factory: async_sessionmaker[AsyncSession], content: dict[str, int]
) -> None:
    async with session_factory() as session:
        images = await ImageSources(SqlContentRepository(session)).get_images(
            content["slider"],
            size="medium",
            image_ids=f"{content['missing']},999,{content['second']}",
        )

    assert [image.attachment_id for image in images] == [content["second"]]


@pytest.mark.asyncio
async def test_gallery_images_in_gallery_order(
    session_factory: async_sessionmaker[AsyncSession], content: dict[str, int]
) -> None:
    await _set_options(
        session_factory,
        content["slider"],
        {"source": "gallery", "slider_gallery": content["gallery"]},
    )

    async with session_factory() as session:
        images = await ImageSources(SqlContentRepository(session)).get_images(
            content["slider"]
        )

    assert [image.attachment_id for image in images] == [
        content["second"],
        content["first"],
    ]
    assert images[0].post_permalink == (
        f"http://example.test/?attachment_id={content['second']}"
    )
    assert images[0].post_title == images[0].alt_text == "Second"


@pytest.mark.asyncio
async def test_category_images_use_featured_images(
    session_factory: async_sessionmaker[AsyncSession], content: dict[str, int]
) -> None:
    async with session_factory() as session:
        sources = ImageSources(SqlContentRepository(session))
        news = await sources.get_images(
            content["slider"], source="category", category="news"
        )
        other = await sources.get_images(
            content["slider"], source="category", category="other"
        )

    assert news == [
        ImageRecord(
            image_src="/media/uploads/c.jpg",
            post_permalink="https://example.org/three",
            post_title="Big news",
            alt_text="Big news",
            thumbnail="/media/uploads/c-150x150-crop.jpg",
            attachment_id=content["third"],
        )
    ]
    assert other[0].post_permalink == f"http://example.test/?p={content['other']}"


@pytest.mark.asyncio
async def test_sticky_and_custom_sources(
    session_factory: async_sessionmaker[AsyncSession], content: dict[str, int]
) -> None:
    async with session_factory() as session:
        sources = ImageSources(SqlContentRepository(session))
        sticky = await sources.get_images(content["slider"], source="sticky")
        custom = await sources.get_images(
            content["slider"], source="custom", custom="portfolio"
        )
        no_type = await sources.get_images(content["slider"], source="custom")

    assert [image.post_title for image in sticky] == ["Big news"]
    assert [image.attachment_id for image in custom] == [content["first"]]
    assert custom[0].post_permalink == "http://example.com/one"
    assert no_type == []


@pytest.mark.asyncio
async def test_feed_images(
    session_factory: async_sessionmaker[AsyncSession],
    content: dict[str, int],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(config, "MEDIA_FEED_SAFE_MODE", True)
    feed = FakeFeed(
        "flickr",
        images=[
            FeedImage(
                full="https://img.example.com/1.jpg",
                thumbnail="https://img.example.com/1_t.jpg",
                link="https://flickr.example.com/p/1",
                caption="Sunset",
            )
        ],
    )
    await _set_options(
        session_factory,
        content["slider"],
        {
            "source": "flickr",
            "flickr_type": "user_media",
            "flickr_user_media": "jane",
        },
    )

    async with session_factory() as session:
        sources = ImageSources(SqlContentRepository(session), feeds={"flickr": feed})
        images = await sources.get_images(content["slider"], size="medium")
        thumbs = await sources.get_images(content["slider"], size="thumbnail", limit=3)

    assert images == [
        ImageRecord(
            image_src="https://img.example.com/1.jpg",
            post_permalink="https://flickr.example.com/p/1",
            post_title="Sunset",
            alt_text="Sunset",
            thumbnail="https://img.example.com/1_t.jpg",
        )
    ]
    assert thumbs[0].image_src == "https://img.example.com/1_t.jpg"
    assert feed.calls == [
        {
            "method": "user_media",
            "param": "jane",
            "count": 20,
            "page": 1,
            "safe_mode": True,
        },
        {
            "method": "user_media",
            "param": "jane",
            "count": 3,
            "page": 1,
            "safe_mode": True,
        },
    ]


@pytest.mark.asyncio
async def test_feed_without_method_or_failing(
    session_factory: async_sessionmaker[AsyncSession], content: dict[str, int]
) -> None:
    failing = FakeFeed("picasa", error=MediaFeedError("down", "picasa"))

    async with session_factory() as session:
        sources = ImageSources(
            SqlContentRepository(session),
            feeds={"flickr": FakeFeed("flickr"), "picasa": failing},
        )
        no_method = await sources.get_images(content["slider"], source="flickr")
        failed = await sources.get_images(
            content["slider"], source="picasa", method="album"
        )
        unknown = await sources.get_images(content["slider"], source="myspace")

    assert no_method == []
    assert failed == []
    assert len(failing.calls) == 1
    assert unknown == []


@pytest.mark.asyncio
async def test_unknown_source_option_falls_back_to_manual(
    session_factory: async_sessionmaker[AsyncSession], content: dict[str, int]
) -> None:
    await _set_options(
        session_factory,
        content["slider"],
        {"source": "myspace", "manual_image_ids": str(content["small"])},
    )

    async with session_factory() as session:
        images = await ImageSources(SqlContentRepository(session)).get_images(
            content["slider"]
        )

    assert [image.attachment_id for image in images] == [content["small"]]


def test_prepare_attachment_link() -> None:
    assert prepare_attachment_link(" example.com/page ") == "http://example.com/page"
    assert prepare_attachment_link("<a>https://x.org</a>") == "https://x.org"
    assert prepare_attachment_link("") == ""
    assert prepare_attachment_link(None) == ""


def test_strip_tags() -> None:
    assert strip_tags("<em>Sunny</em> day ") == "Sunny day"
    assert strip_tags(None) == ""
