"""Image sources: which images are displayed for a post.

A post's options select one source:

* ``manual``: a hand-picked, comma separated list of attachment ids
* ``gallery``: the attachments of a gallery post
* ``category``: featured images of the posts in a category
* ``sticky``: featured images of sticky posts
* ``custom``: featured images of the posts of a custom post type
* any registered media feed (``<name>``): images fetched from the feed
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any

from bs4 import BeautifulSoup

from postimages.config import config
from postimages.hooks import FilterRegistry
from postimages.images.errors import ImageVariantError
from postimages.images.sizes import FULL_SIZE, THUMBNAIL_SIZE, ImageSizeRegistry
from postimages.images.variants import ImageReference, VariantRequest, VariantResolver
from postimages.models import Attachment, Post
from postimages.repository import PostRepository
from postimages.services.feeds import (
    DEFAULT_FEED_COUNT,
    MediaFeedError,
    MediaFeedProvider,
)

logger = logging.getLogger("postimages.sources")

GALLERY_SOURCE = "gallery"
CATEGORY_SOURCE = "category"
STICKY_SOURCE = "sticky"
CUSTOM_SOURCE = "custom"

FEED_EXCLUDE_FILTER = "media_feed_exclude"


@dataclass(frozen=True)
class SourceLabels:
    """Names used for the option keys and filters of one plugin."""

    post_type: str = "slider"
    manual_name: str = "manual"
    source_name: str = "source"
    type_name: str = "slider"


@dataclass(frozen=True)
class ImageRecord:
    """An image ready to be displayed for a post."""

    image_src: str
    post_permalink: str
    post_title: str
    alt_text: str
    thumbnail: str
    attachment_id: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def strip_tags(value: str | None) -> str:
    """Return the text content of an HTML fragment."""
    if not value:
        return ""
    if "<" not in value:
        return value.strip()
    return BeautifulSoup(value, "html.parser").get_text().strip()


def prepare_attachment_link(url: str | None) -> str:
    """Clean up a user entered link, adding a scheme when it has none."""
    url = strip_tags(url)
    if url and "://" not in url:
        url = f"http://{url}"
    return url


def get_post_permalink(post_id: int) -> str:
    return f"{config.SITE_URL}/?p={post_id}"


def get_attachment_page_url(attachment_id: int) -> str:
    return f"{config.SITE_URL}/?attachment_id={attachment_id}"


def _to_int(value: Any) -> int | None:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


class ImageSources:
    """List the images of a post according to its image source."""

    def __init__(
        self,
        repository: PostRepository,
        resolver: VariantResolver | None = None,
        *,
        labels: SourceLabels | None = None,
        filters: FilterRegistry | None = None,
        sizes: ImageSizeRegistry | None = None,
        feeds: Mapping[str, MediaFeedProvider] | None = None,
    ) -> None:
        self.repository = repository
        self.filters = filters or FilterRegistry()
        self.resolver = resolver or VariantResolver(repository, filters=self.filters)
        self.labels = labels or SourceLabels()
        self.sizes = sizes or ImageSizeRegistry(self.filters)
        self.feeds: dict[str, MediaFeedProvider] = dict(feeds or {})

    def image_source_default(self) -> str:
        """Return the source used when a post selects none."""
        return self.filters.apply_filters(
            f"{self.labels.post_type}_image_source_default", self.labels.manual_name
        )

    async def image_sources_defaults(self) -> dict[str, str]:
        """Return the built-in sources, keyed by name."""
        defaults = {
            self.labels.manual_name: "Manual",
            GALLERY_SOURCE: "Gallery",
            CATEGORY_SOURCE: "Category",
            STICKY_SOURCE: "Sticky Posts",
        }
        if await self.repository.get_custom_post_types():
            defaults[CUSTOM_SOURCE] = "Custom Post Type"

        return self.filters.apply_filters(
            f"{self.labels.post_type}_image_sources_defaults", defaults
        )

    async def get_image_sources(self) -> dict[str, str]:
        """Return the built-in sources plus the registered media feeds."""
        sources = await self.image_sources_defaults()
        exclude: Collection[str] = self.filters.apply_filters(FEED_EXCLUDE_FILTER, [])
        for name, feed in self.feeds.items():
            if name in exclude:
                continue
            sources[name] = feed.label

        return self.filters.apply_filters(
            f"{self.labels.post_type}_get_image_sources", sources
        )

    async def get_images(
        self,
        post_id: int,
        size: str = "",
        limit: int | None = None,
        source: str | None = None,
        method: str | None = None,
        param: str | None = None,
        gallery: int | None = None,
        category: str | None = None,
        custom: str | None = None,
        image_ids: str | None = None,
    ) -> list[ImageRecord]:
        """Return the images to display for a post.

        Arguments override the matching post options.

        Args:
            post_id: Post whose options select the source
            size: Image size name; defaults to the post option, then ``full``
            limit: Maximum number of images, -1 for all
            source: Image source name
            method: Media feed listing method
            param: Media feed method argument
            gallery: Gallery post id
            category: Category name
            custom: Custom post type
            image_ids: Comma separated attachment ids, saved to the post

        Returns:
            Image records in display order
        """
        post = await self.repository.get_post(post_id)
        options = post.option_dict() if post is not None else {}

        if not size:
            size = str(options.get("wp_image_size") or FULL_SIZE)

        image_source = options.get(self.labels.source_name)
        if image_source is None or image_source not in await self.get_image_sources():
            image_source = self.image_source_default()
        if source:
            image_source = source

        max_images = limit or _to_int(options.get("number_images")) or -1

        type_name = self.labels.type_name
        if image_source == self.labels.manual_name:
            if image_ids:
                options["manual_image_ids"] = image_ids
                if post is not None:
                    await self.repository.update_post_options(post, options)
            else:
                image_ids = str(options.get("manual_image_ids") or "")
            return await self._manual_images(image_ids, size, max_images)

        if image_source == GALLERY_SOURCE:
            gallery_id = _to_int(gallery or options.get(f"{type_name}_gallery"))
            if gallery_id is None:
                return []
            return await self._gallery_images(gallery_id, size, max_images)

        if image_source == CATEGORY_SOURCE:
            category = category or options.get(f"{type_name}_category")
            posts = await self.repository.get_posts(category=category, limit=max_images)
            return await self._featured_images(posts, size)

        if image_source == STICKY_SOURCE:
            sticky = await self.repository.get_sticky_post_ids()
            posts = await self.repository.get_posts(ids=sticky, limit=max_images)
            return await self._featured_images(posts, size)

        if image_source == CUSTOM_SOURCE:
            custom = custom or options.get(f"{type_name}_custom")
            if not custom:
                return []
            posts = await self.repository.get_posts(post_type=custom, limit=max_images)
            return await self._featured_images(posts, size)

        return await self._feed_images(
            image_source, options, size, max_images, method, param
        )

    async def attachment_image_src(self, attachment_id: int, size: str) -> str | None:
        """Return the URL of an attachment at a named size.

        Unknown sizes and ``full`` give the original image. Returns None when
        the image cannot be resolved.
        """
        image_size = self.sizes.get(size)
        try:
            if image_size is None:
                stored = await self.repository.resolve_item(attachment_id)
                return stored.url if stored is not None else None

            variant = await self.resolver.resolve_variant(
                ImageReference(item_id=attachment_id),
                VariantRequest(image_size.width, image_size.height, image_size.crop),
            )
        except ImageVariantError as exc:
            logger.warning(
                "Unable to resolve %s image of attachment %s: %s",
                size,
                attachment_id,
                exc,
            )
            return None
        return variant.url

    async def _attachment_record(
        self,
        attachment: Attachment,
        size: str,
        *,
        title: str,
        alt_text: str,
        link: str,
    ) -> ImageRecord | None:
        image_src = await self.attachment_image_src(attachment.id, size)
        if image_src is None:
            return None
        thumbnail = await self.attachment_image_src(attachment.id, THUMBNAIL_SIZE)
        return ImageRecord(
            image_src=image_src,
            post_permalink=link,
            post_title=title,
            alt_text=alt_text,
            thumbnail=thumbnail or image_src,
            attachment_id=attachment.id,
        )

    async def _manual_images(
        self, image_ids: str, size: str, limit: int
    ) -> list[ImageRecord]:
        images: list[ImageRecord] = []
        count = 0
        for raw_id in image_ids.split(","):
            if not raw_id.strip():
                continue
            count += 1
            if limit != -1 and count > limit:
                break

            attachment_id = _to_int(raw_id)
            attachment = (
                await self.repository.get_attachment(attachment_id)
                if attachment_id is not None
                else None
            )
            if attachment is None:
                logger.warning("Skipping unknown attachment %r", raw_id.strip())
                continue

            record = await self._attachment_record(
                attachment,
                size,
                title=attachment.caption or "",
                alt_text=strip_tags(attachment.alt_text),
                link=prepare_attachment_link(attachment.link),
            )
            if record is not None:
                images.append(record)
        return images

    async def _gallery_images(
        self, gallery_id: int, size: str, limit: int
    ) -> list[ImageRecord]:
        images: list[ImageRecord] = []
        attachments = await self.repository.get_gallery_attachments(gallery_id, limit)
        for attachment in attachments:
            caption = attachment.caption or ""
            record = await self._attachment_record(
                attachment,
                size,
                title=caption,
                alt_text=caption,
                link=get_attachment_page_url(attachment.id),
            )
            if record is not None:
                images.append(record)
        return images

    async def _featured_images(
        self, posts: Sequence[Post], size: str
    ) -> list[ImageRecord]:
        images: list[ImageRecord] = []
        for post in posts:
            if post.thumbnail_id is None:
                continue
            attachment = await self.repository.get_attachment(post.thumbnail_id)
            if attachment is None:
                continue

            if attachment.link:
                link = prepare_attachment_link(attachment.link)
            else:
                link = get_post_permalink(post.id)
            record = await self._attachment_record(
                attachment,
                size,
                title=post.title,
                alt_text=post.title,
                link=link,
            )
            if record is not None:
                images.append(record)
        return images

    async def _feed_images(
        self,
        name: str,
        options: Mapping[str, Any],
        size: str,
        limit: int,
        method: str | None,
        param: str | None,
    ) -> list[ImageRecord]:
        feed = self.feeds.get(name)
        if feed is None:
            return []

        method = method or str(options.get(f"{name}_type") or "")
        if not method:
            return []
        param = param or options.get(f"{name}_{method}")
        count = DEFAULT_FEED_COUNT if limit == -1 else limit
        if size != THUMBNAIL_SIZE:
            size = FULL_SIZE

        try:
            feed_images = await feed.fetch(
                method,
                param,
                count=count,
                page=1,
                safe_mode=config.MEDIA_FEED_SAFE_MODE,
            )
        except MediaFeedError as exc:
            logger.warning("Media feed %s failed: %s", name, exc)
            return []

        return [
            ImageRecord(
                image_src=image.src(size),
                post_permalink=image.link,
                post_title=image.caption,
                alt_text=image.caption,
                thumbnail=image.thumbnail,
            )
            for image in feed_images
        ]
