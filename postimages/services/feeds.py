"""Third-party media feed providers.

A feed exposes one or more listing methods (for example ``user_media`` or
``tag``) that return remote images ready for display.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from postimages.config import config

logger = logging.getLogger("postimages.feeds")

DEFAULT_FEED_COUNT = 20


@dataclass(frozen=True)
class FeedImage:
    """An image returned by a media feed."""

    full: str
    thumbnail: str
    link: str = ""
    caption: str = ""

    def src(self, size: str) -> str:
        return self.thumbnail if size == "thumbnail" else self.full


class MediaFeedError(Exception):
    """Exception raised when a media feed cannot be read."""

    def __init__(self, message: str, feed: str | None = None) -> None:
        super().__init__(message)
        self.feed = feed


class MediaFeedProvider(ABC):
    """Abstract base class for media feeds."""

    def __init__(self, name: str) -> None:
        self.name = name

    @property
    def label(self) -> str:
        return f"{self.name[:1].upper()}{self.name[1:]} Feed"

    @abstractmethod
    async def fetch(
        self,
        method: str,
        param: str | None = None,
        *,
        count: int = DEFAULT_FEED_COUNT,
        page: int = 1,
        safe_mode: bool = True,
    ) -> list[FeedImage]:
        """Fetch one page of images.

        Args:
            method: Listing method of the feed
            param: Method argument (user name, tag, album id, ...)
            count: Number of images per page
            page: Page number, starting at 1
            safe_mode: Ask the feed to filter unsafe content

        Raises:
            MediaFeedError: If the feed cannot be read
        """
        pass


class HttpMediaFeed(MediaFeedProvider):
    """Media feed served as JSON over HTTP.

    ``GET {base_url}/{method}`` must answer with
    ``{"images": [{"full": ..., "thumbnail": ..., "link": ..., "caption": ...}]}``.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        *,
        access_token: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(name)
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout if timeout is not None else config.MEDIA_FEED_TIMEOUT
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def fetch(
        self,
        method: str,
        param: str | None = None,
        *,
        count: int = DEFAULT_FEED_COUNT,
        page: int = 1,
        safe_mode: bool = True,
    ) -> list[FeedImage]:
        params: dict[str, Any] = {
            "count": count,
            "page": page,
            "safemode": 1 if safe_mode else 0,
        }
        if param:
            params["q"] = param

        url = f"{self.base_url}/{method.strip('/')}"
        try:
            if self._client is not None:
                response = await self._client.get(
                    url, params=params, headers=self._headers()
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(
                        url, params=params, headers=self._headers()
                    )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise MediaFeedError(f"Failed to fetch {url}: {exc}", self.name) from exc

        images = payload.get("images") if isinstance(payload, Mapping) else None
        if not isinstance(images, list):
            raise MediaFeedError(f"Unexpected response from {url}", self.name)

        result = [_parse_image(item) for item in images if isinstance(item, Mapping)]
        logger.debug("Fetched %d images from %s feed", len(result), self.name)
        return [image for image in result if image is not None]


def _parse_image(item: Mapping[str, Any]) -> FeedImage | None:
    full = item.get("full")
    if not isinstance(full, str) or not full:
        return None
    thumbnail = item.get("thumbnail")
    return FeedImage(
        full=full,
        thumbnail=thumbnail if isinstance(thumbnail, str) and thumbnail else full,
        link=str(item.get("link") or ""),
        caption=str(item.get("caption") or ""),
    )


def load_media_feeds(
    feeds: Mapping[str, str] | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> dict[str, MediaFeedProvider]:
    """Build the HTTP media feeds listed in the configuration."""
    if feeds is None:
        feeds = config.MEDIA_FEEDS
    providers: dict[str, MediaFeedProvider] = {}
    for name, base_url in feeds.items():
        providers[name] = HttpMediaFeed(
            name, base_url, access_token=config.MEDIA_FEED_TOKEN, client=client
        )
        logger.debug("Registered %s media feed at %s", name, base_url)
    return providers
