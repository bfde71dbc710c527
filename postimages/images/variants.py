"""Resolve resized and cropped variants of stored images.

Variants live next to their source file and are named after it, the target
size and the resize mode, e.g. ``photo-140x70.jpg`` for an image scaled to
fit and ``photo-140x110-crop.jpg`` for one cropped to fill. The name is the
cache key: a variant that already exists on disk is returned as is.
"""

from __future__ import annotations

import logging
import os
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit, urlunsplit

import anyio

from postimages.config import config
from postimages.hooks import FilterRegistry
from postimages.images.codec import ImageCodec, PillowImageCodec
from postimages.images.dimensions import constrain_dimensions
from postimages.images.errors import (
    CodecFailure,
    CodecStage,
    DimensionProbeFailure,
    InvalidReference,
    SourceFileMissing,
    SourceNotFound,
)
from postimages.repository import ContentRepository

logger = logging.getLogger("postimages.images")

QUALITY_FILTER = "image_editor_quality"
CROP_TAG = "crop"


@dataclass(frozen=True)
class ImageReference:
    """Points at a source image by content item id or by URL."""

    item_id: int | None = None
    url: str | None = None


@dataclass(frozen=True)
class VariantRequest:
    """Target bounding box and resize mode."""

    target_width: int
    target_height: int
    crop: bool = False

    def __post_init__(self) -> None:
        if self.target_width <= 0 or self.target_height <= 0:
            raise ValueError(
                f"Invalid target size {self.target_width}x{self.target_height}"
            )


@dataclass(frozen=True)
class SourceImage:
    """A resolved source image."""

    path: Path
    original_width: int
    original_height: int
    source_url: str


@dataclass(frozen=True)
class VariantDescriptor:
    """The image to display."""

    url: str
    width: int
    height: int

    def as_dict(self) -> dict[str, str | int]:
        return {"url": self.url, "width": self.width, "height": self.height}


def derived_filename(
    path: Path, width: int, height: int, *, crop: bool = False
) -> Path:
    """Return the cache path of a ``width`` x ``height`` variant of ``path``."""
    tag = f"-{CROP_TAG}" if crop else ""
    return path.with_name(f"{path.stem}-{width}x{height}{tag}{path.suffix.lower()}")


def variant_url(source_url: str, variant_path: Path) -> str:
    """Swap the file name at the end of ``source_url`` for the variant's."""
    parts = urlsplit(source_url)
    head, sep, _name = parts.path.rpartition("/")
    name = quote(variant_path.name)
    return urlunsplit(parts._replace(path=f"{head}{sep}{name}"))


def path_from_url(url: str, document_root: Path) -> Path:
    """Map an image URL onto a file below ``document_root``.

    Raises:
        InvalidReference: If the URL path points outside the document root
    """
    root = document_root.resolve()
    relative = unquote(urlsplit(url).path).lstrip("/")
    candidate = (root / relative).resolve()
    if not candidate.is_relative_to(root):
        raise InvalidReference(f"Image URL escapes the document root: {url}")
    return candidate


@dataclass
class _PathLock:
    lock: threading.Lock
    users: int = 0


class PathLocks:
    """In-process locks keyed by file path.

    Entries are dropped once no thread holds or waits for them.
    """

    def __init__(self) -> None:
        self._locks: dict[Path, _PathLock] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, path: Path) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(path)
            if entry is None:
                entry = self._locks[path] = _PathLock(threading.Lock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[path]


class VariantResolver:
    """Produce and cache image variants.

    Generation of a given variant file is serialised inside the process and
    each file is written to a temporary name first, then renamed into place,
    so concurrent requests never observe a half-written variant.
    """

    def __init__(
        self,
        repository: ContentRepository | None = None,
        codec: ImageCodec | None = None,
        *,
        filters: FilterRegistry | None = None,
        document_root: Path | None = None,
        quality: int | None = None,
        locks: PathLocks | None = None,
    ) -> None:
        self.repository = repository
        self.codec: ImageCodec = codec or PillowImageCodec()
        self.filters = filters or FilterRegistry()
        self.document_root = document_root or config.DOCUMENT_ROOT
        self.quality = quality if quality is not None else config.IMAGE_QUALITY
        self.locks = locks if locks is not None else PathLocks()

    async def resolve_variant(
        self, reference: ImageReference, request: VariantRequest
    ) -> VariantDescriptor:
        """Return the variant of ``reference`` that fits ``request``.

        File system and codec work runs in a worker thread.
        """
        source = await self.resolve_source(reference)
        return await anyio.to_thread.run_sync(
            self.resolve_source_variant, source, request
        )

    async def resolve_source(self, reference: ImageReference) -> SourceImage:
        """Resolve an image reference to its file, URL and original size.

        Raises:
            InvalidReference: Not exactly one of item id and URL was given
            SourceNotFound: The repository has no record for the item
            SourceFileMissing: The URL does not map to an existing file
        """
        has_item = reference.item_id is not None
        has_url = bool(reference.url)
        if has_item == has_url:
            raise InvalidReference("Exactly one of item_id or url is required")

        if reference.item_id is not None:
            if self.repository is None:
                raise InvalidReference("No content repository to resolve items")
            stored = await self.repository.resolve_item(reference.item_id)
            if stored is None:
                raise SourceNotFound(reference.item_id)
            return SourceImage(
                path=stored.path,
                original_width=stored.width,
                original_height=stored.height,
                source_url=stored.url,
            )

        url = str(reference.url)
        return await anyio.to_thread.run_sync(self._source_from_url, url)

    def _source_from_url(self, url: str) -> SourceImage:
        path = path_from_url(url, self.document_root)
        if not path.is_file():
            raise SourceFileMissing(path)

        # Read the header; stored metadata is not trusted for URL sources
        width, height = self.codec.probe_dimensions(path)
        return SourceImage(
            path=path, original_width=width, original_height=height, source_url=url
        )

    def resolve_source_variant(
        self, source: SourceImage, request: VariantRequest
    ) -> VariantDescriptor:
        """Return a cached or freshly generated variant of ``source``."""
        target_width, target_height = request.target_width, request.target_height

        if (
            source.original_width <= target_width
            and source.original_height <= target_height
        ):
            return VariantDescriptor(
                url=source.source_url,
                width=source.original_width,
                height=source.original_height,
            )

        if request.crop:
            width, height = target_width, target_height
        else:
            width, height = constrain_dimensions(
                source.original_width,
                source.original_height,
                target_width,
                target_height,
            )
        cached = derived_filename(source.path, width, height, crop=request.crop)

        if cached.exists():
            logger.debug("Variant cache hit: %s", cached)
            return VariantDescriptor(
                url=variant_url(source.source_url, cached), width=width, height=height
            )

        with self.locks.hold(cached):
            # Another thread may have produced it while we waited
            if cached.exists():
                return VariantDescriptor(
                    url=variant_url(source.source_url, cached),
                    width=width,
                    height=height,
                )
            return self._generate(source, request, cached)

    def _generate(
        self,
        source: SourceImage,
        request: VariantRequest,
        cached: Path,
    ) -> VariantDescriptor:
        quality = self.filters.apply_filters(QUALITY_FILTER, self.quality, source.path)

        try:
            handle = self.codec.open(source.path)
            self.codec.set_quality(handle, quality)
        except Exception as exc:
            raise CodecFailure(CodecStage.OPEN, source.path, exc) from exc

        try:
            self.codec.resize(
                handle, request.target_width, request.target_height, request.crop
            )
        except Exception as exc:
            raise CodecFailure(CodecStage.RESIZE, source.path, exc) from exc

        temp_path = cached.with_name(
            f".{cached.stem}.{uuid.uuid4().hex[:8]}.tmp{cached.suffix}"
        )
        try:
            self.codec.save(handle, temp_path)
        except Exception as exc:
            temp_path.unlink(missing_ok=True)
            raise CodecFailure(CodecStage.SAVE, source.path, exc) from exc

        try:
            # The codec decides the final size in fit mode
            width, height = self.codec.probe_dimensions(temp_path)
        except DimensionProbeFailure:
            temp_path.unlink(missing_ok=True)
            raise
        except Exception as exc:
            temp_path.unlink(missing_ok=True)
            raise DimensionProbeFailure(temp_path, exc) from exc

        try:
            os.replace(temp_path, cached)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise CodecFailure(CodecStage.SAVE, source.path, exc) from exc

        logger.info(
            "Generated %s (%dx%d, quality %s) from %s",
            cached.name,
            width,
            height,
            quality,
            source.path.name,
        )
        return VariantDescriptor(
            url=variant_url(source.source_url, cached), width=width, height=height
        )
