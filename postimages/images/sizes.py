"""Named image sizes."""

from __future__ import annotations

from dataclasses import dataclass

from postimages.hooks import FilterRegistry

FULL_SIZE = "full"
THUMBNAIL_SIZE = "thumbnail"
SIZES_FILTER = "intermediate_image_sizes"


@dataclass(frozen=True)
class ImageSize:
    """Bounding box of a named size."""

    name: str
    width: int
    height: int
    crop: bool = False


STANDARD_SIZES = (
    ImageSize(THUMBNAIL_SIZE, 150, 150, crop=True),
    ImageSize("medium", 300, 300),
    ImageSize("large", 1024, 1024),
)


class ImageSizeRegistry:
    """The standard sizes plus any registered additional sizes."""

    def __init__(self, filters: FilterRegistry | None = None) -> None:
        self.filters = filters or FilterRegistry()
        self._sizes: dict[str, ImageSize] = {size.name: size for size in STANDARD_SIZES}
        self._additional: list[str] = []

    def add_image_size(
        self, name: str, width: int, height: int, crop: bool = False
    ) -> ImageSize:
        if name == FULL_SIZE:
            raise ValueError(f"{FULL_SIZE!r} is reserved for the original image")
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid size {width}x{height} for {name!r}")

        size = ImageSize(name, width, height, crop)
        if name not in self._sizes:
            self._additional.append(name)
        self._sizes[name] = size
        return size

    def get(self, name: str) -> ImageSize | None:
        """Return the size called ``name``; None for ``full`` or unknown names."""
        return self._sizes.get(name)

    def names(self) -> list[str]:
        names = [size.name for size in STANDARD_SIZES] + [FULL_SIZE]
        names.extend(self._additional)
        return list(self.filters.apply_filters(SIZES_FILTER, names))

    def get_image_sizes(self) -> dict[str, str]:
        """Map every size name to a display label."""
        return {name: name[:1].upper() + name[1:] for name in self.names()}
