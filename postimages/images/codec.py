"""Image codec used to produce resized and cropped variants."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from PIL import Image as PilImage
from PIL import ImageOps

from postimages.images.dimensions import constrain_dimensions, probe_dimensions

DEFAULT_QUALITY = 90

# Formats that cannot store an alpha channel or a palette.
_OPAQUE_FORMATS = {"JPEG"}


@dataclass
class EditorHandle:
    """An image opened for editing."""

    path: Path
    image: PilImage.Image
    format: str | None
    quality: int = DEFAULT_QUALITY

    @property
    def size(self) -> tuple[int, int]:
        width, height = self.image.size
        return int(width), int(height)


class ImageCodec(Protocol):
    """Operations the variant resolver needs from an image codec."""

    def open(self, path: Path) -> EditorHandle: ...

    def set_quality(self, handle: EditorHandle, quality: int) -> None: ...

    def resize(
        self, handle: EditorHandle, width: int, height: int, crop: bool
    ) -> tuple[int, int]: ...

    def save(self, handle: EditorHandle, dest: Path) -> None: ...

    def probe_dimensions(self, path: Path) -> tuple[int, int]: ...


class PillowImageCodec:
    """Image codec backed by Pillow."""

    def __init__(self, resample: PilImage.Resampling = PilImage.Resampling.LANCZOS):
        self.resample = resample

    def open(self, path: Path) -> EditorHandle:
        with PilImage.open(path) as source:
            image_format = source.format
            source.load()
            image = source.copy()
        return EditorHandle(path=path, image=image, format=image_format)

    def set_quality(self, handle: EditorHandle, quality: int) -> None:
        if not 1 <= quality <= 100:
            raise ValueError(f"Quality must be between 1 and 100, got {quality}")
        handle.quality = quality

    def resize(
        self, handle: EditorHandle, width: int, height: int, crop: bool
    ) -> tuple[int, int]:
        """Resize the handle's image in place.

        With ``crop`` the image is scaled to cover the box and the overflow is
        cut from the center, so the result is exactly ``width`` x ``height``.
        Without it the image is scaled to fit inside the box.

        Returns:
            The new (width, height)
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid target size {width}x{height}")

        if crop:
            handle.image = ImageOps.fit(
                handle.image, (width, height), method=self.resample
            )
        else:
            current_width, current_height = handle.size
            size = constrain_dimensions(current_width, current_height, width, height)
            if size != handle.size:
                handle.image = handle.image.resize(size, self.resample)
        return handle.size

    def save(self, handle: EditorHandle, dest: Path) -> None:
        img = handle.image
        if handle.format in _OPAQUE_FORMATS and img.mode not in ("RGB", "L", "CMYK"):
            # Flatten transparency onto white, JPEG has no alpha channel
            rgba = img.convert("RGBA")
            background = PilImage.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            img = background

        dest.parent.mkdir(parents=True, exist_ok=True)
        img.save(dest, format=handle.format, quality=handle.quality)

    def probe_dimensions(self, path: Path) -> tuple[int, int]:
        return probe_dimensions(path)
