"""Image dimension helpers."""

from __future__ import annotations

from pathlib import Path

from PIL import Image as PilImage

from postimages.images.errors import DimensionProbeFailure


def probe_dimensions(path: Path) -> tuple[int, int]:
    """Return (width, height) read from the raster header of ``path``.

    Raises:
        DimensionProbeFailure: If the file is missing or not a readable image
    """
    try:
        with PilImage.open(path) as img:
            width, height = img.size
    except (OSError, ValueError) as exc:
        raise DimensionProbeFailure(path, exc) from exc
    return int(width), int(height)


def constrain_dimensions(
    width: int, height: int, max_width: int = 0, max_height: int = 0
) -> tuple[int, int]:
    """Scale (width, height) down to fit inside a bounding box.

    The aspect ratio is preserved and the result is the largest size that
    fits. A bound of 0 leaves that side unconstrained; sizes that already fit
    are returned unchanged.
    """
    if width <= 0 or height <= 0:
        return width, height

    width_ratio = max_width / width if 0 < max_width < width else 1.0
    height_ratio = max_height / height if 0 < max_height < height else 1.0
    ratio = min(width_ratio, height_ratio)
    if ratio >= 1.0:
        return width, height

    # The limiting side lands exactly on its bound, float error aside.
    if width_ratio <= height_ratio:
        new_width = max_width
        new_height = max(1, round(height * ratio))
    else:
        new_width = max(1, round(width * ratio))
        new_height = max_height

    return new_width, new_height
