"""Errors raised while resolving image variants.

Every error is terminal for the current call. Callers decide whether to show
a placeholder instead.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class CodecStage(str, Enum):
    """Step of the image codec pipeline that failed."""

    OPEN = "edit-open"
    RESIZE = "resize"
    SAVE = "save"


class ImageVariantError(Exception):
    """Base class for image variant errors."""


class InvalidReference(ImageVariantError):
    """Raised when an image reference cannot be used."""


class SourceNotFound(ImageVariantError):
    """Raised when the content repository has no record for an item."""

    def __init__(self, item_id: int) -> None:
        super().__init__(f"No stored image for item {item_id}")
        self.item_id = item_id


class SourceFileMissing(ImageVariantError):
    """Raised when the source file does not exist on disk."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"File doesn't exist: {path}")
        self.path = path


class DimensionProbeFailure(ImageVariantError):
    """Raised when a raster header cannot be read."""

    def __init__(self, path: Path, cause: Exception | None = None) -> None:
        super().__init__(f"Unable to read image dimensions: {path}")
        self.path = path
        self.cause = cause


class CodecFailure(ImageVariantError):
    """Wrap an image codec error with the stage it happened in.

    The original exception is kept on ``cause`` (and chained) so callers can
    tell a file that cannot be opened from one that cannot be written.
    """

    def __init__(self, stage: CodecStage, path: Path, cause: Exception) -> None:
        """Initialize the error.

        Args:
            stage: Codec stage that failed
            path: Source image being processed
            cause: Exception raised by the codec
        """
        super().__init__(
            f"Image codec failed during {stage.value} of {path}: {cause}"
        )
        self.stage = stage
        self.path = path
        self.cause = cause


__all__ = [
    "CodecFailure",
    "CodecStage",
    "DimensionProbeFailure",
    "ImageVariantError",
    "InvalidReference",
    "SourceFileMissing",
    "SourceNotFound",
]
