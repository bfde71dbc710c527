"""Image variants: resolution, resizing and caching."""

from __future__ import annotations

from .codec import EditorHandle, ImageCodec, PillowImageCodec
from .dimensions import constrain_dimensions, probe_dimensions
from .errors import (
    CodecFailure,
    CodecStage,
    DimensionProbeFailure,
    ImageVariantError,
    InvalidReference,
    SourceFileMissing,
    SourceNotFound,
)
from .sizes import FULL_SIZE, ImageSize, ImageSizeRegistry
from .variants import (
    ImageReference,
    PathLocks,
    SourceImage,
    VariantDescriptor,
    VariantRequest,
    VariantResolver,
    derived_filename,
)

__all__ = [
    "FULL_SIZE",
    "CodecFailure",
    "CodecStage",
    "DimensionProbeFailure",
    "EditorHandle",
    "ImageCodec",
    "ImageReference",
    "ImageSize",
    "ImageSizeRegistry",
    "ImageVariantError",
    "InvalidReference",
    "PathLocks",
    "PillowImageCodec",
    "SourceFileMissing",
    "SourceImage",
    "SourceNotFound",
    "VariantDescriptor",
    "VariantRequest",
    "VariantResolver",
    "constrain_dimensions",
    "derived_filename",
    "probe_dimensions",
]
