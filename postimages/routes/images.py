"""Image variant and image source routes."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from postimages.database import get_db
from postimages.images import (
    ImageReference,
    ImageVariantError,
    InvalidReference,
    SourceFileMissing,
    SourceNotFound,
    VariantRequest,
    VariantResolver,
)
from postimages.repository import SqlContentRepository
from postimages.services.sources import ImageSources

logger = logging.getLogger("postimages.routes")

router = APIRouter(tags=["images"])


def get_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SqlContentRepository:
    return SqlContentRepository(db)


def get_resolver(
    request: Request,
    repository: Annotated[SqlContentRepository, Depends(get_repository)],
) -> VariantResolver:
    state = request.app.state
    return VariantResolver(
        repository,
        state.codec,
        filters=state.filters,
        locks=state.variant_locks,
    )


def get_image_sources(
    request: Request,
    repository: Annotated[SqlContentRepository, Depends(get_repository)],
    resolver: Annotated[VariantResolver, Depends(get_resolver)],
) -> ImageSources:
    state = request.app.state
    return ImageSources(
        repository,
        resolver,
        filters=state.filters,
        sizes=state.image_sizes,
        feeds=state.media_feeds,
    )


@router.get("/images/variant")
async def image_variant(
    resolver: Annotated[VariantResolver, Depends(get_resolver)],
    width: Annotated[int, Query(gt=0)],
    height: Annotated[int, Query(gt=0)],
    item_id: int | None = None,
    url: str | None = None,
    crop: bool = False,
) -> dict[str, Any]:
    """Return the URL and size of an image variant, generating it if needed."""
    reference = ImageReference(item_id=item_id, url=url)
    try:
        variant = await resolver.resolve_variant(
            reference, VariantRequest(width, height, crop)
        )
    except InvalidReference as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (SourceNotFound, SourceFileMissing) as exc:
        raise HTTPException(
            status.HTTP_404_NOT_FOUND, detail="Image not found"
        ) from exc
    except ImageVariantError as exc:
        logger.error("Failed to resolve variant of %s: %s", reference, exc)
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Image processing failed"
        ) from exc

    return variant.as_dict()


@router.get("/images/sizes")
async def image_sizes(request: Request) -> dict[str, str]:
    """List the image sizes."""
    return request.app.state.image_sizes.get_image_sizes()


@router.get("/images/sources")
async def image_sources(
    sources: Annotated[ImageSources, Depends(get_image_sources)],
) -> dict[str, str]:
    """List the available image sources."""
    return await sources.get_image_sources()


@router.get("/posts/{post_id}/images")
async def post_images(
    post_id: int,
    sources: Annotated[ImageSources, Depends(get_image_sources)],
    size: str = "",
    limit: Annotated[int | None, Query(ge=-1)] = None,
    source: str | None = None,
) -> list[dict[str, Any]]:
    """List the images displayed for a post."""
    if await sources.repository.get_post(post_id) is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Post not found")

    images = await sources.get_images(post_id, size=size, limit=limit, source=source)
    return [image.as_dict() for image in images]
