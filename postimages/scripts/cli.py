"""CLI tool for Postimages."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from postimages.database import AsyncSessionLocal, init_db
from postimages.images import (
    ImageReference,
    ImageSizeRegistry,
    ImageVariantError,
    VariantRequest,
    VariantResolver,
)
from postimages.repository import SqlContentRepository
from postimages.services.feeds import load_media_feeds
from postimages.services.sources import ImageSources


async def show_variant(
    item_id: int | None, url: str | None, width: int, height: int, crop: bool
) -> None:
    """Resolve an image variant and print it as JSON."""
    await init_db()
    async with AsyncSessionLocal() as session:
        resolver = VariantResolver(SqlContentRepository(session))
        try:
            variant = await resolver.resolve_variant(
                ImageReference(item_id=item_id, url=url),
                VariantRequest(width, height, crop),
            )
        except ImageVariantError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
    print(json.dumps(variant.as_dict(), indent=2))


async def list_images(
    post_id: int, size: str, limit: int | None, source: str | None
) -> None:
    """Print the images displayed for a post."""
    await init_db()
    async with AsyncSessionLocal() as session:
        repository = SqlContentRepository(session)
        if await repository.get_post(post_id) is None:
            print(f"Post {post_id} not found.", file=sys.stderr)
            sys.exit(1)
        sources = ImageSources(repository, feeds=load_media_feeds())
        images = await sources.get_images(
            post_id, size=size, limit=limit, source=source
        )
    print(json.dumps([image.as_dict() for image in images], indent=2))


def list_sizes() -> None:
    """Print the image sizes."""
    for name, label in ImageSizeRegistry().get_image_sizes().items():
        print(f"{name}: {label}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Postimages CLI tool.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # variant
    variant_parser = subparsers.add_parser(
        "variant", help="Resolve (and generate) an image variant"
    )
    reference = variant_parser.add_mutually_exclusive_group(required=True)
    reference.add_argument("--item-id", type=int, help="Attachment id")
    reference.add_argument("--url", help="Image URL below the document root")
    variant_parser.add_argument("--width", type=int, required=True)
    variant_parser.add_argument("--height", type=int, required=True)
    variant_parser.add_argument(
        "--crop", action="store_true", help="Crop to exactly fill the box"
    )

    # images
    images_parser = subparsers.add_parser("images", help="List the images of a post")
    images_parser.add_argument("post_id", type=int, help="Post id")
    images_parser.add_argument("--size", default="", help="Image size name")
    images_parser.add_argument("--limit", type=int, help="Maximum number of images")
    images_parser.add_argument("--source", help="Override the post's image source")

    # sizes
    subparsers.add_parser("sizes", help="List image sizes")

    args = parser.parse_args()

    if args.command == "variant":
        if args.width <= 0 or args.height <= 0:
            parser.error("--width and --height must be positive")
        asyncio.run(
            show_variant(args.item_id, args.url, args.width, args.height, args.crop)
        )
    elif args.command == "images":
        asyncio.run(list_images(args.post_id, args.size, args.limit, args.source))
    elif args.command == "sizes":
        list_sizes()


if __name__ == "__main__":
    main()
