"""Main FastAPI application."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles

from postimages.config import config
from postimages.database import init_db
from postimages.hooks import FilterRegistry
from postimages.images import ImageSizeRegistry, PathLocks, PillowImageCodec
from postimages.logging_config import configure_logging
from postimages.services.feeds import load_media_feeds


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan manager."""
    await init_db()
    yield


configure_logging(debug=config.DEBUG)
config.ensure_media_dirs()


app = FastAPI(
    title="Postimages",
    description="Post image sources with on-demand resized variants",
    version="0.1.0",
    lifespan=lifespan,
)

# Shared by every request; resolvers are built per database session
app.state.filters = FilterRegistry()
app.state.image_sizes = ImageSizeRegistry(app.state.filters)
app.state.variant_locks = PathLocks()
app.state.codec = PillowImageCodec()
app.state.media_feeds = load_media_feeds()

# Mount media files
app.mount("/media", StaticFiles(directory=str(config.MEDIA_ROOT)), name="media")


access_logger = logging.getLogger("postimages.access")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests similar to the access log."""

    response = await call_next(request)
    client_host = "-"
    if request.client is not None:
        client_host = request.client.host or "-"

    access_logger.info(
        '%s - "%s %s" %s',
        client_host,
        request.method,
        request.url.path,
        response.status_code,
    )
    return response


# Health check endpoint
@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


# Import routes
from postimages.routes import images  # noqa: E402

app.include_router(images.router)
